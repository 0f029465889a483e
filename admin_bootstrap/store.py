"""Resource store used by the reconciler, and its Kubernetes implementation.

``ResourceStore`` is the typed surface the reconciler depends on.
``KubernetesStore`` implements it with the official client: Rancher
management objects through ``CustomObjectsApi``, the marker ConfigMap and
nodes through ``CoreV1Api``, bindings through ``RbacAuthorizationV1Api``.
All ``ApiException`` handling and dict <-> record conversion lives here.
"""

from __future__ import annotations

import copy
import logging
from contextlib import contextmanager
from typing import Any, Iterator, Optional, Protocol

from kubernetes import client as k8s_client
from kubernetes import config as k8s_config

from .errors import (
    AlreadyExistsError,
    ConflictError,
    NotFoundError,
    TransientStoreError,
)
from .models import (
    AdminUser,
    ClusterRecord,
    ClusterRoleBinding,
    Condition,
    GlobalRoleBinding,
    Node,
    NodeAddress,
    OwnerReference,
    ServerUrlSetting,
)

log = logging.getLogger(__name__)

MANAGEMENT_GROUP = "management.cattle.io"
MANAGEMENT_VERSION = "v3"
MANAGEMENT_API_VERSION = f"{MANAGEMENT_GROUP}/{MANAGEMENT_VERSION}"
RBAC_GROUP = "rbac.authorization.k8s.io"


class ResourceStore(Protocol):
    def list_users(self, label_selector: str) -> list[AdminUser]: ...
    def create_user(self, user: AdminUser) -> AdminUser: ...
    def update_user(self, user: AdminUser) -> AdminUser: ...

    def list_global_role_bindings(self, label_selector: str) -> list[GlobalRoleBinding]: ...
    def create_global_role_binding(self, binding: GlobalRoleBinding) -> GlobalRoleBinding: ...

    def list_cluster_role_bindings(self, label_selector: str) -> list[ClusterRoleBinding]: ...
    def create_cluster_role_binding(self, binding: ClusterRoleBinding) -> ClusterRoleBinding: ...

    def get_cluster(self, name: str) -> ClusterRecord: ...
    def update_cluster(self, cluster: ClusterRecord) -> ClusterRecord: ...

    def get_marker(self, namespace: str, name: str) -> str: ...
    def create_marker(self, namespace: str, name: str) -> str: ...

    def list_nodes(self) -> list[Node]: ...
    def get_server_url_setting(self, name: str) -> ServerUrlSetting: ...


@contextmanager
def translate_api_errors(kind: str, name: str = "", *, updating: bool = False) -> Iterator[None]:
    """Re-raise ``ApiException`` as the matching ``StoreError``.

    409 means AlreadyExists on create and a write conflict on update.
    """
    try:
        yield
    except k8s_client.ApiException as exc:
        detail = f"HTTP {exc.status} {exc.reason}"
        if exc.status == 404:
            raise NotFoundError(kind, name, detail) from exc
        if exc.status == 409:
            if updating:
                raise ConflictError(kind, name, detail) from exc
            raise AlreadyExistsError(kind, name, detail) from exc
        raise TransientStoreError(kind, name, detail) from exc


# ---------------------------------------------------------------------------
# Conversion helpers
# ---------------------------------------------------------------------------
def _metadata(obj: dict[str, Any]) -> dict[str, Any]:
    return obj.get("metadata") or {}


def user_from_object(obj: dict[str, Any]) -> AdminUser:
    meta = _metadata(obj)
    return AdminUser(
        username=obj.get("username") or "",
        display_name=obj.get("displayName") or "",
        password_hash=obj.get("password") or "",
        must_change_password=bool(obj.get("mustChangePassword", False)),
        labels=dict(meta.get("labels") or {}),
        name=meta.get("name") or "",
        generate_name=meta.get("generateName") or "",
        uid=meta.get("uid") or "",
        raw=obj,
    )


def user_to_object(user: AdminUser) -> dict[str, Any]:
    """Build the request body for ``user``, starting from its source object."""
    obj = copy.deepcopy(user.raw) if user.raw else {}
    obj["apiVersion"] = MANAGEMENT_API_VERSION
    obj["kind"] = "User"
    meta = obj.setdefault("metadata", {})
    if user.name:
        meta["name"] = user.name
    elif user.generate_name:
        meta["generateName"] = user.generate_name
    meta["labels"] = {**(meta.get("labels") or {}), **user.labels}
    obj["username"] = user.username
    obj["displayName"] = user.display_name
    obj["password"] = user.password_hash
    obj["mustChangePassword"] = user.must_change_password
    return obj


def global_role_binding_from_object(obj: dict[str, Any]) -> GlobalRoleBinding:
    meta = _metadata(obj)
    return GlobalRoleBinding(
        user_name=obj.get("userName") or "",
        global_role_name=obj.get("globalRoleName") or "",
        labels=dict(meta.get("labels") or {}),
        name=meta.get("name") or "",
        generate_name=meta.get("generateName") or "",
    )


def global_role_binding_to_object(binding: GlobalRoleBinding) -> dict[str, Any]:
    meta: dict[str, Any] = {"labels": dict(binding.labels)}
    if binding.name:
        meta["name"] = binding.name
    else:
        meta["generateName"] = binding.generate_name
    return {
        "apiVersion": MANAGEMENT_API_VERSION,
        "kind": "GlobalRoleBinding",
        "metadata": meta,
        "userName": binding.user_name,
        "globalRoleName": binding.global_role_name,
    }


def cluster_role_binding_from_model(crb: k8s_client.V1ClusterRoleBinding) -> ClusterRoleBinding:
    meta = crb.metadata or k8s_client.V1ObjectMeta()
    subjects = crb.subjects or []
    owners = meta.owner_references or []
    owner = None
    if owners:
        ref = owners[0]
        owner = OwnerReference(api_version=ref.api_version, kind=ref.kind, name=ref.name, uid=ref.uid)
    return ClusterRoleBinding(
        subject_name=subjects[0].name if subjects else "",
        role_name=crb.role_ref.name if crb.role_ref else "",
        owner=owner,
        labels=dict(meta.labels or {}),
        name=meta.name or "",
        generate_name=meta.generate_name or "",
    )


def cluster_role_binding_to_model(binding: ClusterRoleBinding) -> k8s_client.V1ClusterRoleBinding:
    owner_references = None
    if binding.owner is not None:
        owner_references = [
            k8s_client.V1OwnerReference(
                api_version=binding.owner.api_version,
                kind=binding.owner.kind,
                name=binding.owner.name,
                uid=binding.owner.uid,
            )
        ]
    return k8s_client.V1ClusterRoleBinding(
        metadata=k8s_client.V1ObjectMeta(
            name=binding.name or None,
            generate_name=None if binding.name else binding.generate_name,
            labels=dict(binding.labels),
            owner_references=owner_references,
        ),
        role_ref=k8s_client.V1RoleRef(
            api_group=RBAC_GROUP,
            kind="ClusterRole",
            name=binding.role_name,
        ),
        subjects=[
            k8s_client.RbacV1Subject(
                kind="User",
                api_group=RBAC_GROUP,
                name=binding.subject_name,
            )
        ],
    )


def _condition_dicts(obj: dict[str, Any]) -> Optional[list[dict[str, Any]]]:
    status = obj.get("status")
    if not isinstance(status, dict):
        return None
    conditions = status.get("conditions")
    if not isinstance(conditions, list):
        return None
    return [c for c in conditions if isinstance(c, dict)]


def cluster_from_object(obj: dict[str, Any]) -> ClusterRecord:
    meta = _metadata(obj)
    raw_conditions = _condition_dicts(obj)
    conditions = None
    if raw_conditions is not None:
        conditions = [
            Condition(type=str(c.get("type", "")), status=str(c.get("status", "")))
            for c in raw_conditions
        ]
    return ClusterRecord(
        name=meta.get("name") or "",
        annotations=dict(meta.get("annotations") or {}),
        conditions=conditions,
        raw=obj,
    )


def cluster_to_object(cluster: ClusterRecord) -> dict[str, Any]:
    obj = copy.deepcopy(cluster.raw)
    meta = obj.setdefault("metadata", {})
    meta["annotations"] = dict(cluster.annotations)
    raw_conditions = _condition_dicts(obj)
    if raw_conditions is not None and cluster.conditions is not None:
        for raw, condition in zip(raw_conditions, cluster.conditions):
            raw["status"] = condition.status
    return obj


def node_from_model(node: k8s_client.V1Node) -> Node:
    addresses = []
    if node.status and node.status.addresses:
        addresses = [NodeAddress(type=a.type, address=a.address) for a in node.status.addresses]
    return Node(name=node.metadata.name if node.metadata else "", addresses=addresses)


# ---------------------------------------------------------------------------
# Kubernetes implementation
# ---------------------------------------------------------------------------
class KubernetesStore:
    """``ResourceStore`` backed by a Kubernetes API server."""

    def __init__(
        self,
        custom: k8s_client.CustomObjectsApi,
        core: k8s_client.CoreV1Api,
        rbac: k8s_client.RbacAuthorizationV1Api,
    ):
        self.custom = custom
        self.core = core
        self.rbac = rbac

    @classmethod
    def from_kubeconfig(cls, kubeconfig: str) -> "KubernetesStore":
        log.debug("Loading kubeconfig from %s", kubeconfig)
        k8s_config.load_kube_config(config_file=kubeconfig)
        return cls(
            custom=k8s_client.CustomObjectsApi(),
            core=k8s_client.CoreV1Api(),
            rbac=k8s_client.RbacAuthorizationV1Api(),
        )

    # -- management.cattle.io helpers ----------------------------------------
    def _list_management(self, plural: str, label_selector: str) -> list[dict[str, Any]]:
        with translate_api_errors(plural):
            resp = self.custom.list_cluster_custom_object(
                MANAGEMENT_GROUP, MANAGEMENT_VERSION, plural, label_selector=label_selector
            )
        return list(resp.get("items") or [])

    def _get_management(self, plural: str, name: str) -> dict[str, Any]:
        with translate_api_errors(plural, name):
            return self.custom.get_cluster_custom_object(
                MANAGEMENT_GROUP, MANAGEMENT_VERSION, plural, name
            )

    def _create_management(self, plural: str, body: dict[str, Any]) -> dict[str, Any]:
        name = _metadata(body).get("name", "")
        with translate_api_errors(plural, name):
            return self.custom.create_cluster_custom_object(
                MANAGEMENT_GROUP, MANAGEMENT_VERSION, plural, body
            )

    def _replace_management(self, plural: str, name: str, body: dict[str, Any]) -> dict[str, Any]:
        with translate_api_errors(plural, name, updating=True):
            return self.custom.replace_cluster_custom_object(
                MANAGEMENT_GROUP, MANAGEMENT_VERSION, plural, name, body
            )

    # -- users ---------------------------------------------------------------
    def list_users(self, label_selector: str) -> list[AdminUser]:
        return [user_from_object(o) for o in self._list_management("users", label_selector)]

    def create_user(self, user: AdminUser) -> AdminUser:
        return user_from_object(self._create_management("users", user_to_object(user)))

    def update_user(self, user: AdminUser) -> AdminUser:
        body = user_to_object(user)
        return user_from_object(self._replace_management("users", user.name, body))

    # -- global role bindings ------------------------------------------------
    def list_global_role_bindings(self, label_selector: str) -> list[GlobalRoleBinding]:
        items = self._list_management("globalrolebindings", label_selector)
        return [global_role_binding_from_object(o) for o in items]

    def create_global_role_binding(self, binding: GlobalRoleBinding) -> GlobalRoleBinding:
        body = global_role_binding_to_object(binding)
        return global_role_binding_from_object(self._create_management("globalrolebindings", body))

    # -- cluster role bindings -----------------------------------------------
    def list_cluster_role_bindings(self, label_selector: str) -> list[ClusterRoleBinding]:
        with translate_api_errors("clusterrolebindings"):
            resp = self.rbac.list_cluster_role_binding(label_selector=label_selector)
        return [cluster_role_binding_from_model(item) for item in resp.items or []]

    def create_cluster_role_binding(self, binding: ClusterRoleBinding) -> ClusterRoleBinding:
        with translate_api_errors("clusterrolebindings", binding.name):
            created = self.rbac.create_cluster_role_binding(body=cluster_role_binding_to_model(binding))
        return cluster_role_binding_from_model(created)

    # -- clusters ------------------------------------------------------------
    def get_cluster(self, name: str) -> ClusterRecord:
        return cluster_from_object(self._get_management("clusters", name))

    def update_cluster(self, cluster: ClusterRecord) -> ClusterRecord:
        body = cluster_to_object(cluster)
        return cluster_from_object(self._replace_management("clusters", cluster.name, body))

    # -- marker ConfigMap ----------------------------------------------------
    def get_marker(self, namespace: str, name: str) -> str:
        with translate_api_errors("configmaps", f"{namespace}/{name}"):
            cm = self.core.read_namespaced_config_map(name=name, namespace=namespace)
        return cm.metadata.name

    def create_marker(self, namespace: str, name: str) -> str:
        body = k8s_client.V1ConfigMap(
            metadata=k8s_client.V1ObjectMeta(name=name, namespace=namespace),
        )
        with translate_api_errors("configmaps", f"{namespace}/{name}"):
            cm = self.core.create_namespaced_config_map(namespace=namespace, body=body)
        return cm.metadata.name

    # -- read-only lookups ---------------------------------------------------
    def list_nodes(self) -> list[Node]:
        with translate_api_errors("nodes"):
            resp = self.core.list_node()
        return [node_from_model(n) for n in resp.items or []]

    def get_server_url_setting(self, name: str) -> ServerUrlSetting:
        obj = self._get_management("settings", name)
        return ServerUrlSetting(value=obj.get("value") or "", default=obj.get("default") or "")
