"""Shared fixtures: an in-memory resource store."""

from __future__ import annotations

import copy
import itertools
from collections import Counter

import pytest

from admin_bootstrap.config import BootstrapConstants
from admin_bootstrap.errors import AlreadyExistsError, NotFoundError
from admin_bootstrap.models import (
    AdminUser,
    ClusterRecord,
    Condition,
    Node,
    NodeAddress,
    ServerUrlSetting,
)

CONSTANTS = BootstrapConstants()


def _matches(labels: dict[str, str], selector: str) -> bool:
    key, _, value = selector.partition("=")
    return labels.get(key) == value


class FakeStore:
    """Dict-backed ``ResourceStore`` that records every call."""

    def __init__(self):
        self.users: dict[str, AdminUser] = {}
        self.global_role_bindings: dict = {}
        self.cluster_role_bindings: dict = {}
        self.clusters: dict[str, ClusterRecord] = {}
        self.markers: set[tuple[str, str]] = set()
        self.nodes: list[Node] = []
        self.settings: dict[str, ServerUrlSetting] = {}
        self.calls: Counter = Counter()
        self._failures: dict[str, tuple[int, Exception]] = {}
        self._ids = itertools.count(1)

    # -- test helpers --------------------------------------------------------
    def fail(self, method: str, exc: Exception, on_call: int = 1) -> None:
        """Make the ``on_call``-th call of ``method`` raise ``exc``."""
        self._failures[method] = (on_call, exc)

    def _call(self, method: str) -> None:
        self.calls[method] += 1
        if method in self._failures:
            on_call, exc = self._failures[method]
            if self.calls[method] == on_call:
                raise exc

    def _name(self, obj) -> str:
        return obj.name or f"{obj.generate_name}{next(self._ids)}"

    def add_user(self, name: str, **kwargs) -> AdminUser:
        kwargs.setdefault("username", "admin")
        kwargs.setdefault("labels", dict(CONSTANTS.labels))
        user = AdminUser(name=name, uid=f"uid-{name}", **kwargs)
        self.users[name] = user
        return user

    # -- users ---------------------------------------------------------------
    def list_users(self, label_selector):
        self._call("list_users")
        return [copy.deepcopy(u) for u in self.users.values() if _matches(u.labels, label_selector)]

    def create_user(self, user):
        self._call("create_user")
        user = copy.deepcopy(user)
        user.name = self._name(user)
        if user.name in self.users:
            raise AlreadyExistsError("users", user.name)
        user.uid = f"uid-{user.name}"
        self.users[user.name] = user
        return copy.deepcopy(user)

    def update_user(self, user):
        self._call("update_user")
        if user.name not in self.users:
            raise NotFoundError("users", user.name)
        self.users[user.name] = copy.deepcopy(user)
        return copy.deepcopy(user)

    # -- bindings ------------------------------------------------------------
    def list_global_role_bindings(self, label_selector):
        self._call("list_global_role_bindings")
        return [b for b in self.global_role_bindings.values() if _matches(b.labels, label_selector)]

    def create_global_role_binding(self, binding):
        self._call("create_global_role_binding")
        binding = copy.deepcopy(binding)
        binding.name = self._name(binding)
        self.global_role_bindings[binding.name] = binding
        return binding

    def list_cluster_role_bindings(self, label_selector):
        self._call("list_cluster_role_bindings")
        return [b for b in self.cluster_role_bindings.values() if _matches(b.labels, label_selector)]

    def create_cluster_role_binding(self, binding):
        self._call("create_cluster_role_binding")
        binding = copy.deepcopy(binding)
        binding.name = self._name(binding)
        self.cluster_role_bindings[binding.name] = binding
        return binding

    # -- clusters ------------------------------------------------------------
    def get_cluster(self, name):
        self._call("get_cluster")
        if name not in self.clusters:
            raise NotFoundError("clusters", name)
        return copy.deepcopy(self.clusters[name])

    def update_cluster(self, cluster):
        self._call("update_cluster")
        self.clusters[cluster.name] = copy.deepcopy(cluster)
        return cluster

    # -- marker --------------------------------------------------------------
    def get_marker(self, namespace, name):
        self._call("get_marker")
        if (namespace, name) not in self.markers:
            raise NotFoundError("configmaps", f"{namespace}/{name}")
        return name

    def create_marker(self, namespace, name):
        self._call("create_marker")
        if (namespace, name) in self.markers:
            raise AlreadyExistsError("configmaps", f"{namespace}/{name}")
        self.markers.add((namespace, name))
        return name

    # -- read-only -----------------------------------------------------------
    def list_nodes(self):
        self._call("list_nodes")
        return list(self.nodes)

    def get_server_url_setting(self, name):
        self._call("get_server_url_setting")
        if name not in self.settings:
            raise NotFoundError("settings", name)
        return self.settings[name]


@pytest.fixture
def constants() -> BootstrapConstants:
    return CONSTANTS


@pytest.fixture
def store() -> FakeStore:
    """A freshly installed cluster: local cluster, one node, empty server-url."""
    fake = FakeStore()
    fake.clusters["local"] = ClusterRecord(
        name="local",
        conditions=[
            Condition(type="Ready", status="True"),
            Condition(type="DefaultProjectCreated", status="True"),
            Condition(type="SystemProjectCreated", status="True"),
            Condition(type="CreatorMadeOwner", status="True"),
        ],
    )
    fake.nodes = [
        Node(
            name="server-0",
            addresses=[
                NodeAddress(type="InternalIP", address="10.0.0.5"),
                NodeAddress(type="Hostname", address="server-0"),
            ],
        )
    ]
    fake.settings["server-url"] = ServerUrlSetting(value="", default="")
    return fake


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch):
    for name in (
        "ADMIN_PASSWORD",
        "ADMIN_PASSWORD_FILE",
        "ADMIN_SECRET_NAME",
        "BOOTSTRAP_STATUS_FILE",
        "BOOTSTRAP_JSON_LOGS",
        "KUBECONFIG",
    ):
        monkeypatch.delenv(name, raising=False)
