"""Typed views of the cluster records the bootstrap touches.

The store adapter converts API objects to and from these. Each record keeps
the object it was built from in ``raw`` so updates can be written back
without dropping fields the bootstrap does not model.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Optional

NODE_EXTERNAL_IP = "ExternalIP"
NODE_INTERNAL_IP = "InternalIP"


@dataclass
class AdminUser:
    """A ``management.cattle.io/v3`` User."""

    username: str
    display_name: str = ""
    password_hash: str = ""
    must_change_password: bool = False
    labels: dict[str, str] = field(default_factory=dict)
    name: str = ""
    generate_name: str = "user-"
    uid: str = ""
    raw: dict[str, Any] = field(default_factory=dict, repr=False, compare=False)


@dataclass
class GlobalRoleBinding:
    user_name: str
    global_role_name: str
    labels: dict[str, str] = field(default_factory=dict)
    name: str = ""
    generate_name: str = "globalrolebinding-"


@dataclass
class OwnerReference:
    api_version: str
    kind: str
    name: str
    uid: str


@dataclass
class ClusterRoleBinding:
    """An RBAC binding of a single User subject to a ClusterRole."""

    subject_name: str
    role_name: str
    owner: Optional[OwnerReference] = None
    labels: dict[str, str] = field(default_factory=dict)
    name: str = ""
    generate_name: str = "default-admin-"


@dataclass
class Condition:
    type: str
    status: str


@dataclass
class ClusterRecord:
    """The root ``management.cattle.io/v3`` Cluster.

    ``conditions`` is None when the object carries no status conditions
    collection at all, which is normal before the cluster controller has run.
    """

    name: str
    annotations: dict[str, str] = field(default_factory=dict)
    conditions: Optional[list[Condition]] = None
    raw: dict[str, Any] = field(default_factory=dict, repr=False, compare=False)

    def has_conditions(self) -> bool:
        return self.conditions is not None

    def set_condition_false(self, condition_type: str) -> bool:
        """Force every condition of ``condition_type`` to ``"False"``.

        Returns False without touching anything when the record has no
        conditions collection.
        """
        if not self.has_conditions():
            return False
        for condition in self.conditions:
            if condition.type == condition_type:
                condition.status = "False"
        return True


@dataclass
class ServerUrlSetting:
    value: str = ""
    default: str = ""


@dataclass
class NodeAddress:
    type: str
    address: str


@dataclass
class Node:
    name: str
    addresses: list[NodeAddress] = field(default_factory=list)
