"""Bootstrap / reset reconciliation for the default admin account.

Two branches, picked by whether the ``admincreated`` marker ConfigMap exists:

  Already bootstrapped: reset the password of the single labeled admin user.

  Never bootstrapped:
    1. Find or create the labeled admin user
    2. Stamp the local cluster with the creator annotation and reset the
       ownership conditions so the cluster controller re-derives them
    3. Ensure the admin GlobalRoleBinding
    4. Ensure the cluster-admin ClusterRoleBinding
    5. Create the marker
    6. Resolve the server URL

Every create is preceded by an existence check or tolerates AlreadyExists,
so a failed run can simply be repeated.
"""

from __future__ import annotations

import enum
import logging
from dataclasses import dataclass, field
from typing import Optional

from .config import BootstrapConstants
from .credentials import Credential, hash_password
from .errors import AlreadyExistsError, AmbiguousStateError, NotFoundError, NotReadyError
from .models import AdminUser, ClusterRoleBinding, GlobalRoleBinding, OwnerReference
from .server_url import resolve_server_url
from .steps import StepRunner, StepStatus
from .store import MANAGEMENT_API_VERSION, ResourceStore

log = logging.getLogger(__name__)


class BootstrapState(enum.Enum):
    NEVER_BOOTSTRAPPED = "never-bootstrapped"
    ALREADY_BOOTSTRAPPED = "already-bootstrapped"


@dataclass
class BootstrapResult:
    state: BootstrapState
    username: str
    password: str = field(repr=False)
    admin_name: str
    server_url: Optional[str] = None
    steps: list[StepStatus] = field(default_factory=list)
    # False when an existing labeled user was adopted with its old password.
    password_applied: bool = True

    @property
    def was_reset(self) -> bool:
        return self.state is BootstrapState.ALREADY_BOOTSTRAPPED


class AdminBootstrapper:
    """Drives cluster state toward exactly one bound, labeled admin user."""

    def __init__(self, store: ResourceStore, constants: Optional[BootstrapConstants] = None):
        self.store = store
        self.constants = constants or BootstrapConstants()
        self.statuses: list[StepStatus] = []
        self.password_applied = True

    # -----------------------------------------------------------------------
    # Classification
    # -----------------------------------------------------------------------
    def classify(self) -> BootstrapState:
        """Look for the marker; only NotFound is treated as "not yet"."""
        c = self.constants
        try:
            self.store.get_marker(c.namespace, c.marker_name)
        except NotFoundError:
            log.info("Marker %s/%s not found — bootstrapping", c.namespace, c.marker_name)
            return BootstrapState.NEVER_BOOTSTRAPPED
        log.info("Marker %s/%s exists — resetting admin password", c.namespace, c.marker_name)
        return BootstrapState.ALREADY_BOOTSTRAPPED

    def run(self, credential: Credential) -> BootstrapResult:
        self.statuses = []
        with StepRunner("classify", self.statuses) as step:
            state = self.classify()
            step.details["state"] = state.value

        if state is BootstrapState.ALREADY_BOOTSTRAPPED:
            return self.reset_password(credential)
        return self.bootstrap(credential)

    # -----------------------------------------------------------------------
    # Already bootstrapped: password reset only
    # -----------------------------------------------------------------------
    def reset_password(self, credential: Credential) -> BootstrapResult:
        with StepRunner("reset-password", self.statuses) as step:
            admins = self.store.list_users(self.constants.label_selector)
            if len(admins) != 1:
                raise AmbiguousStateError(
                    self.constants.label_selector, [u.name for u in admins]
                )

            admin = admins[0]
            admin.password_hash = hash_password(credential.password)
            # The operator just chose or was shown this password.
            admin.must_change_password = False
            admin = self.store.update_user(admin)
            step.details["user"] = admin.name
            log.info("  ✓ Password reset for user %s", admin.name)

        return BootstrapResult(
            state=BootstrapState.ALREADY_BOOTSTRAPPED,
            username=admin.username,
            password=credential.password,
            admin_name=admin.name,
            steps=self.statuses,
        )

    # -----------------------------------------------------------------------
    # Never bootstrapped
    # -----------------------------------------------------------------------
    def bootstrap(self, credential: Credential) -> BootstrapResult:
        self.password_applied = True
        with StepRunner("ensure-admin-user", self.statuses) as step:
            admin_name = self.ensure_admin_user(credential)
            step.details["user"] = admin_name

        with StepRunner("stamp-cluster", self.statuses) as step:
            step.details["conditions_reset"] = self.stamp_cluster(admin_name)

        with StepRunner("ensure-global-role-binding", self.statuses) as step:
            if not self.ensure_global_role_binding(admin_name):
                step.skip("binding already exists")

        with StepRunner("ensure-cluster-role-binding", self.statuses) as step:
            if not self.ensure_cluster_role_binding():
                step.skip("binding already exists or no labeled user")

        with StepRunner("create-marker", self.statuses) as step:
            if not self.create_marker():
                step.skip("marker already exists")

        with StepRunner("resolve-server-url", self.statuses) as step:
            server_url = self.resolve_server_url()
            step.details["server_url"] = server_url

        return BootstrapResult(
            state=BootstrapState.NEVER_BOOTSTRAPPED,
            username=self.constants.admin_username,
            password=credential.password,
            admin_name=admin_name,
            server_url=server_url,
            steps=self.statuses,
            password_applied=self.password_applied,
        )

    def ensure_admin_user(self, credential: Credential) -> str:
        """Return the admin user's name, creating the user if none is labeled."""
        c = self.constants
        log.info("=== Step 1: Ensuring admin user ===")
        existing = self.store.list_users(c.label_selector)
        if existing:
            log.info("  ✓ Labeled user %s already exists — not creating another", existing[0].name)
            log.warning(
                "  ⚠ Password of %s is left unchanged; run again to reset it",
                existing[0].name,
            )
            self.password_applied = False
            return existing[0].name

        user = AdminUser(
            username=c.admin_username,
            display_name=c.admin_display_name,
            password_hash=hash_password(credential.password),
            must_change_password=credential.must_change_password,
            labels=dict(c.labels),
        )
        try:
            created = self.store.create_user(user)
        except AlreadyExistsError:
            log.warning("  ⚠ Admin user was created concurrently — adopting it")
            self.password_applied = False
            existing = self.store.list_users(c.label_selector)
            return existing[0].name if existing else ""

        log.info("  ✓ Created admin user %s", created.name)
        return created.name

    def stamp_cluster(self, admin_name: str) -> bool:
        """Record ``admin_name`` as the local cluster's creator.

        Returns whether the cluster had a conditions collection to reset.
        """
        c = self.constants
        log.info("=== Step 2: Stamping cluster %s ===", c.cluster_name)
        try:
            cluster = self.store.get_cluster(c.cluster_name)
        except NotFoundError as exc:
            raise NotReadyError(f"{c.cluster_name} cluster is not ready yet") from exc
        if not admin_name:
            raise NotReadyError("admin user is not set yet")

        cluster.annotations[c.creator_annotation] = admin_name

        conditions_reset = cluster.has_conditions()
        if conditions_reset:
            for condition_type in c.reset_conditions:
                cluster.set_condition_false(condition_type)
        else:
            log.info("  Cluster has no status conditions yet — leaving them to the controller")

        self.store.update_cluster(cluster)
        log.info("  ✓ %s=%s", c.creator_annotation, admin_name)
        return conditions_reset

    def ensure_global_role_binding(self, admin_name: str) -> bool:
        """Create the admin GlobalRoleBinding unless a labeled one exists."""
        c = self.constants
        log.info("=== Step 3: Ensuring GlobalRoleBinding ===")
        if self.store.list_global_role_bindings(c.label_selector):
            log.info("  ✓ GlobalRoleBinding already present")
            return False

        binding = self.store.create_global_role_binding(
            GlobalRoleBinding(
                user_name=admin_name,
                global_role_name=c.global_role,
                labels=dict(c.labels),
            )
        )
        log.info("  ✓ Created GlobalRoleBinding %s (%s → %s)", binding.name, admin_name, c.global_role)
        return True

    def ensure_cluster_role_binding(self) -> bool:
        """Create the cluster-admin binding for the first labeled user."""
        c = self.constants
        log.info("=== Step 4: Ensuring ClusterRoleBinding ===")
        # Fresh read: the user may have been created earlier in this run.
        users = self.store.list_users(c.label_selector)
        if self.store.list_cluster_role_bindings(c.label_selector):
            log.info("  ✓ ClusterRoleBinding already present")
            return False
        if not users:
            log.warning("  ⚠ No labeled user found — skipping ClusterRoleBinding")
            return False

        owner = users[0]
        binding = self.store.create_cluster_role_binding(
            ClusterRoleBinding(
                subject_name=owner.name,
                role_name=c.cluster_role,
                owner=OwnerReference(
                    api_version=MANAGEMENT_API_VERSION,
                    kind="user",
                    name=owner.name,
                    uid=owner.uid,
                ),
                labels=dict(c.labels),
            )
        )
        log.info("  ✓ Created ClusterRoleBinding %s (%s → %s)", binding.name, owner.name, c.cluster_role)
        return True

    def create_marker(self) -> bool:
        c = self.constants
        log.info("=== Step 5: Writing marker %s/%s ===", c.namespace, c.marker_name)
        try:
            self.store.create_marker(c.namespace, c.marker_name)
        except AlreadyExistsError:
            log.info("  ✓ Marker already exists")
            return False
        log.info("  ✓ Marker created")
        return True

    def resolve_server_url(self) -> str:
        """Read the server-url setting, listing nodes only if it is empty."""
        setting = self.store.get_server_url_setting(self.constants.server_url_setting)
        nodes = [] if (setting.value or setting.default) else self.store.list_nodes()
        return resolve_server_url(setting, nodes)
