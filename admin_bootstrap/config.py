"""Runtime configuration and the fixed names the bootstrap works against."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from datetime import datetime, timezone

log = logging.getLogger(__name__)

DEFAULT_KUBECONFIG = "/etc/rancher/rke2/rke2.yaml"


def _env_flag(name: str) -> bool:
    return os.getenv(name, "").strip().lower() in ("1", "true", "yes")


# ---------------------------------------------------------------------------
# Bootstrap constants
# ---------------------------------------------------------------------------
@dataclass(frozen=True)
class BootstrapConstants:
    """Names, labels and roles the reconciler reads and writes."""

    namespace: str = "cattle-system"
    marker_name: str = "admincreated"
    label_key: str = "authz.management.cattle.io/bootstrapping"
    label_value: str = "admin-user"
    creator_annotation: str = "field.cattle.io/creatorId"
    cluster_name: str = "local"
    global_role: str = "admin"
    cluster_role: str = "cluster-admin"
    server_url_setting: str = "server-url"
    admin_username: str = "admin"
    admin_display_name: str = "Default Admin"
    reset_conditions: tuple[str, ...] = (
        "DefaultProjectCreated",
        "SystemProjectCreated",
        "CreatorMadeOwner",
    )

    @property
    def labels(self) -> dict[str, str]:
        return {self.label_key: self.label_value}

    @property
    def label_selector(self) -> str:
        """Selector string in the ``key=value`` form the API server accepts."""
        return f"{self.label_key}={self.label_value}"


# ---------------------------------------------------------------------------
# Runtime configuration
# ---------------------------------------------------------------------------
@dataclass
class Config:
    """Run configuration sourced from environment variables.

    CLI flags override these after construction.
    """

    kubeconfig: str = field(
        default_factory=lambda: os.getenv("KUBECONFIG") or DEFAULT_KUBECONFIG
    )
    password: str = field(default_factory=lambda: os.getenv("ADMIN_PASSWORD", ""))
    password_file: str = field(
        default_factory=lambda: os.getenv("ADMIN_PASSWORD_FILE", "")
    )
    secret_name: str = field(
        default_factory=lambda: os.getenv("ADMIN_SECRET_NAME", "")
    )
    aws_region: str = field(
        default_factory=lambda: os.getenv("AWS_REGION", "eu-west-1")
    )
    status_file: str = field(
        default_factory=lambda: os.getenv("BOOTSTRAP_STATUS_FILE", "")
    )
    json_logs: bool = field(default_factory=lambda: _env_flag("BOOTSTRAP_JSON_LOGS"))
    debug: bool = False
    dry_run: bool = False

    constants: BootstrapConstants = field(default_factory=BootstrapConstants)

    def print_banner(self) -> None:
        now = datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")
        if self.password:
            source = "explicit"
        elif self.password_file:
            source = f"file ({self.password_file})"
        else:
            source = "generated"
        log.info("=== Admin Bootstrap ===")
        log.info("Kubeconfig:   %s", self.kubeconfig)
        log.info("Password:     %s", source)
        log.info("Namespace:    %s", self.constants.namespace)
        log.info("Marker:       %s", self.constants.marker_name)
        log.info("Label:        %s", self.constants.label_selector)
        log.info("Secret name:  %s", self.secret_name or "(none)")
        log.info("Status file:  %s", self.status_file or "(none)")
        log.info("Triggered:    %s", now)
        log.info("")
