"""Command line entry point: ``reset-admin``.

Usage:
    KUBECONFIG=/etc/rancher/rke2/rke2.yaml reset-admin
    reset-admin --password 'hunter2'
    reset-admin --password-file /run/secrets/admin-password
    reset-admin --dry-run   # Print config and exit

Environment overrides:
    KUBECONFIG              — kubeconfig path        (default: /etc/rancher/rke2/rke2.yaml)
    ADMIN_PASSWORD          — explicit password      (optional)
    ADMIN_PASSWORD_FILE     — file holding password  (optional)
    ADMIN_SECRET_NAME       — Secrets Manager name   (optional, publishing off when unset)
    AWS_REGION              — AWS region             (default: eu-west-1)
    BOOTSTRAP_STATUS_FILE   — step status JSON path  (optional)
    BOOTSTRAP_JSON_LOGS     — JSON log lines         (default: off)
"""

from __future__ import annotations

import argparse
import logging
from typing import Callable, Optional, Sequence

from .config import Config
from .credentials import resolve_credential, validate_sources
from .errors import ConfigurationError, RetryLaterError
from .logs import configure_logging
from .reconcile import AdminBootstrapper, BootstrapResult
from .report import finish
from .steps import write_status
from .store import KubernetesStore, ResourceStore

log = logging.getLogger(__name__)

StoreFactory = Callable[[str], ResourceStore]


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="reset-admin",
        description=(
            "Create the default admin user on first run, or reset its password "
            "when the cluster was already bootstrapped."
        ),
    )
    parser.add_argument("--password", default=None, help="New admin password (or ADMIN_PASSWORD env)")
    parser.add_argument(
        "--password-file",
        default=None,
        help="File containing the new admin password (or ADMIN_PASSWORD_FILE env)",
    )
    parser.add_argument("--kubeconfig", default=None, help="Kubeconfig path (or KUBECONFIG env)")
    parser.add_argument(
        "--secret-name",
        default=None,
        help="Also store the password in this AWS Secrets Manager secret",
    )
    parser.add_argument("--status-file", default=None, help="Write step statuses as JSON here")
    parser.add_argument("--json-logs", action="store_true", help="Emit JSON log lines")
    parser.add_argument("--debug", action="store_true")
    parser.add_argument("--dry-run", action="store_true", help="Print configuration and exit")
    return parser


def config_from_args(args: argparse.Namespace) -> Config:
    cfg = Config()
    for name in ("password", "password_file", "kubeconfig", "secret_name", "status_file"):
        value = getattr(args, name)
        if value is not None:
            setattr(cfg, name, value)
    cfg.json_logs = cfg.json_logs or args.json_logs
    cfg.debug = args.debug
    cfg.dry_run = args.dry_run
    return cfg


def run_reset_admin(
    cfg: Config,
    store_factory: StoreFactory = KubernetesStore.from_kubeconfig,
) -> BootstrapResult:
    """Resolve the credential and reconcile the admin user.

    Raises:
        ConfigurationError: both password sources were given, or the
            password is too long to hash; raised before the cluster is
            contacted.
        RetryLaterError: anything else went wrong; the cause is chained.
    """
    validate_sources(cfg.password, cfg.password_file)

    try:
        credential = resolve_credential(cfg.password or None, cfg.password_file or None)
        bootstrapper = AdminBootstrapper(store_factory(cfg.kubeconfig), cfg.constants)
        try:
            return bootstrapper.run(credential)
        finally:
            if cfg.status_file:
                write_status(cfg.status_file, bootstrapper.statuses)
    except ConfigurationError:
        raise
    except Exception as exc:
        raise RetryLaterError(exc) from exc


def main(argv: Optional[Sequence[str]] = None, store_factory: Optional[StoreFactory] = None) -> int:
    args = build_parser().parse_args(argv)
    cfg = config_from_args(args)
    configure_logging(json_output=cfg.json_logs, debug=cfg.debug)

    if cfg.dry_run:
        cfg.print_banner()
        log.info("=== DRY RUN — no changes will be made ===")
        return 0

    try:
        result = run_reset_admin(cfg, store_factory or KubernetesStore.from_kubeconfig)
        finish(result, cfg.secret_name or None, cfg.aws_region)
    except KeyboardInterrupt:
        log.info("\n✗ Admin bootstrap interrupted")
        return 130
    except ConfigurationError as exc:
        log.error("✗ %s", exc)
        return 2
    except RetryLaterError as exc:
        log.error("✗ %s", exc, exc_info=cfg.debug)
        return 1

    return 0
