"""Tell the operator how to log in once reconciliation finishes."""

from __future__ import annotations

import logging
from typing import Optional

from .reconcile import BootstrapResult

log = logging.getLogger(__name__)


def get_secrets_client(region: str):
    import boto3
    return boto3.client("secretsmanager", region_name=region)


def report(result: BootstrapResult) -> None:
    """Log the credential, and the server URL when one was resolved."""
    if result.was_reset:
        log.info(
            "Default admin reset. New username: %s, new Password: %s",
            result.username,
            result.password,
        )
        return

    log.info("Server URL: %s", result.server_url)
    if not result.password_applied:
        log.warning(
            "Default admin %s already existed and its password was NOT changed. "
            "Run again to set Username: %s, Password: %s",
            result.admin_name,
            result.username,
            result.password,
        )
        return
    log.info(
        "Default admin and password created. Username: %s, Password: %s",
        result.username,
        result.password,
    )


def publish_credential(
    result: BootstrapResult,
    secret_name: str,
    region: str,
    client=None,
) -> bool:
    """Store the admin password in Secrets Manager under ``secret_name``.

    Creates the secret, or updates it if it already exists. Failures are
    logged and reported through the return value; the password has already
    been applied to the cluster at this point.
    """
    log.info("=== Publishing admin credential to Secrets Manager ===")
    log.info("  → Secret: %s", secret_name)
    description = f"Default admin password for login '{result.username}'"
    try:
        sm = client or get_secrets_client(region)
        try:
            sm.create_secret(
                Name=secret_name,
                Description=description,
                SecretString=result.password,
            )
            log.info("  ✓ Secret created in Secrets Manager")
        except sm.exceptions.ResourceExistsException:
            sm.update_secret(SecretId=secret_name, SecretString=result.password)
            log.info("  ✓ Secret updated in Secrets Manager")
    except Exception as exc:
        log.warning("  ⚠ Failed to store admin credential in Secrets Manager: %s", exc)
        return False
    return True


def finish(result: BootstrapResult, secret_name: Optional[str] = None, region: str = "") -> None:
    report(result)
    if secret_name:
        publish_credential(result, secret_name, region)
