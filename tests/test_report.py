import logging
from unittest.mock import Mock

from admin_bootstrap.reconcile import BootstrapResult, BootstrapState
from admin_bootstrap.report import publish_credential, report

CREATED = BootstrapResult(
    state=BootstrapState.NEVER_BOOTSTRAPPED,
    username="admin",
    password="hunter2",
    admin_name="user-x7k2p",
    server_url="https://203.0.113.7:8443",
)


class ResourceExistsException(Exception):
    pass


def _secrets_client():
    sm = Mock()
    sm.exceptions.ResourceExistsException = ResourceExistsException
    return sm


def test_report_created(caplog):
    caplog.set_level(logging.INFO)

    report(CREATED)

    assert "Server URL: https://203.0.113.7:8443" in caplog.text
    assert "Username: admin, Password: hunter2" in caplog.text


def test_report_adopted_user_says_password_not_changed(caplog):
    caplog.set_level(logging.INFO)
    adopted = BootstrapResult(
        state=BootstrapState.NEVER_BOOTSTRAPPED,
        username="admin",
        password="hunter2",
        admin_name="user-abc12",
        server_url="https://203.0.113.7:8443",
        password_applied=False,
    )

    report(adopted)

    assert "password was NOT changed" in caplog.text
    assert "Default admin and password created" not in caplog.text
    assert "Server URL: https://203.0.113.7:8443" in caplog.text


def test_password_not_in_result_repr():
    assert "hunter2" not in repr(CREATED)


def test_publish_creates_secret():
    sm = _secrets_client()

    assert publish_credential(CREATED, "k8s/admin", "eu-west-1", client=sm) is True

    sm.create_secret.assert_called_once()
    kwargs = sm.create_secret.call_args.kwargs
    assert kwargs["Name"] == "k8s/admin"
    assert kwargs["SecretString"] == "hunter2"
    sm.update_secret.assert_not_called()


def test_publish_updates_existing_secret():
    sm = _secrets_client()
    sm.create_secret.side_effect = ResourceExistsException()

    assert publish_credential(CREATED, "k8s/admin", "eu-west-1", client=sm) is True

    sm.update_secret.assert_called_once_with(SecretId="k8s/admin", SecretString="hunter2")


def test_publish_failure_is_logged_not_raised(caplog):
    sm = _secrets_client()
    sm.create_secret.side_effect = RuntimeError("AccessDenied")

    assert publish_credential(CREATED, "k8s/admin", "eu-west-1", client=sm) is False
    assert "AccessDenied" in caplog.text
