"""Exception hierarchy for the admin bootstrap."""

from __future__ import annotations


class BootstrapError(Exception):
    """Base class for failures raised by the bootstrap itself."""


class ConfigurationError(BootstrapError):
    """Invalid operator input, detected before the cluster is contacted."""


class NotReadyError(BootstrapError):
    """A singleton object the bootstrap depends on is missing."""


class AmbiguousStateError(BootstrapError):
    """The bootstrap label does not identify exactly one account."""

    def __init__(self, selector: str, names: list[str]):
        self.selector = selector
        self.names = list(names)
        super().__init__(
            f"{len(self.names)} users were found with {selector} label. "
            f"They are {self.names}. Can only reset the default admin password "
            "when there is exactly one user with this label."
        )

    @property
    def count(self) -> int:
        return len(self.names)


class RetryLaterError(BootstrapError):
    """Outermost envelope for anything that failed after pre-flight checks."""

    message = "cluster and system are not ready, try again later"

    def __init__(self, cause: BaseException):
        self.cause = cause
        super().__init__(f"{self.message}: {cause}")


# ---------------------------------------------------------------------------
# Store errors
# ---------------------------------------------------------------------------
class StoreError(Exception):
    """Base class for resource store failures."""

    def __init__(self, kind: str, name: str = "", detail: str = ""):
        self.kind = kind
        self.name = name
        self.detail = detail
        text = f"{kind} {name!r}" if name else kind
        super().__init__(f"{text}: {detail}" if detail else text)


class NotFoundError(StoreError):
    """Requested record does not exist."""


class AlreadyExistsError(StoreError):
    """A record with the same name already exists."""


class ConflictError(StoreError):
    """Update rejected because the record changed underneath us."""


class TransientStoreError(StoreError):
    """Any other store failure; the whole run should be retried later."""
