"""Step timing and status reporting for reconciliation runs."""

from __future__ import annotations

import json
import logging
import time
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from pathlib import Path

log = logging.getLogger(__name__)


@dataclass
class StepStatus:
    """Status of a single reconciliation step."""
    step_name: str
    status: str  # "running", "success", "failed", "skipped"
    started_at: str = ""
    completed_at: str = ""
    duration_seconds: float = 0.0
    error: str = ""
    details: dict = field(default_factory=dict)


def write_status(path: str, statuses: list[StepStatus]) -> None:
    """Write step statuses to ``path`` as JSON."""
    data = {
        "updated_at": datetime.now(timezone.utc).isoformat(),
        "steps": [asdict(s) for s in statuses],
    }
    Path(path).write_text(json.dumps(data, indent=2))


class StepRunner:
    """
    Context manager timing one step and recording its outcome.

    Usage:
        with StepRunner("ensure-global-role-binding", statuses) as step:
            ...
            step.details["created"] = True

    Exceptions are never suppressed; the step is recorded as failed and the
    exception propagates.
    """

    def __init__(self, step_name: str, statuses: list[StepStatus]):
        self.step_name = step_name
        self.statuses = statuses
        self._status = StepStatus(step_name=step_name, status="running")
        self._start_time = 0.0
        self.details: dict = {}

    def __enter__(self):
        log.debug("=== Starting step: %s ===", self.step_name)
        self._status.started_at = datetime.now(timezone.utc).isoformat()
        self._start_time = time.monotonic()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        duration = time.monotonic() - self._start_time
        self._status.duration_seconds = round(duration, 2)
        self._status.completed_at = datetime.now(timezone.utc).isoformat()
        self._status.details = self.details
        self.statuses.append(self._status)

        if exc_type is not None:
            self._status.status = "failed"
            self._status.error = str(exc_val)
            log.error("  ✗ %s failed in %.1fs: %s", self.step_name, duration, exc_val)
            return False

        if self._status.status == "running":
            self._status.status = "success"
        log.debug("Step '%s' finished (%s) in %.1fs", self.step_name, self._status.status, duration)
        return False

    def skip(self, reason: str) -> None:
        """Mark the step as skipped because its target state already holds."""
        self._status.status = "skipped"
        self.details["reason"] = reason
