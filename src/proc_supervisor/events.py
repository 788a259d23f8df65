"""Diagnostic events emitted by the process supervisor.

Every lifecycle transition and every absorbed termination-path anomaly is
published as a ``SupervisorEvent``: logged, and handed to the optional
``on_event`` callback of the supervisor. A watchdog-forced outcome is the
one event that is logged at WARNING, since the process's real fate was not
confirmed when the outcome was reported.
"""

from __future__ import annotations

import logging
import time
import uuid
from enum import Enum
from typing import Callable

from pydantic import BaseModel, ConfigDict, Field

from .runtime.outcome import ProcessOutcome

__all__ = [
    "EventKind",
    "SupervisorEvent",
    "EventCallback",
    "emit_event",
]

logger = logging.getLogger(__name__)


class EventKind(str, Enum):
    """Supervisor event kinds."""

    STARTED = "started"
    LAUNCH_FAILED = "launch_failed"
    EXITED = "exited"
    KILL_REQUESTED = "kill_requested"
    KILL_FAILED = "kill_failed"
    WATCHDOG_FORCED = "watchdog_forced"
    DISPOSED = "disposed"


def make_event_id(hint: str = "psv") -> str:
    return f"{hint}_{uuid.uuid4().hex[:8]}"


class SupervisorEvent(BaseModel):
    """A single supervisor diagnostic event.

    Attributes:
        event_id: Unique id
        timestamp: Unix timestamp (seconds)
        kind: Event kind
        pid: OS process id (None before a successful start)
        exit_code: Exit code, when the OS delivered one
        outcome: Outcome cell value at the time of the event
        message: Human readable description
    """

    model_config = ConfigDict(
        extra="ignore",
        frozen=True,
    )

    event_id: str = Field(default_factory=make_event_id)
    timestamp: float = Field(default_factory=time.time)
    kind: EventKind
    pid: int | None = None
    exit_code: int | None = None
    outcome: ProcessOutcome = ProcessOutcome.UNRESOLVED
    message: str = ""

    def __str__(self) -> str:
        return (
            f"[{self.kind.value}] pid={self.pid} exit_code={self.exit_code} "
            f"outcome={self.outcome.value} {self.message}"
        ).rstrip()


EventCallback = Callable[[SupervisorEvent], None]

_LEVELS: dict[EventKind, int] = {
    EventKind.WATCHDOG_FORCED: logging.WARNING,
    EventKind.LAUNCH_FAILED: logging.WARNING,
    EventKind.KILL_FAILED: logging.DEBUG,
    EventKind.DISPOSED: logging.DEBUG,
}


def emit_event(event: SupervisorEvent, callback: EventCallback | None = None) -> None:
    """Log ``event`` and forward it to ``callback``.

    Callback errors are logged and never propagate into the supervisor.
    """
    level = _LEVELS.get(event.kind, logging.INFO)
    # The debug file handler renders the event as JSON
    logger.log(level, "%s", event)
    if callback is None:
        return
    try:
        callback(event)
    except Exception as e:
        logger.warning(f"Error in supervisor event callback: {e}")
