"""Runtime module for supervising a single child process.

This module provides process launch with isolation, an exactly-once
completion signal and forceful process-tree termination with a watchdog.
"""

from __future__ import annotations

from .outcome import OutcomeCell, ProcessOutcome
from .spec import ProcessSpec
from .process_tree import kill_process_tree
from .supervisor import ProcessSupervisor, SupervisorState
from .execute import ProcessResult, run_process

__all__ = [
    "OutcomeCell",
    "ProcessOutcome",
    "ProcessResult",
    "ProcessSpec",
    "ProcessSupervisor",
    "SupervisorState",
    "kill_process_tree",
    "run_process",
]
