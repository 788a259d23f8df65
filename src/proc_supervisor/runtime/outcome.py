"""Single-assignment outcome cell.

The cell is written from two independent threads (the exit watcher and the
watchdog timer) and read from any number of awaiters. Resolution is a
compare-and-swap under a lock: the first writer wins and every later
attempt is a no-op that reports failure.
"""

from __future__ import annotations

import logging
import threading
from enum import Enum
from typing import Callable

__all__ = ["ProcessOutcome", "OutcomeCell", "OutcomeWaiter"]

logger = logging.getLogger(__name__)


class ProcessOutcome(str, Enum):
    """How the supervised process ended.

    - UNRESOLVED: no outcome recorded yet
    - EXITED: the OS reported an exit and no kill had been requested
    - KILLED: the OS reported an exit after a kill request
    - WATCHDOG: the watchdog gave up waiting for the OS after a kill request
    """

    UNRESOLVED = "unresolved"
    EXITED = "exited"
    KILLED = "killed"
    WATCHDOG = "watchdog"

    @property
    def is_resolved(self) -> bool:
        return self is not ProcessOutcome.UNRESOLVED

    @property
    def is_forced(self) -> bool:
        return self in (ProcessOutcome.KILLED, ProcessOutcome.WATCHDOG)


OutcomeWaiter = Callable[[ProcessOutcome], None]


class OutcomeCell:
    """Thread-safe, resolve-once outcome holder.

    Waiters registered with ``add_waiter`` are called exactly once with the
    resolved outcome, on the resolving thread and outside the lock. A waiter
    added after resolution is called immediately on the caller's thread.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._value = ProcessOutcome.UNRESOLVED
        self._waiters: list[OutcomeWaiter] = []

    @property
    def value(self) -> ProcessOutcome:
        return self._value

    @property
    def is_resolved(self) -> bool:
        return self._value.is_resolved

    def try_resolve(self, outcome: ProcessOutcome) -> bool:
        """Resolve the cell if nobody has yet.

        Returns:
            True if this call resolved the cell, False if it was already
            resolved (the stored value is left untouched).
        """
        if not outcome.is_resolved:
            raise ValueError("Cannot resolve an outcome cell to UNRESOLVED")

        with self._lock:
            if self._value.is_resolved:
                return False
            self._value = outcome
            waiters, self._waiters = self._waiters, []

        for waiter in waiters:
            self._notify(waiter, outcome)
        return True

    def add_waiter(self, waiter: OutcomeWaiter) -> None:
        with self._lock:
            if not self._value.is_resolved:
                self._waiters.append(waiter)
                return
            outcome = self._value
        self._notify(waiter, outcome)

    def remove_waiter(self, waiter: OutcomeWaiter) -> None:
        with self._lock:
            if waiter in self._waiters:
                self._waiters.remove(waiter)

    @staticmethod
    def _notify(waiter: OutcomeWaiter, outcome: ProcessOutcome) -> None:
        try:
            waiter(outcome)
        except Exception as e:
            logger.warning(f"Error in outcome waiter: {e}")

    def __repr__(self) -> str:
        return f"OutcomeCell({self._value.value})"
