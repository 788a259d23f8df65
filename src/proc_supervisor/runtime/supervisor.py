"""Process supervisor with an exactly-once, never-hanging completion signal.

This module provides:
- Synchronous start with LaunchError on spawn failure
- Raw (unbuffered) stdin/stdout/stderr byte streams and process metadata
- An awaitable outcome shared by any number of concurrent awaiters
- Forceful process-tree termination backed by a cancellable watchdog

Key design points:
- A daemon watcher thread blocks in Popen.wait() and delivers the exit
  notification once into the outcome cell
- Only the watcher and the watchdog resolve the cell; the first one wins
- The kill-requested flag is written by kill() and read by the watcher under
  the same lock: an exit notification processed after kill() reports KILLED
- Exit code and exit time are recorded whenever the OS delivers an exit,
  even if the watchdog already resolved the outcome
"""

from __future__ import annotations

import asyncio
import logging
import subprocess
import threading
from datetime import datetime, timezone
from enum import Enum
from typing import IO

from ..config import get_config
from ..errors import LaunchError, PreconditionError
from ..events import EventCallback, EventKind, SupervisorEvent, emit_event
from .outcome import OutcomeCell, ProcessOutcome
from .process_tree import kill_process_tree, popen_isolation_kwargs
from .spec import ProcessSpec

__all__ = [
    "ProcessSupervisor",
    "SupervisorState",
]

logger = logging.getLogger(__name__)


class SupervisorState(str, Enum):
    """Lifecycle of a supervisor handle.

    NOT_STARTED -> RUNNING -> RESOLVED -> DISPOSED
    NOT_STARTED -> FAILED (LaunchError)
    """

    NOT_STARTED = "not_started"
    RUNNING = "running"
    RESOLVED = "resolved"
    FAILED = "failed"
    DISPOSED = "disposed"


def _now() -> datetime:
    return datetime.now(timezone.utc)


class ProcessSupervisor:
    """Supervises exactly one OS process from start to disposal.

    Example:
        spec = ProcessSpec(argv=["my-cli", "--json"], cwd=Path("/workspace"))

        with ProcessSupervisor(spec) as supervisor:
            supervisor.start()
            data = supervisor.stdout.read(4096)
            ...
            supervisor.kill()
            outcome = await supervisor.wait_until_exit()

    Attributes:
        watchdog_delay: Seconds to wait after kill() before forcing the
            WATCHDOG outcome
        kill_tree: Terminate the descendants too
    """

    def __init__(
        self,
        spec: ProcessSpec,
        *,
        watchdog_delay: float | None = None,
        kill_tree: bool | None = None,
        on_event: EventCallback | None = None,
    ) -> None:
        config = get_config()
        self._spec = spec
        self.watchdog_delay = watchdog_delay if watchdog_delay is not None else config.watchdog_delay
        self.kill_tree = kill_tree if kill_tree is not None else config.kill_tree
        self._on_event = on_event

        # Guards phase, kill flag, exit metadata, watchdog and disposal
        self._lock = threading.Lock()
        self._cell = OutcomeCell()
        self._phase = SupervisorState.NOT_STARTED
        self._disposed = False
        self._kill_requested = False

        self._popen: subprocess.Popen | None = None
        self._watcher: threading.Thread | None = None
        self._watchdog: threading.Timer | None = None

        self._pid: int | None = None
        self._stdin: IO[bytes] | None = None
        self._stdout: IO[bytes] | None = None
        self._stderr: IO[bytes] | None = None
        self._start_time: datetime | None = None
        self._exit_time: datetime | None = None
        self._exit_code: int | None = None

    # ------------------------------------------------------------------
    # Metadata
    # ------------------------------------------------------------------

    @property
    def spec(self) -> ProcessSpec:
        return self._spec

    @property
    def state(self) -> SupervisorState:
        if self._disposed:
            return SupervisorState.DISPOSED
        if self._phase is SupervisorState.RUNNING and self._cell.is_resolved:
            return SupervisorState.RESOLVED
        return self._phase

    @property
    def pid(self) -> int | None:
        """OS process id, valid after a successful start()."""
        return self._pid

    @property
    def stdin(self) -> IO[bytes] | None:
        return self._stdin

    @property
    def stdout(self) -> IO[bytes] | None:
        return self._stdout

    @property
    def stderr(self) -> IO[bytes] | None:
        return self._stderr

    @property
    def start_time(self) -> datetime | None:
        return self._start_time

    @property
    def exit_time(self) -> datetime | None:
        """When the OS reported the exit; None if it never did."""
        return self._exit_time

    @property
    def exit_code(self) -> int | None:
        """Exit code reported by the OS (negative = killed by that signal on POSIX)."""
        return self._exit_code

    @property
    def outcome(self) -> ProcessOutcome:
        return self._cell.value

    @property
    def kill_requested(self) -> bool:
        return self._kill_requested

    # ------------------------------------------------------------------
    # Start
    # ------------------------------------------------------------------

    def start(self) -> None:
        """Spawn the process and return without waiting for it.

        Raises:
            PreconditionError: The handle was already started (or disposed)
            LaunchError: The OS refused to spawn the process
        """
        spec = self._spec
        with self._lock:
            if self._disposed:
                raise PreconditionError("Cannot start a disposed supervisor", self.state)
            if self._phase is not SupervisorState.NOT_STARTED:
                raise PreconditionError("Process can only be started once", self.state)

            try:
                popen = subprocess.Popen(
                    spec.argv,
                    stdin=subprocess.PIPE if spec.redirect_stdin else None,
                    stdout=subprocess.PIPE if spec.redirect_stdout else None,
                    stderr=subprocess.PIPE if spec.redirect_stderr else None,
                    cwd=spec.cwd,
                    env=dict(spec.env) if spec.env is not None else None,
                    bufsize=0,
                    **popen_isolation_kwargs(),
                )
            except OSError as e:
                self._phase = SupervisorState.FAILED
                spawn_error: OSError | None = e
            except Exception:
                self._phase = SupervisorState.FAILED
                raise
            else:
                spawn_error = None
                self._popen = popen
                self._pid = popen.pid
                self._stdin = popen.stdin
                self._stdout = popen.stdout
                self._stderr = popen.stderr
                self._start_time = _now()
                self._phase = SupervisorState.RUNNING

        if spawn_error is not None:
            launch_error = LaunchError(spec.argv, spec.cwd, str(spawn_error))
            self._emit(EventKind.LAUNCH_FAILED, message=str(launch_error))
            raise launch_error from spawn_error

        self._emit(
            EventKind.STARTED,
            message=f"argv={spec.executable} cwd={spec.cwd}",
        )

        self._watcher = threading.Thread(
            target=self._watch_exit,
            args=(popen,),
            name=f"psv-exit-watcher-{popen.pid}",
            daemon=True,
        )
        self._watcher.start()

    def _watch_exit(self, popen: subprocess.Popen) -> None:
        """Block until the OS reports the exit, then deliver it once."""
        try:
            exit_code = popen.wait()
        except Exception as e:
            logger.error(f"Exit watcher failed for pid={popen.pid}: {e}")
            return
        self._on_exit(exit_code, _now())

    def _on_exit(self, exit_code: int, exit_time: datetime) -> None:
        with self._lock:
            self._exit_code = exit_code
            self._exit_time = exit_time
            outcome = ProcessOutcome.KILLED if self._kill_requested else ProcessOutcome.EXITED
            watchdog, self._watchdog = self._watchdog, None

        if watchdog is not None:
            watchdog.cancel()

        if self._cell.try_resolve(outcome):
            self._emit(EventKind.EXITED)
        else:
            self._emit(EventKind.EXITED, message="exit confirmed after outcome was already resolved")

    # ------------------------------------------------------------------
    # Wait
    # ------------------------------------------------------------------

    async def wait_until_exit(self) -> ProcessOutcome:
        """Suspend until the outcome resolves and return it.

        Any number of tasks may await concurrently; all of them get the same
        outcome. Cancelling one awaiter does not affect the others.

        Raises:
            PreconditionError: The process was never started
        """
        if self._phase is not SupervisorState.RUNNING:
            raise PreconditionError("Cannot wait for a process that was never started", self.state)

        if self._cell.is_resolved:
            return self._cell.value

        loop = asyncio.get_running_loop()
        future: asyncio.Future[ProcessOutcome] = loop.create_future()

        def _set_result(outcome: ProcessOutcome) -> None:
            if not future.done():
                future.set_result(outcome)

        def _wake(outcome: ProcessOutcome) -> None:
            try:
                loop.call_soon_threadsafe(_set_result, outcome)
            except RuntimeError:
                # Loop already closed; the awaiter is gone
                logger.debug(f"Dropped outcome notification for pid={self._pid}, loop closed")

        self._cell.add_waiter(_wake)
        try:
            return await future
        finally:
            self._cell.remove_waiter(_wake)

    # ------------------------------------------------------------------
    # Kill
    # ------------------------------------------------------------------

    def kill(self) -> None:
        """Request forceful termination of the process tree.

        Fire-and-forget: the effect is only observable through the outcome.
        Termination errors are treated as an ambiguous race with a concurrent
        exit and are not raised; the watchdog bounds the wait instead.

        Raises:
            PreconditionError: The process was never started, or the handle
                was disposed
        """
        kill_error: Exception | None = None
        with self._lock:
            if self._disposed:
                raise PreconditionError("Cannot kill a disposed supervisor", self.state)
            if self._phase is not SupervisorState.RUNNING:
                raise PreconditionError("Cannot kill a process that was never started", self.state)
            if self._kill_requested:
                logger.debug(f"Kill already requested for pid={self._pid}")
                return

            self._kill_requested = True
            popen = self._popen
            assert popen is not None

            # Once reaped the pid may belong to somebody else
            already_exited = (
                self._exit_code is not None
                or self._cell.is_resolved
                or popen.returncode is not None
            )
            if not already_exited:
                try:
                    kill_process_tree(popen, include_descendants=self.kill_tree)
                except Exception as e:
                    # Already exited, or already being torn down
                    kill_error = e
                self._arm_watchdog()

        if already_exited:
            self._emit(EventKind.KILL_REQUESTED, message="process already exited, nothing to kill")
            return

        self._emit(EventKind.KILL_REQUESTED, message=f"tree={self.kill_tree}")
        if kill_error is not None:
            self._emit(
                EventKind.KILL_FAILED,
                message=f"{type(kill_error).__name__}: {kill_error}",
            )

    def _arm_watchdog(self) -> None:
        # Called with self._lock held
        timer = threading.Timer(self.watchdog_delay, self._on_watchdog)
        timer.name = f"psv-watchdog-{self._pid}"
        timer.daemon = True
        self._watchdog = timer
        timer.start()

    def _on_watchdog(self) -> None:
        try:
            if self._cell.try_resolve(ProcessOutcome.WATCHDOG):
                self._emit(
                    EventKind.WATCHDOG_FORCED,
                    message=(
                        f"termination not confirmed within {self.watchdog_delay}s, "
                        f"reporting forced termination"
                    ),
                )
            else:
                logger.debug(f"Watchdog fired for pid={self._pid}, outcome already resolved")
        except Exception as e:
            logger.warning(f"Error in watchdog for pid={self._pid}: {e}")

    # ------------------------------------------------------------------
    # Dispose
    # ------------------------------------------------------------------

    def dispose(self) -> None:
        """Release the handle's resources. Never raises; later calls are no-ops.

        Cancels the watchdog and closes the exposed pipes. The process itself
        is left alone; the watcher thread still reaps it when it exits.
        """
        with self._lock:
            if self._disposed:
                return
            self._disposed = True
            watchdog, self._watchdog = self._watchdog, None
            streams = (self._stdin, self._stdout, self._stderr)

        if watchdog is not None:
            watchdog.cancel()

        for stream in streams:
            if stream is None:
                continue
            try:
                stream.close()
            except Exception as e:
                logger.debug(f"Error closing stream of pid={self._pid}: {e}")

        self._emit(EventKind.DISPOSED)

    def __enter__(self) -> "ProcessSupervisor":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.dispose()

    # ------------------------------------------------------------------

    def _emit(self, kind: EventKind, message: str = "") -> None:
        emit_event(
            SupervisorEvent(
                kind=kind,
                pid=self._pid,
                exit_code=self._exit_code,
                outcome=self._cell.value,
                message=message,
            ),
            self._on_event,
        )

    def __repr__(self) -> str:
        return (
            f"ProcessSupervisor(argv={self._spec.executable}, "
            f"pid={self._pid}, "
            f"state={self.state.value}, "
            f"outcome={self.outcome.value})"
        )
