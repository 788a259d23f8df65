"""Run a process to completion on top of ProcessSupervisor.

This is a thin consumer of the supervisor: it feeds stdin, drains
stdout/stderr through worker threads and layers a caller-chosen timeout on
top of kill(). Stream contents are collected as raw bytes.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from functools import partial
from typing import IO

import anyio

from ..events import EventCallback
from .outcome import ProcessOutcome
from .spec import ProcessSpec
from .supervisor import ProcessSupervisor

__all__ = ["ProcessResult", "run_process"]

logger = logging.getLogger(__name__)

_READ_CHUNK = 4096


@dataclass
class ProcessResult:
    """Result of ``run_process``.

    Attributes:
        pid: OS process id
        outcome: How the process ended
        exit_code: Exit code (None if the OS never reported it)
        stdout: Collected stdout bytes
        stderr: Collected stderr bytes
        start_time: Start timestamp
        exit_time: Exit timestamp (None if the OS never reported it)
        timed_out: The timeout elapsed and the process was killed
    """

    pid: int
    outcome: ProcessOutcome
    exit_code: int | None
    stdout: bytes = b""
    stderr: bytes = b""
    start_time: datetime | None = None
    exit_time: datetime | None = None
    timed_out: bool = False

    @property
    def duration(self) -> float | None:
        """Seconds between start and exit, when both are known."""
        if self.start_time is None or self.exit_time is None:
            return None
        return (self.exit_time - self.start_time).total_seconds()

    @property
    def success(self) -> bool:
        return self.outcome is ProcessOutcome.EXITED and self.exit_code == 0


def _feed_stdin(stream: IO[bytes], data: bytes | None) -> None:
    """Write ``data`` then close stdin so the child sees EOF."""
    try:
        if data:
            view = memoryview(data)
            while view:
                written = stream.write(view)
                view = view[written or 0:]
    except (BrokenPipeError, ValueError, OSError) as e:
        # Child exited or closed its stdin early
        logger.debug(f"stdin write stopped: {e}")
    finally:
        try:
            stream.close()
        except OSError as e:
            logger.debug(f"Error closing stdin: {e}")


def _drain(stream: IO[bytes], chunks: list[bytes]) -> None:
    """Read ``stream`` until EOF."""
    try:
        while True:
            chunk = stream.read(_READ_CHUNK)
            if not chunk:
                break
            chunks.append(chunk)
    except (ValueError, OSError) as e:
        # Stream closed underneath us
        logger.debug(f"Stream drain stopped: {e}")


async def run_process(
    spec: ProcessSpec,
    *,
    stdin_bytes: bytes | None = None,
    timeout: float | None = None,
    watchdog_delay: float | None = None,
    on_event: EventCallback | None = None,
) -> ProcessResult:
    """Run ``spec`` to completion and collect its output.

    Args:
        spec: Process specification
        stdin_bytes: Optional bytes written to stdin before it is closed
        timeout: Seconds before the process is killed (None = no limit)
        watchdog_delay: Override of the supervisor's watchdog delay
        on_event: Optional supervisor event callback

    Returns:
        ProcessResult with outcome, exit code and collected output

    Raises:
        LaunchError: If the process could not be started
    """
    supervisor = ProcessSupervisor(spec, watchdog_delay=watchdog_delay, on_event=on_event)
    supervisor.start()

    stdout_chunks: list[bytes] = []
    stderr_chunks: list[bytes] = []
    timed_out = False

    try:
        async with anyio.create_task_group() as tg:
            if supervisor.stdin is not None:
                tg.start_soon(
                    partial(
                        anyio.to_thread.run_sync,
                        _feed_stdin,
                        supervisor.stdin,
                        stdin_bytes,
                        abandon_on_cancel=True,
                    )
                )
            if supervisor.stdout is not None:
                tg.start_soon(
                    partial(
                        anyio.to_thread.run_sync,
                        _drain,
                        supervisor.stdout,
                        stdout_chunks,
                        abandon_on_cancel=True,
                    )
                )
            if supervisor.stderr is not None:
                tg.start_soon(
                    partial(
                        anyio.to_thread.run_sync,
                        _drain,
                        supervisor.stderr,
                        stderr_chunks,
                        abandon_on_cancel=True,
                    )
                )

            with anyio.move_on_after(timeout) as scope:
                outcome = await supervisor.wait_until_exit()

            if scope.cancelled_caught:
                timed_out = True
                logger.info(f"Process pid={supervisor.pid} timed out after {timeout}s, killing")
                supervisor.kill()
                outcome = await supervisor.wait_until_exit()

            if outcome is ProcessOutcome.WATCHDOG:
                # The process may still hold its pipes open
                tg.cancel_scope.cancel()
    finally:
        if not supervisor.outcome.is_resolved:
            # Cancelled by the caller: take the process tree down with us
            with anyio.CancelScope(shield=True):
                supervisor.kill()
                await supervisor.wait_until_exit()
        supervisor.dispose()

    assert supervisor.pid is not None
    return ProcessResult(
        pid=supervisor.pid,
        outcome=outcome,
        exit_code=supervisor.exit_code,
        stdout=b"".join(stdout_chunks),
        stderr=b"".join(stderr_chunks),
        start_time=supervisor.start_time,
        exit_time=supervisor.exit_time,
        timed_out=timed_out,
    )
