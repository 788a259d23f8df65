"""Process isolation and forceful process-tree termination.

Key design points:
- POSIX: start_new_session=True so the child leads its own process group,
  and SIGKILL is sent to the whole group
- Windows: CREATE_NEW_PROCESS_GROUP for signal isolation
- Descendants are snapshotted with psutil before the kill so children that
  moved to another session/group are still terminated
"""

from __future__ import annotations

import logging
import os
import signal
import subprocess
import sys
from typing import Any

import psutil

__all__ = [
    "IS_WINDOWS",
    "popen_isolation_kwargs",
    "kill_process_tree",
]

logger = logging.getLogger(__name__)

# Platform detection
IS_WINDOWS = sys.platform == "win32"


def popen_isolation_kwargs() -> dict[str, Any]:
    """Build platform-specific ``subprocess.Popen`` isolation kwargs."""
    if IS_WINDOWS:
        return {"creationflags": subprocess.CREATE_NEW_PROCESS_GROUP}
    # POSIX: start_new_session (equivalent to setsid)
    return {"start_new_session": True}


def _snapshot_descendants(pid: int) -> list[psutil.Process]:
    try:
        return psutil.Process(pid).children(recursive=True)
    except psutil.Error as e:
        logger.debug(f"Could not list descendants of pid={pid}: {e}")
        return []


def _kill_descendants(descendants: list[psutil.Process]) -> None:
    for child in descendants:
        try:
            child.kill()
        except psutil.NoSuchProcess:
            pass
        except psutil.Error as e:
            logger.debug(f"Failed to kill descendant pid={child.pid}: {e}")


def _posix_kill(pid: int, include_group: bool) -> None:
    """Send SIGKILL to the process group led by ``pid`` (or to ``pid`` alone).

    Raises:
        ProcessLookupError: The process (group) no longer exists
        OSError: The signal could not be delivered
    """
    if include_group:
        pgid = os.getpgid(pid)
        # Never signal our own group, even if isolation was bypassed
        if pgid == pid and pgid != os.getpgrp():
            os.killpg(pgid, signal.SIGKILL)
            logger.debug(f"Sent SIGKILL to process group pgid={pgid}")
            return
        logger.debug(f"pid={pid} does not lead its own group, killing it alone")

    os.kill(pid, signal.SIGKILL)
    logger.debug(f"Sent SIGKILL to pid={pid}")


def kill_process_tree(popen: subprocess.Popen, *, include_descendants: bool = True) -> None:
    """Forcefully terminate ``popen`` and, optionally, all its descendants.

    Errors from signalling the main process propagate: the caller cannot tell
    apart "already exited" from "failed to terminate" and decides what to do.
    Errors from individual descendants are logged and ignored.

    Args:
        popen: The supervised process
        include_descendants: Terminate the whole process tree
    """
    pid = popen.pid
    descendants = _snapshot_descendants(pid) if include_descendants else []

    if IS_WINDOWS:
        _kill_descendants(descendants)
        popen.kill()
        logger.debug(f"Called kill() on pid={pid}")
        return

    _posix_kill(pid, include_group=include_descendants)
    # Descendants that left the group (setsid, double fork)
    _kill_descendants(descendants)
