"""Immutable configuration of the process to supervise."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from pathlib import Path

__all__ = ["ProcessSpec"]


@dataclass(frozen=True)
class ProcessSpec:
    """Specification for a subprocess to supervise.

    The supervisor treats this as opaque input: building the command line
    and environment is the caller's job.

    Attributes:
        argv: Command line arguments (first element is the executable)
        cwd: Working directory for the process (None = inherit)
        env: Environment variables (None = inherit parent)
        redirect_stdin: Expose stdin as a pipe (False = inherit parent's)
        redirect_stdout: Expose stdout as a pipe (False = inherit parent's)
        redirect_stderr: Expose stderr as a pipe (False = inherit parent's)
    """

    argv: list[str]
    cwd: Path | None = None
    env: Mapping[str, str] | None = None
    redirect_stdin: bool = True
    redirect_stdout: bool = True
    redirect_stderr: bool = True

    def __post_init__(self) -> None:
        if not self.argv:
            raise ValueError("argv must contain at least the executable")

    @property
    def executable(self) -> str:
        return self.argv[0]
