"""进程监督器异常类。

只有 LaunchError 和 PreconditionError 会抛给调用方；
终止过程中的竞态错误在内部吸收，由看门狗兜底。
"""

from __future__ import annotations

from collections.abc import Sequence
from pathlib import Path
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .runtime.supervisor import SupervisorState

__all__ = [
    "SupervisorError",
    "LaunchError",
    "PreconditionError",
]


class SupervisorError(Exception):
    """进程监督器基础异常。"""
    pass


class LaunchError(SupervisorError):
    """子进程启动失败（可执行文件不存在、无执行权限或其他 OS 拒绝）。

    不会自动重试。原始 OSError 通过 __cause__ 链接。

    Attributes:
        argv: 启动时使用的命令行
        cwd: 工作目录
    """

    def __init__(self, argv: Sequence[str], cwd: Path | None, reason: str) -> None:
        self.argv = list(argv)
        self.cwd = cwd
        self.reason = reason
        executable = self.argv[0] if self.argv else "<empty argv>"
        super().__init__(f"Failed to start process '{executable}': {reason}")


class PreconditionError(SupervisorError):
    """调用顺序违反约定（重复 start、start 之前 kill/wait、dispose 之后 kill）。

    Attributes:
        state: 出错时监督器所处的状态
    """

    def __init__(self, message: str, state: "SupervisorState") -> None:
        self.state = state
        super().__init__(f"{message} (state={state.value})")
