"""proc-supervisor - 单个子进程的生命周期监督器。

环境变量:
    PSV_WATCHDOG_DELAY: kill() 之后看门狗等待时间 (默认 3.0s)
    PSV_KILL_TREE: 是否终止整棵进程树 (默认 true)
    PSV_LOG_DEBUG: 日志输出到临时文件 (默认 false)

用法:
    supervisor = ProcessSupervisor(ProcessSpec(argv=["sleep", "10"]))
    supervisor.start()
    supervisor.kill()
    outcome = await supervisor.wait_until_exit()
    supervisor.dispose()
"""

__version__ = "0.1.0"

from .runtime import (
    OutcomeCell,
    ProcessOutcome,
    ProcessResult,
    ProcessSpec,
    ProcessSupervisor,
    SupervisorState,
    run_process,
)
from .errors import LaunchError, PreconditionError, SupervisorError
from .events import EventKind, SupervisorEvent
from .log import setup_logging

__all__ = [
    "__version__",
    "EventKind",
    "LaunchError",
    "OutcomeCell",
    "PreconditionError",
    "ProcessOutcome",
    "ProcessResult",
    "ProcessSpec",
    "ProcessSupervisor",
    "SupervisorError",
    "SupervisorEvent",
    "SupervisorState",
    "run_process",
    "setup_logging",
]
