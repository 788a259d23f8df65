"""PSV 环境变量配置管理。

环境变量:
    PSV_WATCHDOG_DELAY: kill() 之后看门狗的等待时间（秒）
        - 默认 3.0 秒
        - 限制在 0.1-60 秒范围，无效值回退到默认值

    PSV_KILL_TREE: kill() 是否同时终止所有子孙进程
        - true/1/yes = 终止整棵进程树 (默认)
        - false/0/no = 只终止子进程本身

    PSV_LOG_DEBUG: 日志调试模式
        - true/1/yes = 开启 (日志输出到临时文件, DEBUG 级别)
        - false/0/no = 关闭 (默认，日志输出到 stderr, INFO 级别)
"""

from __future__ import annotations

import os
import tempfile
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path

__all__ = ["Config", "load_config", "get_config", "reload_config", "DEFAULT_WATCHDOG_DELAY"]

# 参考实现中的看门狗延迟
DEFAULT_WATCHDOG_DELAY = 3.0

_MIN_WATCHDOG_DELAY = 0.1
_MAX_WATCHDOG_DELAY = 60.0


def _parse_bool(value: str | None, default: bool = False) -> bool:
    """解析布尔值环境变量。"""
    if value is None:
        return default
    return value.lower() in ("true", "1", "yes", "on")


def _parse_watchdog_delay(value: str | None) -> float:
    """解析看门狗延迟环境变量。"""
    if not value:
        return DEFAULT_WATCHDOG_DELAY
    try:
        delay = float(value)
    except ValueError:
        return DEFAULT_WATCHDOG_DELAY
    if delay != delay:  # NaN
        return DEFAULT_WATCHDOG_DELAY
    return max(_MIN_WATCHDOG_DELAY, min(delay, _MAX_WATCHDOG_DELAY))


def _generate_log_file_path() -> str:
    """生成日志文件路径。

    Returns:
        临时目录下的日志文件绝对路径
    """
    log_dir = Path(tempfile.gettempdir()) / "proc-supervisor"
    log_dir.mkdir(parents=True, exist_ok=True)

    timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
    log_file = log_dir / f"psv_debug_{timestamp}.log"

    return str(log_file.resolve())


@dataclass
class Config:
    """PSV 配置。

    Attributes:
        watchdog_delay: kill() 之后强制判定为终止前的等待时间（秒）
        kill_tree: 是否终止整棵进程树
        log_debug: 日志调试模式（输出到临时文件）
        log_file: 日志文件路径（当 log_debug=True 时自动设置）
    """

    watchdog_delay: float = DEFAULT_WATCHDOG_DELAY
    kill_tree: bool = True
    log_debug: bool = False
    log_file: str | None = None

    def __repr__(self) -> str:
        return (
            f"Config(watchdog_delay={self.watchdog_delay}, "
            f"kill_tree={self.kill_tree}, "
            f"log_debug={self.log_debug}, "
            f"log_file={self.log_file})"
        )


def load_config() -> Config:
    """从环境变量加载配置。"""
    log_debug = _parse_bool(os.environ.get("PSV_LOG_DEBUG"), default=False)
    log_file = _generate_log_file_path() if log_debug else None

    return Config(
        watchdog_delay=_parse_watchdog_delay(os.environ.get("PSV_WATCHDOG_DELAY")),
        kill_tree=_parse_bool(os.environ.get("PSV_KILL_TREE"), default=True),
        log_debug=log_debug,
        log_file=log_file,
    )


# 全局配置实例（延迟加载）
_config: Config | None = None


def get_config() -> Config:
    """获取全局配置实例。"""
    global _config
    if _config is None:
        _config = load_config()
    return _config


def reload_config() -> Config:
    """重新加载配置（用于测试）。"""
    global _config
    _config = load_config()
    return _config
