"""日志配置。

默认输出到 stderr (INFO)；PSV_LOG_DEBUG 开启时输出到临时文件 (DEBUG)。
第三方库的日志保持在 WARNING，只对 proc_supervisor 命名空间启用详细日志。
"""

from __future__ import annotations

import copy
import json
import logging
import sys

from .config import Config, get_config

__all__ = ["setup_logging", "LOG_FORMAT"]

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"


class JsonSerializingFormatter(logging.Formatter):
    """尝试将日志参数中的对象 JSON 序列化（Pydantic 模型、dict）。"""

    def format(self, record: logging.LogRecord) -> str:
        if record.args and isinstance(record.args, tuple):
            # 复制 record，其他 handler 仍使用原始参数
            record = copy.copy(record)
            new_args = []
            for arg in record.args:
                try:
                    if hasattr(arg, "model_dump"):
                        new_args.append(json.dumps(arg.model_dump(mode="json"), ensure_ascii=False))
                    elif isinstance(arg, dict):
                        new_args.append(json.dumps(arg, ensure_ascii=False, default=str))
                    else:
                        new_args.append(arg)
                except (TypeError, ValueError):
                    new_args.append(arg)
            record.args = tuple(new_args)
        return super().format(record)


def setup_logging(config: Config | None = None) -> logging.Logger:
    """按配置安装日志 handler。

    Args:
        config: 配置（默认读取全局配置）

    Returns:
        proc_supervisor 命名空间的 logger
    """
    config = config or get_config()

    log_handlers: list[logging.Handler] = []

    if config.log_debug and config.log_file:
        # LOG_DEBUG 模式：输出到临时文件
        file_handler = logging.FileHandler(config.log_file, encoding="utf-8")
        file_handler.setFormatter(JsonSerializingFormatter(LOG_FORMAT))
        log_handlers.append(file_handler)
        log_level = logging.DEBUG
    else:
        stderr_handler = logging.StreamHandler(sys.stderr)
        stderr_handler.setFormatter(logging.Formatter(LOG_FORMAT))
        log_handlers.append(stderr_handler)
        log_level = logging.INFO

    logging.basicConfig(
        level=logging.WARNING,
        handlers=log_handlers,
    )
    package_logger = logging.getLogger("proc_supervisor")
    package_logger.setLevel(log_level)
    return package_logger
