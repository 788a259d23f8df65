"""Pytest 配置和 fixtures。"""

from __future__ import annotations

import os
import signal
import sys
from pathlib import Path

import pytest

# 项目根目录
PROJECT_ROOT = Path(__file__).parent.parent

# 添加 src 目录到 Python 路径
SRC_DIR = PROJECT_ROOT / "src"
if str(SRC_DIR) not in sys.path:
    sys.path.insert(0, str(SRC_DIR))

# 测试用子进程脚本
FAKE_CHILD = Path(__file__).parent / "fixtures" / "fake_child.py"

IS_WINDOWS = sys.platform == "win32"


@pytest.fixture
def fake_child():
    """构造运行 fake_child.py 的命令行。"""

    def _argv(*args: str) -> list[str]:
        return [sys.executable, str(FAKE_CHILD), *args]

    return _argv


@pytest.fixture
def temp_workspace(tmp_path: Path) -> Path:
    """临时工作目录。"""
    workspace = tmp_path / "workspace"
    workspace.mkdir()
    return workspace


@pytest.fixture
def reap_pids():
    """测试结束后强制清理登记的进程（用于 kill 被 mock 的用例）。"""
    pids: list[int] = []
    yield pids
    for pid in pids:
        try:
            if IS_WINDOWS:
                os.kill(pid, signal.SIGTERM)
            else:
                os.killpg(pid, signal.SIGKILL)
        except OSError:
            pass


@pytest.fixture(autouse=True)
def _reset_config(monkeypatch: pytest.MonkeyPatch):
    """每个测试使用干净的 PSV_* 配置。"""
    for name in ("PSV_WATCHDOG_DELAY", "PSV_KILL_TREE", "PSV_LOG_DEBUG"):
        monkeypatch.delenv(name, raising=False)

    from proc_supervisor.config import reload_config

    reload_config()
    yield
    reload_config()
