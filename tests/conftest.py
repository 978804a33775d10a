"""Pytest 配置和 fixtures。"""

from __future__ import annotations

import os
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
FAKE_CLI = Path(__file__).parent / "fixtures" / "fake_cli.py"


@pytest.fixture(autouse=True)
def clean_config(monkeypatch: pytest.MonkeyPatch):
    """清除 SHELLRUN_* 环境变量并重新加载配置。"""
    from shellrun.config import reload_config

    for key in list(os.environ):
        if key.startswith("SHELLRUN_"):
            monkeypatch.delenv(key, raising=False)
    reload_config()
    yield
    monkeypatch.undo()
    reload_config()


@pytest.fixture
def fake_cli() -> list[str]:
    """运行 fake_cli.py 的 argv 前缀。"""
    return [sys.executable, str(FAKE_CLI)]
