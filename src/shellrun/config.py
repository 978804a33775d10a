"""shellrun 环境变量配置管理。

环境变量:
    SHELLRUN_CHUNK_SIZE: 每次从管道读取的字节数
        - 默认 4096
        - 限制在 1 - 1048576 范围内，无效值使用默认值

    SHELLRUN_ENCODING: 子进程输出的文本编码
        - 默认 utf-8
        - 未知编码或非文本编码 (base64、rot13 等) 使用默认值

    SHELLRUN_LAUNCHER: 进程创建方式
        - auto = 有 os.posix_spawnp 时使用 posix_spawn，否则使用 subprocess (默认)
        - posix_spawn = 强制使用 os.posix_spawnp
        - subprocess = 强制使用 subprocess.Popen

    SHELLRUN_LOG_DEBUG: 日志调试模式
        - true/1/yes = 开启 (日志输出到临时文件)
        - false/0/no = 关闭 (默认，日志输出到 stderr)
"""

from __future__ import annotations

import codecs
import os
import tempfile
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from pathlib import Path

__all__ = [
    "Config",
    "LauncherKind",
    "load_config",
    "get_config",
    "reload_config",
    "DEFAULT_CHUNK_SIZE",
    "DEFAULT_ENCODING",
    "lookup_text_encoding",
]

DEFAULT_CHUNK_SIZE = 4096
MAX_CHUNK_SIZE = 1024 * 1024
DEFAULT_ENCODING = "utf-8"


class LauncherKind(Enum):
    """进程创建方式。

    - AUTO: 按平台自动选择
    - POSIX_SPAWN: os.posix_spawnp
    - SUBPROCESS: subprocess.Popen
    """

    AUTO = "auto"
    POSIX_SPAWN = "posix_spawn"
    SUBPROCESS = "subprocess"

    @classmethod
    def from_string(cls, value: str) -> "LauncherKind":
        """从字符串解析。

        Args:
            value: auto/posix_spawn/subprocess

        Returns:
            对应的枚举值，无效值返回 AUTO
        """
        value = value.lower().strip()
        for kind in cls:
            if kind.value == value:
                return kind
        return cls.AUTO


def _parse_bool(value: str | None, default: bool = False) -> bool:
    """解析布尔值环境变量。"""
    if value is None:
        return default
    return value.lower() in ("true", "1", "yes", "on")


def _parse_chunk_size(value: str | None) -> int:
    """解析读取块大小。"""
    if not value:
        return DEFAULT_CHUNK_SIZE
    try:
        size = int(value)
    except ValueError:
        return DEFAULT_CHUNK_SIZE
    return max(1, min(size, MAX_CHUNK_SIZE))


def lookup_text_encoding(name: str) -> str:
    """查找文本编码，返回规范化后的 codec 名。

    base64、rot13、zlib 等 bytes-to-bytes 或 str-to-str 的 codec 不是文本编码。

    Raises:
        LookupError: 编码不存在或不是文本编码
    """
    info = codecs.lookup(name)
    if not getattr(info, "_is_text_encoding", True):
        raise LookupError(f"{info.name!r} is not a text encoding")
    return info.name


def _parse_encoding(value: str | None) -> str:
    """解析编码名称，未知编码或非文本编码使用默认值。"""
    if not value or not value.strip():
        return DEFAULT_ENCODING
    try:
        return lookup_text_encoding(value.strip())
    except LookupError:
        return DEFAULT_ENCODING


def _parse_launcher(value: str | None) -> LauncherKind:
    """解析进程创建方式。"""
    if not value:
        return LauncherKind.AUTO
    return LauncherKind.from_string(value)


@dataclass
class Config:
    """shellrun 配置。

    Attributes:
        chunk_size: 每次读取的字节数
        encoding: 输出解码使用的编码
        launcher: 进程创建方式
        log_debug: 日志调试模式（输出到临时文件）
        log_file: 日志文件路径（当 log_debug=True 时自动设置）
    """

    chunk_size: int = DEFAULT_CHUNK_SIZE
    encoding: str = DEFAULT_ENCODING
    launcher: LauncherKind = LauncherKind.AUTO
    log_debug: bool = False
    log_file: str | None = None

    def __repr__(self) -> str:
        return (
            f"Config(chunk_size={self.chunk_size}, "
            f"encoding={self.encoding}, "
            f"launcher={self.launcher.value}, "
            f"log_debug={self.log_debug}, "
            f"log_file={self.log_file})"
        )


def _generate_log_file_path() -> str:
    """生成日志文件路径。

    Returns:
        临时目录下的日志文件绝对路径
    """
    log_dir = Path(tempfile.gettempdir()) / "shellrun"
    log_dir.mkdir(parents=True, exist_ok=True)

    timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
    log_file = log_dir / f"shellrun_debug_{timestamp}.log"

    return str(log_file.resolve())


def load_config() -> Config:
    """从环境变量加载配置。"""
    log_debug = _parse_bool(os.environ.get("SHELLRUN_LOG_DEBUG"), default=False)
    log_file = _generate_log_file_path() if log_debug else None

    return Config(
        chunk_size=_parse_chunk_size(os.environ.get("SHELLRUN_CHUNK_SIZE")),
        encoding=_parse_encoding(os.environ.get("SHELLRUN_ENCODING")),
        launcher=_parse_launcher(os.environ.get("SHELLRUN_LAUNCHER")),
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
