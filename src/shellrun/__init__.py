"""shellrun - 运行子进程并捕获其输出。

环境变量:
    SHELLRUN_CHUNK_SIZE: 管道读取块大小 (默认 4096)
    SHELLRUN_ENCODING: 输出编码 (默认 utf-8)
    SHELLRUN_LAUNCHER: 进程创建方式 (默认 auto)

用法:
    from shellrun import run_capture
    run_capture("echo", ["A"]).output  # ("A",)
"""

__version__ = "0.1.0"

from .errors import (
    AbnormalTermination,
    DescriptorCloseFailed,
    ExecutableNotFound,
    ExitStatusError,
    NotExecutable,
    OutputNotDecodable,
    PipeCreationFailed,
    PipeReadFailed,
    ShellError,
    SpawnFailed,
    WaitFailed,
)
from .shell import (
    Shell,
    run_capture,
    run_capture_async,
    run_inherited,
    run_inherited_async,
    system,
)
from .types import Command, ProcessResult

__all__ = [
    "__version__",
    "Command",
    "ProcessResult",
    "Shell",
    "run_capture",
    "run_capture_async",
    "run_inherited",
    "run_inherited_async",
    "system",
    "ShellError",
    "PipeCreationFailed",
    "SpawnFailed",
    "ExecutableNotFound",
    "NotExecutable",
    "DescriptorCloseFailed",
    "PipeReadFailed",
    "OutputNotDecodable",
    "WaitFailed",
    "AbnormalTermination",
    "ExitStatusError",
]
