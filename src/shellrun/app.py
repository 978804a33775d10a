"""shellrun 命令行入口。

用法:
    shellrun echo A B            # 捕获输出，逐行打印，退出码与子进程一致
    shellrun --system make test  # 丢弃 stdout，成功返回 0，失败返回 1
    shellrun --system --env PATH=/usr/bin env

退出码:
    127: 可执行文件不存在
    126: 文件不可执行
    1: 其他 ShellError
"""

from __future__ import annotations

import argparse
import logging
import sys
from collections.abc import Sequence

from .config import Config, get_config
from .errors import ExecutableNotFound, NotExecutable, ShellError
from .shell import run_capture, run_inherited

__all__ = ["run", "main"]

logger = logging.getLogger(__name__)

EXIT_NOT_FOUND = 127
EXIT_NOT_EXECUTABLE = 126
EXIT_FAILURE = 1

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="shellrun",
        description="Run a command and capture its combined output",
    )
    parser.add_argument(
        "--system",
        action="store_true",
        help="Discard stdout, inherit stdin/stderr, exit 0 on success",
    )
    parser.add_argument(
        "--env",
        action="append",
        default=None,
        metavar="KEY=VALUE",
        help="Replacement environment entry (with --system, repeatable)",
    )
    parser.add_argument("executable", help="Program path or name on PATH")
    parser.add_argument("arguments", nargs=argparse.REMAINDER, help="Program arguments")
    return parser


def _parse_env(entries: Sequence[str] | None) -> dict[str, str] | None:
    """解析 --env KEY=VALUE 列表。

    Returns:
        替换用的环境变量字典，未指定时返回 None（继承父进程环境）
    """
    if entries is None:
        return None
    environment: dict[str, str] = {}
    for entry in entries:
        key, sep, value = entry.partition("=")
        if not sep or not key:
            raise ValueError(f"invalid --env entry: {entry!r}")
        environment[key] = value
    return environment


def run(argv: Sequence[str] | None = None) -> int:
    """执行命令行，返回进程退出码。"""
    parser = _build_parser()
    args = parser.parse_args(argv)

    try:
        environment = _parse_env(args.env)
    except ValueError as e:
        parser.error(str(e))

    if args.system:
        ok = run_inherited(args.executable, args.arguments, environment)
        return 0 if ok else EXIT_FAILURE

    if environment is not None:
        parser.error("--env requires --system")

    try:
        result = run_capture(args.executable, args.arguments)
    except ExecutableNotFound as e:
        print(f"shellrun: {e}", file=sys.stderr)
        return EXIT_NOT_FOUND
    except NotExecutable as e:
        print(f"shellrun: {e}", file=sys.stderr)
        return EXIT_NOT_EXECUTABLE
    except ShellError as e:
        logger.debug(f"Capture failed: {type(e).__name__}")
        print(f"shellrun: {e}", file=sys.stderr)
        return EXIT_FAILURE

    for line in result.output:
        print(line)
    return result.status


def _configure_logging(config: Config) -> None:
    """配置日志输出。

    LOG_DEBUG 模式输出到临时文件（DEBUG 级别），默认输出到 stderr。
    """
    log_handlers: list[logging.Handler] = []

    if config.log_debug and config.log_file:
        file_handler = logging.FileHandler(config.log_file, encoding="utf-8")
        file_handler.setFormatter(logging.Formatter(LOG_FORMAT))
        log_handlers.append(file_handler)
        log_level = logging.DEBUG
    else:
        stderr_handler = logging.StreamHandler(sys.stderr)
        stderr_handler.setFormatter(logging.Formatter(LOG_FORMAT))
        log_handlers.append(stderr_handler)
        log_level = logging.INFO

    # 配置 root logger（第三方库）为 WARNING，减少噪音
    logging.basicConfig(
        level=logging.WARNING,
        handlers=log_handlers,
    )
    # 只对 shellrun 命名空间启用详细日志
    logging.getLogger("shellrun").setLevel(log_level)


def main() -> None:
    """主入口点。"""
    config = get_config()
    _configure_logging(config)
    logger.debug(f"Starting shellrun: {config}")
    sys.exit(run())


if __name__ == "__main__":
    main()
