"""Process launcher: file-action lists and platform spawn adapters.

shellrun runtime module v0.1.0

This module provides:
- FileActions: an ordered list of descriptor operations applied to the child
  before its program image runs (open, dup2, close)
- Launcher: the platform-neutral spawn/wait interface
- PosixSpawnLauncher: os.posix_spawnp + os.waitpid
- SubprocessLauncher: subprocess.Popen translation for platforms without
  posix_spawnp (Windows)

Key design points:
- The child inherits the caller's environment unless an explicit mapping is
  given, in which case the mapping fully replaces it
- Interrupted waits are retried; every other OS failure maps onto the
  shellrun.errors taxonomy
"""

from __future__ import annotations

import errno
import logging
import os
import subprocess
import sys
import threading
from abc import ABC, abstractmethod
from collections.abc import Iterator, Mapping, Sequence
from dataclasses import dataclass
from typing import Any, Union

from ..config import LauncherKind, get_config
from ..errors import SpawnFailed, WaitFailed, spawn_error_from_oserror

__all__ = [
    "IS_WINDOWS",
    "HAS_POSIX_SPAWN",
    "OpenFile",
    "DuplicateFile",
    "CloseFile",
    "FileActions",
    "ExitInfo",
    "Launcher",
    "PosixSpawnLauncher",
    "SubprocessLauncher",
    "get_launcher",
]

logger = logging.getLogger(__name__)

# Platform detection
IS_WINDOWS = sys.platform == "win32"
HAS_POSIX_SPAWN = hasattr(os, "posix_spawnp")

STDIN_FILENO = 0
STDOUT_FILENO = 1
STDERR_FILENO = 2
_STANDARD_FDS = (STDIN_FILENO, STDOUT_FILENO, STDERR_FILENO)


@dataclass(frozen=True)
class OpenFile:
    """Open ``path`` onto descriptor ``fd`` in the child."""

    fd: int
    path: str
    flags: int
    mode: int = 0

    def to_posix(self) -> tuple[Any, ...]:
        return (os.POSIX_SPAWN_OPEN, self.fd, self.path, self.flags, self.mode)


@dataclass(frozen=True)
class DuplicateFile:
    """Duplicate ``source`` onto ``target`` in the child (dup2)."""

    source: int
    target: int

    def to_posix(self) -> tuple[Any, ...]:
        return (os.POSIX_SPAWN_DUP2, self.source, self.target)


@dataclass(frozen=True)
class CloseFile:
    """Close descriptor ``fd`` in the child."""

    fd: int

    def to_posix(self) -> tuple[Any, ...]:
        return (os.POSIX_SPAWN_CLOSE, self.fd)


FileAction = Union[OpenFile, DuplicateFile, CloseFile]


class FileActions:
    """Ordered descriptor operations applied at child-creation time.

    Actions run in insertion order, so a dup2 added before a close of the
    same descriptor sees the descriptor still open.

    Example:
        actions = FileActions.for_capture(read_fd, write_fd)
        pid = launcher.spawn(["echo", "hi"], actions)
    """

    def __init__(self, actions: Sequence[FileAction] = ()) -> None:
        self._actions: list[FileAction] = list(actions)

    def __iter__(self) -> Iterator[FileAction]:
        return iter(self._actions)

    def __len__(self) -> int:
        return len(self._actions)

    def __repr__(self) -> str:
        return f"FileActions({self._actions!r})"

    def add_open(self, fd: int, path: str, flags: int, mode: int = 0) -> None:
        self._actions.append(OpenFile(fd, path, flags, mode))

    def add_dup2(self, source: int, target: int) -> None:
        self._actions.append(DuplicateFile(source, target))

    def add_close(self, fd: int) -> None:
        self._actions.append(CloseFile(fd))

    def add_open_stdin_to_devnull(self) -> None:
        self.add_open(STDIN_FILENO, os.devnull, os.O_RDONLY)

    def add_open_stdout_to_devnull(self) -> None:
        self.add_open(STDOUT_FILENO, os.devnull, os.O_WRONLY)

    def to_posix(self) -> list[tuple[Any, ...]]:
        """Render as the ``file_actions`` argument of os.posix_spawnp."""
        return [action.to_posix() for action in self._actions]

    @classmethod
    def for_capture(cls, read_fd: int, write_fd: int) -> "FileActions":
        """Layout for a captured child: stdin from the null device,
        stdout and stderr into ``write_fd``, pipe originals closed.
        """
        actions = cls()
        actions.add_open_stdin_to_devnull()
        actions.add_dup2(write_fd, STDOUT_FILENO)
        actions.add_dup2(write_fd, STDERR_FILENO)
        # Standard descriptors are redirect targets and must stay open.
        for fd in (read_fd, write_fd):
            if fd not in _STANDARD_FDS:
                actions.add_close(fd)
        return actions

    @classmethod
    def for_discarded_stdout(cls) -> "FileActions":
        """Layout for an inherited child: stdout to the null device,
        stdin and stderr untouched.
        """
        actions = cls()
        actions.add_open_stdout_to_devnull()
        return actions


@dataclass(frozen=True)
class ExitInfo:
    """How a child terminated.

    Attributes:
        exit_code: Exit status for a normal exit, else None
        signal: Terminating signal number, else None
    """

    exit_code: int | None = None
    signal: int | None = None

    @property
    def exited(self) -> bool:
        return self.exit_code is not None

    @classmethod
    def from_wait_status(cls, status: int) -> "ExitInfo":
        """Decode a raw os.waitpid status."""
        if os.WIFEXITED(status):
            return cls(exit_code=os.WEXITSTATUS(status))
        if os.WIFSIGNALED(status):
            return cls(signal=os.WTERMSIG(status))
        return cls()


class Launcher(ABC):
    """Platform-neutral process creation interface."""

    name: str = "launcher"

    @abstractmethod
    def spawn(
        self,
        argv: Sequence[str],
        file_actions: FileActions,
        env: Mapping[str, str] | None = None,
    ) -> int:
        """Start ``argv`` with ``file_actions`` applied and return its pid.

        ``argv[0]`` is resolved against PATH when it contains no slash.

        Raises:
            SpawnFailed: If the OS refused to create the process
        """

    @abstractmethod
    def wait(self, pid: int) -> ExitInfo:
        """Block until ``pid`` terminates.

        Raises:
            WaitFailed: If waiting failed for a reason other than interruption
        """


class PosixSpawnLauncher(Launcher):
    """Launcher backed by os.posix_spawnp and os.waitpid."""

    name = "posix_spawn"

    def spawn(
        self,
        argv: Sequence[str],
        file_actions: FileActions,
        env: Mapping[str, str] | None = None,
    ) -> int:
        if not argv:
            raise ValueError("argv must contain at least the executable")
        args = list(argv)
        environment = os.environ if env is None else dict(env)

        try:
            pid = os.posix_spawnp(
                args[0],
                args,
                environment,
                file_actions=file_actions.to_posix() or None,
            )
        except OSError as e:
            logger.debug(f"posix_spawnp failed argv={args} errno={e.errno}")
            raise spawn_error_from_oserror(e, args) from e
        except (ValueError, TypeError) as e:
            # NUL bytes, "=" in env names, non-str values
            logger.debug(f"posix_spawnp rejected argv={args}: {e}")
            raise SpawnFailed(errno.EINVAL, args) from e

        logger.debug(f"Spawned pid={pid} argv={args[0]} actions={len(file_actions)}")
        return pid

    def wait(self, pid: int) -> ExitInfo:
        while True:
            try:
                _, status = os.waitpid(pid, 0)
            except InterruptedError:
                continue
            except OSError as e:
                raise WaitFailed(e.errno) from e
            info = ExitInfo.from_wait_status(status)
            logger.debug(f"Reaped pid={pid} exit_code={info.exit_code} signal={info.signal}")
            return info


class SubprocessLauncher(Launcher):
    """Launcher backed by subprocess.Popen.

    File actions are translated into Popen's stdin/stdout/stderr arguments.
    Closes of non-standard descriptors are implied by ``close_fds=True``.
    """

    name = "subprocess"

    def __init__(self) -> None:
        self._children: dict[int, subprocess.Popen[bytes]] = {}
        self._lock = threading.Lock()

    def spawn(
        self,
        argv: Sequence[str],
        file_actions: FileActions,
        env: Mapping[str, str] | None = None,
    ) -> int:
        if not argv:
            raise ValueError("argv must contain at least the executable")
        args = list(argv)
        streams: dict[int, Any] = {fd: None for fd in _STANDARD_FDS}
        opened: list[int] = []

        try:
            for action in file_actions:
                if isinstance(action, CloseFile):
                    continue
                target = action.fd if isinstance(action, OpenFile) else action.target
                if target not in _STANDARD_FDS:
                    raise ValueError(f"unsupported redirect target fd={target}")
                if isinstance(action, OpenFile):
                    if action.path == os.devnull:
                        streams[target] = subprocess.DEVNULL
                    else:
                        fd = os.open(action.path, action.flags, action.mode)
                        opened.append(fd)
                        streams[target] = fd
                elif action.source in _STANDARD_FDS and streams[action.source] is not None:
                    streams[target] = streams[action.source]
                else:
                    streams[target] = action.source

            try:
                process = subprocess.Popen(
                    args,
                    stdin=streams[STDIN_FILENO],
                    stdout=streams[STDOUT_FILENO],
                    stderr=streams[STDERR_FILENO],
                    env=None if env is None else dict(env),
                    close_fds=True,
                )
            except OSError as e:
                logger.debug(f"Popen failed argv={args} errno={e.errno}")
                raise spawn_error_from_oserror(e, args) from e
            except (ValueError, TypeError) as e:
                logger.debug(f"Popen rejected argv={args}: {e}")
                raise SpawnFailed(errno.EINVAL, args) from e
        finally:
            for fd in opened:
                os.close(fd)

        with self._lock:
            self._children[process.pid] = process
        logger.debug(f"Spawned pid={process.pid} argv={args[0]} (subprocess)")
        return process.pid

    def wait(self, pid: int) -> ExitInfo:
        with self._lock:
            process = self._children.pop(pid, None)
        if process is None:
            raise WaitFailed(errno.ECHILD)

        try:
            returncode = process.wait()
        except OSError as e:
            raise WaitFailed(e.errno) from e

        # Popen reports signal termination as a negative return code.
        if returncode < 0:
            info = ExitInfo(signal=-returncode)
        else:
            info = ExitInfo(exit_code=returncode)
        logger.debug(f"Reaped pid={pid} exit_code={info.exit_code} signal={info.signal}")
        return info


def get_launcher(kind: LauncherKind | str | None = None) -> Launcher:
    """Create the launcher for ``kind`` (default: the configured one).

    ``auto`` picks posix_spawn where the platform provides it.
    """
    if kind is None:
        kind = get_config().launcher
    elif isinstance(kind, str):
        kind = LauncherKind.from_string(kind)

    if kind is LauncherKind.SUBPROCESS:
        return SubprocessLauncher()
    if kind is LauncherKind.POSIX_SPAWN and not HAS_POSIX_SPAWN:
        logger.warning("os.posix_spawnp is unavailable, falling back to subprocess")
        return SubprocessLauncher()
    if HAS_POSIX_SPAWN:
        return PosixSpawnLauncher()
    return SubprocessLauncher()
