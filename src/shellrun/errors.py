"""Exception classes for shellrun.

Every failure of a capture session is reported as one of these. Each class
carries only the diagnostic payload it needs (an errno, a spawn result code,
the argv that was launched, a signal number).
"""

from __future__ import annotations

import errno as _errno
import os
import signal as _signal
from collections.abc import Sequence

__all__ = [
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
    "spawn_error_from_oserror",
]


def _describe_errno(code: int | None) -> str:
    if not code:
        return "unknown error"
    return f"{_errno.errorcode.get(code, code)}: {os.strerror(code)}"


class ShellError(Exception):
    """Base class for shellrun failures."""
    pass


class PipeCreationFailed(ShellError):
    """The OS refused to allocate a pipe.

    Attributes:
        errno: OS error number
    """

    def __init__(self, errno: int | None = None) -> None:
        self.errno = errno
        super().__init__(f"pipe creation failed ({_describe_errno(errno)})")


class SpawnFailed(ShellError):
    """The process-creation primitive reported a nonzero result.

    Attributes:
        code: Result code of the spawn call (an errno value)
        command: Full argv that was being launched
    """

    def __init__(self, code: int, command: Sequence[str]) -> None:
        self.code = code
        self.command = list(command)
        super().__init__(
            f"spawn of {self.command!r} failed ({_describe_errno(code)})"
        )


class ExecutableNotFound(SpawnFailed):
    """The executable does not exist or is not on the search path."""
    pass


class NotExecutable(SpawnFailed):
    """The executable exists but may not be run."""
    pass


class DescriptorCloseFailed(ShellError):
    """Closing the parent's copy of the pipe write end failed."""

    def __init__(self, errno: int | None = None) -> None:
        self.errno = errno
        super().__init__(f"closing pipe write end failed ({_describe_errno(errno)})")


class PipeReadFailed(ShellError):
    """A read on the pipe failed for a reason other than interruption."""

    def __init__(self, errno: int | None = None) -> None:
        self.errno = errno
        super().__init__(f"reading from pipe failed ({_describe_errno(errno)})")


class OutputNotDecodable(ShellError):
    """Captured bytes are not valid text in the configured encoding.

    Attributes:
        encoding: Codec the output was decoded with
        reason: Decoder message
    """

    def __init__(self, encoding: str, reason: str = "") -> None:
        self.encoding = encoding
        self.reason = reason
        message = f"output is not valid {encoding}"
        if reason:
            message = f"{message}: {reason}"
        super().__init__(message)


class WaitFailed(ShellError):
    """Waiting for the child failed for a reason other than interruption."""

    def __init__(self, errno: int | None = None) -> None:
        self.errno = errno
        super().__init__(f"waiting for child failed ({_describe_errno(errno)})")


class AbnormalTermination(ShellError):
    """The child was terminated by a signal instead of exiting.

    Attributes:
        signal: Number of the terminating signal, when known
    """

    def __init__(self, signal: int | None = None) -> None:
        self.signal = signal
        if signal is None:
            super().__init__("child terminated abnormally")
            return
        try:
            name = _signal.Signals(signal).name
        except ValueError:
            name = str(signal)
        super().__init__(f"child terminated by signal {name}")


class ExitStatusError(ShellError):
    """A command run with stdout discarded exited with a nonzero status.

    Attributes:
        status: Exit code of the child
        command: Full argv that was launched
    """

    def __init__(self, status: int, command: Sequence[str]) -> None:
        self.status = status
        self.command = list(command)
        super().__init__(f"{self.command!r} exited with status {status}")


def spawn_error_from_oserror(exc: OSError, command: Sequence[str]) -> SpawnFailed:
    """Map an OSError raised while spawning to the matching SpawnFailed variant."""
    code = exc.errno or 0
    if code == _errno.ENOENT or isinstance(exc, FileNotFoundError):
        return ExecutableNotFound(code or _errno.ENOENT, command)
    if code in (_errno.EACCES, _errno.ENOEXEC, _errno.EPERM) or isinstance(
        exc, PermissionError
    ):
        return NotExecutable(code or _errno.EACCES, command)
    return SpawnFailed(code, command)
