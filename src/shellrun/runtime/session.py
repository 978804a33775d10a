"""Process session: pipe ownership, read loop, wait and line parsing.

shellrun runtime module v0.1.0

A ProcessSession runs one Command exactly once:
1. Opens a pipe
2. Spawns the child with stdin on the null device and stdout+stderr on the
   pipe write end
3. Closes its own copy of the write end
4. Reads until end-of-stream, decoding strictly
5. Releases the read end and waits for the child
6. Trims and splits the text into lines

Both pipe ends live in Descriptor wrappers, so every exit path (success,
spawn failure, read failure) releases them exactly once.
"""

from __future__ import annotations

import codecs
import logging
import os
from enum import Enum
from types import TracebackType

from ..config import get_config, lookup_text_encoding
from ..errors import (
    AbnormalTermination,
    DescriptorCloseFailed,
    OutputNotDecodable,
    PipeCreationFailed,
    PipeReadFailed,
    ShellError,
)
from ..types import Command, ProcessResult
from .launcher import FileActions, Launcher, get_launcher

__all__ = [
    "Descriptor",
    "Pipe",
    "SessionState",
    "ProcessSession",
    "split_output_lines",
]

logger = logging.getLogger(__name__)


class Descriptor:
    """An owned OS file descriptor that is closed at most once."""

    def __init__(self, fd: int) -> None:
        self._fd: int | None = fd

    @property
    def fd(self) -> int:
        if self._fd is None:
            raise ValueError("descriptor is closed")
        return self._fd

    @property
    def closed(self) -> bool:
        return self._fd is None

    def close(self) -> None:
        """Close the descriptor, raising OSError if the OS reports a failure.

        The descriptor counts as released even when close fails.
        """
        if self._fd is None:
            return
        fd, self._fd = self._fd, None
        os.close(fd)

    def close_quietly(self) -> None:
        """Close the descriptor, logging instead of raising on failure."""
        try:
            self.close()
        except OSError as e:
            logger.warning(f"Error closing descriptor: {e}")

    def __enter__(self) -> "Descriptor":
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.close_quietly()

    def __repr__(self) -> str:
        return f"Descriptor(fd={self._fd})"


class Pipe:
    """A unidirectional pipe whose two ends are released on scope exit.

    Example:
        with Pipe.open() as pipe:
            ...  # pipe.read.fd / pipe.write.fd
    """

    def __init__(self, read: Descriptor, write: Descriptor) -> None:
        self.read = read
        self.write = write

    @classmethod
    def open(cls) -> "Pipe":
        """Allocate a pipe.

        Both descriptors are non-inheritable, so children spawned by other
        sessions never hold a copy.

        Raises:
            PipeCreationFailed: If the OS call fails
        """
        try:
            read_fd, write_fd = os.pipe()
        except OSError as e:
            raise PipeCreationFailed(e.errno) from e
        return cls(Descriptor(read_fd), Descriptor(write_fd))

    def close(self) -> None:
        self.read.close_quietly()
        self.write.close_quietly()

    def __enter__(self) -> "Pipe":
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.close()


class SessionState(Enum):
    """Lifecycle of a ProcessSession. No state is entered twice."""

    CREATED = "created"
    PIPE_OPENED = "pipe_opened"
    CHILD_SPAWNED = "child_spawned"
    READING = "reading"
    WAITED = "waited"
    DONE = "done"
    FAILED = "failed"


def split_output_lines(text: str) -> list[str]:
    """Trim surrounding whitespace and split on line feeds.

    Only ``\\n`` separates lines; a ``\\r`` stays part of its line. Empty
    segments from consecutive line feeds are dropped, so whitespace-only
    output yields no lines at all.
    """
    return [line for line in text.strip().split("\n") if line]


class ProcessSession:
    """Runs one Command and captures its combined stdout/stderr.

    Example:
        session = ProcessSession(Command("echo", ["hello"]))
        result = session.run()
        assert result.output == ("hello",)

    Attributes:
        command: What to launch
        launcher: Platform adapter used to spawn and wait
        chunk_size: Bytes requested per read
        encoding: Codec the output must decode with
    """

    def __init__(
        self,
        command: Command,
        *,
        launcher: Launcher | None = None,
        chunk_size: int | None = None,
        encoding: str | None = None,
    ) -> None:
        config = get_config()
        self.command = command
        self.launcher = launcher if launcher is not None else get_launcher()
        self.chunk_size = chunk_size if chunk_size is not None else config.chunk_size
        if self.chunk_size < 1:
            raise ValueError(f"chunk_size must be positive, got {self.chunk_size}")
        try:
            self.encoding = lookup_text_encoding(encoding or config.encoding)
        except LookupError as e:
            raise ValueError(f"unusable output encoding: {e}") from e
        self._state = SessionState.CREATED

    @property
    def state(self) -> SessionState:
        return self._state

    def _transition(self, state: SessionState) -> None:
        logger.debug(f"Session {self.command.executable}: {self._state.value} -> {state.value}")
        self._state = state

    def run(self) -> ProcessResult:
        """Run the command to completion.

        Returns:
            ProcessResult with the exit status and trimmed output lines

        Raises:
            ShellError: One of the shellrun.errors kinds; no partial output
                is returned
            RuntimeError: If the session already ran
        """
        if self._state is not SessionState.CREATED:
            raise RuntimeError(f"session already ran (state={self._state.value})")

        argv = self.command.argv
        pid: int | None = None
        wait_attempted = False

        try:
            with Pipe.open() as pipe:
                self._transition(SessionState.PIPE_OPENED)

                actions = FileActions.for_capture(pipe.read.fd, pipe.write.fd)
                pid = self.launcher.spawn(argv, actions)
                self._transition(SessionState.CHILD_SPAWNED)

                # The child holds its own copy; ours must go so EOF can arrive.
                try:
                    pipe.write.close()
                except OSError as e:
                    raise DescriptorCloseFailed(e.errno) from e

                self._transition(SessionState.READING)
                text = self._read_all(pipe.read)

            wait_attempted = True
            info = self.launcher.wait(pid)
            self._transition(SessionState.WAITED)
            if not info.exited:
                raise AbnormalTermination(info.signal)
            lines = split_output_lines(text)

        except BaseException:
            self._transition(SessionState.FAILED)
            if pid is not None and not wait_attempted:
                self._reap(pid)
            raise

        self._transition(SessionState.DONE)
        logger.debug(
            f"Session completed argv={argv[0]} status={info.exit_code} lines={len(lines)}"
        )
        return ProcessResult(status=info.exit_code, output=tuple(lines))

    def _read_all(self, read_end: Descriptor) -> str:
        """Read ``read_end`` until end-of-stream and return the decoded text."""
        decoder = codecs.getincrementaldecoder(self.encoding)(errors="strict")
        parts: list[str] = []
        total = 0

        while True:
            try:
                chunk = os.read(read_end.fd, self.chunk_size)
            except InterruptedError:
                continue
            except OSError as e:
                raise PipeReadFailed(e.errno) from e
            if not chunk:
                break
            total += len(chunk)
            parts.append(self._decode(decoder, chunk))

        # Flush: a multi-byte sequence cut off at end-of-stream is an error.
        parts.append(self._decode(decoder, b"", final=True))
        logger.debug(f"Read {total} bytes from {self.command.executable}")
        return "".join(parts)

    def _decode(
        self,
        decoder: codecs.IncrementalDecoder,
        data: bytes,
        final: bool = False,
    ) -> str:
        try:
            text = decoder.decode(data, final)
        except UnicodeDecodeError as e:
            raise OutputNotDecodable(self.encoding, str(e)) from e
        if "\x00" in text:
            raise OutputNotDecodable(self.encoding, "embedded NUL character")
        return text

    def _reap(self, pid: int) -> None:
        """Wait for a child left behind by a failed session."""
        try:
            self.launcher.wait(pid)
        except ShellError as e:
            logger.warning(f"Failed to reap pid={pid}: {e}")
