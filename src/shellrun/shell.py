"""Public entry points.

- run_capture: run a command, capture combined stdout/stderr as lines
- run_inherited: run a command with stdout discarded, report success as bool
- system: the raising form of run_inherited
- Shell: object form of both, bound to one command

The async variants run the blocking session on a worker thread via anyio so
event-loop callers stay responsive.
"""

from __future__ import annotations

import functools
import logging
from collections.abc import Mapping, Sequence

from anyio import to_thread

from .errors import AbnormalTermination, ExitStatusError, ShellError
from .runtime.launcher import FileActions, Launcher, get_launcher
from .runtime.session import ProcessSession
from .types import Command, ProcessResult

__all__ = [
    "Shell",
    "run_capture",
    "run_inherited",
    "run_capture_async",
    "run_inherited_async",
    "system",
]

logger = logging.getLogger(__name__)


def run_capture(
    executable: str,
    arguments: Sequence[str] = (),
    *,
    launcher: Launcher | None = None,
) -> ProcessResult:
    """Run ``executable`` and capture its output.

    The child inherits the caller's environment, reads stdin from the null
    device and writes stdout and stderr into one pipe.

    Args:
        executable: Path or bare name searched on PATH
        arguments: Arguments, each passed as its own argv entry
        launcher: Spawn adapter (default: the configured one)

    Returns:
        ProcessResult with exit status and trimmed output lines

    Raises:
        ShellError: Any failure kind from shellrun.errors
    """
    session = ProcessSession(Command(executable, arguments), launcher=launcher)
    return session.run()


def system(
    argv: Sequence[str],
    environment: Mapping[str, str] | None = None,
    *,
    launcher: Launcher | None = None,
) -> None:
    """Run ``argv`` with stdout discarded and stdin/stderr inherited.

    Args:
        argv: Full argument vector, executable first
        environment: Replacement environment (None = inherit)
        launcher: Spawn adapter (default: the configured one)

    Raises:
        SpawnFailed: If the child could not be started
        AbnormalTermination: If the child was killed by a signal
        ExitStatusError: If the child exited nonzero
    """
    args = list(argv)
    if launcher is None:
        launcher = get_launcher()
    pid = launcher.spawn(args, FileActions.for_discarded_stdout(), env=environment)
    info = launcher.wait(pid)
    if not info.exited:
        raise AbnormalTermination(info.signal)
    if info.exit_code != 0:
        raise ExitStatusError(info.exit_code, args)


def run_inherited(
    executable: str,
    arguments: Sequence[str] = (),
    environment: Mapping[str, str] | None = None,
    *,
    launcher: Launcher | None = None,
) -> bool:
    """Run ``executable`` with stdout discarded; return True on exit code 0.

    Every failure, including a failed spawn, is reported as False. Use
    run_capture when the reason matters.
    """
    argv = Command(executable, arguments).argv
    try:
        system(argv, environment, launcher=launcher)
    except (ShellError, OSError) as e:
        logger.debug(f"run_inherited argv={argv[0]} failed: {e}")
        return False
    return True


async def run_capture_async(
    executable: str,
    arguments: Sequence[str] = (),
    *,
    launcher: Launcher | None = None,
) -> ProcessResult:
    """run_capture on a worker thread."""
    return await to_thread.run_sync(
        functools.partial(run_capture, executable, arguments, launcher=launcher)
    )


async def run_inherited_async(
    executable: str,
    arguments: Sequence[str] = (),
    environment: Mapping[str, str] | None = None,
    *,
    launcher: Launcher | None = None,
) -> bool:
    """run_inherited on a worker thread."""
    return await to_thread.run_sync(
        functools.partial(
            run_inherited, executable, arguments, environment, launcher=launcher
        )
    )


class Shell:
    """A command bound to an executable and its arguments.

    Example:
        result = Shell("echo", ["A", "B"]).start()
        result.output[0]  # "A B"
    """

    def __init__(self, executable: str, arguments: Sequence[str] = ()) -> None:
        self.command = Command(executable, arguments)

    @property
    def executable(self) -> str:
        return self.command.executable

    @property
    def arguments(self) -> tuple[str, ...]:
        return tuple(self.command.arguments)

    def start(self, *, launcher: Launcher | None = None) -> ProcessResult:
        """Capture mode, see run_capture."""
        return run_capture(self.executable, self.arguments, launcher=launcher)

    def start_system(
        self,
        environment: Mapping[str, str] | None = None,
        *,
        launcher: Launcher | None = None,
    ) -> bool:
        """Inherited mode, see run_inherited."""
        return run_inherited(
            self.executable, self.arguments, environment, launcher=launcher
        )

    def __repr__(self) -> str:
        return f"Shell({self.executable!r}, {list(self.arguments)!r})"
