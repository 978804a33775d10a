"""shellrun value types.

Command describes what to launch; ProcessResult is what a finished capture
session hands back. Both are immutable.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass, field

__all__ = [
    "Command",
    "ProcessResult",
]


@dataclass(frozen=True)
class Command:
    """An executable plus its arguments.

    Attributes:
        executable: Path or bare name (searched on PATH) of the program
        arguments: Arguments passed as separate argv entries
    """

    executable: str
    arguments: Sequence[str] = field(default_factory=tuple)

    def __post_init__(self) -> None:
        """Freeze arguments into a tuple so callers can't mutate them."""
        object.__setattr__(self, "arguments", tuple(self.arguments))

    @property
    def argv(self) -> list[str]:
        """Full argument vector, executable first."""
        return [self.executable, *self.arguments]


@dataclass(frozen=True)
class ProcessResult:
    """Outcome of a capture session.

    Attributes:
        status: Exit code of the child
        output: Trimmed output lines, in the order the child wrote them
    """

    status: int
    output: tuple[str, ...] = ()

    def __post_init__(self) -> None:
        object.__setattr__(self, "output", tuple(self.output))

    @property
    def success(self) -> bool:
        return self.status == 0

    @property
    def has_error(self) -> bool:
        return self.status != 0

    @property
    def error_all_lines(self) -> str:
        """All output lines joined with newlines."""
        return "\n".join(self.output).strip()
