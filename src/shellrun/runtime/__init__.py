"""Runtime module for process spawning and output capture.

This module provides the platform spawn adapters and the capture session
that drives them.
"""

from __future__ import annotations

from .launcher import (
    ExitInfo,
    FileActions,
    Launcher,
    PosixSpawnLauncher,
    SubprocessLauncher,
    get_launcher,
)
from .session import Pipe, ProcessSession, SessionState

__all__ = [
    "ExitInfo",
    "FileActions",
    "Launcher",
    "PosixSpawnLauncher",
    "SubprocessLauncher",
    "get_launcher",
    "Pipe",
    "ProcessSession",
    "SessionState",
]
