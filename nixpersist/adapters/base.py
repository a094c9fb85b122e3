"""
Command runner base — the protocol contract between engine and host tools.

The installer, the service controller and the diagnostics never call
``subprocess`` or ``shutil.which`` directly. They receive a
CommandRunner at construction time, which lets tests substitute a
MockRunner without patching module globals.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from pathlib import Path

from nixpersist.core.models.command import CommandResult


class CommandRunner(ABC):
    """Abstract base class for external command execution.

    Runners return a CommandResult for every call. They NEVER raise for
    a failing command or a missing binary; that is reported through
    ``returncode`` and ``output``.

    To create a new runner:
        1. Subclass CommandRunner
        2. Implement name, which, run
    """

    @property
    @abstractmethod
    def name(self) -> str:
        """The runner identifier (e.g., 'subprocess', 'mock')."""

    @abstractmethod
    def which(self, binary: str) -> str | None:
        """Resolve ``binary`` on PATH.

        Looked up on every call; results are never cached.
        """

    @abstractmethod
    def run(self, argv: list[str], cwd: Path | str | None = None) -> CommandResult:
        """Run ``argv`` to completion and capture combined output.

        No timeout is imposed; the call blocks until the process exits.
        """

    def has(self, binary: str) -> bool:
        """Whether ``binary`` is on PATH."""
        return self.which(binary) is not None

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__} name={self.name!r}>"
