"""
CommandResult model — the outcome of one external command.

Command runners return results instead of raising: a non-zero exit or
a missing binary is data the caller decides about. The shape follows
the adapter Receipt contract (status, output, timing).
"""

from __future__ import annotations

from datetime import UTC, datetime
from typing import Any

from pydantic import BaseModel, Field


def _now_iso() -> str:
    """Current UTC time as ISO string."""
    return datetime.now(UTC).isoformat()


class CommandResult(BaseModel):
    """Result of running one command.

    ``output`` is stdout and stderr combined, in the order the process
    wrote them. ``returncode`` 127 means the binary was not found.
    """

    argv: list[str]
    returncode: int = 0
    output: str = ""

    started_at: str = Field(default_factory=_now_iso)
    duration_ms: int = 0

    @property
    def ok(self) -> bool:
        """Whether the command exited 0."""
        return self.returncode == 0

    @property
    def command(self) -> str:
        return " ".join(self.argv)

    @classmethod
    def success(cls, argv: list[str], output: str = "", **kwargs: Any) -> CommandResult:
        """Create a success result."""
        return cls(argv=argv, returncode=0, output=output, **kwargs)

    @classmethod
    def failure(
        cls,
        argv: list[str],
        output: str = "",
        returncode: int = 1,
        **kwargs: Any,
    ) -> CommandResult:
        """Create a failure result."""
        return cls(argv=argv, returncode=returncode, output=output, **kwargs)
