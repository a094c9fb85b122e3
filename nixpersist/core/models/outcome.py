"""
Operation models — install options and the results the engine reports.
"""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, Field


class ReloadAttempt(BaseModel):
    """One command tried while reloading a service."""

    tool: str
    argv: list[str]
    returncode: int
    output: str = ""

    @property
    def ok(self) -> bool:
        return self.returncode == 0

    def describe(self) -> str:
        """One-line description used when aggregating failures."""
        text = f"{' '.join(self.argv)} exited {self.returncode}"
        if self.output.strip():
            text += f": {self.output.strip()}"
        return text


class ReloadOutcome(BaseModel):
    """Result of walking a ServiceController fallback chain.

    ``attempts`` is ordered: the last entry is the command that
    succeeded when ``ok`` is True.
    """

    subject: str
    verb: str = "reload"
    ok: bool = False
    tool: str | None = None
    attempts: list[ReloadAttempt] = Field(default_factory=list)
    missing_tools: list[str] = Field(default_factory=list)

    def summary(self) -> str:
        """Human summary; for failures, every attempted command in order."""
        if self.ok:
            return f"{self.verb} {self.subject} via {self.tool}"
        if not self.attempts:
            tried = ", ".join(self.missing_tools) or "none"
            return (
                f"could not find a method to {self.verb} {self.subject} "
                f"(looked for: {tried})"
            )
        failures = "; ".join(a.describe() for a in self.attempts)
        return f"failed to {self.verb} {self.subject}: {failures}"


class InstallOptions(BaseModel):
    """Per-call switches the CLI passes through to the installer."""

    restart: bool = True              # reload the dependent service afterwards
    manage_apparmor: bool = False     # rsyslog only: toggle the AppArmor profile
    use_markers: bool = True          # apache-log only: wrap directive in markers


class InstallResult(BaseModel):
    """What an install or remove call did."""

    mechanism: str
    action: Literal["install", "remove"]
    path: str
    reload: ReloadOutcome | None = None
    apparmor: bool = False
    file_removed: bool = False

    @property
    def restarted(self) -> bool:
        return self.reload is not None and self.reload.ok
