"""
Diagnostic report model — pass/fail checks plus free-text notes.
"""

from __future__ import annotations

from pydantic import BaseModel, Field


class CheckResult(BaseModel):
    """One yes/no feasibility probe."""

    label: str
    ok: bool = False


class DiagnosticReport(BaseModel):
    """Structured result of a read-only feasibility check.

    ``sections`` holds named listings (images, containers) that are
    rendered between the checks and the notes.
    """

    title: str
    checks: list[CheckResult] = Field(default_factory=list)
    notes: list[str] = Field(default_factory=list)
    sections: dict[str, list[str]] = Field(default_factory=dict)
    feasible: bool = False

    def add_check(self, label: str, ok: bool) -> bool:
        self.checks.append(CheckResult(label=label, ok=ok))
        return ok

    def note(self, message: str) -> None:
        self.notes.append(message)

    def get(self, label: str) -> bool | None:
        """Look up a check by label."""
        for check in self.checks:
            if check.label == label:
                return check.ok
        return None

    def render(self) -> str:
        """Format the report for humans."""
        lines: list[str] = []
        for check in self.checks:
            lines.append(f"- {check.label}: {'YES' if check.ok else 'NO'}")

        for name, items in self.sections.items():
            if not items:
                continue
            lines.append("")
            lines.append(f"{name}:")
            lines.extend(f"- {item}" for item in items)

        if self.notes:
            lines.append("")
            lines.append("Notes:")
            lines.extend(f"- {n}" for n in self.notes)

        return "\n".join(lines) + "\n"
