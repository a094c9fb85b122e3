"""
Fragment model — a fully rendered configuration snippet.
"""

from __future__ import annotations

from pydantic import BaseModel


class Fragment(BaseModel):
    """Rendered text for one persistence technique.

    Fragments are deterministic: the same params always render the same
    text, which is what duplicate detection relies on.
    """

    mechanism: str
    text: str

    @property
    def lines(self) -> list[str]:
        """Non-empty lines of the fragment, without line endings."""
        return [line for line in self.text.splitlines() if line.strip()]

    @property
    def first_line(self) -> str:
        lines = self.lines
        return lines[0] if lines else ""
