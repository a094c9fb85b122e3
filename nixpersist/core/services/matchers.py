"""
Fragment matchers — locate, insert and remove an installed fragment.

Two strategies, one interface:

ExactLineMatcher
    The fragment is a single line. It is present when some line of the
    file, trimmed, equals the freshly rendered line. A different payload
    renders a different line, so it is never mistaken for a duplicate.

DelimitedBlockMatcher
    The fragment sits between a start and an end comment marker unique
    to this tool. Presence is keyed on the markers only, so removal does
    not need the original params.

Each mechanism picks one; the installer only talks to the interface.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from pathlib import Path

from nixpersist.core.errors import InconsistentMarkersError, ParamValidationError
from nixpersist.core.models.fragment import Fragment
from nixpersist.core.services import mutator

MARKER_PREFIX = "NixPersist"


def start_marker(mechanism: str) -> str:
    return f"# BEGIN {MARKER_PREFIX} {mechanism}"


def end_marker(mechanism: str) -> str:
    return f"# END {MARKER_PREFIX} {mechanism}"


@dataclass(frozen=True)
class Location:
    """Where a fragment was found: a line index or a character span."""

    start: int
    end: int | None = None


class FragmentMatcher(ABC):
    """Abstract base for the presence check and the matching mutation."""

    #: Whether removal has to re-render the fragment from params.
    needs_fragment_for_remove: bool = False

    @abstractmethod
    def locate(self, content: str, fragment: Fragment | None = None) -> Location | None:
        """Find the installed fragment; None means "not installed"."""

    @abstractmethod
    def insert(self, content: str, fragment: Fragment) -> str:
        """Return ``content`` with ``fragment`` appended."""

    @abstractmethod
    def remove(
        self,
        content: str,
        fragment: Fragment | None = None,
        path: Path | None = None,
    ) -> tuple[str, bool]:
        """Return ``(new_content, found)``."""

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__}>"


class ExactLineMatcher(FragmentMatcher):
    """Single-line directives compared after trimming whitespace."""

    needs_fragment_for_remove = True

    @staticmethod
    def _line(fragment: Fragment | None) -> str:
        if fragment is None or not fragment.first_line:
            raise ParamValidationError("matcher", "exact-line matching needs the rendered line")
        if len(fragment.lines) != 1:
            raise ParamValidationError(
                fragment.mechanism, "exact-line matching needs a single-line fragment",
            )
        return fragment.first_line

    def locate(self, content: str, fragment: Fragment | None = None) -> Location | None:
        index = mutator.find_line(content, self._line(fragment))
        return Location(start=index) if index is not None else None

    def insert(self, content: str, fragment: Fragment) -> str:
        self._line(fragment)
        return mutator.append_fragment(content, fragment.text)

    def remove(
        self,
        content: str,
        fragment: Fragment | None = None,
        path: Path | None = None,
    ) -> tuple[str, bool]:
        return mutator.remove_line(content, self._line(fragment))


class DelimitedBlockMatcher(FragmentMatcher):
    """Multi-line fragments wrapped in BEGIN/END comment markers."""

    def __init__(self, start: str, end: str):
        self.start = start
        self.end = end

    @classmethod
    def for_mechanism(cls, mechanism: str) -> DelimitedBlockMatcher:
        return cls(start_marker(mechanism), end_marker(mechanism))

    def wrap(self, fragment: Fragment) -> str:
        """Fragment text between the markers."""
        body = fragment.text.rstrip("\r\n")
        return f"{self.start}\n{body}\n{self.end}\n"

    def locate(self, content: str, fragment: Fragment | None = None) -> Location | None:
        span = mutator.find_span(content, self.start, self.end)
        if span is None or span[1] is None:
            return None
        return Location(start=span[0], end=span[1])

    def insert(self, content: str, fragment: Fragment) -> str:
        return mutator.append_fragment(content, self.wrap(fragment), separate=True)

    def remove(
        self,
        content: str,
        fragment: Fragment | None = None,
        path: Path | None = None,
    ) -> tuple[str, bool]:
        span = mutator.find_span(content, self.start, self.end)
        if span is None:
            return content, False
        start, end = span
        if end is None:
            raise InconsistentMarkersError(path, self.start, self.end)
        return mutator.remove_span(content, start, end), True

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__} start={self.start!r}>"
