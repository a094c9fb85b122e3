"""
Mutator — pure text operations that insert or remove one fragment.

No I/O here: every function takes the whole file content and returns
the new content. Newline rules:

- insert: the result always ends with exactly one ``\\n``.
- remove: whatever is left ends with exactly one ``\\n``, or is empty.

``remove(insert(content)) == content`` holds for content already in
normal form (ends with one newline, no trailing blank lines). Irregular
blank lines around the insertion point are normalized away.
"""

from __future__ import annotations


def _is_blank(line: str) -> bool:
    return not line.strip()


def _finish(lines: list[str]) -> str:
    """Drop trailing blank lines and terminate with a single newline."""
    while lines and _is_blank(lines[-1]):
        lines.pop()
    if not lines:
        return ""
    return "\n".join(lines) + "\n"


def append_fragment(content: str, fragment: str, *, separate: bool = False) -> str:
    """Append ``fragment`` to ``content``.

    Args:
        content: Current file content (may be empty).
        fragment: Rendered text to append.
        separate: Put a blank line between existing content and the
            fragment (block fragments). Skipped for empty files.
    """
    out = content
    if out and not out.endswith("\n"):
        out += "\n"
    if separate and out:
        out += "\n"
    out += fragment
    return out.rstrip("\r\n") + "\n"


def find_line(content: str, candidate: str) -> int | None:
    """Index of the first line equal to ``candidate`` once both are trimmed."""
    wanted = candidate.strip()
    if not wanted:
        return None
    for i, line in enumerate(content.split("\n")):
        if line.strip() == wanted:
            return i
    return None


def remove_line(content: str, candidate: str) -> tuple[str, bool]:
    """Delete the first line matching ``candidate``.

    A blank line right after the removed one is consumed too, and all
    trailing blank lines are trimmed.

    Returns:
        (new_content, found). ``content`` is returned untouched when
        the line is absent.
    """
    index = find_line(content, candidate)
    if index is None:
        return content, False

    lines = content.split("\n")
    del lines[index]
    if index < len(lines) and _is_blank(lines[index]):
        del lines[index]

    return _finish(lines), True


def find_span(content: str, start_marker: str, end_marker: str) -> tuple[int, int | None] | None:
    """Locate a marker-delimited block.

    The block starts at the start marker closest before the end marker,
    so an unterminated start marker earlier in the file stays outside it.

    Returns:
        None when the start marker is absent, ``(start, None)`` when no
        end marker follows it, else ``(start, end)`` with ``end`` just
        past the end marker.
    """
    first = content.find(start_marker)
    if first == -1:
        return None
    end = content.find(end_marker, first + len(start_marker))
    if end == -1:
        return first, None
    start = content.rfind(start_marker, first, end)
    return start, end + len(end_marker)


def remove_span(content: str, start: int, end: int) -> str:
    """Cut ``content[start:end]`` and close the gap.

    Blank lines on either side of the cut collapse into the single
    newline that separates what is left above from what is left below.
    """
    head = content[:start].split("\n")
    while head and _is_blank(head[-1]):
        head.pop()

    tail = content[end:].split("\n")
    while tail and _is_blank(tail[0]):
        tail.pop(0)

    return _finish(head + tail)
