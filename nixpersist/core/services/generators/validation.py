"""
Shared field checks and escaping for the renderers.

Every helper raises ParamValidationError tagged with the mechanism
name, so the CLI can report which subcommand's flags were wrong.
"""

from __future__ import annotations

from nixpersist.core.errors import ParamValidationError


def escape_literal(value: str, quote: str = '"') -> str:
    """Escape ``value`` for embedding inside a ``quote``-delimited string.

    Backslashes are escaped first, then the quote character, so an
    escaped quote is never escaped a second time.
    """
    value = value.replace("\\", "\\\\")
    return value.replace(quote, "\\" + quote)


def require(mechanism: str, field: str, value: str) -> str:
    """Reject blank values; return the value stripped."""
    if not value or not value.strip():
        raise ParamValidationError(mechanism, f"{field} is required")
    return value.strip()


def single_line(mechanism: str, field: str, value: str) -> str:
    """Reject values that would break out of a one-line directive."""
    if "\n" in value or "\r" in value:
        raise ParamValidationError(mechanism, f"{field} must not contain newlines")
    return value


def absolute_path(mechanism: str, field: str, value: str) -> str:
    """Reject relative paths; ``value`` must already be stripped."""
    if not value.startswith("/"):
        raise ParamValidationError(mechanism, f"{field} must be an absolute path (got {value!r})")
    return value


def forbid_chars(mechanism: str, field: str, value: str, chars: str) -> str:
    bad = sorted({c for c in value if c in chars})
    if bad:
        shown = " ".join(bad)
        raise ParamValidationError(mechanism, f"{field} must not contain any of: {shown}")
    return value
