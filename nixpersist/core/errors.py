"""
Error taxonomy for the configuration-mutation engine.

Every failure the engine can hit on purpose has a class here. The
installer and the renderers raise them; the CLI catches the common base
class, prints it with a usage reminder and exits 1.

    NixPersistError
    ├── ParamValidationError        bad or unsafe parameters (before any I/O)
    ├── PrivilegeError              caller cannot write the target
    ├── IdempotencyConflict
    │   ├── AlreadyInstalledError   install when the fragment is present
    │   └── NotInstalledError       remove when the fragment is absent
    ├── InconsistentMarkersError    start marker without its end marker
    ├── ExternalToolError           shelled-out command failed / missing
    │   └── ServiceReloadError      every reload fallback failed
    ├── TargetIOError               read / write / stat failure
    │   └── TargetMissingError      externally-owned file does not exist
    └── ConfigError                 invalid nixpersist.yml
"""

from __future__ import annotations

from pathlib import Path
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from nixpersist.core.models.outcome import ReloadOutcome


class NixPersistError(Exception):
    """Base class for every expected engine failure."""


class ParamValidationError(NixPersistError):
    """Raised when mechanism parameters are missing or unsafe to render."""

    def __init__(self, mechanism: str, message: str):
        self.mechanism = mechanism
        super().__init__(f"{mechanism}: {message}")


class PrivilegeError(NixPersistError):
    """Raised when the caller lacks the rights to mutate a protected path."""

    def __init__(self, path: Path | str, operation: str = "write"):
        self.path = Path(path)
        self.operation = operation
        super().__init__(
            f"{operation}: cannot modify {self.path}; root privileges required (run with sudo)"
        )


class IdempotencyConflict(NixPersistError):
    """Raised when install/remove preconditions (absence/presence) are violated."""

    def __init__(self, mechanism: str, path: Path | str, message: str):
        self.mechanism = mechanism
        self.path = Path(path)
        super().__init__(message)


class AlreadyInstalledError(IdempotencyConflict):
    def __init__(self, mechanism: str, path: Path | str):
        super().__init__(
            mechanism, path, f"{mechanism} snippet already present in {path}",
        )


class NotInstalledError(IdempotencyConflict):
    def __init__(self, mechanism: str, path: Path | str):
        super().__init__(
            mechanism, path, f"{mechanism} snippet not found in {path}",
        )


class InconsistentMarkersError(NixPersistError):
    """Raised on remove when the start marker has no matching end marker."""

    def __init__(self, path: Path | str | None, start: str, end: str):
        self.path = Path(path) if path else None
        where = f" in {path}" if path else ""
        super().__init__(f"markers inconsistent{where}: found {start!r} but not {end!r}")


class ExternalToolError(NixPersistError):
    """Raised when a shelled-out command exits non-zero or cannot be found."""

    def __init__(self, tool: str, message: str, output: str = ""):
        self.tool = tool
        self.output = output
        detail = f": {output.strip()}" if output.strip() else ""
        super().__init__(f"{tool}: {message}{detail}")


class ServiceReloadError(ExternalToolError):
    """Raised when every tool in a reload/restart fallback chain failed.

    The ``outcome`` attribute keeps the ordered list of attempts so the
    caller can show what was tried.
    """

    def __init__(self, outcome: ReloadOutcome, context: str = ""):
        self.outcome = outcome
        self.context = context
        message = outcome.summary()
        if context:
            message = f"{context}; {message}"
        super().__init__(outcome.subject, message)


class TargetIOError(NixPersistError):
    """Raised when reading, writing or stat-ing the target file fails."""

    def __init__(self, path: Path | str, operation: str, cause: BaseException | str):
        self.path = Path(path)
        self.operation = operation
        super().__init__(f"{operation} {self.path}: {cause}")


class TargetMissingError(TargetIOError):
    """Raised when an externally-owned target file does not exist."""

    def __init__(self, path: Path | str):
        super().__init__(path, "read", "file does not exist")


class ConfigError(NixPersistError):
    """Raised when nixpersist configuration is invalid or unreadable."""
