"""
Mock runner — universal test double for external commands.

Simulates a host with a chosen set of binaries on PATH. Every command
succeeds by default; specific commands can be scripted to fail or to
print custom output. All calls are recorded for assertions.
"""

from __future__ import annotations

from collections.abc import Iterable
from pathlib import Path

from nixpersist.adapters.base import CommandRunner
from nixpersist.core.models.command import CommandResult


class MockRunner(CommandRunner):
    """Scriptable CommandRunner for tests.

    Responses are keyed by an argv prefix; the longest matching prefix
    wins. Commands whose binary is not "installed" return 127, like a
    real shell would.
    """

    def __init__(
        self,
        binaries: Iterable[str] = (),
        default_output: str = "",
    ):
        self._binaries: set[str] = set(binaries)
        self._default_output = default_output
        self._responses: dict[tuple[str, ...], tuple[int, str]] = {}
        self._call_log: list[list[str]] = []
        self._cwd_log: list[str | None] = []

    @property
    def name(self) -> str:
        return "mock"

    @property
    def call_log(self) -> list[list[str]]:
        """Every argv this runner has received, in order."""
        return self._call_log

    @property
    def commands(self) -> list[str]:
        """Call log as space-joined strings."""
        return [" ".join(argv) for argv in self._call_log]

    @property
    def cwd_log(self) -> list[str | None]:
        return self._cwd_log

    @property
    def call_count(self) -> int:
        return len(self._call_log)

    def install(self, *binaries: str) -> None:
        """Put binaries on the simulated PATH."""
        self._binaries.update(binaries)

    def uninstall(self, *binaries: str) -> None:
        self._binaries.difference_update(binaries)

    def set_response(self, prefix: Iterable[str], output: str = "", returncode: int = 0) -> None:
        """Script the result of every command starting with ``prefix``."""
        self._responses[tuple(prefix)] = (returncode, output)

    def set_failure(self, prefix: Iterable[str], output: str = "Mock failure", returncode: int = 1) -> None:
        """Configure commands starting with ``prefix`` to fail."""
        self._responses[tuple(prefix)] = (returncode, output)

    def which(self, binary: str) -> str | None:
        if binary in self._binaries:
            return f"/usr/bin/{binary}"
        return None

    def run(self, argv: list[str], cwd: Path | str | None = None) -> CommandResult:
        self._call_log.append(list(argv))
        self._cwd_log.append(str(cwd) if cwd else None)

        if not argv or argv[0] not in self._binaries:
            name = argv[0] if argv else ""
            return CommandResult.failure(list(argv), output=f"{name}: command not found", returncode=127)

        key = tuple(argv)
        while key:
            if key in self._responses:
                returncode, output = self._responses[key]
                return CommandResult(argv=list(argv), returncode=returncode, output=output)
            key = key[:-1]

        return CommandResult.success(list(argv), output=self._default_output)

    def reset(self) -> None:
        """Clear call log and scripted responses."""
        self._call_log.clear()
        self._cwd_log.clear()
        self._responses.clear()
