"""
Host probe — read-only questions the diagnostics ask about the host.

Commands go through the injected CommandRunner. Process identity
(euid, groups) and the ``/proc`` root can be overridden so checks can
be exercised without root or a real rsyslogd.
"""

from __future__ import annotations

import grp
import logging
import os
from collections.abc import Iterable
from pathlib import Path

from nixpersist.adapters.base import CommandRunner

logger = logging.getLogger(__name__)


class HostProbe:
    """Thin, side-effect-free view of the local host."""

    def __init__(
        self,
        runner: CommandRunner,
        proc_root: Path | str = "/proc",
        euid: int | None = None,
        groups: Iterable[str] | None = None,
    ):
        self.runner = runner
        self.proc_root = Path(proc_root)
        self._euid = euid
        self._groups = set(groups) if groups is not None else None

    # ── Binaries & services ─────────────────────────────────────

    def has(self, binary: str) -> bool:
        return self.runner.has(binary)

    def output(self, argv: list[str]) -> str | None:
        """Combined output of ``argv``, or None when it failed."""
        if not self.runner.has(argv[0]):
            return None
        result = self.runner.run(argv)
        if not result.ok:
            logger.debug("probe %s failed: %s", " ".join(argv), result.output)
            return None
        return result.output

    def is_active(self, unit: str) -> bool:
        """``systemctl is-active`` reports the unit as active."""
        out = self.output(["systemctl", "is-active", unit])
        return out is not None and out.strip() == "active"

    def pids(self, name: str) -> list[str]:
        """PIDs of processes named exactly ``name`` (via pgrep -x)."""
        out = self.output(["pgrep", "-x", name])
        return out.split() if out else []

    def process_label(self, pid: str) -> str | None:
        """AppArmor label of a process, from ``/proc/<pid>/attr/current``."""
        path = self.proc_root / pid / "attr" / "current"
        try:
            return path.read_text(encoding="utf-8", errors="replace").strip().rstrip("\x00")
        except OSError:
            return None

    # ── Identity & files ────────────────────────────────────────

    @property
    def euid(self) -> int:
        return os.geteuid() if self._euid is None else self._euid

    @property
    def is_root(self) -> bool:
        return self.euid == 0

    def group_names(self) -> set[str]:
        """Names of the groups the current process belongs to."""
        if self._groups is not None:
            return self._groups
        names: set[str] = set()
        for gid in os.getgroups():
            try:
                names.add(grp.getgrgid(gid).gr_name)
            except KeyError:
                continue
        return names

    def in_group(self, name: str) -> bool:
        return name in self.group_names()

    @staticmethod
    def exists(path: Path | str) -> bool:
        return Path(path).exists()

    @staticmethod
    def writable(path: Path | str) -> bool:
        return os.access(path, os.W_OK)
