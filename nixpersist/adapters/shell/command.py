"""
Subprocess runner — execute host commands and capture their output.

This is the SINGLE PLACE where ``subprocess.run`` is called. Everything
that talks to systemctl, docker, apparmor_parser or pgrep goes through
an injected runner, and in production that runner is this one.
"""

from __future__ import annotations

import logging
import shutil
import subprocess
import time
from pathlib import Path

from nixpersist.adapters.base import CommandRunner
from nixpersist.core.models.command import CommandResult

logger = logging.getLogger(__name__)

# Exit status shells use for "command not found"
NOT_FOUND_RC = 127


class SubprocessRunner(CommandRunner):
    """Run commands with ``subprocess.run`` (no shell, no timeout)."""

    @property
    def name(self) -> str:
        return "subprocess"

    def which(self, binary: str) -> str | None:
        return shutil.which(binary)

    def run(self, argv: list[str], cwd: Path | str | None = None) -> CommandResult:
        logger.debug("Executing: %s (cwd=%s)", " ".join(argv), cwd)
        start = time.monotonic()

        try:
            result = subprocess.run(
                argv,
                cwd=str(cwd) if cwd else None,
                stdout=subprocess.PIPE,
                stderr=subprocess.STDOUT,
                text=True,
                check=False,
            )
        except FileNotFoundError:
            return CommandResult.failure(
                argv,
                output=f"{argv[0]}: command not found",
                returncode=NOT_FOUND_RC,
            )
        except OSError as e:
            return CommandResult.failure(
                argv,
                output=f"{argv[0]}: {e}",
                returncode=NOT_FOUND_RC,
            )

        elapsed_ms = int((time.monotonic() - start) * 1000)
        output = (result.stdout or "").strip()

        if result.returncode != 0:
            logger.debug("%s exited %d: %s", argv[0], result.returncode, output)

        return CommandResult(
            argv=list(argv),
            returncode=result.returncode,
            output=output,
            duration_ms=elapsed_ms,
        )
