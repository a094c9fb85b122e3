"""
Service controller — reload the consumer of a configuration file.

Walks an ordered fallback chain of host tools until one succeeds:

    systemd subjects   systemctl reload → systemctl restart
                       (without systemctl: service <unit> reload → restart)
    compose subjects   docker compose -f FILE up -d → docker-compose -f FILE up -d
                       (``stop`` uses ``down`` instead of ``up -d``)

Tools are resolved on PATH at every call. The first success
short-circuits; only when every attempt fails are the failures
aggregated into one ServiceReloadError.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Literal

from pydantic import BaseModel

from nixpersist.adapters.base import CommandRunner
from nixpersist.core.errors import ServiceReloadError
from nixpersist.core.models.outcome import ReloadAttempt, ReloadOutcome

logger = logging.getLogger(__name__)


class ServiceSubject(BaseModel):
    """The thing to reload: a system unit or a compose deployment."""

    name: str
    kind: Literal["systemd", "compose"] = "systemd"
    compose_file: str | None = None

    @classmethod
    def unit(cls, name: str) -> ServiceSubject:
        return cls(name=name)

    @classmethod
    def compose(cls, compose_file: Path | str) -> ServiceSubject:
        path = Path(compose_file)
        return cls(name=path.parent.name or str(path), kind="compose", compose_file=str(path))


# (tool looked up on PATH, argv builder)
_Step = tuple[str, list[str]]


class ServiceController:
    """Drive reload/restart of a subject through the fallback chain."""

    def __init__(self, runner: CommandRunner):
        self._runner = runner

    # ── Public API ──────────────────────────────────────────────

    def reload(self, subject: ServiceSubject) -> ReloadOutcome:
        """Make the subject pick up its new configuration.

        Raises:
            ServiceReloadError: every available tool failed, or none exists.
        """
        if subject.kind == "compose":
            return self._walk(subject, "up", self._compose_chain(subject, ["up", "-d"]))
        return self._walk(subject, "reload", self._systemd_chain(subject.name))

    def stop(self, subject: ServiceSubject) -> ReloadOutcome:
        """Take a compose deployment down (systemd units are left running)."""
        if subject.kind != "compose":
            return ReloadOutcome(subject=subject.name, verb="stop", ok=True, tool="none")
        return self._walk(subject, "down", self._compose_chain(subject, ["down"]))

    # ── Chains ──────────────────────────────────────────────────

    def _systemd_chain(self, unit: str) -> list[_Step]:
        systemctl = [
            ("systemctl", ["systemctl", "reload", unit]),
            ("systemctl", ["systemctl", "restart", unit]),
        ]
        if self._runner.has("systemctl"):
            return systemctl
        # service(8) only stands in when systemd itself is unavailable
        return [
            *systemctl,
            ("service", ["service", unit, "reload"]),
            ("service", ["service", unit, "restart"]),
        ]

    @staticmethod
    def _compose_chain(subject: ServiceSubject, verb: list[str]) -> list[_Step]:
        file_name = Path(subject.compose_file or "docker-compose.yml").name
        return [
            ("docker", ["docker", "compose", "-f", file_name, *verb]),
            ("docker-compose", ["docker-compose", "-f", file_name, *verb]),
        ]

    # ── Walk ────────────────────────────────────────────────────

    def _walk(self, subject: ServiceSubject, verb: str, chain: list[_Step]) -> ReloadOutcome:
        outcome = ReloadOutcome(subject=subject.name, verb=verb)
        cwd = Path(subject.compose_file).parent if subject.compose_file else None

        for tool, argv in chain:
            if not self._runner.has(tool):
                if tool not in outcome.missing_tools:
                    outcome.missing_tools.append(tool)
                continue

            result = self._runner.run(argv, cwd=cwd)
            outcome.attempts.append(ReloadAttempt(
                tool=tool,
                argv=argv,
                returncode=result.returncode,
                output=result.output,
            ))
            if result.ok:
                outcome.ok = True
                outcome.tool = tool
                logger.info("%s %s via %s", verb, subject.name, " ".join(argv))
                return outcome
            logger.debug("%s failed (%d), trying next", " ".join(argv), result.returncode)

        logger.warning(outcome.summary())
        raise ServiceReloadError(outcome)
