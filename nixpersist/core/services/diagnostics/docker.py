"""
Docker / compose feasibility check.

Access is granted by any of: running as root, membership of the
``docker`` group, or a ``docker ps`` that succeeds. When the docker
binary is present, local images and containers are listed as well.
"""

from __future__ import annotations

from nixpersist.core.models.report import DiagnosticReport
from nixpersist.core.services.diagnostics.probe import HostProbe

DOCKER = "docker binary present"
COMPOSE = "docker compose available"
ACCESS = "user has docker access"

IMAGES = "Images"
CONTAINERS = "Containers"

_IMAGE_FORMAT = "{{.Repository}}:{{.Tag}} ({{.ID}})"
_CONTAINER_FORMAT = "{{.Names}} ({{.Image}}) status {{.Status}}"


def _lines(text: str) -> list[str]:
    return [line.strip() for line in text.splitlines() if line.strip()]


def _compose_available(probe: HostProbe) -> bool:
    if probe.has("docker") and probe.output(["docker", "compose", "version"]) is not None:
        return True
    return probe.has("docker-compose")


def check(probe: HostProbe) -> DiagnosticReport:
    """Probe docker, compose and the caller's access to the daemon."""
    report = DiagnosticReport(title="docker-compose")

    docker = probe.has("docker")
    compose = _compose_available(probe)

    is_root = probe.is_root
    in_group = False
    if is_root:
        report.note("running as root")
    elif probe.in_group("docker"):
        in_group = True
        report.note("current user is a member of the docker group")

    ps_ok = False
    if docker:
        ps = probe.runner.run(["docker", "ps"])
        if ps.ok:
            ps_ok = True
            if ps.output.strip():
                report.note("docker ps returned data")
        else:
            report.note("docker ps failed (user may lack permissions or daemon stopped)")

        images = probe.runner.run(["docker", "image", "ls", "--format", _IMAGE_FORMAT])
        if images.ok:
            report.sections[IMAGES] = _lines(images.output)
        else:
            report.note(f"docker image ls failed: {images.output.strip() or images.returncode}")

        containers = probe.runner.run(["docker", "ps", "-a", "--format", _CONTAINER_FORMAT])
        if containers.ok:
            report.sections[CONTAINERS] = _lines(containers.output)
        else:
            report.note(f"docker ps -a failed: {containers.output.strip() or containers.returncode}")

    report.add_check(DOCKER, docker)
    report.add_check(COMPOSE, compose)
    access = report.add_check(ACCESS, is_root or in_group or ps_ok)

    report.feasible = docker and compose and access
    return report
