"""
Apache feasibility check.
"""

from __future__ import annotations

from pathlib import Path

from nixpersist.core.config.loader import Settings
from nixpersist.core.models.report import DiagnosticReport
from nixpersist.core.services.diagnostics.probe import HostProbe

WRITABLE = "config writable"
ROOT = "running as root"
SYSTEMCTL = "systemctl available"
APACHECTL = "apachectl/apache2ctl available"


def config_label(path: Path | str) -> str:
    return f"config present ({path})"


def check(
    probe: HostProbe,
    settings: Settings | None = None,
    conf: Path | str | None = None,
) -> DiagnosticReport:
    """Can a CustomLog pipe be added to ``conf`` and Apache reloaded?"""
    settings = settings or Settings()
    path = Path(conf or settings.apache.conf)
    service = settings.apache.service
    report = DiagnosticReport(title="apache-log")

    is_root = probe.is_root
    if not is_root:
        report.note(f"not running as root; writes to {path.name} may fail")

    exists = probe.exists(path)
    writable = False
    if exists:
        writable = probe.writable(path)
        if not writable:
            report.note(f"cannot open {path} for write; root privileges required")
    else:
        report.note(f"configuration {path} does not exist")

    systemctl = probe.has("systemctl")
    active = False
    if systemctl:
        active = probe.is_active(service)
        if not active:
            report.note(f"{service} service is not active")
    else:
        report.note("systemctl binary not found; manual service restart required")

    apachectl = probe.has("apache2ctl") or probe.has("apachectl")
    if not apachectl:
        report.note("apachectl/apache2ctl not found on PATH")

    report.add_check(config_label(path), exists)
    report.add_check(WRITABLE, writable)
    report.add_check(ROOT, is_root)
    report.add_check(SYSTEMCTL, systemctl)
    report.add_check(APACHECTL, apachectl)
    report.add_check(f"{service} service active", active)

    report.feasible = exists and (writable or is_root) and systemctl
    return report
