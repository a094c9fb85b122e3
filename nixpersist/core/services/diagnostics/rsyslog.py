"""
rsyslog feasibility check — shared by both rsyslog techniques.

Checks, in order:
    rsyslog installed               rsyslogd on PATH, the config file, or the unit
    rsyslog running                 systemctl is-active, else pgrep
    AppArmor installed              apparmor_status / apparmor_parser / sysfs
    AppArmor enforced for rsyslog   process label, else apparmor_status output
"""

from __future__ import annotations

from pathlib import Path

from nixpersist.core.config.loader import Settings
from nixpersist.core.models.report import DiagnosticReport
from nixpersist.core.services.diagnostics.probe import HostProbe

INSTALLED = "rsyslog installed"
RUNNING = "rsyslog running"
APPARMOR_INSTALLED = "AppArmor installed"
APPARMOR_ENFORCED = "AppArmor enforced for rsyslog"

_APPARMOR_SYSFS = (
    "/sys/kernel/security/apparmor/profiles",
    "/sys/module/apparmor/parameters/enabled",
)


def check(probe: HostProbe, settings: Settings | None = None) -> DiagnosticReport:
    """Probe the host for rsyslog and its AppArmor confinement."""
    settings = settings or Settings()
    report = DiagnosticReport(title="rsyslog")

    installed = report.add_check(INSTALLED, _installed(probe, settings, report))
    running = report.add_check(RUNNING, _running(probe, settings, report))
    apparmor = report.add_check(APPARMOR_INSTALLED, _apparmor_installed(probe, report))

    enforced = False
    if apparmor and running:
        enforced = _apparmor_enforced(probe, report)
    report.add_check(APPARMOR_ENFORCED, enforced)

    report.feasible = installed and running
    return report


def _installed(probe: HostProbe, settings: Settings, report: DiagnosticReport) -> bool:
    if probe.has("rsyslogd"):
        report.note("found rsyslogd in PATH")
        return True
    if probe.exists(settings.rsyslog.conf):
        report.note(f"found {settings.rsyslog.conf}")
        return True
    unit = f"{settings.rsyslog.service}.service"
    out = probe.output(["systemctl", "status", unit])
    if out and ("Loaded: loaded" in out or unit in out):
        report.note(f"systemd reports {unit} present")
        return True
    return False


def _running(probe: HostProbe, settings: Settings, report: DiagnosticReport) -> bool:
    unit = f"{settings.rsyslog.service}.service"
    if probe.is_active(unit):
        report.note(f"{unit} is active (systemd)")
        return True
    if probe.pids("rsyslogd"):
        report.note("rsyslogd process found via pgrep")
        return True
    return False


def _apparmor_installed(probe: HostProbe, report: DiagnosticReport) -> bool:
    for binary in ("apparmor_status", "apparmor_parser"):
        if probe.has(binary):
            report.note(f"found {binary} in PATH")
            return True
    if any(Path(p).exists() for p in _APPARMOR_SYSFS):
        report.note("AppArmor sysfs entries present")
        return True
    return False


def _apparmor_enforced(probe: HostProbe, report: DiagnosticReport) -> bool:
    pids = probe.pids("rsyslogd")
    if pids:
        label = probe.process_label(pids[0])
        if label == "unconfined":
            report.note("rsyslogd is unconfined (AppArmor)")
            return False
        if label:
            report.note(f"rsyslogd confined by AppArmor label: {label}")
            return True

    text = probe.output(["apparmor_status"])
    if text is None:
        return False
    if "rsyslogd (enforce)" in text or ("rsyslogd" in text and "profiles are in enforce mode" in text):
        report.note("apparmor_status lists rsyslogd in enforce mode")
        return True
    if "rsyslogd (complain)" in text:
        # complain mode still loads the profile
        report.note("apparmor_status lists rsyslogd in complain mode")
        return True
    return False
