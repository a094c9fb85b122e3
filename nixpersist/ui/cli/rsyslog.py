"""
CLI commands for the two rsyslog techniques.

    nixpersist rsyslog          :msg, contains … ^payload   in rsyslog.conf
    nixpersist rsyslog-omprog   imfile + omprog drop-in     in rsyslog.d
"""

from __future__ import annotations

from collections.abc import Callable
from pathlib import Path

import click

from nixpersist.core.models.outcome import InstallOptions
from nixpersist.core.models.params import RsyslogOmprogParams, RsyslogShellParams
from nixpersist.core.models.report import DiagnosticReport
from nixpersist.core.services.diagnostics import HostProbe
from nixpersist.core.services.diagnostics import rsyslog as rsyslog_diag
from nixpersist.core.services.mechanisms import RsyslogOmprogMechanism, RsyslogShellMechanism
from nixpersist.ui.cli._common import (
    action_options,
    get_runner,
    get_settings,
    handle_errors,
    pick_action,
    require_mutation,
    run_mechanism,
    warn,
)


def _apparmor_hint(manage_apparmor: bool) -> Callable[[DiagnosticReport], None]:
    def inspect(report: DiagnosticReport) -> None:
        if not manage_apparmor and report.get(rsyslog_diag.APPARMOR_ENFORCED):
            warn(
                "rsyslog AppArmor profile is enforced; "
                "run with --apparmor to disable before install"
            )
    return inspect


def _validate_flags(action: str | None, manage_apparmor: bool, no_restart: bool) -> None:
    if manage_apparmor:
        require_mutation(action, "--apparmor")
    if no_restart:
        require_mutation(action, "--no-restart")


# ── rsyslog (shell execute) ─────────────────────────────────────


@click.command("rsyslog")
@action_options
@click.option(
    "--apparmor", "manage_apparmor", is_flag=True,
    help="Disable the rsyslogd AppArmor profile on install, re-enable on remove.",
)
@click.option("--trigger", "-t", default="hacker", show_default=True,
              help="Message substring that fires the payload.")
@click.option("--payload", "-p", default="/usr/bin/touch /tmp/nixpersist", show_default=True,
              help="Absolute path of the program (plus args) to execute.")
@click.option("--conf", "conf_path", default=None,
              help="rsyslog.conf to modify (default from settings).")
@click.option("--outfile", "-o", default=None, help="Write the rendered line here instead of stdout.")
@click.pass_context
@handle_errors
def rsyslog_cmd(
    ctx: click.Context,
    check: bool,
    install: bool,
    remove: bool,
    no_restart: bool,
    manage_apparmor: bool,
    trigger: str,
    payload: str,
    conf_path: str | None,
    outfile: str | None,
) -> None:
    """Triggerable rsyslog filter (shell execute)."""
    action = pick_action(check, install, remove)
    _validate_flags(action, manage_apparmor, no_restart)

    settings = get_settings(ctx)
    mechanism = RsyslogShellMechanism(settings)
    run_mechanism(
        ctx,
        mechanism,
        action,
        RsyslogShellParams(trigger=trigger, payload=payload),
        what="rsyslog shell snippet",
        target=Path(conf_path) if conf_path else None,
        options=InstallOptions(restart=not no_restart, manage_apparmor=manage_apparmor),
        outfile=outfile,
        diagnose=lambda: rsyslog_diag.check(HostProbe(get_runner(ctx)), settings),
        before_install=_apparmor_hint(manage_apparmor),
    )


# ── rsyslog-omprog (imfile + omprog drop-in) ────────────────────


@click.command("rsyslog-omprog")
@action_options
@click.option(
    "--apparmor", "manage_apparmor", is_flag=True,
    help="Disable the rsyslogd AppArmor profile on install, re-enable on remove.",
)
@click.option("--log-file-in", "-l", "input_file", default="/var/log/auth.log", show_default=True,
              help="Log file to monitor (imfile).")
@click.option("--trigger", "-t", default="uhtavi0", show_default=True,
              help="Message substring to trigger on.")
@click.option("--regex", default="", help="Also trigger on messages matching this regex.")
@click.option("--tag", default="access", show_default=True, help="imfile tag (also filtered on).")
@click.option("--payload", "-p", default="/usr/bin/touch /tmp/nixpersist", show_default=True,
              help="Payload binary to execute (omprog).")
@click.option("--payload-args", default="", help="Extra arguments for the payload binary.")
@click.option("--ruleset", "ruleset_name", default="event_router", show_default=True,
              help="Ruleset the input is bound to.")
@click.option("--no-ruleset", is_flag=True, help="Put the filter at top level instead.")
@click.option("--polling-interval", type=click.IntRange(min=0), default=10, show_default=True,
              help="imfile PollingInterval in seconds (0 omits it).")
@click.option("--outfile", "-o", default=None, help="Write the rendered drop-in here instead of stdout.")
@click.pass_context
@handle_errors
def rsyslog_omprog_cmd(
    ctx: click.Context,
    check: bool,
    install: bool,
    remove: bool,
    no_restart: bool,
    manage_apparmor: bool,
    input_file: str,
    trigger: str,
    regex: str,
    tag: str,
    payload: str,
    payload_args: str,
    ruleset_name: str,
    no_ruleset: bool,
    polling_interval: int,
    outfile: str | None,
) -> None:
    """Triggerable rsyslog filter using an imfile + omprog drop-in."""
    action = pick_action(check, install, remove)
    _validate_flags(action, manage_apparmor, no_restart)

    params = RsyslogOmprogParams(
        input_file=input_file,
        tag=tag,
        severity="info",
        facility="local6",
        add_metadata=True,
        polling_interval=polling_interval,
        use_ruleset=not no_ruleset,
        ruleset_name=ruleset_name,
        filter_by_tag=True,
        filter_contains=trigger,
        filter_regex=regex,
        program_path=payload,
        program_args=payload_args,
    )

    settings = get_settings(ctx)
    run_mechanism(
        ctx,
        RsyslogOmprogMechanism(settings),
        action,
        params,
        what="rsyslog-omprog drop-in",
        options=InstallOptions(restart=not no_restart, manage_apparmor=manage_apparmor),
        outfile=outfile,
        diagnose=lambda: rsyslog_diag.check(HostProbe(get_runner(ctx)), settings),
        before_install=_apparmor_hint(manage_apparmor),
    )
