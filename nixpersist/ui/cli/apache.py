"""
CLI command for the Apache log-pipe technique.
"""

from __future__ import annotations

from pathlib import Path

import click

from nixpersist.core.models.outcome import InstallOptions
from nixpersist.core.models.params import ApacheLogParams
from nixpersist.core.models.report import DiagnosticReport
from nixpersist.core.services.diagnostics import HostProbe
from nixpersist.core.services.diagnostics import apache as apache_diag
from nixpersist.core.services.mechanisms import ApacheLogMechanism
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


def _prerequisites(report: DiagnosticReport) -> None:
    if not report.feasible:
        warn("Apache prerequisites not met; see `nixpersist apache-log --check`")


@click.command("apache-log")
@action_options
@click.option("--payload", "-p", default="",
              help="Absolute path of the executable invoked via CustomLog.")
@click.option("--log-format", default="error", show_default=True,
              help="LogFormat nickname passed to CustomLog.")
@click.option("--conf", "conf_path", default=None,
              help="apache2.conf to modify (default from settings).")
@click.option("--no-markers", is_flag=True,
              help="Append the bare directive without BEGIN/END markers.")
@click.option("--outfile", "-o", default=None, help="Write the rendered directive here instead of stdout.")
@click.pass_context
@handle_errors
def apache_log(
    ctx: click.Context,
    check: bool,
    install: bool,
    remove: bool,
    no_restart: bool,
    payload: str,
    log_format: str,
    conf_path: str | None,
    no_markers: bool,
    outfile: str | None,
) -> None:
    """Autostart persistence via Apache logging pipes."""
    action = pick_action(check, install, remove)
    if no_restart:
        require_mutation(action, "--no-restart")
    if conf_path is not None and not conf_path.strip():
        raise click.UsageError("--conf path must not be empty")

    settings = get_settings(ctx)
    target = Path(conf_path) if conf_path else None
    run_mechanism(
        ctx,
        ApacheLogMechanism(settings),
        action,
        ApacheLogParams(payload=payload, log_format=log_format),
        what="apache-log CustomLog pipe",
        target=target,
        options=InstallOptions(restart=not no_restart, use_markers=not no_markers),
        outfile=outfile,
        diagnose=lambda: apache_diag.check(HostProbe(get_runner(ctx)), settings, target),
        before_install=_prerequisites,
    )
