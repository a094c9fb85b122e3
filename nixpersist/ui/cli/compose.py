"""
CLI command for the docker-compose autostart technique.
"""

from __future__ import annotations

import click

from nixpersist.core.models.outcome import InstallOptions
from nixpersist.core.models.params import ComposeParams
from nixpersist.core.models.report import DiagnosticReport
from nixpersist.core.services.diagnostics import HostProbe
from nixpersist.core.services.diagnostics import docker as docker_diag
from nixpersist.core.services.mechanisms import ComposeMechanism
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


def _access(report: DiagnosticReport) -> None:
    if not report.get(docker_diag.ACCESS):
        warn("docker commands may fail (insufficient permissions or daemon unavailable)")


@click.command("docker-compose")
@action_options
@click.option("--payload", "-p", default="", help="Path to the payload on the HOST filesystem.")
@click.option("--image", "-i", default="alpine:latest", show_default=True,
              help="Container image to launch (pulled if required).")
@click.option("--name", "-n", "service_name", default="compose-nixpersist", show_default=True,
              help="Service/container name.")
@click.option("--output-dir", "-d", default=None,
              help="Directory for docker-compose.yml (default from settings).")
@click.option("--outfile", "-o", default=None, help="Write the rendered document here instead of stdout.")
@click.pass_context
@handle_errors
def docker_compose(
    ctx: click.Context,
    check: bool,
    install: bool,
    remove: bool,
    no_restart: bool,
    payload: str,
    image: str,
    service_name: str,
    output_dir: str | None,
    outfile: str | None,
) -> None:
    """Autostart persistence via a docker-compose file."""
    action = pick_action(check, install, remove)
    if no_restart:
        require_mutation(action, "--no-restart")

    mechanism = ComposeMechanism(get_settings(ctx))
    target = mechanism.target_path(output_dir) if output_dir else None
    run_mechanism(
        ctx,
        mechanism,
        action,
        ComposeParams(service_name=service_name, image=image, payload=payload),
        what=f"compose service {service_name}",
        target=target,
        options=InstallOptions(restart=not no_restart),
        outfile=outfile,
        diagnose=lambda: docker_diag.check(HostProbe(get_runner(ctx))),
        before_install=_access,
    )
