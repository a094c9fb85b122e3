"""
nixpersist — CLI entrypoint.

Usage:
    nixpersist --help
    nixpersist rsyslog --check
    nixpersist rsyslog --install -t hacker -p /usr/local/bin/payload
    nixpersist rsyslog-omprog --check
    nixpersist docker-compose --check
"""

from __future__ import annotations

import os
from pathlib import Path

import click

from nixpersist import __version__
from nixpersist.core.observability.logging_config import (
    FILE_ENV,
    FILE_LEVEL_ENV,
    resolve_level,
    setup_logging,
)


@click.group()
@click.version_option(version=__version__, prog_name="nixpersist")
@click.option("--verbose", "-v", is_flag=True, help="Enable verbose output.")
@click.option("--quiet", "-q", is_flag=True, help="Suppress non-essential output.")
@click.option("--debug", is_flag=True, help="Enable debug logging (very verbose).")
@click.option(
    "--config",
    "-c",
    "config_path",
    type=click.Path(exists=False, dir_okay=False),
    default=None,
    help="Path to nixpersist.yml (default: $NIXPERSIST_CONFIG or auto-detect).",
)
@click.pass_context
def cli(
    ctx: click.Context,
    verbose: bool,
    quiet: bool,
    debug: bool,
    config_path: str | None,
) -> None:
    """nixpersist — install and remove Linux persistence snippets.

    \b
    Available persistence modules:
      apache-log       Autostart persistence via Apache logging pipes
      docker-compose   Autostart persistence via docker-compose file
      rsyslog          Triggerable rsyslog filter (shell execute)
      rsyslog-omprog   Triggerable rsyslog filter using imfile + omprog drop-in
    """
    ctx.ensure_object(dict)
    ctx.obj["verbose"] = verbose
    ctx.obj["quiet"] = quiet
    ctx.obj["debug"] = debug
    ctx.obj["config_path"] = Path(config_path) if config_path else None

    # ── Logging setup (once, at process start) ──────────────────
    setup_logging(
        level=resolve_level(debug=debug, verbose=verbose, quiet=quiet),
        log_file=os.environ.get(FILE_ENV),
        log_file_level=os.environ.get(FILE_LEVEL_ENV),
    )


# ── Register mechanism subcommands ──────────────────────────────

from nixpersist.ui.cli.apache import apache_log  # noqa: E402
from nixpersist.ui.cli.compose import docker_compose  # noqa: E402
from nixpersist.ui.cli.rsyslog import rsyslog_cmd, rsyslog_omprog_cmd  # noqa: E402

cli.add_command(rsyslog_cmd)
cli.add_command(rsyslog_omprog_cmd)
cli.add_command(apache_log)
cli.add_command(docker_compose)


def main() -> None:
    """Console-script entry point."""
    cli(obj={})


if __name__ == "__main__":
    main()
