"""
Shared plumbing for the mechanism subcommands.

Every subcommand follows the same shape: pick at most one of
``--check`` / ``--install`` / ``--remove``, or render the fragment when
none is given. Engine errors are printed with a usage reminder and
exit 1; argument errors are click UsageErrors and exit 2.
"""

from __future__ import annotations

import functools
import sys
from collections.abc import Callable
from pathlib import Path

import click
from pydantic import BaseModel

from nixpersist.adapters.base import CommandRunner
from nixpersist.adapters.shell.command import SubprocessRunner
from nixpersist.adapters.shell.filesystem import write_atomic
from nixpersist.core.config.loader import Settings, load_settings
from nixpersist.core.errors import NixPersistError
from nixpersist.core.models.outcome import InstallOptions, InstallResult
from nixpersist.core.models.report import DiagnosticReport
from nixpersist.core.services.installer import Installer
from nixpersist.core.services.mechanisms import PersistenceMechanism


def action_options(f: Callable) -> Callable:
    """Attach --check / --install / --remove / --no-restart."""
    f = click.option(
        "--no-restart", is_flag=True,
        help="Skip reloading the dependent service after changes.",
    )(f)
    f = click.option("--remove", is_flag=True, help="Remove the installed snippet.")(f)
    f = click.option("--install", is_flag=True, help="Install the snippet on this host.")(f)
    f = click.option("--check", is_flag=True, help="Check host feasibility and exit.")(f)
    return f


def pick_action(check: bool, install: bool, remove: bool) -> str | None:
    """Return "check", "install", "remove" or None (render)."""
    chosen = [
        name for name, flag in (("check", check), ("install", install), ("remove", remove))
        if flag
    ]
    if len(chosen) > 1:
        raise click.UsageError("choose at most one of --check, --install, or --remove")
    return chosen[0] if chosen else None


def require_mutation(action: str | None, flag: str) -> None:
    if action not in ("install", "remove"):
        raise click.UsageError(f"{flag} requires --install or --remove")


# ── Context accessors ───────────────────────────────────────────


def get_runner(ctx: click.Context) -> CommandRunner:
    obj = ctx.ensure_object(dict)
    if obj.get("runner") is None:
        obj["runner"] = SubprocessRunner()
    return obj["runner"]


def get_settings(ctx: click.Context) -> Settings:
    """Load settings once per invocation (lazy so errors get the usual handling)."""
    obj = ctx.ensure_object(dict)
    if obj.get("settings") is None:
        try:
            obj["settings"] = load_settings(obj.get("config_path"))
        except NixPersistError as e:
            fail(ctx, e)
    return obj["settings"]


# ── Output ──────────────────────────────────────────────────────


def fail(ctx: click.Context, error: Exception) -> None:
    """Print an error plus a usage reminder to stderr and exit 1."""
    click.secho(f"❌ {error}", fg="red", err=True)
    click.echo(err=True)
    click.echo(ctx.get_usage(), err=True)
    sys.exit(1)


def warn(message: str) -> None:
    click.secho(f"⚠️  {message}", fg="yellow", err=True)


def handle_errors(fn: Callable) -> Callable:
    """Turn engine errors raised by a command body into exit 1."""

    @functools.wraps(fn)
    def wrapper(*args, **kwargs):
        try:
            return fn(*args, **kwargs)
        except NixPersistError as e:
            fail(click.get_current_context(), e)

    return wrapper


def describe(result: InstallResult, what: str) -> str:
    """One-line summary of an install or remove."""
    if result.action == "install":
        text = f"install complete: {what} added to {result.path}"
    elif result.file_removed:
        text = f"remove complete: {what} removed and {result.path} deleted"
    else:
        text = f"remove complete: {what} removed from {result.path}"

    if result.reload is not None:
        text += f"; {result.reload.summary()}"
    else:
        text += "; restart skipped"

    if result.apparmor:
        state = "disabled" if result.action == "install" else "re-enabled"
        text += f"; AppArmor profile {state}"
    return text


def emit_fragment(text: str, outfile: str | None) -> None:
    """Print the rendered fragment, or write it to ``outfile``."""
    if not outfile:
        click.echo(text, nl=False)
        return
    write_atomic(Path(outfile), text)
    click.secho(f"✅ render complete: written to {outfile}", fg="green")


# ── The shared flow ─────────────────────────────────────────────


def run_mechanism(
    ctx: click.Context,
    mechanism: PersistenceMechanism,
    action: str | None,
    params: BaseModel,
    *,
    what: str,
    target: Path | None = None,
    options: InstallOptions | None = None,
    outfile: str | None = None,
    diagnose: Callable[[], DiagnosticReport] | None = None,
    before_install: Callable[[DiagnosticReport], None] | None = None,
) -> None:
    """Dispatch one subcommand invocation.

    Args:
        what: Human name of the snippet for the summary line.
        diagnose: Builds the feasibility report (``--check``, pre-install warnings).
        before_install: Inspects the report and prints warnings.
    """
    runner = get_runner(ctx)

    if action == "check":
        if diagnose is not None:
            click.echo(diagnose().render(), nl=False)
        return

    if action is None:
        emit_fragment(mechanism.render(params).text, outfile)
        return

    installer = Installer(runner)
    if action == "install":
        if diagnose is not None and before_install is not None:
            before_install(diagnose())
        result = installer.install(mechanism, params, target, options)
    else:
        result = installer.remove(mechanism, target, options, params)

    click.secho(f"✅ {describe(result, what)}", fg="green")
