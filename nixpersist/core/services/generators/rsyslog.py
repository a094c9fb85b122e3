"""
rsyslog renderers — shell-execute directive and imfile/omprog drop-in.

Two techniques share the rsyslog service:

``rsyslog``
    One legacy-syntax line appended to ``/etc/rsyslog.conf``::

        :msg, contains, "hacker" ^/path/to/payload

``rsyslog-omprog``
    A RainerScript block (imfile input, filter, omprog action) written
    to a drop-in under ``/etc/rsyslog.d``. The filter is optionally
    wrapped in a named ruleset that the input is bound to.
"""

from __future__ import annotations

import re

from nixpersist.core.errors import ParamValidationError
from nixpersist.core.models.fragment import Fragment
from nixpersist.core.models.params import RsyslogOmprogParams, RsyslogShellParams
from nixpersist.core.services.generators.validation import (
    absolute_path,
    escape_literal,
    require,
    single_line,
)

SHELL = "rsyslog"
OMPROG = "rsyslog-omprog"

_RULESET_NAME = re.compile(r"^[A-Za-z0-9_.-]+$")
_INDENT = "    "


# ── Shell-execute directive ─────────────────────────────────────


def render_shell(params: RsyslogShellParams) -> Fragment:
    """Render the ``:msg, contains`` shell-execute directive."""
    trigger = single_line(SHELL, "trigger", params.trigger)
    require(SHELL, "trigger", trigger)
    payload = require(SHELL, "payload", single_line(SHELL, "payload", params.payload))
    absolute_path(SHELL, "payload program", payload.split()[0])

    line = f':msg, contains, "{escape_literal(trigger)}" ^{payload}'
    return Fragment(mechanism=SHELL, text=line + "\n")


# ── imfile + omprog drop-in ─────────────────────────────────────


def validate_omprog(p: RsyslogOmprogParams) -> None:
    """Check an omprog params set before rendering."""
    for field in (
        "input_file", "tag", "severity", "facility", "state_file",
        "ruleset_name", "filter_contains", "filter_regex",
        "program_path", "program_args",
    ):
        single_line(OMPROG, field, getattr(p, field))

    absolute_path(OMPROG, "input_file", require(OMPROG, "input_file", p.input_file))
    absolute_path(OMPROG, "program_path", require(OMPROG, "program_path", p.program_path))
    require(OMPROG, "tag", p.tag)

    if p.use_ruleset:
        name = require(OMPROG, "ruleset_name (required when a ruleset is requested)", p.ruleset_name)
        if not _RULESET_NAME.match(name):
            raise ParamValidationError(
                OMPROG,
                f"ruleset_name {name!r} must contain only letters, numbers, dots, dashes, or underscores",
            )

    if p.polling_interval < 0:
        raise ParamValidationError(OMPROG, "polling_interval must not be negative")

    if not (p.filter_by_tag or p.filter_contains or p.filter_regex):
        raise ParamValidationError(
            OMPROG, "at least one of filter_by_tag, filter_contains or filter_regex must be set",
        )


def build_condition(p: RsyslogOmprogParams) -> str:
    """Join the trigger predicates.

    Tag match AND substring match, then OR pattern match. RainerScript
    gives ``and`` precedence over ``or``, so ``A and B or C`` reads as
    ``(A and B) or C``.
    """
    all_of: list[str] = []
    if p.filter_by_tag:
        tag = escape_literal(p.tag.strip(), "'")
        all_of.append(f"($syslogtag contains '{tag}')")
    if p.filter_contains:
        needle = escape_literal(p.filter_contains, "'")
        all_of.append(f"($msg contains '{needle}')")

    any_of: list[str] = []
    if all_of:
        any_of.append(" and ".join(all_of))
    if p.filter_regex:
        any_of.append(f're_match($msg, "{escape_literal(p.filter_regex)}")')

    if not any_of:
        raise ParamValidationError(OMPROG, "no filter expression constructed")
    return " or ".join(any_of)


def render_omprog(params: RsyslogOmprogParams) -> Fragment:
    """Render the imfile/omprog RainerScript drop-in."""
    validate_omprog(params)
    p = params

    out: list[str] = []

    if p.polling_interval > 0:
        out.append(f'module(load="imfile" PollingInterval="{p.polling_interval}")')
    else:
        out.append('module(load="imfile")')
    out.append('module(load="omprog")')
    out.append("")

    out.append("input(")
    out.append('\ttype="imfile"')
    out.append(f'\tFile="{escape_literal(p.input_file.strip())}"')
    out.append(f'\tTag="{escape_literal(p.tag.strip())}"')
    if p.severity:
        out.append(f'\tSeverity="{escape_literal(p.severity)}"')
    if p.facility:
        out.append(f'\tFacility="{escape_literal(p.facility)}"')
    if p.add_metadata:
        out.append('\taddMetadata="on"')
    # keep tailing after logrotate truncates the file
    out.append('\treopenOnTruncate="on"')
    if p.state_file:
        out.append(f'\tStateFile="{escape_literal(p.state_file)}"')
    if p.use_ruleset:
        out.append(f'\truleset="{p.ruleset_name.strip()}"')
    out.append(")")
    out.append("")

    binary = p.program_path.strip()
    if p.program_args:
        binary = f"{binary} {p.program_args}"

    indent = ""
    if p.use_ruleset:
        out.append(f'ruleset(name="{p.ruleset_name.strip()}") {{')
        indent = _INDENT
    out.append(f"{indent}if {build_condition(p)} then {{")
    out.append(f'{indent}{_INDENT}action(type="omprog" binary="{escape_literal(binary)}")')
    out.append(f"{indent}}}")
    if p.use_ruleset:
        out.append("}")

    return Fragment(mechanism=OMPROG, text="\n".join(out) + "\n")
