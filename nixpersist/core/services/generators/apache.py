"""
Apache log-pipe renderer.

Apache starts every ``CustomLog "|program"`` target as a child process
and keeps it running, so appending one directive to ``apache2.conf`` is
enough for the payload to come back with every server start::

    CustomLog "|/usr/bin/payload" error
"""

from __future__ import annotations

import re

from nixpersist.core.errors import ParamValidationError
from nixpersist.core.models.fragment import Fragment
from nixpersist.core.models.params import ApacheLogParams
from nixpersist.core.services.generators.validation import (
    absolute_path,
    forbid_chars,
    require,
    single_line,
)

MECHANISM = "apache-log"

_LOG_FORMAT = re.compile(r"^[A-Za-z0-9_-]+$")


def validate(params: ApacheLogParams) -> str:
    """Return the stripped payload, or raise ParamValidationError."""
    payload = require(MECHANISM, "payload", params.payload)
    single_line(MECHANISM, "payload", payload)
    forbid_chars(MECHANISM, "payload", payload, '"<>')
    absolute_path(MECHANISM, "payload", payload)

    if not _LOG_FORMAT.match(params.log_format):
        raise ParamValidationError(
            MECHANISM, f"log_format {params.log_format!r} must be a single nickname token",
        )
    return payload


def render(params: ApacheLogParams) -> Fragment:
    """Render the piped ``CustomLog`` directive (one line)."""
    payload = validate(params)
    return Fragment(
        mechanism=MECHANISM,
        text=f'CustomLog "|{payload}" {params.log_format}\n',
    )
