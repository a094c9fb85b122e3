"""
Mechanism parameter models — the inputs each renderer consumes.

One model per persistence technique, discriminated by ``kind``. These
models only carry data; safety checks (absolute paths, newlines,
quoting) live next to the renderer that knows the target syntax, so a
params object can always be built from raw CLI values and rejected
later with a precise ParamValidationError.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, Field, TypeAdapter


class RsyslogShellParams(BaseModel):
    """Single ``:msg, contains`` directive appended to rsyslog.conf."""

    kind: Literal["rsyslog"] = "rsyslog"
    trigger: str                    # message substring that fires the payload
    payload: str                    # program (+ args) executed by the ^ action


class RsyslogOmprogParams(BaseModel):
    """imfile input + omprog action written to a rsyslog.d drop-in."""

    kind: Literal["rsyslog-omprog"] = "rsyslog-omprog"

    input_file: str                 # log file tailed by imfile
    tag: str = "access"
    severity: str = ""
    facility: str = ""
    add_metadata: bool = False
    polling_interval: int = 0       # 0 omits PollingInterval
    state_file: str = ""

    use_ruleset: bool = False
    ruleset_name: str = ""

    filter_by_tag: bool = False
    filter_contains: str = ""
    filter_regex: str = ""

    program_path: str
    program_args: str = ""


class ApacheLogParams(BaseModel):
    """``CustomLog "|payload"`` directive appended to apache2.conf."""

    kind: Literal["apache-log"] = "apache-log"
    payload: str
    log_format: str = "error"


class ComposeParams(BaseModel):
    """Privileged compose service that chroots into the host root."""

    kind: Literal["docker-compose"] = "docker-compose"
    service_name: str
    image: str = "alpine:latest"
    payload: str


MechanismParams = Annotated[
    Union[RsyslogShellParams, RsyslogOmprogParams, ApacheLogParams, ComposeParams],
    Field(discriminator="kind"),
]

_PARAMS_ADAPTER: TypeAdapter = TypeAdapter(MechanismParams)


def parse_params(data: Mapping[str, Any]) -> BaseModel:
    """Build the params model selected by ``data["kind"]``.

    Raises:
        pydantic.ValidationError: unknown kind or fields of the wrong type.
    """
    return _PARAMS_ADAPTER.validate_python(dict(data))
