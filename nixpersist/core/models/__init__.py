"""
Domain models — Pydantic types for the mutation engine.

All models are re-exported here for convenient access:

    from nixpersist.core.models import Fragment, RsyslogShellParams, InstallOptions
"""

from nixpersist.core.models.command import CommandResult
from nixpersist.core.models.fragment import Fragment
from nixpersist.core.models.outcome import (
    InstallOptions,
    InstallResult,
    ReloadAttempt,
    ReloadOutcome,
)
from nixpersist.core.models.params import (
    ApacheLogParams,
    ComposeParams,
    MechanismParams,
    RsyslogOmprogParams,
    RsyslogShellParams,
    parse_params,
)
from nixpersist.core.models.report import CheckResult, DiagnosticReport

__all__ = [
    # command.py
    "CommandResult",
    # fragment.py
    "Fragment",
    # outcome.py
    "InstallOptions",
    "InstallResult",
    "ReloadAttempt",
    "ReloadOutcome",
    # params.py
    "ApacheLogParams",
    "ComposeParams",
    "MechanismParams",
    "RsyslogOmprogParams",
    "RsyslogShellParams",
    "parse_params",
    # report.py
    "CheckResult",
    "DiagnosticReport",
]
