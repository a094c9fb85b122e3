"""Adapters — bindings to the host: external commands and the filesystem.

Public re-exports for convenient access.
"""

from nixpersist.adapters.base import CommandRunner
from nixpersist.adapters.mock import MockRunner
from nixpersist.adapters.shell.command import SubprocessRunner

__all__ = [
    "CommandRunner",
    "MockRunner",
    "SubprocessRunner",
]
