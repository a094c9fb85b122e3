"""
Persistence mechanisms — one polymorphic type per technique.

A mechanism ties together what the installer needs to know about a
technique without the installer branching on its name:

    render        params → Fragment (validation happens here)
    matcher       how the fragment is found, inserted and removed
    target        which file it lives in (from Settings)
    subject       which service consumes that file
    tool_owned    whether the tool owns the whole file (drop-ins)

Variants:
    rsyslog          exact line in rsyslog.conf, reload rsyslog
    rsyslog-omprog   marked block in a rsyslog.d drop-in, reload rsyslog
    apache-log       marked block (or exact line) in apache2.conf, reload apache2
    docker-compose   marked compose document, ``up -d`` / ``down``
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Mapping
from pathlib import Path
from typing import Any

from pydantic import BaseModel, ValidationError

from nixpersist.core.config.loader import Settings
from nixpersist.core.errors import ParamValidationError
from nixpersist.core.models.fragment import Fragment
from nixpersist.core.models.outcome import InstallOptions
from nixpersist.core.models.params import (
    ApacheLogParams,
    ComposeParams,
    RsyslogOmprogParams,
    RsyslogShellParams,
    parse_params,
)
from nixpersist.core.services.generators import apache, compose, rsyslog
from nixpersist.core.services.matchers import (
    DelimitedBlockMatcher,
    ExactLineMatcher,
    FragmentMatcher,
)
from nixpersist.core.services.service_control import ServiceSubject


class PersistenceMechanism(ABC):
    """Abstract base for a persistence technique.

    To add a technique:
        1. Write a renderer under ``core/services/generators``
        2. Subclass PersistenceMechanism
        3. Register it in MECHANISMS
    """

    name: str = ""
    params_model: type[BaseModel] = BaseModel

    #: The tool owns the whole target (created on install, deleted when empty).
    tool_owned: bool = False
    #: The AppArmor rsyslogd profile applies to this technique.
    supports_apparmor: bool = False
    #: The parent directory exists only for this file; removed when emptied.
    owns_directory: bool = False
    #: Stop the consumer while the file still exists, before removal.
    stop_before_remove: bool = False
    #: Reload the consumer after a removal.
    reload_after_remove: bool = True

    def __init__(self, settings: Settings | None = None):
        self.settings = settings or Settings()

    @abstractmethod
    def render(self, params: BaseModel | Mapping[str, Any]) -> Fragment:
        """Validate ``params`` and render the fragment."""

    @abstractmethod
    def matcher(self, options: InstallOptions | None = None) -> FragmentMatcher:
        """Matching strategy for this technique."""

    @abstractmethod
    def default_target(self) -> Path:
        """File the fragment is installed into when none is given."""

    @abstractmethod
    def subject(self, target: Path) -> ServiceSubject:
        """Service that must be reloaded after ``target`` changes."""

    def _check_params(self, params: BaseModel | Mapping[str, Any]) -> BaseModel:
        """Return ``params`` as this mechanism's model.

        Plain mappings (e.g. loaded from YAML) are validated into the
        model their ``kind`` selects, defaulting to this mechanism.
        """
        if isinstance(params, Mapping):
            try:
                params = parse_params({"kind": self.name, **params})
            except ValidationError as e:
                err = e.errors()[0]
                where = ".".join(str(p) for p in err["loc"])
                raise ParamValidationError(
                    self.name, f"invalid parameters: {where}: {err['msg']}",
                ) from e
        if not isinstance(params, self.params_model):
            raise ParamValidationError(
                self.name,
                f"expected {self.params_model.__name__}, got {type(params).__name__}",
            )
        return params

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__} name={self.name!r}>"


# ── Variants ────────────────────────────────────────────────────


class RsyslogShellMechanism(PersistenceMechanism):
    name = rsyslog.SHELL
    params_model = RsyslogShellParams
    supports_apparmor = True

    def render(self, params: BaseModel | Mapping[str, Any]) -> Fragment:
        params = self._check_params(params)
        return rsyslog.render_shell(params)

    def matcher(self, options: InstallOptions | None = None) -> FragmentMatcher:
        return ExactLineMatcher()

    def default_target(self) -> Path:
        return Path(self.settings.rsyslog.conf)

    def subject(self, target: Path) -> ServiceSubject:
        return ServiceSubject.unit(self.settings.rsyslog.service)


class RsyslogOmprogMechanism(PersistenceMechanism):
    name = rsyslog.OMPROG
    params_model = RsyslogOmprogParams
    tool_owned = True
    supports_apparmor = True

    def render(self, params: BaseModel | Mapping[str, Any]) -> Fragment:
        params = self._check_params(params)
        return rsyslog.render_omprog(params)

    def matcher(self, options: InstallOptions | None = None) -> FragmentMatcher:
        return DelimitedBlockMatcher.for_mechanism(self.name)

    def default_target(self) -> Path:
        return Path(self.settings.rsyslog.dropin)

    def subject(self, target: Path) -> ServiceSubject:
        return ServiceSubject.unit(self.settings.rsyslog.service)


class ApacheLogMechanism(PersistenceMechanism):
    name = apache.MECHANISM
    params_model = ApacheLogParams

    def render(self, params: BaseModel | Mapping[str, Any]) -> Fragment:
        params = self._check_params(params)
        return apache.render(params)

    def matcher(self, options: InstallOptions | None = None) -> FragmentMatcher:
        if options is not None and not options.use_markers:
            return ExactLineMatcher()
        return DelimitedBlockMatcher.for_mechanism(self.name)

    def default_target(self) -> Path:
        return Path(self.settings.apache.conf)

    def subject(self, target: Path) -> ServiceSubject:
        return ServiceSubject.unit(self.settings.apache.service)


class ComposeMechanism(PersistenceMechanism):
    name = compose.MECHANISM
    params_model = ComposeParams
    tool_owned = True
    owns_directory = True
    stop_before_remove = True
    # ``down`` already ran before the file was removed
    reload_after_remove = False

    def render(self, params: BaseModel | Mapping[str, Any]) -> Fragment:
        params = self._check_params(params)
        return compose.render(params)

    def matcher(self, options: InstallOptions | None = None) -> FragmentMatcher:
        return DelimitedBlockMatcher.for_mechanism(self.name)

    def target_path(self, output_dir: Path | str) -> Path:
        """Compose file inside ``output_dir``."""
        return Path(output_dir) / self.settings.compose.file_name

    def default_target(self) -> Path:
        return self.target_path(self.settings.compose.output_dir)

    def subject(self, target: Path) -> ServiceSubject:
        return ServiceSubject.compose(target)


# ── Registry ────────────────────────────────────────────────────

MECHANISMS: dict[str, type[PersistenceMechanism]] = {
    cls.name: cls
    for cls in (
        RsyslogShellMechanism,
        RsyslogOmprogMechanism,
        ApacheLogMechanism,
        ComposeMechanism,
    )
}


def get_mechanism(name: str, settings: Settings | None = None) -> PersistenceMechanism:
    """Instantiate a mechanism by name.

    Raises:
        KeyError: Unknown mechanism name.
    """
    try:
        cls = MECHANISMS[name]
    except KeyError:
        raise KeyError(f"unknown mechanism {name!r} (available: {', '.join(MECHANISMS)})") from None
    return cls(settings)
