"""
Installer — idempotent install / remove of one fragment.

Install:
    render → privilege check → read → duplicate check → [AppArmor off]
    → insert → atomic write → reload

Remove:
    privilege check → read → locate → [AppArmor on] → [compose down]
    → cut → atomic write (or delete an emptied drop-in) → reload

Everything that can fail without side effects (validation, privilege,
missing file, duplicate, absent fragment) fails before the file is
touched. A failed reload does NOT roll the file back: the change stays
and ServiceReloadError says so.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from pathlib import Path
from typing import Any

from pydantic import BaseModel

from nixpersist.adapters.base import CommandRunner
from nixpersist.adapters.shell.filesystem import (
    TargetFile,
    cleanup_dir,
    ensure_parent,
    read_target,
    remove_file,
    require_write_access,
    write_atomic,
)
from nixpersist.core.errors import (
    AlreadyInstalledError,
    NotInstalledError,
    ParamValidationError,
    ServiceReloadError,
)
from nixpersist.core.models.outcome import InstallOptions, InstallResult, ReloadOutcome
from nixpersist.core.services.apparmor import AppArmorToggle
from nixpersist.core.services.mechanisms import PersistenceMechanism
from nixpersist.core.services.service_control import ServiceController, ServiceSubject

logger = logging.getLogger(__name__)


def _owner(tf: TargetFile) -> tuple[int, int] | None:
    if tf.uid is None or tf.gid is None:
        return None
    return tf.uid, tf.gid


class Installer:
    """Apply and revert persistence fragments on the host."""

    def __init__(
        self,
        runner: CommandRunner,
        controller: ServiceController | None = None,
        apparmor: AppArmorToggle | None = None,
    ):
        self._runner = runner
        self.controller = controller or ServiceController(runner)
        self._apparmor = apparmor

    def _apparmor_for(self, mechanism: PersistenceMechanism) -> AppArmorToggle:
        if self._apparmor is None:
            cfg = mechanism.settings.rsyslog
            self._apparmor = AppArmorToggle(
                self._runner,
                profile=cfg.apparmor_profile,
                disable_dir=cfg.apparmor_disable_dir,
            )
        return self._apparmor

    def _wants_apparmor(self, mechanism: PersistenceMechanism, options: InstallOptions) -> bool:
        if options.manage_apparmor and not mechanism.supports_apparmor:
            logger.debug("AppArmor management does not apply to %s, ignoring", mechanism.name)
            return False
        return options.manage_apparmor

    # ── Install ─────────────────────────────────────────────────

    def install(
        self,
        mechanism: PersistenceMechanism,
        params: BaseModel | Mapping[str, Any],
        target: Path | str | None = None,
        options: InstallOptions | None = None,
    ) -> InstallResult:
        """Render ``params`` and add the fragment to ``target``.

        Raises:
            ParamValidationError: params rejected by the renderer.
            PrivilegeError: target or its directory not writable.
            TargetMissingError: externally-owned target does not exist.
            AlreadyInstalledError: the fragment is already present.
            ExternalToolError: AppArmor could not be disabled.
            ServiceReloadError: file written but the service did not reload.
        """
        options = options or InstallOptions()
        path = Path(target) if target else mechanism.default_target()

        fragment = mechanism.render(params)
        matcher = mechanism.matcher(options)

        require_write_access(path, create_parent=mechanism.tool_owned)
        tf = read_target(path, missing_ok=mechanism.tool_owned)

        if matcher.locate(tf.content, fragment) is not None:
            raise AlreadyInstalledError(mechanism.name, path)

        result = InstallResult(mechanism=mechanism.name, action="install", path=str(path))

        if self._wants_apparmor(mechanism, options):
            self._apparmor_for(mechanism).disable()
            result.apparmor = True

        content = matcher.insert(tf.content, fragment)
        if mechanism.tool_owned:
            ensure_parent(path)
        write_atomic(path, content, mode=tf.mode, owner=_owner(tf))
        logger.info("Installed %s into %s", mechanism.name, path)

        if options.restart:
            result.reload = self._reload(
                mechanism.subject(path), f"configuration written to {path}",
            )
        return result

    # ── Remove ──────────────────────────────────────────────────

    def remove(
        self,
        mechanism: PersistenceMechanism,
        target: Path | str | None = None,
        options: InstallOptions | None = None,
        params: BaseModel | Mapping[str, Any] | None = None,
    ) -> InstallResult:
        """Take the fragment back out of ``target``.

        ``params`` is only needed by exact-line techniques, which have
        to re-render the line to find it.

        Raises:
            ParamValidationError: params needed but missing or invalid.
            PrivilegeError: target or its directory not writable.
            TargetMissingError: the target does not exist.
            NotInstalledError: the fragment is not present.
            InconsistentMarkersError: start marker without end marker.
            ExternalToolError: AppArmor or compose down failed.
            ServiceReloadError: file updated but the service did not reload.
        """
        options = options or InstallOptions()
        path = Path(target) if target else mechanism.default_target()
        matcher = mechanism.matcher(options)

        fragment = None
        if matcher.needs_fragment_for_remove:
            if params is None:
                raise ParamValidationError(
                    mechanism.name, "removal needs the original parameters to find the line",
                )
            fragment = mechanism.render(params)

        require_write_access(path)
        tf = read_target(path)

        content, found = matcher.remove(tf.content, fragment, path)
        if not found:
            raise NotInstalledError(mechanism.name, path)

        result = InstallResult(mechanism=mechanism.name, action="remove", path=str(path))
        subject = mechanism.subject(path)

        if self._wants_apparmor(mechanism, options):
            self._apparmor_for(mechanism).enable()
            result.apparmor = True

        if mechanism.stop_before_remove and options.restart:
            result.reload = self.controller.stop(subject)

        if mechanism.tool_owned and not content.strip():
            remove_file(path)
            result.file_removed = True
            if mechanism.owns_directory:
                cleanup_dir(path.parent)
        else:
            write_atomic(path, content, mode=tf.mode, owner=_owner(tf))
        logger.info("Removed %s from %s", mechanism.name, path)

        if options.restart and mechanism.reload_after_remove:
            result.reload = self._reload(subject, f"configuration updated in {path}")
        return result

    # ── Helpers ─────────────────────────────────────────────────

    def _reload(self, subject: ServiceSubject, context: str) -> ReloadOutcome:
        try:
            return self.controller.reload(subject)
        except ServiceReloadError as e:
            raise ServiceReloadError(e.outcome, context=context) from e
