"""
AppArmor profile toggle for rsyslogd.

On Debian/Ubuntu the rsyslogd profile stops rsyslog from executing
arbitrary programs, so the rsyslog techniques can silently never fire.
With explicit opt-in the installer unloads the profile before install
and restores it on remove:

    apparmor_parser -R /etc/apparmor.d/usr.sbin.rsyslogd
    ln -sf /etc/apparmor.d/usr.sbin.rsyslogd /etc/apparmor.d/disable/

The change persists until the profile is re-enabled.
"""

from __future__ import annotations

import logging
from pathlib import Path

from nixpersist.adapters.base import CommandRunner
from nixpersist.core.errors import ExternalToolError, PrivilegeError, TargetIOError

logger = logging.getLogger(__name__)

DEFAULT_PROFILE = "/etc/apparmor.d/usr.sbin.rsyslogd"
DEFAULT_DISABLE_DIR = "/etc/apparmor.d/disable"

PARSER = "apparmor_parser"


class AppArmorToggle:
    """Disable / re-enable one AppArmor profile."""

    def __init__(
        self,
        runner: CommandRunner,
        profile: Path | str = DEFAULT_PROFILE,
        disable_dir: Path | str = DEFAULT_DISABLE_DIR,
    ):
        self._runner = runner
        self.profile = Path(profile)
        self.disable_dir = Path(disable_dir)

    @property
    def disable_link(self) -> Path:
        return self.disable_dir / self.profile.name

    def _require_parser(self) -> None:
        if not self._runner.has(PARSER):
            raise ExternalToolError(PARSER, "not found; is AppArmor installed?")

    def disable(self) -> None:
        """Unload the profile and pin it disabled across reboots."""
        self._require_parser()

        result = self._runner.run([PARSER, "-R", str(self.profile)])
        if not result.ok:
            raise ExternalToolError(PARSER, f"failed to remove profile {self.profile}", result.output)

        link = self.disable_link
        try:
            if link.is_symlink() or link.exists():
                link.unlink()
            link.symlink_to(self.profile)
        except PermissionError as e:
            raise PrivilegeError(link, "symlink") from e
        except OSError as e:
            raise TargetIOError(link, "symlink", e) from e

        logger.info("AppArmor profile %s disabled", self.profile)

    def enable(self) -> None:
        """Drop the disable link and load the profile again."""
        self._require_parser()

        try:
            self.disable_link.unlink(missing_ok=True)
        except PermissionError as e:
            raise PrivilegeError(self.disable_link, "delete") from e
        except OSError as e:
            raise TargetIOError(self.disable_link, "delete", e) from e

        result = self._runner.run([PARSER, "-r", str(self.profile)])
        if not result.ok:
            raise ExternalToolError(PARSER, f"failed to re-load profile {self.profile}", result.output)

        logger.info("AppArmor profile %s re-enabled", self.profile)
