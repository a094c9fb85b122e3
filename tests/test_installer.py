"""
Tests for the installer — idempotent install / remove against tmp files.
"""

import os
import stat
from pathlib import Path

import pytest

from nixpersist.adapters.mock import MockRunner
from nixpersist.adapters.shell.filesystem import read_target
from nixpersist.core.config.loader import Settings
from nixpersist.core.errors import (
    AlreadyInstalledError,
    ExternalToolError,
    InconsistentMarkersError,
    NotInstalledError,
    ParamValidationError,
    PrivilegeError,
    ServiceReloadError,
    TargetMissingError,
)
from nixpersist.core.models import (
    ApacheLogParams,
    ComposeParams,
    InstallOptions,
    RsyslogOmprogParams,
    RsyslogShellParams,
)
from nixpersist.core.services.installer import Installer
from nixpersist.core.services.matchers import end_marker, start_marker
from nixpersist.core.services.mechanisms import (
    MECHANISMS,
    ApacheLogMechanism,
    ComposeMechanism,
    RsyslogOmprogMechanism,
    RsyslogShellMechanism,
    get_mechanism,
)

SHELL_PARAMS = RsyslogShellParams(trigger="hacker", payload="/path/to/payload")
SHELL_LINE = ':msg, contains, "hacker" ^/path/to/payload\n'

OMPROG_PARAMS = RsyslogOmprogParams(
    input_file="/var/log/auth.log",
    filter_by_tag=True,
    filter_contains="uhtavi0",
    program_path="/usr/bin/touch /tmp/nixpersist",
)

APACHE_PARAMS = ApacheLogParams(payload="/usr/local/bin/payload")

COMPOSE_PARAMS = ComposeParams(service_name="e2etest", payload="/usr/bin/touch /tmp/persisted")

NO_RESTART = InstallOptions(restart=False)


def _is_root() -> bool:
    return os.geteuid() == 0


class TestRegistry:
    def test_all_mechanisms_registered(self):
        assert set(MECHANISMS) == {"rsyslog", "rsyslog-omprog", "apache-log", "docker-compose"}

    def test_get_mechanism(self, settings: Settings):
        mech = get_mechanism("apache-log", settings)
        assert isinstance(mech, ApacheLogMechanism)
        assert mech.default_target() == Path(settings.apache.conf)

    def test_unknown(self):
        with pytest.raises(KeyError, match="unknown mechanism"):
            get_mechanism("cron")

    def test_wrong_params_type(self, settings: Settings):
        with pytest.raises(ParamValidationError, match="expected RsyslogShellParams"):
            RsyslogShellMechanism(settings).render(APACHE_PARAMS)

    def test_params_from_mapping(self, settings: Settings):
        frag = RsyslogShellMechanism(settings).render({"trigger": "hacker", "payload": "/path/to/payload"})
        assert frag.text == SHELL_LINE

    def test_mapping_with_bad_field(self, settings: Settings):
        with pytest.raises(ParamValidationError, match="invalid parameters: apache-log.payload"):
            ApacheLogMechanism(settings).render({"payload": ["/bin/x"]})

    def test_mapping_of_other_kind(self, settings: Settings):
        with pytest.raises(ParamValidationError, match="expected ApacheLogParams, got ComposeParams"):
            ApacheLogMechanism(settings).render(
                {"kind": "docker-compose", "service_name": "svc", "payload": "/bin/x"},
            )

    def test_install_from_mapping(self, runner: MockRunner, settings: Settings):
        conf = Path(settings.apache.conf)
        conf.write_text("")
        Installer(runner).install(
            ApacheLogMechanism(settings), {"payload": "/usr/local/bin/payload"}, options=NO_RESTART,
        )
        assert 'CustomLog "|/usr/local/bin/payload" error' in conf.read_text()


# ── rsyslog shell directive ──────────────────────────────────────────


class TestRsyslogShell:
    def test_install_appends_and_reloads(self, runner: MockRunner, settings: Settings):
        conf = Path(settings.rsyslog.conf)
        conf.write_text("*.* /var/log/syslog\n")

        result = Installer(runner).install(RsyslogShellMechanism(settings), SHELL_PARAMS)

        assert conf.read_text() == "*.* /var/log/syslog\n" + SHELL_LINE
        assert result.action == "install"
        assert result.restarted
        assert runner.commands == ["systemctl reload rsyslog"]

    def test_install_twice_conflicts(self, runner: MockRunner, settings: Settings):
        conf = Path(settings.rsyslog.conf)
        conf.write_text("")
        mech = RsyslogShellMechanism(settings)
        installer = Installer(runner)
        installer.install(mech, SHELL_PARAMS, options=NO_RESTART)
        before = conf.read_text()

        with pytest.raises(AlreadyInstalledError, match="already present"):
            installer.install(mech, SHELL_PARAMS, options=NO_RESTART)
        assert conf.read_text() == before

    def test_different_payload_is_not_duplicate(self, runner: MockRunner, settings: Settings):
        conf = Path(settings.rsyslog.conf)
        conf.write_text(SHELL_LINE)
        other = RsyslogShellParams(trigger="hacker", payload="/other")
        Installer(runner).install(RsyslogShellMechanism(settings), other, options=NO_RESTART)
        assert conf.read_text() == SHELL_LINE + ':msg, contains, "hacker" ^/other\n'

    def test_remove_restores(self, runner: MockRunner, settings: Settings):
        conf = Path(settings.rsyslog.conf)
        original = "*.* /var/log/syslog\n"
        conf.write_text(original)
        mech = RsyslogShellMechanism(settings)
        installer = Installer(runner)

        installer.install(mech, SHELL_PARAMS, options=NO_RESTART)
        result = installer.remove(mech, options=NO_RESTART, params=SHELL_PARAMS)

        assert conf.read_text() == original
        assert result.reload is None
        assert not result.file_removed

    def test_remove_needs_params(self, runner: MockRunner, settings: Settings):
        Path(settings.rsyslog.conf).write_text(SHELL_LINE)
        with pytest.raises(ParamValidationError, match="original parameters"):
            Installer(runner).remove(RsyslogShellMechanism(settings))

    def test_remove_not_installed(self, runner: MockRunner, settings: Settings):
        conf = Path(settings.rsyslog.conf)
        conf.write_text("a\n")
        with pytest.raises(NotInstalledError, match="not found"):
            Installer(runner).remove(RsyslogShellMechanism(settings), params=SHELL_PARAMS)
        assert conf.read_text() == "a\n"
        assert runner.call_count == 0

    def test_missing_conf(self, runner: MockRunner, settings: Settings):
        with pytest.raises(TargetMissingError):
            Installer(runner).install(RsyslogShellMechanism(settings), SHELL_PARAMS)
        assert not Path(settings.rsyslog.conf).exists()

    def test_validation_before_io(self, runner: MockRunner, settings: Settings):
        bad = RsyslogShellParams(trigger="", payload="/x")
        with pytest.raises(ParamValidationError):
            Installer(runner).install(RsyslogShellMechanism(settings), bad)
        assert runner.call_count == 0

    def test_preserves_mode(self, runner: MockRunner, settings: Settings):
        conf = Path(settings.rsyslog.conf)
        conf.write_text("a\n")
        conf.chmod(0o600)
        Installer(runner).install(RsyslogShellMechanism(settings), SHELL_PARAMS, options=NO_RESTART)
        assert stat.S_IMODE(conf.stat().st_mode) == 0o600

    def test_explicit_target(self, runner: MockRunner, settings: Settings, tmp_path: Path):
        other = tmp_path / "custom.conf"
        other.write_text("")
        result = Installer(runner).install(
            RsyslogShellMechanism(settings), SHELL_PARAMS, target=other, options=NO_RESTART,
        )
        assert result.path == str(other)
        assert other.read_text() == SHELL_LINE

    @pytest.mark.skipif(_is_root(), reason="root bypasses file permissions")
    def test_read_only_directory(self, runner: MockRunner, settings: Settings):
        conf = Path(settings.rsyslog.conf)
        conf.write_text("a\n")
        conf.parent.chmod(0o555)
        try:
            with pytest.raises(PrivilegeError, match="root privileges"):
                Installer(runner).install(RsyslogShellMechanism(settings), SHELL_PARAMS)
        finally:
            conf.parent.chmod(0o755)
        assert conf.read_text() == "a\n"


class TestConcurrentWriters:
    def test_last_writer_wins(self, runner: MockRunner, settings: Settings, monkeypatch):
        conf = Path(settings.rsyslog.conf)
        conf.write_text("a\n")
        mech = RsyslogShellMechanism(settings)
        other = RsyslogShellParams(trigger="other", payload="/bin/other")

        stale = read_target(conf)
        Installer(runner).install(mech, SHELL_PARAMS, options=NO_RESTART)

        # second writer read the file before the first one wrote it
        monkeypatch.setattr(
            "nixpersist.core.services.installer.read_target", lambda *a, **kw: stale,
        )
        Installer(runner).install(mech, other, options=NO_RESTART)

        assert conf.read_text() == 'a\n:msg, contains, "other" ^/bin/other\n'
        assert SHELL_LINE not in conf.read_text()


class TestReloadFailure:
    def test_install_keeps_file(self, settings: Settings):
        runner = MockRunner(binaries=["systemctl"])
        runner.set_failure(["systemctl"], output="Job failed")
        conf = Path(settings.rsyslog.conf)
        conf.write_text("")

        with pytest.raises(ServiceReloadError) as exc:
            Installer(runner).install(RsyslogShellMechanism(settings), SHELL_PARAMS)

        assert f"configuration written to {conf}" in str(exc.value)
        assert "Job failed" in str(exc.value)
        assert conf.read_text() == SHELL_LINE

    def test_remove_keeps_file(self, settings: Settings):
        runner = MockRunner()
        conf = Path(settings.rsyslog.conf)
        conf.write_text("a\n" + SHELL_LINE)

        with pytest.raises(ServiceReloadError, match="could not find a method"):
            Installer(runner).remove(RsyslogShellMechanism(settings), params=SHELL_PARAMS)
        assert conf.read_text() == "a\n"


class TestAppArmor:
    def _prepare(self, settings: Settings) -> Path:
        profile = Path(settings.rsyslog.apparmor_profile)
        Path(settings.rsyslog.apparmor_disable_dir).mkdir(parents=True)
        profile.write_text("profile rsyslogd {}\n")
        Path(settings.rsyslog.conf).write_text("")
        return profile

    def test_install_disables_profile(self, settings: Settings):
        runner = MockRunner(binaries=["systemctl", "apparmor_parser"])
        profile = self._prepare(settings)
        opts = InstallOptions(manage_apparmor=True)

        result = Installer(runner).install(RsyslogShellMechanism(settings), SHELL_PARAMS, options=opts)

        assert result.apparmor
        assert runner.commands == [f"apparmor_parser -R {profile}", "systemctl reload rsyslog"]
        assert (Path(settings.rsyslog.apparmor_disable_dir) / profile.name).is_symlink()

    def test_failure_aborts_before_write(self, settings: Settings):
        runner = MockRunner(binaries=["systemctl"])
        self._prepare(settings)
        opts = InstallOptions(manage_apparmor=True)

        with pytest.raises(ExternalToolError, match="apparmor_parser"):
            Installer(runner).install(RsyslogShellMechanism(settings), SHELL_PARAMS, options=opts)
        assert Path(settings.rsyslog.conf).read_text() == ""

    def test_remove_reenables_first(self, settings: Settings):
        runner = MockRunner(binaries=["systemctl", "apparmor_parser"])
        profile = self._prepare(settings)
        opts = InstallOptions(manage_apparmor=True)
        installer = Installer(runner)
        installer.install(RsyslogShellMechanism(settings), SHELL_PARAMS, options=opts)
        runner.reset()

        installer.remove(RsyslogShellMechanism(settings), options=opts, params=SHELL_PARAMS)
        assert runner.commands == [f"apparmor_parser -r {profile}", "systemctl reload rsyslog"]

    def test_ignored_for_apache(self, settings: Settings):
        runner = MockRunner(binaries=["systemctl"])
        Path(settings.apache.conf).write_text("")
        opts = InstallOptions(manage_apparmor=True)
        result = Installer(runner).install(ApacheLogMechanism(settings), APACHE_PARAMS, options=opts)
        assert not result.apparmor


# ── rsyslog omprog drop-in ───────────────────────────────────────────


class TestRsyslogOmprog:
    def test_creates_dropin_and_directory(self, runner: MockRunner, settings: Settings):
        dropin = Path(settings.rsyslog.dropin)
        assert not dropin.parent.exists()

        Installer(runner).install(RsyslogOmprogMechanism(settings), OMPROG_PARAMS)

        text = dropin.read_text()
        assert text.startswith(start_marker("rsyslog-omprog") + "\n")
        assert text.endswith(end_marker("rsyslog-omprog") + "\n")
        assert 'action(type="omprog" binary="/usr/bin/touch /tmp/nixpersist")' in text
        assert stat.S_IMODE(dropin.stat().st_mode) == 0o644
        assert dropin.parent.is_dir()

    def test_remove_deletes_dropin_keeps_directory(self, runner: MockRunner, settings: Settings):
        mech = RsyslogOmprogMechanism(settings)
        installer = Installer(runner)
        installer.install(mech, OMPROG_PARAMS, options=NO_RESTART)

        result = installer.remove(mech)

        dropin = Path(settings.rsyslog.dropin)
        assert result.file_removed
        assert not dropin.exists()
        assert dropin.parent.is_dir()
        assert runner.commands == ["systemctl reload rsyslog"]

    def test_remove_keeps_foreign_content(self, runner: MockRunner, settings: Settings):
        dropin = Path(settings.rsyslog.dropin)
        dropin.parent.mkdir()
        dropin.write_text("# local tweak\n")
        mech = RsyslogOmprogMechanism(settings)
        installer = Installer(runner)
        installer.install(mech, OMPROG_PARAMS, options=NO_RESTART)

        result = installer.remove(mech, options=NO_RESTART)

        assert not result.file_removed
        assert dropin.read_text() == "# local tweak\n"

    def test_duplicate_keyed_on_markers(self, runner: MockRunner, settings: Settings):
        mech = RsyslogOmprogMechanism(settings)
        installer = Installer(runner)
        installer.install(mech, OMPROG_PARAMS, options=NO_RESTART)
        changed = OMPROG_PARAMS.model_copy(update={"filter_contains": "other"})
        with pytest.raises(AlreadyInstalledError):
            installer.install(mech, changed, options=NO_RESTART)

    def test_inconsistent_markers_on_remove(self, runner: MockRunner, settings: Settings):
        dropin = Path(settings.rsyslog.dropin)
        dropin.parent.mkdir()
        broken = start_marker("rsyslog-omprog") + "\nmodule(load=\"omprog\")\n"
        dropin.write_text(broken)

        with pytest.raises(InconsistentMarkersError):
            Installer(runner).remove(RsyslogOmprogMechanism(settings))
        assert dropin.read_text() == broken

    def test_missing_end_marker_is_not_installed(self, runner: MockRunner, settings: Settings):
        dropin = Path(settings.rsyslog.dropin)
        dropin.parent.mkdir()
        dropin.write_text(start_marker("rsyslog-omprog") + "\n")

        Installer(runner).install(RsyslogOmprogMechanism(settings), OMPROG_PARAMS, options=NO_RESTART)
        assert dropin.read_text().count(end_marker("rsyslog-omprog")) == 1

    def test_remove_missing_dropin(self, runner: MockRunner, settings: Settings):
        with pytest.raises(TargetMissingError):
            Installer(runner).remove(RsyslogOmprogMechanism(settings))


# ── Apache log pipe ──────────────────────────────────────────────────


class TestApacheLog:
    def test_install_remove_restores_exactly(self, runner: MockRunner, settings: Settings):
        conf = Path(settings.apache.conf)
        conf.write_text("ServerName localhost\n")
        mech = ApacheLogMechanism(settings)
        installer = Installer(runner)

        installer.install(mech, APACHE_PARAMS)
        assert conf.read_text() == (
            "ServerName localhost\n"
            "\n"
            "# BEGIN NixPersist apache-log\n"
            'CustomLog "|/usr/local/bin/payload" error\n'
            "# END NixPersist apache-log\n"
        )

        installer.remove(mech)
        assert conf.read_text() == "ServerName localhost\n"
        assert runner.commands == ["systemctl reload apache2", "systemctl reload apache2"]

    def test_without_markers(self, runner: MockRunner, settings: Settings):
        conf = Path(settings.apache.conf)
        conf.write_text("ServerName localhost\n")
        mech = ApacheLogMechanism(settings)
        opts = InstallOptions(restart=False, use_markers=False)
        installer = Installer(runner)

        installer.install(mech, APACHE_PARAMS, options=opts)
        assert conf.read_text() == 'ServerName localhost\nCustomLog "|/usr/local/bin/payload" error\n'

        with pytest.raises(AlreadyInstalledError):
            installer.install(mech, APACHE_PARAMS, options=opts)

        installer.remove(mech, options=opts, params=APACHE_PARAMS)
        assert conf.read_text() == "ServerName localhost\n"

    def test_never_deletes_shared_file(self, runner: MockRunner, settings: Settings):
        conf = Path(settings.apache.conf)
        conf.write_text("")
        mech = ApacheLogMechanism(settings)
        installer = Installer(runner)
        installer.install(mech, APACHE_PARAMS, options=NO_RESTART)

        result = installer.remove(mech, options=NO_RESTART)
        assert not result.file_removed
        assert conf.exists()
        assert conf.read_text() == ""

    def test_unterminated_marker_keeps_user_lines(self, runner: MockRunner, settings: Settings):
        conf = Path(settings.apache.conf)
        original = "A\n# BEGIN NixPersist apache-log\nKeepMe 1\nKeepMe 2\n"
        conf.write_text(original)
        mech = ApacheLogMechanism(settings)
        installer = Installer(runner)

        installer.install(mech, APACHE_PARAMS, options=NO_RESTART)
        with pytest.raises(AlreadyInstalledError):
            installer.install(mech, APACHE_PARAMS, options=NO_RESTART)

        installer.remove(mech, options=NO_RESTART)
        assert conf.read_text() == original

    def test_remove_not_installed(self, runner: MockRunner, settings: Settings):
        conf = Path(settings.apache.conf)
        conf.write_text("ServerName localhost\n")
        with pytest.raises(NotInstalledError):
            Installer(runner).remove(ApacheLogMechanism(settings))
        assert conf.read_text() == "ServerName localhost\n"

    def test_unsafe_payload_rejected(self, runner: MockRunner, settings: Settings):
        conf = Path(settings.apache.conf)
        conf.write_text("")
        with pytest.raises(ParamValidationError):
            Installer(runner).install(ApacheLogMechanism(settings), ApacheLogParams(payload='/x" y'))
        assert conf.read_text() == ""


# ── docker-compose ───────────────────────────────────────────────────


class TestCompose:
    def test_install_writes_and_starts(self, settings: Settings):
        runner = MockRunner(binaries=["docker"])
        mech = ComposeMechanism(settings)

        result = Installer(runner).install(mech, COMPOSE_PARAMS)

        path = Path(settings.compose.output_dir) / "docker-compose.yml"
        assert result.path == str(path)
        text = path.read_text()
        assert "container_name: e2etest" in text
        assert "chroot /mnt /usr/bin/touch /tmp/persisted" in text
        assert runner.commands == ["docker compose -f docker-compose.yml up -d"]
        assert runner.cwd_log == [str(path.parent)]

    def test_remove_downs_then_deletes(self, settings: Settings):
        runner = MockRunner(binaries=["docker"])
        mech = ComposeMechanism(settings)
        installer = Installer(runner)
        installer.install(mech, COMPOSE_PARAMS)
        runner.reset()

        result = installer.remove(mech)

        assert runner.commands == ["docker compose -f docker-compose.yml down"]
        assert result.file_removed
        assert not Path(settings.compose.output_dir).exists()

    def test_down_failure_keeps_file(self, settings: Settings):
        runner = MockRunner(binaries=["docker"])
        mech = ComposeMechanism(settings)
        installer = Installer(runner)
        installer.install(mech, COMPOSE_PARAMS)
        runner.set_failure(["docker", "compose"], output="daemon unavailable")

        with pytest.raises(ServiceReloadError, match="daemon unavailable"):
            installer.remove(mech)
        assert mech.default_target().exists()

    def test_directory_with_other_files_kept(self, settings: Settings):
        runner = MockRunner(binaries=["docker"])
        mech = ComposeMechanism(settings)
        installer = Installer(runner)
        installer.install(mech, COMPOSE_PARAMS)
        extra = Path(settings.compose.output_dir) / ".env"
        extra.write_text("X=1\n")

        installer.remove(mech)
        assert extra.exists()
        assert not mech.default_target().exists()

    def test_target_path(self, settings: Settings, tmp_path: Path):
        mech = ComposeMechanism(settings)
        assert mech.target_path(tmp_path / "x") == tmp_path / "x" / "docker-compose.yml"

    def test_no_restart_skips_compose(self, settings: Settings):
        runner = MockRunner(binaries=["docker"])
        mech = ComposeMechanism(settings)
        installer = Installer(runner)
        installer.install(mech, COMPOSE_PARAMS, options=NO_RESTART)
        installer.remove(mech, options=NO_RESTART)
        assert runner.call_count == 0
