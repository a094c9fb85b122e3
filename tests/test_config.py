"""
Tests for settings loading and logging setup.
"""

import logging
import textwrap
from pathlib import Path

import pytest

from nixpersist.core.config.loader import (
    CONFIG_ENV,
    Settings,
    find_config_file,
    load_settings,
)
from nixpersist.core.errors import ConfigError
from nixpersist.core.observability.logging_config import resolve_level, setup_logging


class TestFindConfigFile:
    def test_found_in_current_dir(self, tmp_path: Path):
        (tmp_path / "nixpersist.yml").write_text("{}\n")
        assert find_config_file(tmp_path) == (tmp_path / "nixpersist.yml").resolve()

    def test_found_in_parent(self, tmp_path: Path):
        (tmp_path / "nixpersist.yml").write_text("{}\n")
        child = tmp_path / "a" / "b"
        child.mkdir(parents=True)
        assert find_config_file(child) == (tmp_path / "nixpersist.yml").resolve()

    def test_not_found(self, tmp_path: Path, monkeypatch):
        monkeypatch.chdir(tmp_path)
        result = find_config_file(tmp_path)
        assert result is None or result.parent != tmp_path


class TestLoadSettings:
    def test_defaults(self):
        settings = Settings()
        assert settings.rsyslog.conf == "/etc/rsyslog.conf"
        assert settings.rsyslog.dropin == "/etc/rsyslog.d/99-nixpersist.conf"
        assert settings.apache.conf == "/etc/apache2/apache2.conf"
        assert settings.apache.service == "apache2"
        assert settings.compose.output_dir == "/opt/compose-nixpersist"
        assert settings.rsyslog.apparmor_profile == "/etc/apparmor.d/usr.sbin.rsyslogd"

    def test_partial_override(self, tmp_path: Path):
        path = tmp_path / "nixpersist.yml"
        path.write_text(textwrap.dedent("""\
            apache:
              conf: /srv/httpd/apache2.conf
        """))
        settings = load_settings(path)
        assert settings.apache.conf == "/srv/httpd/apache2.conf"
        assert settings.apache.service == "apache2"
        assert settings.rsyslog.conf == "/etc/rsyslog.conf"

    def test_empty_file(self, tmp_path: Path):
        path = tmp_path / "nixpersist.yml"
        path.write_text("")
        assert load_settings(path) == Settings()

    def test_env_variable(self, tmp_path: Path, monkeypatch):
        path = tmp_path / "custom.yml"
        path.write_text("rsyslog:\n  service: syslog-ng\n")
        monkeypatch.setenv(CONFIG_ENV, str(path))
        assert load_settings().rsyslog.service == "syslog-ng"

    def test_missing_explicit_file(self, tmp_path: Path):
        with pytest.raises(ConfigError, match="not found"):
            load_settings(tmp_path / "nope.yml")

    def test_invalid_yaml(self, tmp_path: Path):
        path = tmp_path / "nixpersist.yml"
        path.write_text("rsyslog: [unclosed\n")
        with pytest.raises(ConfigError, match="Invalid YAML"):
            load_settings(path)

    def test_not_a_mapping(self, tmp_path: Path):
        path = tmp_path / "nixpersist.yml"
        path.write_text("- a\n- b\n")
        with pytest.raises(ConfigError, match="mapping"):
            load_settings(path)

    def test_schema_error(self, tmp_path: Path):
        path = tmp_path / "nixpersist.yml"
        path.write_text("apache:\n  conf: [1, 2]\n")
        with pytest.raises(ConfigError, match="Invalid configuration"):
            load_settings(path)


class TestLogging:
    def test_flag_precedence(self, monkeypatch):
        monkeypatch.setenv("NIXPERSIST_LOG_LEVEL", "ERROR")
        assert resolve_level(debug=True, verbose=True) == "DEBUG"
        assert resolve_level(verbose=True, quiet=True) == "INFO"
        assert resolve_level(quiet=True) == "ERROR"
        assert resolve_level() == "ERROR"

    def test_default_level(self, monkeypatch):
        monkeypatch.delenv("NIXPERSIST_LOG_LEVEL", raising=False)
        assert resolve_level() == "WARNING"

    def test_setup_levels(self):
        setup_logging(level="INFO")
        assert logging.getLogger().level == logging.INFO
        setup_logging(level="bogus")
        assert logging.getLogger().level == logging.WARNING

    def test_file_handler(self, tmp_path: Path):
        log_file = tmp_path / "nixpersist.log"
        setup_logging(level="WARNING", log_file=str(log_file), log_file_level="DEBUG")
        root = logging.getLogger()
        assert root.level == logging.DEBUG
        logging.getLogger("nixpersist.test").debug("written to file only")
        for handler in root.handlers:
            handler.flush()
        assert "written to file only" in log_file.read_text()
        setup_logging(level="WARNING")
