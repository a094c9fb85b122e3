"""
Shared test fixtures and configuration.
"""

import textwrap
from pathlib import Path

import pytest

from nixpersist.adapters.mock import MockRunner
from nixpersist.core.config.loader import Settings


@pytest.fixture
def runner() -> MockRunner:
    """Host with systemctl and service on PATH; every command succeeds."""
    return MockRunner(binaries=["systemctl", "service"])


@pytest.fixture
def settings(tmp_path: Path) -> Settings:
    """Settings pointing every target into tmp_path."""
    return Settings.model_validate({
        "rsyslog": {
            "conf": str(tmp_path / "rsyslog.conf"),
            "dropin": str(tmp_path / "rsyslog.d" / "99-nixpersist.conf"),
            "apparmor_profile": str(tmp_path / "apparmor.d" / "usr.sbin.rsyslogd"),
            "apparmor_disable_dir": str(tmp_path / "apparmor.d" / "disable"),
        },
        "apache": {"conf": str(tmp_path / "apache2.conf")},
        "compose": {"output_dir": str(tmp_path / "compose-nixpersist")},
    })


@pytest.fixture
def config_file(tmp_path: Path) -> Path:
    """nixpersist.yml equivalent to the ``settings`` fixture."""
    path = tmp_path / "nixpersist.yml"
    path.write_text(textwrap.dedent(f"""\
        rsyslog:
          conf: {tmp_path / "rsyslog.conf"}
          dropin: {tmp_path / "rsyslog.d" / "99-nixpersist.conf"}
          apparmor_profile: {tmp_path / "apparmor.d" / "usr.sbin.rsyslogd"}
          apparmor_disable_dir: {tmp_path / "apparmor.d" / "disable"}
        apache:
          conf: {tmp_path / "apache2.conf"}
        compose:
          output_dir: {tmp_path / "compose-nixpersist"}
    """))
    return path
