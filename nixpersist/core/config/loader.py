"""
Configuration loader — reads nixpersist.yml into Settings.

Settings hold the host-specific locations the mechanisms write to
(rsyslog.conf, the rsyslog.d drop-in, apache2.conf, the compose
directory) and the service names they reload. Every field has a
default matching a stock Debian/Ubuntu host, so the file is optional.

Lookup order:
    --config path  >  $NIXPERSIST_CONFIG  >  nixpersist.yml (walking up from cwd)
"""

from __future__ import annotations

import logging
import os
from pathlib import Path

import yaml
from pydantic import BaseModel, Field, ValidationError

from nixpersist.core.errors import ConfigError
from nixpersist.core.services.apparmor import DEFAULT_DISABLE_DIR, DEFAULT_PROFILE

logger = logging.getLogger(__name__)

# Default config filename
CONFIG_FILE = "nixpersist.yml"
CONFIG_ENV = "NIXPERSIST_CONFIG"


class RsyslogSettings(BaseModel):
    conf: str = "/etc/rsyslog.conf"
    dropin: str = "/etc/rsyslog.d/99-nixpersist.conf"
    service: str = "rsyslog"
    apparmor_profile: str = DEFAULT_PROFILE
    apparmor_disable_dir: str = DEFAULT_DISABLE_DIR


class ApacheSettings(BaseModel):
    conf: str = "/etc/apache2/apache2.conf"
    service: str = "apache2"


class ComposeSettings(BaseModel):
    output_dir: str = "/opt/compose-nixpersist"
    file_name: str = "docker-compose.yml"


class Settings(BaseModel):
    """Root settings model — one section per service family."""

    rsyslog: RsyslogSettings = Field(default_factory=RsyslogSettings)
    apache: ApacheSettings = Field(default_factory=ApacheSettings)
    compose: ComposeSettings = Field(default_factory=ComposeSettings)


def find_config_file(start_dir: Path | None = None) -> Path | None:
    """Search for nixpersist.yml starting from the given directory, walking up.

    Args:
        start_dir: Directory to start searching from (default: cwd).

    Returns:
        Path to nixpersist.yml, or None if not found.
    """
    current = (start_dir or Path.cwd()).resolve()

    for _ in range(20):  # safety limit
        candidate = current / CONFIG_FILE
        if candidate.is_file():
            return candidate
        parent = current.parent
        if parent == current:
            break  # filesystem root
        current = parent

    return None


def resolve_config_path(path: Path | None = None) -> Path | None:
    """Apply the lookup order; None means "use defaults"."""
    if path is not None:
        return path
    env = os.environ.get(CONFIG_ENV)
    if env:
        return Path(env)
    return find_config_file()


def load_settings(path: Path | None = None) -> Settings:
    """Load and validate settings.

    Args:
        path: Explicit path to nixpersist.yml. If None, the environment
            variable and then an upward search are tried.

    Returns:
        Validated Settings (defaults when no file is found).

    Raises:
        ConfigError: An explicitly named file is missing, or any file is invalid.
    """
    path = resolve_config_path(path)
    if path is None:
        logger.debug("No %s found, using defaults", CONFIG_FILE)
        return Settings()

    if not path.is_file():
        raise ConfigError(f"Config file not found: {path}")

    logger.debug("Loading settings from %s", path)

    try:
        raw = path.read_text(encoding="utf-8")
    except OSError as e:
        raise ConfigError(f"Cannot read {path}: {e}") from e

    try:
        data = yaml.safe_load(raw)
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML in {path}: {e}") from e

    if data is None:
        return Settings()
    if not isinstance(data, dict):
        raise ConfigError(f"Expected a YAML mapping in {path}, got {type(data).__name__}")

    try:
        settings = Settings.model_validate(data)
    except ValidationError as e:
        raise ConfigError(f"Invalid configuration in {path}: {e}") from e

    logger.info("Loaded settings from %s", path)
    return settings
