"""Load and validate config.yaml.

Environment overrides:
    CONFIG_PATH     config file location (when no path is passed)
    GITHUB_TOKEN    access token when ``githubToken`` is unset
    LOG_FILE_PATH   log file location, also turns file logging on
    LOG_LEVEL       debug | info | warn | error
    LOG_TO_FILE     "true" or "1" to log to the file
"""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Optional, Union

import yaml
from pydantic import ValidationError

from . import CONFIG_PATH
from .errors import ConfigError
from .models import LoggingConfig, PilotConfig
from .workspace import PID_FILE, STAGING_DIR

logger = logging.getLogger("configpilot.config")


def default_config_path() -> Path:
    """Config file location from CONFIG_PATH, else ./config.yaml."""
    return Path(os.environ.get("CONFIG_PATH") or CONFIG_PATH).expanduser()


def apply_logging_env(config: LoggingConfig) -> LoggingConfig:
    """Overlay LOG_* environment variables on a logging config.

    Args:
        config: Logging settings from the config file.

    Returns:
        A new LoggingConfig with environment values applied.
    """
    updates: dict = {}

    log_file_path = os.environ.get("LOG_FILE_PATH")
    if log_file_path:
        updates["log_file_path"] = Path(log_file_path)
        updates["log_to_file"] = True

    log_level = os.environ.get("LOG_LEVEL")
    if log_level:
        updates["log_level"] = log_level

    log_to_file = os.environ.get("LOG_TO_FILE")
    if log_to_file:
        updates["log_to_file"] = log_to_file in ("true", "1")

    return config.model_copy(update=updates)


def load_config(path: Optional[Union[str, Path]] = None) -> PilotConfig:
    """Read, validate and return the configuration.

    Args:
        path: Config file. Defaults to ``default_config_path()``.

    Returns:
        PilotConfig with environment overrides applied.

    Raises:
        ConfigError: If the file is unreadable, not valid YAML, fails
            validation, or lacks owner, repo or an access token.
    """
    config_file = Path(path).expanduser() if path else default_config_path()

    try:
        raw = config_file.read_text(encoding="utf-8")
    except OSError as exc:
        raise ConfigError(f"failed to read config file {config_file}: {exc}") from exc

    try:
        data = yaml.safe_load(raw) or {}
    except yaml.YAMLError as exc:
        raise ConfigError(f"failed to parse config file {config_file}: {exc}") from exc

    if not isinstance(data, dict):
        raise ConfigError(f"config file {config_file} must contain a mapping")

    try:
        config = PilotConfig.model_validate(data)
    except ValidationError as exc:
        raise ConfigError(f"invalid config file {config_file}: {exc}") from exc

    if not config.github_token:
        env_token = os.environ.get("GITHUB_TOKEN", "")
        if env_token:
            config = config.model_copy(update={"github_token": env_token})

    validate_config(config)
    config = config.model_copy(update={"logging": apply_logging_env(config.logging)})

    logger.debug("Loaded config from %s (%s/%s)", config_file, config.owner, config.repo)
    return config


def validate_config(config: PilotConfig) -> None:
    """Check the fields the monitor cannot run without.

    Raises:
        ConfigError: If owner, repo or the access token is missing, or
            the repo name would clash with the data directory layout, or
            monitorPath climbs out of the repository.
    """
    if not config.owner or not config.repo:
        raise ConfigError("owner and repo must be specified in config.yaml")
    if "/" in config.repo or config.repo in (".", "..", STAGING_DIR, PID_FILE):
        raise ConfigError(f"repo name {config.repo!r} cannot be used as a checkout directory")
    if ".." in config.monitor_path.split("/"):
        raise ConfigError(f"monitorPath {config.monitor_path!r} must stay inside the repository")
    if not config.github_token:
        raise ConfigError(
            "githubToken must be specified in config.yaml "
            "(add 'githubToken: <personal access token>' or set GITHUB_TOKEN)"
        )
