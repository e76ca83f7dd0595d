"""Configuration loading for fdwctl."""

import json
import logging
import os
from pathlib import Path

import yaml
from pydantic import ValidationError

from fdwctl.config.models import AppConfig
from fdwctl.errors import ConfigError

logger = logging.getLogger(__name__)

APP_NAME = "fdwctl"
CONFIG_FILE_NAME = "config.yaml"


def user_config_file() -> Path:
    """Default configuration path.

    ``$XDG_CONFIG_HOME/fdwctl/config.yaml``, falling back to
    ``~/.config/fdwctl/config.yaml``.
    """
    base = os.environ.get("XDG_CONFIG_HOME")
    config_home = Path(base) if base else Path.home() / ".config"
    return config_home / APP_NAME / CONFIG_FILE_NAME


def load_config(config_path: Path | str | None = None) -> AppConfig:
    """Load the configuration file.

    Args:
        config_path: Path to the file (default: ``user_config_file()``).
            ``.json`` files are read as JSON, anything else as YAML.

    Returns:
        AppConfig.  A missing file yields an empty configuration.

    Raises:
        ConfigError: If the file cannot be read, parsed or validated.
    """
    path = Path(config_path) if config_path else user_config_file()

    if not path.exists():
        logger.debug("config file %s not found; using empty configuration", path)
        return AppConfig()

    logger.debug("reading config file %s", path)
    try:
        text = path.read_text()
    except OSError as e:
        raise ConfigError(f"error reading config file {path}: {e}", operation="load_config", name=str(path)) from e

    try:
        if path.suffix.lower() == ".json":
            data = json.loads(text) if text.strip() else {}
        else:
            data = yaml.safe_load(text) or {}
    except (json.JSONDecodeError, yaml.YAMLError) as e:
        raise ConfigError(f"error parsing config file {path}: {e}", operation="load_config", name=str(path)) from e

    if not isinstance(data, dict):
        raise ConfigError(
            f"config file {path} must contain a mapping, got {type(data).__name__}",
            operation="load_config",
            name=str(path),
        )

    try:
        return AppConfig.model_validate(data)
    except ValidationError as e:
        raise ConfigError(f"invalid config file {path}: {e}", operation="load_config", name=str(path)) from e
