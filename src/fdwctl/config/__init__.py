"""Configuration loading.

Usage:
    from fdwctl.config import load_config

    config = load_config()
    conninfo = await config.database_connection_string()
"""

from fdwctl.config.loader import load_config, user_config_file
from fdwctl.config.models import AppConfig

__all__ = [
    "AppConfig",
    "load_config",
    "user_config_file",
]
