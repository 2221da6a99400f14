"""Utility functions for otastore."""

from otastore.core.utils.clock import now_ms
from otastore.core.utils.config import (
    ConfigError,
    load_and_resolve_config,
    load_config_from_module,
    resolve_config_inheritance,
)
from otastore.core.utils.env import load_env_file_if_present
from otastore.core.utils.setup import OneTimeSetup

__all__ = [
    "load_env_file_if_present",
    "load_config_from_module",
    "load_and_resolve_config",
    "resolve_config_inheritance",
    "ConfigError",
    "OneTimeSetup",
    "now_ms",
]
