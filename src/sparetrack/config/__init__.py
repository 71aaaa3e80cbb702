"""Application configuration helpers."""

from __future__ import annotations

from .env import optional_env_int
from .errors import ConfigurationError
from .logging import configure_logging, resolve_log_level
from .reconciliation import ReconciliationConfig, get_reconciliation_config
from .storage import (
    DatabaseConfig,
    default_data_dir,
    get_data_dir,
    get_database_config,
    get_database_uri,
)

__all__ = [
    "ConfigurationError",
    "DatabaseConfig",
    "ReconciliationConfig",
    "configure_logging",
    "default_data_dir",
    "get_data_dir",
    "get_database_config",
    "get_database_uri",
    "get_reconciliation_config",
    "optional_env_int",
    "resolve_log_level",
]
