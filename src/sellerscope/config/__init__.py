"""Application configuration helpers."""

from __future__ import annotations

from .directory import DirectoryConfig, get_directory_config
from .env import int_env_var, mapping_env_var, require_env_vars
from .errors import ConfigurationError, MissingConfigurationError
from .http_resilience import RateLimit, ResilienceConfig, RetryPolicy
from .logging import configure_logging
from .reconciliation import SYSTEM_ACTOR, ReconciliationConfig, get_reconciliation_config
from .storage import (
    ORIGIN_STORE,
    DatabaseConfig,
    StorageConfig,
    get_database_config,
    get_database_uri,
    get_storage_config,
)

__all__ = [
    "ORIGIN_STORE",
    "SYSTEM_ACTOR",
    "ConfigurationError",
    "DatabaseConfig",
    "DirectoryConfig",
    "MissingConfigurationError",
    "RateLimit",
    "ReconciliationConfig",
    "ResilienceConfig",
    "RetryPolicy",
    "StorageConfig",
    "configure_logging",
    "get_database_config",
    "get_database_uri",
    "get_directory_config",
    "get_reconciliation_config",
    "get_storage_config",
    "int_env_var",
    "mapping_env_var",
    "require_env_vars",
]
