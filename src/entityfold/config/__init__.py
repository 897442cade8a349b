"""Application configuration helpers."""

from __future__ import annotations

from entityfold.common.logging import configure_logging

from .env import env_float, env_int, optional_env_var, require_env_vars
from .errors import ConfigurationError, MissingConfigurationError
from .http_resilience import RateLimit, ResilienceConfig, RetryPolicy
from .merge import MergeConfig, get_merge_config
from .oracle import OracleConfig, get_oracle_config
from .storage import DatabaseConfig, StorageConfig, get_database_config, get_storage_config

__all__ = [
    "ConfigurationError",
    "DatabaseConfig",
    "MergeConfig",
    "MissingConfigurationError",
    "OracleConfig",
    "RateLimit",
    "ResilienceConfig",
    "RetryPolicy",
    "StorageConfig",
    "configure_logging",
    "env_float",
    "env_int",
    "get_database_config",
    "get_merge_config",
    "get_oracle_config",
    "get_storage_config",
    "optional_env_var",
    "require_env_vars",
]
