"""Application configuration helpers."""

from __future__ import annotations

from .core import CoreConfig, get_core_config
from .env import float_env_var, optional_env_var, require_env_var, require_env_vars
from .errors import ConfigurationError, MissingConfigurationError
from .http_resilience import RateLimit, ResilienceConfig, RetryPolicy
from .logging import configure_logging
from .storage import (
    DatabaseConfig,
    StorageConfig,
    get_database_config,
    get_database_uri,
    get_storage_config,
)
from .warp import WarpConfig, get_warp_config

__all__ = [
    "ConfigurationError",
    "CoreConfig",
    "DatabaseConfig",
    "MissingConfigurationError",
    "RateLimit",
    "ResilienceConfig",
    "RetryPolicy",
    "StorageConfig",
    "WarpConfig",
    "configure_logging",
    "float_env_var",
    "get_core_config",
    "get_database_config",
    "get_database_uri",
    "get_storage_config",
    "get_warp_config",
    "optional_env_var",
    "require_env_var",
    "require_env_vars",
]
