"""Application configuration helpers."""

from __future__ import annotations

from .env import float_env_var, int_env_var, optional_env_var, require_env_vars
from .errors import ConfigurationError, MissingConfigurationError
from .http_resilience import RateLimit, ResilienceConfig, RetryPolicy
from .identity import (
    IdentityProviderConfig,
    IdentitySettings,
    get_identity_provider_config,
    get_identity_settings,
)
from .logging import configure_logging
from .reconciliation import AttributionSettings, get_attribution_settings
from .storage import DatabaseConfig, StorageConfig, get_database_config, get_storage_config

__all__ = [
    "AttributionSettings",
    "ConfigurationError",
    "DatabaseConfig",
    "IdentityProviderConfig",
    "IdentitySettings",
    "MissingConfigurationError",
    "RateLimit",
    "ResilienceConfig",
    "RetryPolicy",
    "StorageConfig",
    "configure_logging",
    "float_env_var",
    "get_attribution_settings",
    "get_database_config",
    "get_identity_provider_config",
    "get_identity_settings",
    "get_storage_config",
    "int_env_var",
    "optional_env_var",
    "require_env_vars",
]
