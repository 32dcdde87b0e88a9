"""Application configuration helpers."""

from __future__ import annotations

from .errors import ConfigurationError, MissingConfigurationError
from .file import (
    PRIVKEY_PLACEHOLDER,
    ConfigFile,
    LegacyContactList,
    LookupSettings,
    default_config,
    load_config_file,
    write_config_file,
)
from .http_resilience import CacheConfig, RateLimit, ResilienceConfig, RetryPolicy
from .logging import configure_logging
from .nip05 import Nip05Config, get_nip05_config
from .relays import DEFAULT_RELAYS, RelayConfig
from .storage import StorageConfig, get_storage_config

__all__ = [
    "DEFAULT_RELAYS",
    "PRIVKEY_PLACEHOLDER",
    "CacheConfig",
    "ConfigFile",
    "ConfigurationError",
    "LegacyContactList",
    "LookupSettings",
    "MissingConfigurationError",
    "Nip05Config",
    "RateLimit",
    "RelayConfig",
    "ResilienceConfig",
    "RetryPolicy",
    "StorageConfig",
    "configure_logging",
    "default_config",
    "get_nip05_config",
    "get_storage_config",
    "load_config_file",
    "write_config_file",
]
