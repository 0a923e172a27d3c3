"""
Configuration management for Kestrel.

Handles loading and validation of configuration files.
"""

from kestrel.config.settings import (
    ClientConfig,
    CredentialsConfig,
    LoggingConfig,
    RetryConfig,
    build_config,
    config_from_env,
    get_default_config,
    get_default_config_path,
    load_config,
)

__all__ = [
    "ClientConfig",
    "CredentialsConfig",
    "LoggingConfig",
    "RetryConfig",
    "build_config",
    "config_from_env",
    "get_default_config",
    "get_default_config_path",
    "load_config",
]
