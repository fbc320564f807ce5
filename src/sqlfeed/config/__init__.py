"""Configuration module."""

from sqlfeed.config.configuration import (
    LISTER_MODE,
    AclConfig,
    AppConfig,
    AzureAISearchConfig,
    ConfigurationError,
    CrawlConfig,
    DatabaseConfig,
    LoggingConfig,
    get_config,
    load_config,
    log_config,
    reset_config,
    setup_logging,
)

__all__ = [
    "LISTER_MODE",
    "AclConfig",
    "AppConfig",
    "AzureAISearchConfig",
    "ConfigurationError",
    "CrawlConfig",
    "DatabaseConfig",
    "LoggingConfig",
    "get_config",
    "load_config",
    "log_config",
    "reset_config",
    "setup_logging",
]
