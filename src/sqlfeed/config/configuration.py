"""Configuration module for sqlfeed.

Loads settings from environment-specific config files:
- SQLFEED_CONFIG=<path> → that file
- APP_ENV=dev  → config_dev.yaml (local SQLite database)
- APP_ENV=test → config_test.yaml
- Default      → config.yaml

Secrets (database password, search key) are loaded from the .env file.
Fails fast with clear error messages if required configuration is missing.
"""

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional

import yaml
from dotenv import load_dotenv

logger = logging.getLogger(__name__)

LISTER_MODE = "url_and_metadata_lister"


class ConfigurationError(Exception):
    """Raised when required configuration is missing or invalid."""
    pass


def _get_project_root() -> Path:
    """Get the project root directory (where config.yaml lives)."""
    # Navigate from src/sqlfeed/config/ up to project root
    return Path(__file__).parent.parent.parent.parent


def _get_config_filename() -> str:
    """Get config filename based on APP_ENV environment variable.

    Returns:
        Config filename:
        - APP_ENV=dev  → config_dev.yaml
        - APP_ENV=test → config_test.yaml
        - Default      → config.yaml
    """
    app_env = os.environ.get("APP_ENV", "").lower()

    if app_env == "dev":
        return "config_dev.yaml"
    elif app_env == "test":
        return "config_test.yaml"
    else:
        return "config.yaml"


def _resolve_config_path(config_path: Optional[str] = None) -> Path:
    """Pick the config file: explicit argument, SQLFEED_CONFIG, then APP_ENV."""
    if config_path:
        return Path(config_path)
    env_path = os.environ.get("SQLFEED_CONFIG")
    if env_path:
        return Path(env_path)
    return _get_project_root() / _get_config_filename()


def _load_yaml_config(config_path: Optional[str] = None) -> dict:
    """Load configuration from the resolved config file."""
    path = _resolve_config_path(config_path)

    if not path.exists():
        raise ConfigurationError(
            f"Configuration file not found: {path}. "
            f"Set SQLFEED_CONFIG or APP_ENV, or create {_get_config_filename()}."
        )

    with open(path, "r") as f:
        loaded = yaml.safe_load(f)

    if loaded is None:
        return {}
    if not isinstance(loaded, dict):
        raise ConfigurationError(f"Configuration file {path} must contain a mapping")
    return loaded


def _get_required_env(key: str) -> str:
    """Get required environment variable or raise ConfigurationError."""
    value = os.environ.get(key)
    if not value:
        raise ConfigurationError(
            f"Required environment variable '{key}' is not set. "
            f"Please add it to your .env file."
        )
    return value


def _get_optional_env(key: str, default: Optional[str] = None) -> Optional[str]:
    """Get optional environment variable with default."""
    return os.environ.get(key, default)


def _get_required(section: dict, section_name: str, key: str) -> Any:
    """Get a required, non-blank value from a YAML section."""
    value = section.get(key)
    if value is None or (isinstance(value, str) and not value.strip()):
        raise ConfigurationError(
            f"Required setting '{section_name}.{key}' is missing from the config file."
        )
    return value


def _get_bool(section: dict, section_name: str, key: str, default: bool) -> bool:
    """Read a boolean that may be written as YAML bool or as a string."""
    value = section.get(key, default)
    if isinstance(value, bool):
        return value
    if isinstance(value, str) and value.strip().lower() in ("true", "false"):
        return value.strip().lower() == "true"
    raise ConfigurationError(f"Setting '{section_name}.{key}' must be true or false, got {value!r}")


def _get_optional_list(section: dict, section_name: str, key: str) -> Optional[tuple]:
    """Read a list of column names given as a YAML list or a comma-separated string."""
    value = section.get(key)
    if value is None or value == "":
        return None
    if isinstance(value, str):
        items = [item.strip() for item in value.split(",")]
    elif isinstance(value, list):
        items = [str(item).strip() for item in value]
    else:
        raise ConfigurationError(f"Setting '{section_name}.{key}' must be a list of column names")
    items = [item for item in items if item]
    return tuple(items) if items else None


@dataclass(frozen=True)
class DatabaseConfig:
    """Source database configuration."""
    url: str
    user: Optional[str]
    password: Optional[str]
    disable_streaming: bool


@dataclass(frozen=True)
class CrawlConfig:
    """Crawl (document listing) configuration."""
    batch_size: int
    unique_key: str
    every_doc_id_sql: str
    single_doc_content_sql: Optional[str]
    single_doc_content_sql_parameters: Optional[tuple]
    update_sql: Optional[str]
    update_timestamp_timezone: str
    metadata_columns: str
    include_all_columns_as_metadata: bool
    mode_of_operation: str
    doc_id_is_url: bool

    @property
    def encode_doc_id(self) -> bool:
        """Doc ids are percent-encoded unless the key column already holds a URL."""
        return not self.doc_id_is_url

    @property
    def lists_metadata(self) -> bool:
        """Whether crawls attach metadata to every listed record."""
        return self.mode_of_operation == LISTER_MODE


@dataclass(frozen=True)
class AclConfig:
    """Access control configuration. `sql` of None means documents are public."""
    sql: Optional[str]
    sql_parameters: Optional[tuple]
    principal_delimiter: str
    namespace: str


@dataclass(frozen=True)
class AzureAISearchConfig:
    """Azure AI Search configuration."""
    api_key: str
    endpoint: str
    index_name: str


@dataclass(frozen=True)
class LoggingConfig:
    """Logging configuration."""
    level: str
    format: str


@dataclass(frozen=True)
class AppConfig:
    """Main application configuration container."""
    database: DatabaseConfig
    crawl: CrawlConfig
    acl: AclConfig
    logging: LoggingConfig
    azure_ai_search: Optional[AzureAISearchConfig]  # Only required by the Azure feed pusher
    renderers: Dict[str, Dict[str, Any]] = field(default_factory=dict)


def _build_crawl_config(crawl_section: dict) -> CrawlConfig:
    batch_size = crawl_section.get("batch_size", 5000)
    try:
        batch_size = int(batch_size)
    except (TypeError, ValueError):
        raise ConfigurationError(f"Setting 'crawl.batch_size' must be an integer, got {batch_size!r}")
    if batch_size <= 0:
        raise ConfigurationError("Setting 'crawl.batch_size' needs to be positive")

    mode = crawl_section.get("mode_of_operation")
    if mode is None or not str(mode).strip():
        raise ConfigurationError("Setting 'crawl.mode_of_operation' can not be empty")
    mode = str(mode).strip()

    doc_id_is_url = _get_bool(crawl_section, "crawl", "doc_id_is_url", False)
    if mode == LISTER_MODE and not doc_id_is_url:
        raise ConfigurationError(
            f"crawl.mode_of_operation of \"{mode}\" requires crawl.doc_id_is_url to be true"
        )

    # Content retrieval is disabled in lister-only mode, so the query is optional there
    if doc_id_is_url:
        content_sql = crawl_section.get("single_doc_content_sql") or None
    else:
        content_sql = _get_required(crawl_section, "crawl", "single_doc_content_sql")

    return CrawlConfig(
        batch_size=batch_size,
        unique_key=str(_get_required(crawl_section, "crawl", "unique_key")),
        every_doc_id_sql=str(_get_required(crawl_section, "crawl", "every_doc_id_sql")),
        single_doc_content_sql=content_sql,
        single_doc_content_sql_parameters=_get_optional_list(
            crawl_section, "crawl", "single_doc_content_sql_parameters"
        ),
        update_sql=(crawl_section.get("update_sql") or "").strip() or None,
        update_timestamp_timezone=str(crawl_section.get("update_timestamp_timezone") or "").strip(),
        metadata_columns=str(crawl_section.get("metadata_columns") or ""),
        include_all_columns_as_metadata=_get_bool(
            crawl_section, "crawl", "include_all_columns_as_metadata", False
        ),
        mode_of_operation=mode,
        doc_id_is_url=doc_id_is_url,
    )


def load_config(config_path: Optional[str] = None) -> AppConfig:
    """
    Load and validate all application configuration.

    Loads the YAML config file for non-sensitive settings and .env for secrets.
    Fails fast if required configuration is missing.

    Args:
        config_path: Optional explicit path to the YAML file.

    Returns:
        AppConfig: Validated application configuration.

    Raises:
        ConfigurationError: If required configuration is missing or invalid.
    """
    # Load environment variables from .env file
    load_dotenv()

    # Load YAML configuration
    yaml_config = _load_yaml_config(config_path)

    # Build Database config
    db_section = yaml_config.get("database") or {}

    database_config = DatabaseConfig(
        url=str(_get_required(db_section, "database", "url")),
        user=db_section.get("user") or None,
        password=_get_optional_env("DB_PASSWORD") or None,
        disable_streaming=_get_bool(db_section, "database", "disable_streaming", False),
    )

    # Build Crawl config
    crawl_config = _build_crawl_config(yaml_config.get("crawl") or {})

    # Build ACL config. The delimiter is taken as is: "" means no splitting.
    acl_section = yaml_config.get("acl") or {}
    delimiter = acl_section.get("principal_delimiter", ",")

    acl_config = AclConfig(
        sql=(acl_section.get("sql") or "").strip() or None,
        sql_parameters=_get_optional_list(acl_section, "acl", "sql_parameters"),
        principal_delimiter="" if delimiter is None else str(delimiter),
        namespace=str(acl_section.get("namespace") or "Default"),
    )

    # Build Azure AI Search config (only if the section is present)
    azure_ai_search_config: Optional[AzureAISearchConfig] = None
    ai_search_section = yaml_config.get("azure_ai_search")
    if ai_search_section:
        azure_ai_search_config = AzureAISearchConfig(
            api_key=_get_required_env("AI_SEARCH_KEY"),
            endpoint=ai_search_section.get("endpoint") or _get_required_env("AI_SEARCH_ENDPOINT"),
            index_name=ai_search_section.get("index_name", "sqlfeed-documents"),
        )

    # Build Logging config
    logging_section = yaml_config.get("logging") or {}

    logging_config = LoggingConfig(
        level=str(logging_section.get("level", "INFO")).upper(),
        format=logging_section.get(
            "format", "%(asctime)s %(levelname)s %(name)s: %(message)s"
        ),
    )

    renderers = yaml_config.get("renderers") or {}
    if not isinstance(renderers, dict):
        raise ConfigurationError("Section 'renderers' must map renderer names to options")

    return AppConfig(
        database=database_config,
        crawl=crawl_config,
        acl=acl_config,
        logging=logging_config,
        azure_ai_search=azure_ai_search_config,
        renderers={name: dict(options or {}) for name, options in renderers.items()},
    )


def setup_logging(logging_config: LoggingConfig) -> None:
    """Configure the root logger from LoggingConfig."""
    level = logging.getLevelName(logging_config.level)
    if not isinstance(level, int):
        raise ConfigurationError(f"Unknown logging level: {logging_config.level}")
    logging.basicConfig(level=level, format=logging_config.format)


def log_config(config: AppConfig) -> None:
    """Log the effective (non-secret) settings at startup."""
    logger.info(f"environment: {get_environment()}")
    logger.info(f"db: {config.database.url}")
    logger.info(f"db user: {config.database.user}")
    logger.info(f"disable streaming: {config.database.disable_streaming}")
    logger.info(f"batch size: {config.crawl.batch_size}")
    logger.info(f"unique key: {config.crawl.unique_key}")
    logger.info(f"every doc id sql: {config.crawl.every_doc_id_sql}")
    logger.info(f"single doc content sql: {config.crawl.single_doc_content_sql}")
    logger.info(f"update sql: {config.crawl.update_sql}")
    logger.info(f"metadata columns: {config.crawl.metadata_columns!r}")
    logger.info(f"mode of operation: {config.crawl.mode_of_operation}")
    logger.info(f"encode doc id: {config.crawl.encode_doc_id}")
    logger.info(f"acl sql: {config.acl.sql}")
    logger.info(f"acl principal delimiter: '{config.acl.principal_delimiter}'")
    logger.info(f"namespace: {config.acl.namespace}")


# Module-level singleton for convenience
_config: Optional[AppConfig] = None


def get_config() -> AppConfig:
    """
    Get the application configuration singleton.

    Lazy-loads configuration on first access.
    Config file is selected based on SQLFEED_CONFIG or APP_ENV.

    Returns:
        AppConfig: Application configuration.

    Raises:
        ConfigurationError: If required configuration is missing.
    """
    global _config
    if _config is None:
        _config = load_config()
    return _config


def get_environment() -> str:
    """Get current environment name.

    Returns:
        'dev', 'test', or 'default' based on APP_ENV.
    """
    app_env = os.environ.get("APP_ENV", "").lower()
    return app_env if app_env in ("dev", "test") else "default"


def reset_config() -> None:
    """Reset the config singleton. Useful for testing."""
    global _config
    _config = None
