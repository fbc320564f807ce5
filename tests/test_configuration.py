"""Tests for configuration loading.

These tests verify:
- Defaults for optional settings
- Fail-fast validation of required and inconsistent settings
- Secrets taken from the environment
- Config file selection and the singleton cache
"""

import logging
from pathlib import Path

import pytest
import yaml

from sqlfeed.config import configuration
from sqlfeed.config.configuration import (
    LISTER_MODE,
    ConfigurationError,
    get_config,
    load_config,
    log_config,
    reset_config,
)


def _minimal_config(**crawl_overrides) -> dict:
    crawl = {
        "unique_key": "id:int",
        "every_doc_id_sql": "SELECT id FROM items",
        "single_doc_content_sql": "SELECT * FROM items WHERE id = :id",
        "mode_of_operation": "row_to_text",
    }
    crawl.update(crawl_overrides)
    return {"database": {"url": "sqlite:///items.db"}, "crawl": crawl}


class TestLoadConfig:
    """Test load_config with temporary YAML files."""

    @pytest.fixture(autouse=True)
    def clean_env(self, monkeypatch):
        for key in ("DB_PASSWORD", "AI_SEARCH_KEY", "AI_SEARCH_ENDPOINT", "SQLFEED_CONFIG", "APP_ENV"):
            monkeypatch.delenv(key, raising=False)
        # Keep a developer's .env out of the tests
        monkeypatch.setattr(configuration, "load_dotenv", lambda: None)

    @pytest.fixture
    def write_config(self, tmp_path):
        def _write(content: dict) -> str:
            path = tmp_path / "config.yaml"
            path.write_text(yaml.dump(content))
            return str(path)

        return _write

    def test_defaults(self, write_config):
        """Test that optional settings fall back to their defaults."""
        config = load_config(write_config(_minimal_config()))

        assert config.database.url == "sqlite:///items.db"
        assert config.database.password is None
        assert config.database.disable_streaming is False
        assert config.crawl.batch_size == 5000
        assert config.crawl.update_sql is None
        assert config.crawl.metadata_columns == ""
        assert config.crawl.encode_doc_id is True
        assert config.crawl.lists_metadata is False
        assert config.acl.sql is None
        assert config.acl.principal_delimiter == ","
        assert config.acl.namespace == "Default"
        assert config.azure_ai_search is None
        assert config.logging.level == "INFO"
        assert config.renderers == {}

        print(f"Loaded config: {config.crawl}")

    def test_password_from_environment(self, write_config, monkeypatch):
        monkeypatch.setenv("DB_PASSWORD", "s3cret")

        config = load_config(write_config(_minimal_config()))

        assert config.database.password == "s3cret"

    def test_empty_delimiter_is_kept(self, write_config):
        content = _minimal_config()
        content["acl"] = {"sql": "SELECT 1", "principal_delimiter": ""}

        config = load_config(write_config(content))

        assert config.acl.principal_delimiter == ""
        assert config.acl.sql == "SELECT 1"

    def test_missing_file_raises(self, tmp_path):
        with pytest.raises(ConfigurationError, match="not found"):
            load_config(str(tmp_path / "missing.yaml"))

    def test_missing_database_url_raises(self, write_config):
        content = _minimal_config()
        content["database"] = {}

        with pytest.raises(ConfigurationError, match="database.url"):
            load_config(write_config(content))

    def test_missing_unique_key_raises(self, write_config):
        content = _minimal_config()
        del content["crawl"]["unique_key"]

        with pytest.raises(ConfigurationError, match="crawl.unique_key"):
            load_config(write_config(content))

    def test_non_positive_batch_size_raises(self, write_config):
        with pytest.raises(ConfigurationError, match="batch_size"):
            load_config(write_config(_minimal_config(batch_size=0)))

    def test_empty_mode_raises(self, write_config):
        with pytest.raises(ConfigurationError, match="mode_of_operation"):
            load_config(write_config(_minimal_config(mode_of_operation="  ")))

    def test_lister_mode_requires_url_doc_ids(self, write_config):
        with pytest.raises(ConfigurationError, match="doc_id_is_url"):
            load_config(write_config(_minimal_config(mode_of_operation=LISTER_MODE)))

    def test_lister_mode_does_not_need_content_sql(self, write_config):
        content = _minimal_config(mode_of_operation=LISTER_MODE, doc_id_is_url=True)
        del content["crawl"]["single_doc_content_sql"]

        config = load_config(write_config(content))

        assert config.crawl.single_doc_content_sql is None
        assert config.crawl.encode_doc_id is False
        assert config.crawl.lists_metadata is True

    def test_content_sql_required_otherwise(self, write_config):
        content = _minimal_config()
        del content["crawl"]["single_doc_content_sql"]

        with pytest.raises(ConfigurationError, match="single_doc_content_sql"):
            load_config(write_config(content))

    def test_parameter_lists_accept_strings(self, write_config):
        content = _minimal_config(
            unique_key="dept:string, id:int",
            single_doc_content_sql_parameters="id, dept",
        )
        content["acl"] = {"sql": "SELECT 1", "sql_parameters": ["id"]}

        config = load_config(write_config(content))

        assert config.crawl.single_doc_content_sql_parameters == ("id", "dept")
        assert config.acl.sql_parameters == ("id",)

    def test_invalid_bool_raises(self, write_config):
        with pytest.raises(ConfigurationError, match="include_all_columns_as_metadata"):
            load_config(write_config(_minimal_config(include_all_columns_as_metadata="yes please")))

    def test_azure_section_requires_key(self, write_config):
        content = _minimal_config()
        content["azure_ai_search"] = {"endpoint": "https://test.search.windows.net"}

        with pytest.raises(ConfigurationError, match="AI_SEARCH_KEY"):
            load_config(write_config(content))

    def test_azure_section_with_key(self, write_config, monkeypatch):
        monkeypatch.setenv("AI_SEARCH_KEY", "test-key")
        content = _minimal_config()
        content["azure_ai_search"] = {"endpoint": "https://test.search.windows.net"}

        config = load_config(write_config(content))

        assert config.azure_ai_search.api_key == "test-key"
        assert config.azure_ai_search.index_name == "sqlfeed-documents"

    def test_renderer_options(self, write_config):
        content = _minimal_config(mode_of_operation="text_column")
        content["renderers"] = {"text_column": {"column_name": "body"}}

        config = load_config(write_config(content))

        assert config.renderers == {"text_column": {"column_name": "body"}}


class TestConfigSelection:
    """Test config file selection and the cached singleton."""

    @pytest.fixture(autouse=True)
    def clean_env(self, monkeypatch):
        monkeypatch.delenv("SQLFEED_CONFIG", raising=False)
        monkeypatch.delenv("APP_ENV", raising=False)
        monkeypatch.setattr(configuration, "load_dotenv", lambda: None)
        reset_config()
        yield
        reset_config()

    def test_filename_by_app_env(self, monkeypatch):
        assert configuration._get_config_filename() == "config.yaml"

        monkeypatch.setenv("APP_ENV", "dev")
        assert configuration._get_config_filename() == "config_dev.yaml"

        monkeypatch.setenv("APP_ENV", "TEST")
        assert configuration._get_config_filename() == "config_test.yaml"
        assert configuration.get_environment() == "test"

    def test_sqlfeed_config_env_wins(self, tmp_path, monkeypatch):
        path = tmp_path / "custom.yaml"
        path.write_text(yaml.dump(_minimal_config()))
        monkeypatch.setenv("SQLFEED_CONFIG", str(path))
        monkeypatch.setenv("APP_ENV", "dev")

        assert configuration._resolve_config_path() == Path(str(path))

    def test_get_config_is_cached_until_reset(self, tmp_path, monkeypatch):
        path = tmp_path / "custom.yaml"
        path.write_text(yaml.dump(_minimal_config()))
        monkeypatch.setenv("SQLFEED_CONFIG", str(path))

        first = get_config()
        assert get_config() is first

        reset_config()
        assert get_config() is not first

    def test_dev_environment_file(self, monkeypatch, caplog):
        """Test that APP_ENV=dev picks the shipped config_dev.yaml."""
        monkeypatch.setenv("APP_ENV", "dev")

        config = load_config()

        assert config.database.url == "sqlite:///products_dev.db"
        assert config.azure_ai_search is None

        with caplog.at_level(logging.INFO, logger="sqlfeed.config.configuration"):
            log_config(config)

        assert "environment: dev" in caplog.text
        print(f"Dev config: {config.database.url}")

    def test_test_environment_file(self, monkeypatch):
        monkeypatch.setenv("APP_ENV", "test")
        monkeypatch.setenv("AI_SEARCH_KEY", "test-key")

        config = load_config()

        assert config.azure_ai_search.index_name == "sqlfeed-documents-test"
        assert config.acl.sql is not None
