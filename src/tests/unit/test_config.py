"""Unit tests for the Config class.

Covers the environment-driven settings: data directory, database URL
override and ERP connection settings.
"""

import logging
from pathlib import Path

import pytest

from stock_catalog.utils.config import Config, get_config, get_database_url, reset_config


class TestConfig:
    """Tests for Config properties."""

    def setup_method(self):
        """Reset config singleton before each test."""
        reset_config()

    def teardown_method(self):
        """Clean up after each test."""
        reset_config()

    def test_production_uses_home_directory(self, monkeypatch):
        monkeypatch.delenv("STOCK_CATALOG_DATABASE_URL", raising=False)
        config = Config("production")
        assert config.database_path == Path.home() / ".stock_catalog" / "stock_catalog.db"
        assert config.database_url.startswith("sqlite:///")
        assert config.is_production

    def test_development_uses_project_data_directory(self):
        config = Config("development")
        assert config.database_path.parent.name == "data"
        assert config.is_development

    def test_database_url_env_override(self, monkeypatch):
        monkeypatch.setenv("STOCK_CATALOG_DATABASE_URL", "sqlite:///:memory:")
        assert Config().database_url == "sqlite:///:memory:"

    def test_erp_defaults(self, monkeypatch):
        for name in (
            "STOCK_CATALOG_ERP_ENVIRONMENT",
            "STOCK_CATALOG_ERP_USERNAME",
            "STOCK_CATALOG_ERP_PASSWORD",
        ):
            monkeypatch.delenv(name, raising=False)
        config = Config()
        assert config.erp_environment == "production"
        assert config.erp_base_url == "https://api.module.team/main/hs/"
        assert config.erp_username == ""

    def test_erp_test_environment(self, monkeypatch):
        monkeypatch.setenv("STOCK_CATALOG_ERP_ENVIRONMENT", "test")
        assert Config().erp_base_url == "https://api.module.team/module.team/hs/"

    def test_unknown_erp_environment(self, monkeypatch):
        monkeypatch.setenv("STOCK_CATALOG_ERP_ENVIRONMENT", "qa")
        with pytest.raises(ValueError):
            Config().erp_base_url


class TestConfigSingleton:
    def setup_method(self):
        reset_config()

    def teardown_method(self):
        reset_config()

    def test_env_variable_picks_environment(self, monkeypatch):
        monkeypatch.setenv("STOCK_CATALOG_ENV", "development")
        assert get_config().environment == "development"

    def test_singleton_is_reused(self):
        assert get_config("production") is get_config()

    def test_conflicting_environment_warns(self, caplog):
        get_config("production")
        with caplog.at_level(logging.WARNING):
            config = get_config("development")
        assert config.environment == "production"
        assert "singleton" in caplog.text

    def test_get_database_url(self, monkeypatch):
        monkeypatch.setenv("STOCK_CATALOG_DATABASE_URL", "sqlite:///:memory:")
        assert get_database_url() == "sqlite:///:memory:"
