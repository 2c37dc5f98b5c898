"""Unit tests for Config class configuration properties.

Tests cover:
- Database location and URL override
- Currency and exchange-rate settings
- Commit retry and almost-expired thresholds
- Singleton behaviour of get_config / reset_config

Each tunable is tested for:
- Default values when no environment variables set
- Environment variable overrides
- Invalid value handling (fallback to defaults with warning)
"""

import logging
from pathlib import Path

import pytest

from src.utils.config import Config, get_config, get_database_url, reset_config


class TestDatabaseConfigProperties:
    """Tests for database configuration properties."""

    def setup_method(self):
        """Reset config singleton before each test."""
        reset_config()

    def teardown_method(self):
        """Clean up after each test."""
        reset_config()

    def test_production_database_in_home(self, monkeypatch):
        """Production keeps the database under ~/.larder."""
        monkeypatch.delenv("LARDER_DATABASE_URL", raising=False)
        config = Config("production")
        assert config.database_path == Path.home() / ".larder" / "larder.db"
        assert config.database_url.startswith("sqlite:///")
        assert config.is_production
        assert not config.is_development

    def test_development_database_in_project(self):
        """Development keeps the database in the project's data directory."""
        config = Config("development")
        assert config.database_path.parent.name == "data"
        assert config.is_development

    def test_database_url_env_override(self, monkeypatch):
        """LARDER_DATABASE_URL replaces the file-based URL."""
        monkeypatch.setenv("LARDER_DATABASE_URL", "postgresql://larder@localhost/larder")
        assert Config().database_url == "postgresql://larder@localhost/larder"
        assert get_database_url() == "postgresql://larder@localhost/larder"


class TestCurrencyConfigProperties:
    """Tests for currency and exchange-rate properties."""

    def setup_method(self):
        reset_config()

    def teardown_method(self):
        reset_config()

    def test_base_currency_default(self, monkeypatch):
        """Default base currency is RON."""
        monkeypatch.delenv("LARDER_BASE_CURRENCY", raising=False)
        assert Config().base_currency == "RON"

    def test_base_currency_env_override(self, monkeypatch):
        """Base currency override is upper-cased."""
        monkeypatch.setenv("LARDER_BASE_CURRENCY", "eur")
        assert Config().base_currency == "EUR"

    def test_rate_source_url_default(self, monkeypatch):
        """Default rate source is the BNR XML feed."""
        monkeypatch.delenv("LARDER_RATE_SOURCE_URL", raising=False)
        assert Config().rate_source_url == "https://www.bnr.ro/nbrfxrates.xml"

    def test_rate_cache_ttl_default(self):
        """Default rate cache TTL is 600 seconds."""
        assert Config().rate_cache_ttl_seconds == 600

    def test_rate_cache_ttl_env_override(self, monkeypatch):
        """rate_cache_ttl_seconds can be overridden via environment variable."""
        monkeypatch.setenv("LARDER_RATE_CACHE_TTL_SECONDS", "60")
        assert Config().rate_cache_ttl_seconds == 60

    def test_rate_cache_ttl_invalid_uses_default(self, monkeypatch, caplog):
        """Invalid rate_cache_ttl_seconds falls back to default with warning."""
        monkeypatch.setenv("LARDER_RATE_CACHE_TTL_SECONDS", "soon")
        with caplog.at_level(logging.WARNING):
            config = Config()
            assert config.rate_cache_ttl_seconds == 600
        assert "Invalid LARDER_RATE_CACHE_TTL_SECONDS" in caplog.text

    def test_rate_fetch_retries_below_minimum_uses_default(self, monkeypatch, caplog):
        """Zero retries is rejected."""
        monkeypatch.setenv("LARDER_RATE_FETCH_RETRIES", "0")
        with caplog.at_level(logging.WARNING):
            assert Config().rate_fetch_retries == 3
        assert "Invalid LARDER_RATE_FETCH_RETRIES" in caplog.text

    def test_rate_fetch_timeout_default(self):
        """Default fetch timeout is 10 seconds."""
        assert Config().rate_fetch_timeout == 10


class TestCommitConfigProperties:
    """Tests for commit and stock status properties."""

    def setup_method(self):
        reset_config()

    def teardown_method(self):
        reset_config()

    def test_commit_retries_default(self):
        assert Config().commit_retries == 3

    def test_commit_retries_env_override(self, monkeypatch):
        monkeypatch.setenv("LARDER_COMMIT_RETRIES", "5")
        assert Config().commit_retries == 5

    def test_almost_expired_days_default(self):
        assert Config().almost_expired_days == 3

    def test_almost_expired_days_zero_allowed(self, monkeypatch):
        monkeypatch.setenv("LARDER_ALMOST_EXPIRED_DAYS", "0")
        assert Config().almost_expired_days == 0


class TestConfigSingleton:
    """Tests for the global config instance."""

    def setup_method(self):
        reset_config()

    def teardown_method(self):
        reset_config()

    def test_get_config_returns_same_instance(self):
        assert get_config() is get_config()

    def test_environment_from_env_variable(self, monkeypatch):
        monkeypatch.setenv("LARDER_ENV", "development")
        assert get_config().environment == "development"

    def test_environment_cannot_change_after_creation(self, caplog):
        config = get_config("development")
        with caplog.at_level(logging.WARNING):
            assert get_config("production") is config
        assert "Returning existing singleton" in caplog.text

    def test_reset_config_creates_new_instance(self):
        first = get_config()
        reset_config()
        assert get_config() is not first


@pytest.mark.parametrize(
    "name,property_name,default",
    [
        ("RATE_CACHE_TTL_SECONDS", "rate_cache_ttl_seconds", 600),
        ("RATE_FETCH_RETRIES", "rate_fetch_retries", 3),
        ("RATE_FETCH_TIMEOUT", "rate_fetch_timeout", 10),
        ("COMMIT_RETRIES", "commit_retries", 3),
    ],
)
def test_blank_value_uses_default(monkeypatch, name, property_name, default):
    """Blank overrides are ignored silently."""
    monkeypatch.setenv(f"LARDER_{name}", "  ")
    assert getattr(Config(), property_name) == default
