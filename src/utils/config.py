"""
Configuration management for the Larder stock allocation engine.

This module handles:
- Database path configuration
- Currency and exchange-rate settings
- Commit retry and stock status thresholds
- Environment-specific configuration (development vs. production)

Every tunable can be overridden through a ``LARDER_*`` environment variable.
Invalid overrides fall back to the default and log a warning.
"""

import logging
import os
from pathlib import Path
from typing import Optional

from .constants import (
    APP_NAME,
    APP_VERSION,
    DATABASE_FILENAME,
    DATABASE_VERSION,
    DEFAULT_ALMOST_EXPIRED_DAYS,
    DEFAULT_BASE_CURRENCY,
    DEFAULT_COMMIT_RETRIES,
    DEFAULT_RATE_CACHE_TTL_SECONDS,
    DEFAULT_RATE_FETCH_RETRIES,
    DEFAULT_RATE_FETCH_TIMEOUT,
    DEFAULT_RATE_SOURCE_URL,
)

logger = logging.getLogger(__name__)

ENV_PREFIX = "LARDER_"


def _get_int_env(name: str, default: int, minimum: int = 0) -> int:
    """
    Read an integer setting from the environment.

    Args:
        name: Setting name without the LARDER_ prefix (e.g. "COMMIT_RETRIES")
        default: Value used when the variable is unset or invalid
        minimum: Smallest accepted value

    Returns:
        Parsed integer, or default
    """
    env_name = f"{ENV_PREFIX}{name}"
    raw = os.environ.get(env_name)
    if raw is None or raw.strip() == "":
        return default
    try:
        value = int(raw)
    except ValueError:
        logger.warning(f"Invalid {env_name}={raw!r}, using default {default}")
        return default
    if value < minimum:
        logger.warning(f"Invalid {env_name}={raw!r} (minimum {minimum}), using default {default}")
        return default
    return value


class Config:
    """
    Application configuration manager.

    Handles all configuration settings including database paths,
    exchange-rate behaviour and commit policy.
    """

    def __init__(self, environment: str = "production"):
        """
        Initialize configuration.

        Args:
            environment: Environment mode - 'production' or 'development'
        """
        self.environment = environment
        self._app_name = APP_NAME
        self._app_version = APP_VERSION
        self._database_version = DATABASE_VERSION

        if environment == "development":
            self._base_dir = self._get_project_data_dir()
        else:
            self._base_dir = self._get_user_data_dir()

        self._database_dir = self._base_dir
        self._database_path = self._database_dir / DATABASE_FILENAME

        self._base_currency = (
            os.environ.get(f"{ENV_PREFIX}BASE_CURRENCY", DEFAULT_BASE_CURRENCY).strip().upper()
            or DEFAULT_BASE_CURRENCY
        )
        self._rate_source_url = os.environ.get(
            f"{ENV_PREFIX}RATE_SOURCE_URL", DEFAULT_RATE_SOURCE_URL
        )
        self._rate_cache_ttl_seconds = _get_int_env(
            "RATE_CACHE_TTL_SECONDS", DEFAULT_RATE_CACHE_TTL_SECONDS, minimum=1
        )
        self._rate_fetch_retries = _get_int_env(
            "RATE_FETCH_RETRIES", DEFAULT_RATE_FETCH_RETRIES, minimum=1
        )
        self._rate_fetch_timeout = _get_int_env(
            "RATE_FETCH_TIMEOUT", DEFAULT_RATE_FETCH_TIMEOUT, minimum=1
        )
        self._commit_retries = _get_int_env("COMMIT_RETRIES", DEFAULT_COMMIT_RETRIES, minimum=1)
        self._almost_expired_days = _get_int_env(
            "ALMOST_EXPIRED_DAYS", DEFAULT_ALMOST_EXPIRED_DAYS
        )

    def _get_project_data_dir(self) -> Path:
        """
        Get the project's data directory for development.

        Returns:
            Path to project data/ directory
        """
        project_root = Path(__file__).parent.parent.parent
        return project_root / "data"

    def _get_user_data_dir(self) -> Path:
        """
        Get the per-user data directory for production.

        Returns:
            Path to ~/.larder
        """
        return Path.home() / ".larder"

    def ensure_directories(self) -> None:
        """Create the database directory if it doesn't exist."""
        self._database_dir.mkdir(parents=True, exist_ok=True)

    @property
    def app_name(self) -> str:
        """Application name."""
        return self._app_name

    @property
    def app_version(self) -> str:
        """Application version."""
        return self._app_version

    @property
    def database_version(self) -> str:
        """Database schema version."""
        return self._database_version

    @property
    def database_path(self) -> Path:
        """Full path to the database file."""
        return self._database_path

    @property
    def database_url(self) -> str:
        """
        SQLAlchemy database URL.

        LARDER_DATABASE_URL takes precedence over the file-based default.

        Returns:
            Database URL string for SQLAlchemy
        """
        override = os.environ.get(f"{ENV_PREFIX}DATABASE_URL")
        if override:
            return override
        db_path_str = str(self._database_path).replace("\\", "/")
        return f"sqlite:///{db_path_str}"

    @property
    def base_currency(self) -> str:
        """Currency all costs are reported in."""
        return self._base_currency

    @property
    def rate_source_url(self) -> str:
        """URL of the exchange-rate XML feed."""
        return self._rate_source_url

    @property
    def rate_cache_ttl_seconds(self) -> int:
        """Seconds an exchange-rate table is considered fresh."""
        return self._rate_cache_ttl_seconds

    @property
    def rate_fetch_retries(self) -> int:
        """Attempts made per exchange-rate fetch."""
        return self._rate_fetch_retries

    @property
    def rate_fetch_timeout(self) -> int:
        """HTTP timeout in seconds for one exchange-rate fetch."""
        return self._rate_fetch_timeout

    @property
    def commit_retries(self) -> int:
        """Attempts made when a preparation commit hits a transient database error."""
        return self._commit_retries

    @property
    def almost_expired_days(self) -> int:
        """Days before expiry at which stock is flagged as almost expired."""
        return self._almost_expired_days

    @property
    def is_development(self) -> bool:
        """Check if running in development mode."""
        return self.environment == "development"

    @property
    def is_production(self) -> bool:
        """Check if running in production mode."""
        return self.environment == "production"

    def database_exists(self) -> bool:
        """
        Check if database file exists.

        Returns:
            True if database file exists, False otherwise
        """
        return self._database_path.exists()

    def __repr__(self) -> str:
        """String representation of config."""
        return (
            f"Config(environment='{self.environment}', " f"database_path='{self._database_path}')"
        )


# Global configuration instance
_config_instance: Optional[Config] = None


def get_config(environment: Optional[str] = None) -> Config:
    """
    Get the global configuration instance.

    Once created, the singleton's environment cannot be changed by passing
    a different environment argument - this prevents accidental database
    switching mid-session.

    Args:
        environment: Optional environment for initial creation. If None, uses
                    LARDER_ENV or defaults to production. Ignored if
                    singleton already exists.

    Returns:
        Config instance
    """
    global _config_instance

    if _config_instance is None:
        if environment is None:
            environment = os.environ.get("LARDER_ENV", "production")
        _config_instance = Config(environment)
    elif environment is not None and environment != _config_instance.environment:
        logger.warning(
            f"get_config() called with environment='{environment}' but singleton "
            f"already exists with environment='{_config_instance.environment}'. "
            f"Returning existing singleton to prevent database switching."
        )

    return _config_instance


def reset_config():
    """
    Reset the global configuration instance.

    Useful for testing.
    """
    global _config_instance
    _config_instance = None


def get_database_url() -> str:
    """
    Get the database URL.

    Returns:
        SQLAlchemy database URL string
    """
    return get_config().database_url
