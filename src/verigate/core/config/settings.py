"""Main application settings and configuration management.

This module composes the settings from the different modules (app, redis,
verification) into a single, accessible `Settings` class.

It loads settings from environment variables and .env files, validates them,
and provides a single `settings` object for use throughout the application.

Environment Support:
- Development: Uses .env or .env.development
- Test: Uses .env.test, test mode enabled
- Staging: Uses .env.staging, REDIS_PASSWORD required
- Production: Uses .env.production, REDIS_PASSWORD required
"""

import os
from functools import lru_cache
from pathlib import Path

import structlog
from pydantic_settings import SettingsConfigDict

from .app import AppSettings
from .redis import RedisSettings
from .verification import VerificationSettings

logger = structlog.get_logger(__name__)

ENV_FILES = {
    "development": ".env",
    "test": ".env.test",
    "staging": ".env.staging",
    "production": ".env.production",
}


# AppSettings is listed last so APP_ENV is validated before the Redis fields.
class Settings(VerificationSettings, RedisSettings, AppSettings):
    """The main settings class that aggregates all application configurations.

    It inherits from all the specialized settings classes, providing a unified
    interface to all configuration parameters.

    Security Note:
        - REDIS_PASSWORD is a SecretStr and is never logged
          (OWASP A02:2021 - Cryptographic Failures).
    Usage:
        - Access settings via `get_settings()` or the module-level `settings`.
    """

    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", case_sensitive=True, extra="ignore"
    )

    def __init__(self, **kwargs):
        """Initialize settings with environment-specific configuration."""
        super().__init__(**kwargs)
        if self.APP_ENV == "test":
            self.TEST_MODE = True
        if self.APP_ENV == "development":
            self.DEBUG = True


def create_settings() -> Settings:
    """Create settings instance with environment-specific configuration.

    Returns:
        Settings: Configured settings instance
    """
    env = os.getenv("APP_ENV", "development")
    env_file = ENV_FILES.get(env, ".env")

    if env != "development" and Path(env_file).exists():
        logger.info("settings_loaded", source=env_file, environment=env)
        return Settings(_env_file=env_file)
    if Path(".env").exists():
        logger.info("settings_loaded", source=".env", environment=env)
        return Settings()
    logger.info("settings_loaded", source="environment", environment=env)
    return Settings()


@lru_cache()
def get_settings() -> Settings:
    """Return the process-wide settings instance."""
    return create_settings()


settings = get_settings()
