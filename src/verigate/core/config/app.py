"""
Application-specific settings.
"""
from typing import List

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings


class AppSettings(BaseSettings):
    """
    Defines application-wide settings like project name, environment and logging.

    Security Note:
        - LOG_JSON should stay enabled outside development so log shipping keeps
          structured fields intact; verification codes are never logged.
    """
    PROJECT_NAME: str = "verigate"
    VERSION: str = "0.1.0"
    APP_ENV: str = Field(default="development", pattern="^(development|test|staging|production)$")
    DEBUG: bool = False
    TEST_MODE: bool = False

    LOG_LEVEL: str = "INFO"
    LOG_JSON: bool = True

    DEFAULT_LANGUAGE: str = "en"
    SUPPORTED_LANGUAGES: List[str] = ["en", "es"]

    @field_validator("LOG_LEVEL", mode="before")
    @classmethod
    def normalize_log_level(cls, v: str) -> str:
        """
        Upper-cases the log level so `info` and `INFO` are equivalent.

        Args:
            v: Raw log level value.

        Returns:
            Upper-cased log level name.
        """
        return str(v).upper()
