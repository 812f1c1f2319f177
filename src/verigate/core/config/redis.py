"""
Redis shared store settings.
"""
import structlog
from pydantic import Field, SecretStr, ValidationInfo, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = structlog.get_logger(__name__)


class RedisSettings(BaseSettings):
    """
    Defines settings for the shared ephemeral store (Redis).

    Security Note:
        - REDIS_PASSWORD must be set in staging/production to prevent unauthorized
          access (OWASP A05:2021 - Security Misconfiguration).
        - Use REDIS_SSL (rediss://) whenever Redis is reached over an untrusted network.
    Performance Note:
        - STORE_OPERATION_TIMEOUT_SECONDS bounds every store round trip. Rate-limit
          checks fail open on timeout while code operations fail closed.
        - RATE_LIMIT_USE_SCRIPTING selects the Lua script path for the sliding
          window; disabling it falls back to a MULTI/EXEC batch with rollback.
    """
    REDIS_HOST: str = "localhost"
    REDIS_PORT: int = Field(ge=1, le=65535, default=6379)
    REDIS_DB: int = Field(ge=0, default=0)
    REDIS_PASSWORD: SecretStr = Field(default=SecretStr(""), validate_default=True)
    REDIS_SSL: bool = False
    REDIS_URL: str = Field(default="", validate_default=True)

    STORE_BACKEND: str = Field(default="redis", pattern="^(redis|memory)$")
    STORE_OPERATION_TIMEOUT_SECONDS: float = Field(default=2.0, gt=0)
    RATE_LIMIT_USE_SCRIPTING: bool = True

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore"
    )

    @field_validator("REDIS_URL", mode="before")
    @classmethod
    def assemble_redis_url(cls, v: str | None, info: ValidationInfo) -> str:
        """
        Assembles the Redis connection URL if not provided explicitly.

        Args:
            v: Explicitly provided URL or None.
            info: Validation context with other field values.

        Returns:
            Assembled or provided Redis URL.
        """
        if v:
            return v

        values = info.data
        protocol = "rediss" if values.get("REDIS_SSL") else "redis"
        redis_password = values.get("REDIS_PASSWORD")
        secret = redis_password.get_secret_value() if redis_password else ""
        password = f":{secret}@" if secret else ""

        url = (
            f"{protocol}://{password}{values.get('REDIS_HOST')}:"
            f"{values.get('REDIS_PORT')}/{values.get('REDIS_DB', 0)}"
        )
        logger.debug("redis_url_assembled", password_set=bool(secret))
        return url

    @field_validator("REDIS_PASSWORD")
    @classmethod
    def validate_redis_password(cls, value: SecretStr, info: ValidationInfo) -> SecretStr:
        """
        Ensures REDIS_PASSWORD is set for staging/production environments.

        Raises:
            ValueError: If password is not set in staging/production.
        """
        app_env = info.data.get("APP_ENV", "development")
        if app_env in ("staging", "production") and not value.get_secret_value():
            logger.error("redis_password_missing", app_env=app_env)
            raise ValueError("REDIS_PASSWORD must be set in staging/production environments")
        return value
