"""Operation Rate Limiting Configuration

Per-scope, per-operation sliding-window tables for the identity provider
endpoints (sign-in, account linking, unlinking, admin settings). Every window
and quota can be overridden through the environment without code changes.

Scopes:
- IP: protects against a single client hammering the endpoints
- Tenant: caps the aggregate traffic of one tenant
- User: guards the sensitive linking/unlinking operations per account

Linking and unlinking use long windows with tight quotas; sign-in uses short
windows with generous quotas.
"""

from typing import Set

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class OperationRateLimitConfig(BaseSettings):
    """Configuration for operation-type rate limiting."""

    # Global switches
    enable_rate_limiting: bool = Field(True, alias="RATE_LIMITING_ENABLED")
    disable_for_ips_raw: str = Field("", alias="RATE_LIMITING_DISABLE_IPS")

    # Key namespaces
    ip_key_prefix: str = Field("google_oauth_ip_rate_limit", alias="GOOGLE_OAUTH_IP_KEY_PREFIX")
    tenant_key_prefix: str = Field(
        "google_oauth_tenant_rate_limit", alias="GOOGLE_OAUTH_TENANT_KEY_PREFIX"
    )
    user_key_prefix: str = Field(
        "google_oauth_user_rate_limit", alias="GOOGLE_OAUTH_USER_KEY_PREFIX"
    )

    # IP scope
    ip_initiate_window_ms: int = Field(60_000, alias="GOOGLE_OAUTH_IP_INITIATE_WINDOW_MS")
    ip_initiate_max_requests: int = Field(10, alias="GOOGLE_OAUTH_IP_INITIATE_MAX_REQUESTS")
    ip_callback_window_ms: int = Field(60_000, alias="GOOGLE_OAUTH_IP_CALLBACK_WINDOW_MS")
    ip_callback_max_requests: int = Field(15, alias="GOOGLE_OAUTH_IP_CALLBACK_MAX_REQUESTS")
    ip_linking_window_ms: int = Field(300_000, alias="GOOGLE_OAUTH_IP_LINKING_WINDOW_MS")
    ip_linking_max_requests: int = Field(5, alias="GOOGLE_OAUTH_IP_LINKING_MAX_REQUESTS")
    ip_unlink_window_ms: int = Field(300_000, alias="GOOGLE_OAUTH_IP_UNLINK_WINDOW_MS")
    ip_unlink_max_requests: int = Field(3, alias="GOOGLE_OAUTH_IP_UNLINK_MAX_REQUESTS")
    ip_admin_window_ms: int = Field(60_000, alias="GOOGLE_OAUTH_IP_ADMIN_WINDOW_MS")
    ip_admin_max_requests: int = Field(20, alias="GOOGLE_OAUTH_IP_ADMIN_MAX_REQUESTS")
    ip_general_window_ms: int = Field(60_000, alias="GOOGLE_OAUTH_IP_GENERAL_WINDOW_MS")
    ip_general_max_requests: int = Field(30, alias="GOOGLE_OAUTH_IP_GENERAL_MAX_REQUESTS")

    # Tenant scope
    tenant_auth_window_ms: int = Field(60_000, alias="GOOGLE_OAUTH_TENANT_AUTH_WINDOW_MS")
    tenant_auth_max_requests: int = Field(50, alias="GOOGLE_OAUTH_TENANT_AUTH_MAX_REQUESTS")
    tenant_linking_window_ms: int = Field(300_000, alias="GOOGLE_OAUTH_TENANT_LINKING_WINDOW_MS")
    tenant_linking_max_requests: int = Field(
        20, alias="GOOGLE_OAUTH_TENANT_LINKING_MAX_REQUESTS"
    )
    tenant_admin_window_ms: int = Field(60_000, alias="GOOGLE_OAUTH_TENANT_ADMIN_WINDOW_MS")
    tenant_admin_max_requests: int = Field(100, alias="GOOGLE_OAUTH_TENANT_ADMIN_MAX_REQUESTS")
    tenant_general_window_ms: int = Field(60_000, alias="GOOGLE_OAUTH_TENANT_GENERAL_WINDOW_MS")
    tenant_general_max_requests: int = Field(
        100, alias="GOOGLE_OAUTH_TENANT_GENERAL_MAX_REQUESTS"
    )

    # User scope
    user_linking_window_ms: int = Field(900_000, alias="GOOGLE_OAUTH_USER_LINKING_WINDOW_MS")
    user_linking_max_requests: int = Field(3, alias="GOOGLE_OAUTH_USER_LINKING_MAX_REQUESTS")
    user_unlink_window_ms: int = Field(3_600_000, alias="GOOGLE_OAUTH_USER_UNLINK_WINDOW_MS")
    user_unlink_max_requests: int = Field(2, alias="GOOGLE_OAUTH_USER_UNLINK_MAX_REQUESTS")
    user_general_window_ms: int = Field(60_000, alias="GOOGLE_OAUTH_USER_GENERAL_WINDOW_MS")
    user_general_max_requests: int = Field(10, alias="GOOGLE_OAUTH_USER_GENERAL_MAX_REQUESTS")

    model_config = SettingsConfigDict(
        env_file=".env", extra="ignore", populate_by_name=True
    )

    @property
    def disable_for_ips(self) -> Set[str]:
        """IP addresses exempt from operation rate limiting."""
        return {ip.strip() for ip in self.disable_for_ips_raw.split(",") if ip.strip()}

    def should_bypass_ip(self, client_ip: str) -> bool:
        """Determine if rate limiting should be skipped for a client IP.

        Args:
            client_ip: Client IP address

        Returns:
            True if rate limiting is disabled globally or for this IP
        """
        if not self.enable_rate_limiting:
            return True
        return client_ip in self.disable_for_ips
