"""
Operation-Type Policy Resolver

Maps an (identity scope, operation) pair to the sliding-window policy that
governs it. Tables come from `OperationRateLimitConfig`; the generation
policy comes from the verification settings and applies to every scope.

The full table is built and validated once at construction, so an invalid
window or quota fails at startup rather than on the first request that
happens to need it.
"""

from __future__ import annotations

from typing import Dict, Tuple

import structlog

from verigate.core.config.rate_limiting import OperationRateLimitConfig
from verigate.core.exceptions import ConfigurationError

from .value_objects import LimitScope, OperationType, RateLimitPolicy

logger = structlog.get_logger(__name__)

PolicyTable = Dict[Tuple[LimitScope, OperationType], RateLimitPolicy]


class OperationPolicyResolver:
    """Resolves rate limit policies per scope and operation type."""

    def __init__(self, config: OperationRateLimitConfig, generation_policy: RateLimitPolicy):
        self._config = config
        self._generation_policy = generation_policy
        self._table = self._build_table()
        logger.info(
            "Operation rate limit policies loaded",
            policy_count=len(self._table),
            enabled=config.enable_rate_limiting,
        )

    @property
    def config(self) -> OperationRateLimitConfig:
        return self._config

    @property
    def generation_policy(self) -> RateLimitPolicy:
        return self._generation_policy

    def resolve(self, scope: LimitScope, operation: OperationType) -> RateLimitPolicy:
        """Return the policy for a scope and operation.

        Operations without a dedicated entry in a scope use that scope's
        general policy.
        """
        policy = self._table.get((scope, operation))
        if policy is None:
            return self._table[(scope, OperationType.GENERAL)]
        return policy

    def _build_table(self) -> PolicyTable:
        table: PolicyTable = {}
        for scope in LimitScope:
            for operation in OperationType:
                window_ms, max_requests, namespace = self._lookup(scope, operation)
                try:
                    table[(scope, operation)] = RateLimitPolicy(
                        window_ms=window_ms, max_requests=max_requests, key_namespace=namespace
                    )
                except (TypeError, ValueError) as exc:
                    logger.error(
                        "Invalid rate limit policy",
                        scope=scope.value,
                        operation=operation.value,
                        error=str(exc),
                    )
                    raise ConfigurationError(
                        f"Invalid rate limit policy for {scope.value}/{operation.value}: {exc}"
                    ) from exc
        return table

    def _lookup(self, scope: LimitScope, operation: OperationType) -> Tuple[int, int, str]:
        if operation is OperationType.GENERATION:
            policy = self._generation_policy
            return policy.window_ms, policy.max_requests, policy.key_namespace
        if scope is LimitScope.IP:
            return self._ip_entry(operation)
        if scope is LimitScope.TENANT:
            return self._tenant_entry(operation)
        return self._user_entry(operation)

    def _ip_entry(self, operation: OperationType) -> Tuple[int, int, str]:
        c = self._config
        prefix = c.ip_key_prefix
        if operation is OperationType.OAUTH_INITIATE:
            return c.ip_initiate_window_ms, c.ip_initiate_max_requests, f"{prefix}:initiate"
        if operation is OperationType.OAUTH_CALLBACK:
            return c.ip_callback_window_ms, c.ip_callback_max_requests, f"{prefix}:callback"
        if operation.is_linking:
            return c.ip_linking_window_ms, c.ip_linking_max_requests, f"{prefix}:linking"
        if operation is OperationType.UNLINK:
            return c.ip_unlink_window_ms, c.ip_unlink_max_requests, f"{prefix}:unlink"
        if operation is OperationType.ADMIN_SETTINGS:
            return c.ip_admin_window_ms, c.ip_admin_max_requests, f"{prefix}:admin"
        return c.ip_general_window_ms, c.ip_general_max_requests, f"{prefix}:general"

    def _tenant_entry(self, operation: OperationType) -> Tuple[int, int, str]:
        c = self._config
        prefix = c.tenant_key_prefix
        if operation in (OperationType.OAUTH_INITIATE, OperationType.OAUTH_CALLBACK):
            return c.tenant_auth_window_ms, c.tenant_auth_max_requests, f"{prefix}:auth"
        if operation.is_linking or operation is OperationType.UNLINK:
            return c.tenant_linking_window_ms, c.tenant_linking_max_requests, f"{prefix}:linking"
        if operation is OperationType.ADMIN_SETTINGS:
            return c.tenant_admin_window_ms, c.tenant_admin_max_requests, f"{prefix}:admin"
        return c.tenant_general_window_ms, c.tenant_general_max_requests, f"{prefix}:general"

    def _user_entry(self, operation: OperationType) -> Tuple[int, int, str]:
        c = self._config
        prefix = c.user_key_prefix
        if operation.is_linking:
            return c.user_linking_window_ms, c.user_linking_max_requests, f"{prefix}:linking"
        if operation is OperationType.UNLINK:
            return c.user_unlink_window_ms, c.user_unlink_max_requests, f"{prefix}:unlink"
        return c.user_general_window_ms, c.user_general_max_requests, f"{prefix}:general"


def generation_policy_from_settings(settings) -> RateLimitPolicy:
    """Build the verification code generation policy from application settings.

    Raises:
        ConfigurationError: If the configured window or quota is invalid
    """
    try:
        return RateLimitPolicy(
            window_ms=settings.OTP_RATE_LIMIT_WINDOW_MS,
            max_requests=settings.OTP_RATE_LIMIT_ATTEMPTS,
            key_namespace=settings.OTP_RATE_LIMIT_NAMESPACE,
        )
    except (TypeError, ValueError) as exc:
        raise ConfigurationError(f"Invalid generation rate limit policy: {exc}") from exc
