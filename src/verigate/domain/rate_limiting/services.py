"""
Rate Limiting Domain Services

Services:
- SlidingWindowRateLimiter: sliding-window quota check over the shared store
- OperationRateLimitService: per-scope checks for operation types, combining
  several scopes of one request into the most restrictive decision

Design Principles:
- Dependency Injection: the store, clock and randomness are constructor inputs
- Explicit failure policy: the limiter's FailureMode decides whether a store
  fault allows the request (OPEN, the default) or propagates (CLOSED)
- Observability: every check emits an OperationEvent, fire-and-forget
"""

from __future__ import annotations

from typing import Optional

import structlog

from verigate.core.clock import SecureRandomSource, SystemClock
from verigate.core.exceptions import StoreUnavailableError
from verigate.domain.events.operation_events import OperationEvent
from verigate.domain.interfaces.collaborators import IOperationEventPublisher
from verigate.domain.interfaces.store import ISharedStore

from .policy import OperationPolicyResolver
from .value_objects import (
    FailureMode,
    LimitScope,
    OperationType,
    RateLimitDecision,
    RateLimitPolicy,
)

logger = structlog.get_logger(__name__)


class SlidingWindowRateLimiter:
    """
    Sliding-window rate limiter.

    Each window is a sorted set of request timestamps at
    `<policy.key_namespace>:<key>`. A check prunes entries older than the
    window, counts the rest and records the request if the count is below the
    quota, all as one atomic store operation.

    Remaining convention: `remaining` is the number of slots left after this
    request has been recorded, so k allowed checks report k-1, k-2, ..., 0.
    """

    def __init__(
        self,
        store: ISharedStore,
        clock: Optional[SystemClock] = None,
        random_source: Optional[SecureRandomSource] = None,
        event_publisher: Optional[IOperationEventPublisher] = None,
        failure_mode: FailureMode = FailureMode.OPEN,
    ):
        self._store = store
        self._clock = clock or SystemClock()
        self._random = random_source or SecureRandomSource()
        self._event_publisher = event_publisher
        self._failure_mode = failure_mode

    @property
    def failure_mode(self) -> FailureMode:
        return self._failure_mode

    def now_ms(self) -> int:
        return self._clock.now_ms()

    async def check(self, key: str, policy: RateLimitPolicy) -> RateLimitDecision:
        """Check the quota for `key` and record the attempt if allowed.

        Args:
            key: Identity key within the policy namespace (e.g. `ip:203.0.113.7`)
            policy: Window length and quota to enforce

        Returns:
            RateLimitDecision for this request

        Raises:
            StoreUnavailableError: Only in CLOSED failure mode
        """
        started = self._clock.monotonic()
        now_ms = self._clock.now_ms()
        window_key = policy.key_for(key)

        try:
            decision = await self._record(window_key, policy, now_ms)
        except Exception as exc:
            decision = self._on_store_failure(window_key, policy, now_ms, exc, operation="check")

        if decision.is_blocked:
            logger.warning(
                "Rate limit exceeded",
                key=window_key,
                total_hits=decision.total_hits,
                limit=policy.max_requests,
                window_ms=policy.window_ms,
            )
        else:
            logger.debug(
                "Rate limit check passed",
                key=window_key,
                remaining=decision.remaining,
                fallback_used=decision.fallback_used,
            )

        error_code = None
        if decision.fallback_used:
            error_code = "STORE_UNAVAILABLE"
        elif decision.is_blocked:
            error_code = "RATE_LIMITED"
        await self._publish(
            OperationEvent.create(
                operation="rate_limit",
                subject_id=window_key,
                success=decision.allowed,
                started_at=started,
                finished_at=self._clock.monotonic(),
                error_code=error_code,
            )
        )
        return decision

    async def status(self, key: str, policy: RateLimitPolicy) -> RateLimitDecision:
        """Report the window state without recording a request.

        `remaining` here is the number of requests that would still be
        allowed, and `allowed` tells whether the next one would be.
        """
        now_ms = self._clock.now_ms()
        window_key = policy.key_for(key)
        try:
            count = await self._store.count_hits(window_key, now_ms - policy.window_ms)
        except Exception as exc:
            self._on_store_failure(window_key, policy, now_ms, exc, operation="status")
            return RateLimitDecision(
                allowed=True,
                remaining=policy.max_requests,
                reset_time=now_ms + policy.window_ms,
                total_hits=0,
                policy=policy,
                fallback_used=True,
            )

        return RateLimitDecision(
            allowed=count < policy.max_requests,
            remaining=max(0, policy.max_requests - count),
            reset_time=now_ms + policy.window_ms,
            total_hits=count,
            policy=policy,
        )

    async def reset(self, key: str, policy: RateLimitPolicy) -> bool:
        """Delete the window for `key` (admin override).

        Returns:
            bool: True if a window existed

        Raises:
            StoreUnavailableError: If the store fails; resets never fail open
        """
        window_key = policy.key_for(key)
        removed = await self._store.delete(window_key)
        logger.info("Rate limit reset", key=window_key, existed=bool(removed))
        return removed > 0

    async def _record(self, window_key: str, policy: RateLimitPolicy, now_ms: int) -> RateLimitDecision:
        member = f"{now_ms}-{self._random.token_hex(8)}"
        hit = await self._store.record_hit(
            window_key,
            window_start_ms=now_ms - policy.window_ms,
            now_ms=now_ms,
            member=member,
            limit=policy.max_requests,
            ttl_seconds=policy.ttl_seconds,
        )

        if hit.count_before < policy.max_requests:
            total_hits = hit.count_before + 1
            allowed = True
        else:
            if hit.inserted:
                # The batch inserted past the quota; take the entry back out.
                await self._rollback(window_key, member)
            total_hits = hit.count_before
            allowed = False

        return RateLimitDecision(
            allowed=allowed,
            remaining=max(0, policy.max_requests - total_hits),
            reset_time=now_ms + policy.window_ms,
            total_hits=total_hits,
            policy=policy,
        )

    async def _rollback(self, window_key: str, member: str) -> None:
        try:
            await self._store.remove_hit(window_key, member)
        except Exception as exc:
            # The decision stays a denial; the stray entry ages out with the window.
            logger.error("Rate limit rollback failed", key=window_key, error=str(exc))
            return
        logger.debug("Rate limit entry rolled back", key=window_key)

    def _on_store_failure(
        self,
        window_key: str,
        policy: RateLimitPolicy,
        now_ms: int,
        exc: Exception,
        operation: str,
    ) -> RateLimitDecision:
        if self._failure_mode is FailureMode.CLOSED:
            logger.error(
                "Rate limit store failure, failing closed",
                key=window_key,
                operation=operation,
                error=str(exc),
            )
            if isinstance(exc, StoreUnavailableError):
                raise exc
            raise StoreUnavailableError() from exc

        logger.error(
            "Rate limit store failure, failing open",
            key=window_key,
            operation=operation,
            error=str(exc),
            error_type=type(exc).__name__,
        )
        return RateLimitDecision.fail_open(policy, now_ms)

    async def _publish(self, event: OperationEvent) -> None:
        if self._event_publisher is None:
            return
        try:
            await self._event_publisher.publish(event)
        except Exception as exc:
            logger.warning("Failed to publish rate limit event", error=str(exc))


class OperationRateLimitService:
    """
    Rate limiting for operation types across identity scopes.

    Keys are `<scope>:<identity>` inside the namespace of the resolved
    policy, e.g. `google_oauth_ip_rate_limit:initiate:ip:203.0.113.7`.
    """

    def __init__(self, limiter: SlidingWindowRateLimiter, resolver: OperationPolicyResolver):
        self._limiter = limiter
        self._resolver = resolver

    @property
    def resolver(self) -> OperationPolicyResolver:
        return self._resolver

    def now_ms(self) -> int:
        return self._limiter.now_ms()

    async def check(
        self, scope: LimitScope, identity: str, operation: OperationType
    ) -> RateLimitDecision:
        """Check and record one request for an identity in a scope."""
        policy = self._resolver.resolve(scope, operation)
        config = self._resolver.config
        if not config.enable_rate_limiting or (
            scope is LimitScope.IP and config.should_bypass_ip(identity)
        ):
            logger.debug("Rate limiting bypassed", scope=scope.value, operation=operation.value)
            return RateLimitDecision.unlimited(policy, self._limiter.now_ms())
        return await self._limiter.check(self._key(scope, identity), policy)

    async def check_ip(self, client_ip: str, operation: OperationType) -> RateLimitDecision:
        return await self.check(LimitScope.IP, client_ip, operation)

    async def check_tenant(self, tenant_id: str, operation: OperationType) -> RateLimitDecision:
        return await self.check(LimitScope.TENANT, tenant_id, operation)

    async def check_user(self, user_id: str, operation: OperationType) -> RateLimitDecision:
        return await self.check(LimitScope.USER, user_id, operation)

    async def check_request(
        self,
        operation: OperationType,
        client_ip: str,
        tenant_id: Optional[str] = None,
        user_id: Optional[str] = None,
    ) -> RateLimitDecision:
        """Check every scope present on a request and combine the results.

        The IP scope is always checked; tenant and user scopes only when the
        identity is known. The most restrictive decision wins.
        """
        decision = await self.check_ip(client_ip, operation)
        if tenant_id:
            decision = RateLimitDecision.most_restrictive(
                decision, await self.check_tenant(tenant_id, operation)
            )
        if user_id:
            decision = RateLimitDecision.most_restrictive(
                decision, await self.check_user(user_id, operation)
            )
        return decision

    async def status(
        self, scope: LimitScope, identity: str, operation: OperationType
    ) -> RateLimitDecision:
        """Read-only view of an identity's window."""
        policy = self._resolver.resolve(scope, operation)
        return await self._limiter.status(self._key(scope, identity), policy)

    async def reset(self, scope: LimitScope, identity: str, operation: OperationType) -> bool:
        """Delete an identity's window for an operation."""
        policy = self._resolver.resolve(scope, operation)
        return await self._limiter.reset(self._key(scope, identity), policy)

    @staticmethod
    def _key(scope: LimitScope, identity: str) -> str:
        return f"{scope.value}:{identity}"
