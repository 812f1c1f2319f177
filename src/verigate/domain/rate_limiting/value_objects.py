"""
Rate Limiting Value Objects

Immutable value objects representing core concepts in the rate limiting domain.

Value Objects:
- LimitScope: Identity dimension a window is keyed by
- OperationType: Operation a request performs
- FailureMode: What a component does when the shared store fails
- RateLimitPolicy: Window length, quota and key namespace
- RateLimitDecision: Outcome of one check

Design Principles:
- Immutability: All value objects are immutable after creation
- Validation: Business rules enforced at construction time
- Convention: `remaining` is counted after the current request is recorded
"""

from __future__ import annotations

import math
from dataclasses import dataclass, replace
from enum import Enum
from typing import Dict, Optional


class LimitScope(str, Enum):
    IP = "ip"
    TENANT = "tenant"
    USER = "user"


class OperationType(str, Enum):
    """
    Operations guarded by the rate limiter.

    Sign-in operations get short windows with generous quotas; linking and
    unlinking get long windows with tight quotas. GENERATION is the
    verification code generation quota.
    """
    OAUTH_INITIATE = "oauth_initiate"
    OAUTH_CALLBACK = "oauth_callback"
    LINK_INITIATE = "link_initiate"
    LINK_CALLBACK = "link_callback"
    UNLINK = "unlink"
    ADMIN_SETTINGS = "admin_settings"
    GENERAL = "general"
    GENERATION = "generation"

    @classmethod
    def from_name(cls, name: Optional[str]) -> OperationType:
        """Resolve an operation name, falling back to GENERAL for unknown names."""
        if isinstance(name, cls):
            return name
        try:
            return cls((name or "").strip().lower())
        except ValueError:
            return cls.GENERAL

    @property
    def is_linking(self) -> bool:
        return self in (OperationType.LINK_INITIATE, OperationType.LINK_CALLBACK)


class FailureMode(str, Enum):
    """
    Behaviour when the shared store is unreachable.

    OPEN favours availability (rate limiting); CLOSED favours correctness
    (verification codes).
    """
    OPEN = "open"
    CLOSED = "closed"


@dataclass(frozen=True, slots=True)
class RateLimitPolicy:
    """
    Sliding window configuration for one scope and operation.

    Business Rules:
    - Window length and quota must be positive
    - The window key expires after ceil(window_ms / 1000) seconds of inactivity
    """
    window_ms: int
    max_requests: int
    key_namespace: str

    def __post_init__(self):
        if self.window_ms <= 0:
            raise ValueError(f"window_ms must be positive for {self.key_namespace!r}")
        if self.max_requests <= 0:
            raise ValueError(f"max_requests must be positive for {self.key_namespace!r}")
        if not self.key_namespace:
            raise ValueError("key_namespace cannot be empty")

    @property
    def ttl_seconds(self) -> int:
        return math.ceil(self.window_ms / 1000)

    def key_for(self, key: str) -> str:
        return f"{self.key_namespace}:{key}"


@dataclass(frozen=True, slots=True)
class RateLimitDecision:
    """
    Result of a single rate limit check.

    Attributes:
        allowed: Whether the request may proceed
        remaining: Slots left after this request, never negative
        reset_time: Epoch milliseconds when the current window ends
        total_hits: Requests counted in the window including this one if allowed
        policy: Policy the decision was made under
        fallback_used: True when the store failed and the decision is a fail-open default
    """
    allowed: bool
    remaining: int
    reset_time: int
    total_hits: int
    policy: Optional[RateLimitPolicy] = None
    fallback_used: bool = False

    @property
    def is_blocked(self) -> bool:
        return not self.allowed

    def retry_after_seconds(self, now_ms: int) -> int:
        """Seconds a denied caller should wait, 0 when allowed."""
        if self.allowed:
            return 0
        return max(0, math.ceil((self.reset_time - now_ms) / 1000))

    def to_http_headers(self, now_ms: int, operation: Optional[OperationType] = None) -> Dict[str, str]:
        """Convert the decision to HTTP headers following standard conventions.

        - X-RateLimit-Limit: The quota of the window
        - X-RateLimit-Remaining: Requests left in the window
        - X-RateLimit-Reset: Epoch seconds when the window resets
        - X-RateLimit-Operation: Operation the quota applies to
        - Retry-After: Seconds to wait (only when blocked)
        """
        headers = {
            "X-RateLimit-Remaining": str(max(0, self.remaining)),
            "X-RateLimit-Reset": str(math.ceil(self.reset_time / 1000)),
        }
        if self.policy is not None:
            headers["X-RateLimit-Limit"] = str(self.policy.max_requests)
        if operation is not None:
            headers["X-RateLimit-Operation"] = operation.value
        if self.is_blocked:
            headers["Retry-After"] = str(self.retry_after_seconds(now_ms))
        return headers

    @classmethod
    def fail_open(cls, policy: RateLimitPolicy, now_ms: int) -> RateLimitDecision:
        """Factory for the decision returned when the store fails.

        Reports one slot consumed out of the configured maximum.
        """
        return cls(
            allowed=True,
            remaining=policy.max_requests - 1,
            reset_time=now_ms + policy.window_ms,
            total_hits=1,
            policy=policy,
            fallback_used=True,
        )

    @classmethod
    def unlimited(cls, policy: RateLimitPolicy, now_ms: int) -> RateLimitDecision:
        """Factory for requests exempt from rate limiting."""
        return cls(
            allowed=True,
            remaining=policy.max_requests,
            reset_time=now_ms + policy.window_ms,
            total_hits=0,
            policy=policy,
        )

    @classmethod
    def most_restrictive(cls, first: RateLimitDecision, second: RateLimitDecision) -> RateLimitDecision:
        """Combine decisions for several scopes of one request.

        If either denies, the result denies with the minimum remaining and the
        maximum reset time and hit count. If both allow, the decision with
        fewer remaining slots wins.
        """
        if first.allowed and second.allowed:
            return second if second.remaining < first.remaining else first

        limiting = first if not first.allowed else second
        return replace(
            limiting,
            allowed=False,
            remaining=min(first.remaining, second.remaining),
            reset_time=max(first.reset_time, second.reset_time),
            total_hits=max(first.total_hits, second.total_hits),
            fallback_used=first.fallback_used or second.fallback_used,
        )
