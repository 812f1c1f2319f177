"""Rate Limiting Domain Module

Sliding-window rate limiting keyed by identity scope (IP, tenant, user) and
operation type, following Domain-Driven Design principles:

- Value Objects: policies, decisions, scopes and operation types
- Policy Resolver: maps scope and operation to a policy
- Domain Services: the sliding-window limiter and the operation service

The limiter fails open: when the shared store is unreachable a request is
allowed and the failure is logged.
"""

from .value_objects import (
    FailureMode,
    LimitScope,
    OperationType,
    RateLimitDecision,
    RateLimitPolicy,
)

__all__ = [
    "FailureMode",
    "LimitScope",
    "OperationType",
    "RateLimitDecision",
    "RateLimitPolicy",
]
