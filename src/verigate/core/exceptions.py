from __future__ import annotations

"""Centralized, structured exception hierarchy for verigate.

Each exception carries a machine-readable `code` for programmatic handling and
a human-readable `message` for logging and user feedback.

Only faults are exceptions. Expected outcomes of the verification flow (no
active code, wrong code, attempts exhausted, generation quota reached) are
returned as result objects by the services, never raised.

The hierarchy maps onto HTTP status codes in the API layer:
- RateLimitExceededError -> 429
- StoreUnavailableError -> 503
- SubjectNotFoundError -> 404
- any other VerigateError -> 400
"""

from typing import Dict, Final, Optional

__all__: Final = [
    "VerigateError",
    "RateLimitExceededError",
    "StoreUnavailableError",
    "WriteConflictError",
    "ConfigurationError",
    "SubjectNotFoundError",
]


class VerigateError(Exception):
    """Base exception class for all custom errors in verigate.

    Attributes:
        message (str): A human-readable error message, suitable for logging.
        code (str): A unique, machine-readable error code.
    """

    message: str
    code: str = "generic_error"

    def __init__(self, message: str, code: str = "generic_error"):
        self.message = message
        self.code = code
        Exception.__init__(self, self.message)

    def __str__(self) -> str:
        return self.message


# ---------------------------------------------------------------------------
# Quota errors (map to 429 Too Many Requests)
# ---------------------------------------------------------------------------


class RateLimitExceededError(VerigateError):
    """Raised by the HTTP guard when a request exceeds its operation quota.

    The core limiter never raises this; it returns a denied decision which
    the guard converts.

    Attributes:
        retry_after (int): Seconds until the window frees a slot.
        headers (dict): Rate limit headers to attach to the 429 response.
    """

    def __init__(
        self,
        message: str = "Too many requests. Please try again later.",
        retry_after: int = 0,
        headers: Optional[Dict[str, str]] = None,
        code: str = "rate_limit_exceeded",
    ):
        super().__init__(message, code)
        self.retry_after = retry_after
        self.headers = dict(headers or {})


# ---------------------------------------------------------------------------
# Infrastructure errors (map to 503 Service Unavailable)
# ---------------------------------------------------------------------------


class StoreUnavailableError(VerigateError):
    """Raised when the shared store cannot be reached or a call times out.

    Verification code operations propagate this (fail closed). The rate
    limiter catches it and allows the request instead (fail open).
    """

    def __init__(
        self,
        message: str = "Verification service is temporarily unavailable",
        code: str = "store_unavailable",
    ):
        super().__init__(message, code)


class WriteConflictError(VerigateError):
    """Raised when an optimistic compare-and-set loses a race.

    Internal signal used to drive retries; callers outside the store layer
    only see it wrapped in StoreUnavailableError once retries are exhausted.
    """

    def __init__(self, message: str = "Concurrent update detected", code: str = "write_conflict"):
        super().__init__(message, code)


# ---------------------------------------------------------------------------
# Startup errors
# ---------------------------------------------------------------------------


class ConfigurationError(VerigateError):
    """Raised at startup when a rate limit policy or setting is invalid."""

    def __init__(self, message: str, code: str = "configuration_error"):
        super().__init__(message, code)


# ---------------------------------------------------------------------------
# Lookup errors (map to 404 Not Found)
# ---------------------------------------------------------------------------


class SubjectNotFoundError(VerigateError):
    """Raised when the subject owning a verification code does not exist."""

    def __init__(self, message: str = "Subject not found", code: str = "subject_not_found"):
        super().__init__(message, code)
