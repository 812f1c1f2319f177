"""
Verification Value Objects

Immutable results returned by the verification code engine. Expected
outcomes (quota reached, wrong code, attempts exhausted, no code) are carried
here with an error code instead of being raised.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional

from .entities import VerificationState


class VerificationErrorCode(str, Enum):
    OTP_NOT_FOUND = "OTP_NOT_FOUND"
    INVALID_OTP = "INVALID_OTP"
    MAX_ATTEMPTS_EXCEEDED = "MAX_ATTEMPTS_EXCEEDED"
    RATE_LIMITED = "RATE_LIMITED"
    ALREADY_VERIFIED = "ALREADY_VERIFIED"
    STORE_UNAVAILABLE = "STORE_UNAVAILABLE"


class DeliveryStatus(str, Enum):
    SENT = "sent"
    FAILED = "failed"


@dataclass(frozen=True, slots=True)
class GenerationResult:
    """Outcome of `generate` and `resend`.

    Attributes:
        success: Whether a new code was issued
        message: Human-readable outcome
        retry_after: Seconds until generation is allowed again (quota denials)
        delivery_status: Best-effort delivery flag for issued codes
        error_code: Failure reason
    """

    success: bool
    message: str
    retry_after: Optional[int] = None
    delivery_status: Optional[DeliveryStatus] = None
    error_code: Optional[VerificationErrorCode] = None


@dataclass(frozen=True, slots=True)
class VerificationResult:
    """Outcome of `verify`.

    Attributes:
        success: Whether the candidate matched the live code
        message: Human-readable outcome
        remaining_attempts: Wrong guesses left before the code is locked
        error_code: Failure reason
    """

    success: bool
    message: str
    remaining_attempts: Optional[int] = None
    error_code: Optional[VerificationErrorCode] = None

    @property
    def is_exhausted(self) -> bool:
        return self.error_code is VerificationErrorCode.MAX_ATTEMPTS_EXCEEDED

    @property
    def is_not_found(self) -> bool:
        return self.error_code is VerificationErrorCode.OTP_NOT_FOUND


@dataclass(frozen=True, slots=True)
class CodeStatus:
    """Read-only snapshot of a subject's verification state.

    Attributes:
        has_active_code: Whether a live code exists
        can_resend: Whether the generation quota allows another code
        remaining_ttl: Seconds left on the live code
        attempts: Failed attempts on the live code
        state: ACTIVE with a live code, LOCKED while the lockout marker lives,
            VERIFIED for verified subjects, NONE otherwise
    """

    has_active_code: bool
    can_resend: bool
    remaining_ttl: Optional[int] = None
    attempts: Optional[int] = None
    state: VerificationState = VerificationState.NONE


@dataclass(frozen=True, slots=True)
class BulkVerificationResult:
    """Outcome of an administrative bulk verification."""

    verified: List[str] = field(default_factory=list)
    failed: List[str] = field(default_factory=list)

    @property
    def verified_count(self) -> int:
        return len(self.verified)

    @property
    def failed_count(self) -> int:
        return len(self.failed)
