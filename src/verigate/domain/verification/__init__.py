"""Verification Domain Module

Single-use numeric verification codes: generation, attempt-limited
verification, resend and expiry.
"""

from .entities import VerificationCode, VerificationState, VerificationSubject
from .value_objects import (
    BulkVerificationResult,
    CodeStatus,
    DeliveryStatus,
    GenerationResult,
    VerificationErrorCode,
    VerificationResult,
)

__all__ = [
    "VerificationCode",
    "VerificationState",
    "VerificationSubject",
    "BulkVerificationResult",
    "CodeStatus",
    "DeliveryStatus",
    "GenerationResult",
    "VerificationErrorCode",
    "VerificationResult",
]
