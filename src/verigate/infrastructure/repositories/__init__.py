"""Repository implementations for the infrastructure layer."""

from .verification_code_store import VerificationCodeStore

__all__ = ["VerificationCodeStore"]
