"""Repository interfaces for verification code persistence."""

from abc import ABC, abstractmethod
from typing import Optional

from verigate.domain.verification.entities import VerificationCode


class IVerificationCodeRepository(ABC):
    """Interface for storing one verification code record per subject.

    All methods raise `StoreUnavailableError` when the backing store fails.
    """

    @abstractmethod
    async def put(self, record: VerificationCode, ttl_seconds: int) -> None:
        """Store a record, replacing any previous one and clearing a lockout."""
        pass

    @abstractmethod
    async def get(self, subject_id: str) -> Optional[VerificationCode]:
        """Load the live record for a subject.

        Malformed records read as None and are left in place; they are
        replaced by the next `put` or expire with their TTL.
        """
        pass

    @abstractmethod
    async def delete(self, subject_id: str) -> bool:
        """Delete the record.

        Returns:
            bool: True only if this call removed an existing record
        """
        pass

    @abstractmethod
    async def remaining_ttl(self, subject_id: str) -> int:
        """Seconds until the record expires, 0 when absent."""
        pass

    @abstractmethod
    async def increment_attempts(self, subject_id: str) -> Optional[VerificationCode]:
        """Record one failed attempt without touching the record's TTL.

        Returns:
            Optional[VerificationCode]: The updated record, or None if it vanished
        """
        pass

    @abstractmethod
    async def lock(self, subject_id: str, ttl_seconds: int) -> None:
        """Leave a lockout marker after the record was deleted for exhaustion."""
        pass

    @abstractmethod
    async def is_locked(self, subject_id: str) -> bool:
        """Whether a lockout marker is present, without consuming it."""
        pass

    @abstractmethod
    async def consume_lock(self, subject_id: str) -> bool:
        """Remove the lockout marker.

        Returns:
            bool: True if a marker was present
        """
        pass
