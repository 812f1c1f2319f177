"""Collaborator interfaces consumed by the verification engine.

The engine owns code semantics only. Subject persistence, code delivery and
event publishing belong to the host application and are reached through
these contracts.
"""

from abc import ABC, abstractmethod
from typing import Optional

from verigate.domain.events.operation_events import OperationEvent
from verigate.domain.verification.entities import VerificationSubject


class ISubjectRepository(ABC):
    """Interface for the repository owning verifiable subjects (e.g. users)."""

    @abstractmethod
    async def get_subject(self, subject_id: str) -> Optional[VerificationSubject]:
        """Load a subject's contact address and verification flag.

        Args:
            subject_id: Subject identifier

        Returns:
            Optional[VerificationSubject]: None if the subject does not exist
        """
        pass

    @abstractmethod
    async def mark_verified(self, subject_id: str) -> None:
        """Perform the success action for a verified subject.

        Args:
            subject_id: Subject identifier
        """
        pass


class ICodeDelivery(ABC):
    """Interface for sending a generated code to its contact address."""

    @abstractmethod
    async def send_code(
        self, subject_id: str, contact_address: str, code: str, expires_in_minutes: int
    ) -> bool:
        """Deliver a verification code.

        Delivery is best effort: a False return or an exception is reported
        back to the caller as a failed delivery and never revokes the code.

        Returns:
            bool: True if the transport accepted the message
        """
        pass


class IOperationEventPublisher(ABC):
    """Interface for publishing operation outcome events."""

    @abstractmethod
    async def publish(self, event: OperationEvent) -> None:
        """Publish an event. Implementations must not raise."""
        pass
