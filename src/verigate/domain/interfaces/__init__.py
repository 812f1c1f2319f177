"""Domain Interfaces for dependency inversion.

These interfaces define contracts that infrastructure must implement, keeping
the verification and rate limiting domains free of storage and transport
details.

Interface Organization:
- Store: the shared TTL-capable key-value store
- Repositories: verification code persistence
- Collaborators: subject repository, code delivery, event publishing
"""

from .collaborators import ICodeDelivery, IOperationEventPublisher, ISubjectRepository
from .repositories import IVerificationCodeRepository
from .store import ISharedStore, SlidingWindowHit

__all__ = [
    "ISharedStore",
    "SlidingWindowHit",
    "IVerificationCodeRepository",
    "ISubjectRepository",
    "ICodeDelivery",
    "IOperationEventPublisher",
]
