"""Verification Domain Entities

- VerificationCode: the single live code record of a subject
- VerificationSubject: the entity being verified, owned by the host application
- VerificationState: state of a subject's verification reported by status

Business Rules:
- At most one live code per subject; issuing a new one overwrites the old
- Failed comparisons increment `attempts`; the code value never changes
- Expiry is carried by the store TTL, not by the record itself
"""

from __future__ import annotations

import json
from dataclasses import dataclass, replace
from datetime import datetime, timezone
from enum import Enum
from typing import Tuple


class VerificationState(str, Enum):
    """Verification state of a subject as reported by `status`.

    NONE -> ACTIVE on generate. ACTIVE ends in VERIFIED (match), LOCKED
    (attempts exhausted, for the rest of the code's lifetime) or expiry.
    An expired code leaves no trace in the store, so expiry reads as NONE.
    A new generate restarts at ACTIVE from any terminal state.
    """

    NONE = "none"
    ACTIVE = "active"
    VERIFIED = "verified"
    LOCKED = "locked"


@dataclass(frozen=True)
class VerificationCode:
    """A short-lived numeric code tied to one subject.

    Attributes:
        subject_id: Identifier of the entity being verified
        code: Fixed-length decimal digits
        contact_address: Destination the code was sent to, kept for audit and resend
        attempts: Failed comparisons since creation
        created_at: Creation time (UTC)
    """

    subject_id: str
    code: str
    contact_address: str
    attempts: int = 0
    created_at: datetime = None  # type: ignore[assignment]

    def __post_init__(self):
        if self.attempts < 0:
            raise ValueError("attempts cannot be negative")
        if not self.code.isdigit():
            raise ValueError("code must contain only digits")
        if self.created_at is None:
            object.__setattr__(self, "created_at", datetime.now(timezone.utc))
        elif not self.created_at.tzinfo:
            object.__setattr__(self, "created_at", self.created_at.replace(tzinfo=timezone.utc))

    def with_failed_attempt(self) -> VerificationCode:
        """Return a copy with one more failed attempt recorded."""
        return replace(self, attempts=self.attempts + 1)

    def to_json(self) -> str:
        return json.dumps(
            {
                "subject_id": self.subject_id,
                "code": self.code,
                "contact_address": self.contact_address,
                "attempts": self.attempts,
                "created_at": self.created_at.isoformat(),
            },
            separators=(",", ":"),
        )

    @classmethod
    def from_json(cls, raw: str) -> VerificationCode:
        """Rebuild a record from its stored JSON form.

        Raises:
            ValueError: If the payload is not a valid record
        """
        try:
            data = json.loads(raw)
            return cls(
                subject_id=str(data["subject_id"]),
                code=str(data["code"]),
                contact_address=str(data["contact_address"]),
                attempts=int(data["attempts"]),
                created_at=datetime.fromisoformat(data["created_at"]),
            )
        except (KeyError, TypeError, json.JSONDecodeError) as exc:
            raise ValueError(f"Malformed verification code record: {exc}") from exc


@dataclass(frozen=True)
class VerificationSubject:
    """View of the entity being verified, as supplied by its repository.

    Attributes:
        subject_id: Identifier of the entity
        contact_address: Email address codes are sent to
        is_verified: Whether the address has already been verified
        auth_methods: Sign-in methods of the subject, e.g. ("password", "google")
    """

    subject_id: str
    contact_address: str
    is_verified: bool = False
    auth_methods: Tuple[str, ...] = ()
