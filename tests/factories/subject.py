from __future__ import annotations

"""Factory for generating fake verification subjects for testing."""

from typing import Optional, Tuple

from faker import Faker

from verigate.domain.verification.entities import VerificationSubject

fake = Faker()


def create_fake_subject(
    subject_id: Optional[str] = None,
    contact_address: Optional[str] = None,
    is_verified: bool = False,
    auth_methods: Tuple[str, ...] = ("password",),
) -> VerificationSubject:
    """Create a fake VerificationSubject for testing.

    Args:
        subject_id (Optional[str]): Subject id, defaults to a random UUID.
        contact_address (Optional[str]): Email address, defaults to a random one.
        is_verified (bool): Whether the subject is already verified.
        auth_methods (Tuple[str, ...]): Sign-in methods, password by default.

    Returns:
        VerificationSubject: A subject populated with fake data.
    """
    return VerificationSubject(
        subject_id=subject_id or fake.uuid4(),
        contact_address=contact_address or fake.email(),
        is_verified=is_verified,
        auth_methods=auth_methods,
    )
