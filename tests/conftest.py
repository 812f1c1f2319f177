import os

# Settings are read at import time; pin the test environment first.
os.environ.setdefault("APP_ENV", "test")
os.environ.setdefault("STORE_BACKEND", "memory")
os.environ.setdefault("LOG_JSON", "false")

import pytest
import pytest_asyncio

from verigate.domain.rate_limiting.services import SlidingWindowRateLimiter
from verigate.domain.rate_limiting.value_objects import RateLimitPolicy
from verigate.domain.verification.services import VerificationCodeService
from verigate.infrastructure.repositories.verification_code_store import VerificationCodeStore
from verigate.infrastructure.services.code_delivery import LoggingCodeDelivery
from verigate.infrastructure.services.event_publisher import InMemoryEventPublisher
from verigate.infrastructure.stores.memory_store import InMemorySharedStore
from tests.factories import (
    FakeSubjectRepository,
    FixedRandomSource,
    InterleavingSharedStore,
    ManualClock,
    create_fake_subject,
)


@pytest.fixture
def clock() -> ManualClock:
    return ManualClock()


@pytest.fixture
def random_source() -> FixedRandomSource:
    return FixedRandomSource()


@pytest.fixture
def store(clock) -> InMemorySharedStore:
    return InMemorySharedStore(clock=clock)


@pytest.fixture
def interleaving_store(clock) -> InterleavingSharedStore:
    return InterleavingSharedStore(clock=clock)


@pytest.fixture
def events() -> InMemoryEventPublisher:
    return InMemoryEventPublisher()


@pytest.fixture
def limiter(store, clock, random_source, events) -> SlidingWindowRateLimiter:
    return SlidingWindowRateLimiter(
        store, clock=clock, random_source=random_source, event_publisher=events
    )


@pytest.fixture
def generation_policy() -> RateLimitPolicy:
    return RateLimitPolicy(window_ms=3_600_000, max_requests=3, key_namespace="otp_rate_limit")


@pytest.fixture
def subjects() -> FakeSubjectRepository:
    repo = FakeSubjectRepository()
    repo.add(create_fake_subject(subject_id="user-1", contact_address="john.doe@example.com"))
    return repo


@pytest.fixture
def delivery() -> LoggingCodeDelivery:
    return LoggingCodeDelivery(test_mode=True)


@pytest.fixture
def code_store(store) -> VerificationCodeStore:
    return VerificationCodeStore(store)


@pytest_asyncio.fixture
async def verification_service(
    code_store, limiter, generation_policy, subjects, delivery, events, clock, random_source
) -> VerificationCodeService:
    return VerificationCodeService(
        code_repository=code_store,
        rate_limiter=limiter,
        generation_policy=generation_policy,
        subject_repository=subjects,
        code_delivery=delivery,
        event_publisher=events,
        clock=clock,
        random_source=random_source,
    )
