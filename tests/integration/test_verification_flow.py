"""Verification code lifecycle across the engine, code store, limiter and shared store."""

import pytest

from verigate.core.config.settings import Settings
from verigate.domain.rate_limiting.services import SlidingWindowRateLimiter
from verigate.domain.verification.value_objects import VerificationErrorCode
from verigate.infrastructure.dependency_injection.verification_dependencies import (
    build_verification_service,
)
from verigate.infrastructure.services.code_delivery import LoggingCodeDelivery
from verigate.infrastructure.services.event_publisher import InMemoryEventPublisher
from verigate.infrastructure.services.metrics_publisher import BufferedMetricsPublisher
from verigate.infrastructure.stores.memory_store import InMemorySharedStore

pytestmark = pytest.mark.integration


@pytest.fixture
def settings():
    return Settings(
        _env_file=None,
        APP_ENV="test",
        OTP_EXPIRATION_MINUTES=10,
        OTP_MAX_VERIFICATION_ATTEMPTS=3,
        OTP_RATE_LIMIT_ATTEMPTS=2,
        OTP_RATE_LIMIT_WINDOW_MS=600_000,
    )


@pytest.fixture
def batch_store(clock):
    # Mirrors the MULTI/EXEC path: inserts always land and are rolled back past the quota.
    return InMemorySharedStore(clock=clock, conditional_insert=False)


@pytest.fixture
def delivery():
    return LoggingCodeDelivery(test_mode=True)


@pytest.fixture
def service(settings, batch_store, subjects, delivery, events, clock):
    limiter = SlidingWindowRateLimiter(batch_store, clock=clock, event_publisher=events)
    return build_verification_service(
        settings, batch_store, subjects, rate_limiter=limiter, code_delivery=delivery, event_publisher=events
    )


@pytest.mark.asyncio
async def test_lifecycle_through_lock_expiry_and_regeneration(service, delivery, clock):
    await service.generate("user-1", "john.doe@example.com")
    code = delivery.sent_codes["user-1"]
    wrong = "1" * len(code) if code != "1" * len(code) else "2" * len(code)

    results = [await service.verify("user-1", wrong) for _ in range(3)]
    assert [r.error_code for r in results] == [
        VerificationErrorCode.INVALID_OTP,
        VerificationErrorCode.INVALID_OTP,
        VerificationErrorCode.MAX_ATTEMPTS_EXCEEDED,
    ]
    assert (await service.verify("user-1", code)).is_exhausted
    assert (await service.verify("user-1", code)).is_not_found

    await service.generate("user-1", "john.doe@example.com")
    assert (await service.generate("user-1", "john.doe@example.com")).error_code is VerificationErrorCode.RATE_LIMITED

    clock.advance(600_000)
    assert (await service.status("user-1")).has_active_code is False
    assert (await service.status("user-1")).can_resend is True

    await service.generate("user-1", "john.doe@example.com")
    assert (await service.verify("user-1", delivery.sent_codes["user-1"])).success is True


@pytest.mark.asyncio
async def test_lock_marker_expires_with_the_code(service, delivery, clock):
    await service.generate("user-1", "john.doe@example.com")
    code = delivery.sent_codes["user-1"]
    wrong = "1" * len(code) if code != "1" * len(code) else "2" * len(code)
    for _ in range(3):
        await service.verify("user-1", wrong)

    clock.advance(600_000)

    assert (await service.verify("user-1", code)).is_not_found


@pytest.mark.asyncio
async def test_events_feed_metrics(service, events, delivery):
    await service.generate("user-1", "john.doe@example.com")
    await service.verify("user-1", delivery.sent_codes["user-1"])

    summary = BufferedMetricsPublisher.summarize(events.get_published_events())

    assert summary["operations"]["generate"]["succeeded"] == 1
    assert summary["operations"]["verify"]["success_rate"] == 1.0
    assert summary["operations"]["rate_limit"]["total"] == 1
