"""Dependencies for verification codes and operation rate limiting.

Factories build the object graph from settings:
shared store -> rate limiter -> policy resolver -> services.

Process-wide singletons (the store, the policy resolver, the publishers) are
cached; per-request services are cheap wrappers around them. The subject
repository belongs to the host application, which supplies it by overriding
`get_subject_repository` (e.g. `app.dependency_overrides`).

Key DDD Principles Applied:
- Dependency Inversion through interfaces
- Single Responsibility for each factory
- Testable dependency injection: every factory can be overridden
"""

from functools import lru_cache
from typing import Optional

from fastapi import Depends

from verigate.core.config.rate_limiting import OperationRateLimitConfig
from verigate.core.config.settings import Settings, get_settings
from verigate.core.exceptions import ConfigurationError
from verigate.domain.interfaces.collaborators import (
    ICodeDelivery,
    IOperationEventPublisher,
    ISubjectRepository,
)
from verigate.domain.interfaces.repositories import IVerificationCodeRepository
from verigate.domain.interfaces.store import ISharedStore
from verigate.domain.rate_limiting.policy import (
    OperationPolicyResolver,
    generation_policy_from_settings,
)
from verigate.domain.rate_limiting.services import (
    OperationRateLimitService,
    SlidingWindowRateLimiter,
)
from verigate.domain.verification.services import VerificationCodeService
from verigate.infrastructure.redis import create_redis_client
from verigate.infrastructure.repositories.verification_code_store import VerificationCodeStore
from verigate.infrastructure.services.code_delivery import LoggingCodeDelivery
from verigate.infrastructure.services.event_publisher import (
    CompositeEventPublisher,
    StructlogEventPublisher,
)
from verigate.infrastructure.services.metrics_publisher import BufferedMetricsPublisher
from verigate.infrastructure.stores.memory_store import InMemorySharedStore
from verigate.infrastructure.stores.redis_store import RedisSharedStore

# ---------------------------------------------------------------------------
# Builders
# ---------------------------------------------------------------------------


def build_shared_store(settings: Settings) -> ISharedStore:
    """Create the shared store selected by STORE_BACKEND."""
    if settings.STORE_BACKEND == "memory":
        return InMemorySharedStore()
    return RedisSharedStore(
        create_redis_client(settings.REDIS_URL),
        operation_timeout=settings.STORE_OPERATION_TIMEOUT_SECONDS,
        use_scripting=settings.RATE_LIMIT_USE_SCRIPTING,
    )


def build_policy_resolver(
    settings: Settings, config: Optional[OperationRateLimitConfig] = None
) -> OperationPolicyResolver:
    """Create and validate the policy resolver.

    Raises:
        ConfigurationError: If any configured policy is invalid
    """
    return OperationPolicyResolver(
        config or OperationRateLimitConfig(),
        generation_policy_from_settings(settings),
    )


def build_verification_service(
    settings: Settings,
    store: ISharedStore,
    subject_repository: ISubjectRepository,
    rate_limiter: Optional[SlidingWindowRateLimiter] = None,
    code_delivery: Optional[ICodeDelivery] = None,
    event_publisher: Optional[IOperationEventPublisher] = None,
) -> VerificationCodeService:
    """Create the verification code engine over a shared store."""
    limiter = rate_limiter or SlidingWindowRateLimiter(store, event_publisher=event_publisher)
    return VerificationCodeService(
        code_repository=VerificationCodeStore(store, settings.OTP_ATTEMPT_CAS_RETRIES),
        rate_limiter=limiter,
        generation_policy=generation_policy_from_settings(settings),
        subject_repository=subject_repository,
        code_delivery=code_delivery,
        event_publisher=event_publisher,
        code_length=settings.OTP_LENGTH,
        code_ttl_seconds=settings.otp_ttl_seconds,
        max_attempts=settings.OTP_MAX_VERIFICATION_ATTEMPTS,
        language=settings.DEFAULT_LANGUAGE,
    )


# ---------------------------------------------------------------------------
# Process-wide singletons
# ---------------------------------------------------------------------------


@lru_cache()
def get_shared_store() -> ISharedStore:
    return build_shared_store(get_settings())


@lru_cache()
def get_policy_resolver() -> OperationPolicyResolver:
    return build_policy_resolver(get_settings())


@lru_cache()
def get_metrics_publisher() -> BufferedMetricsPublisher:
    settings = get_settings()
    return BufferedMetricsPublisher(
        flush_interval_seconds=settings.METRICS_FLUSH_INTERVAL_SECONDS,
        max_buffer_size=settings.METRICS_MAX_BUFFER_SIZE,
        high_latency_ms=settings.METRICS_HIGH_LATENCY_MS,
    )


@lru_cache()
def get_event_publisher() -> IOperationEventPublisher:
    """Audit log plus buffered metrics for every operation event."""
    return CompositeEventPublisher([StructlogEventPublisher(), get_metrics_publisher()])


# ---------------------------------------------------------------------------
# Request-scoped dependencies
# ---------------------------------------------------------------------------


def get_rate_limiter(
    store: ISharedStore = Depends(get_shared_store),
    event_publisher: IOperationEventPublisher = Depends(get_event_publisher),
) -> SlidingWindowRateLimiter:
    return SlidingWindowRateLimiter(store, event_publisher=event_publisher)


def get_operation_rate_limit_service(
    limiter: SlidingWindowRateLimiter = Depends(get_rate_limiter),
    resolver: OperationPolicyResolver = Depends(get_policy_resolver),
) -> OperationRateLimitService:
    return OperationRateLimitService(limiter, resolver)


def get_code_repository(
    store: ISharedStore = Depends(get_shared_store),
) -> IVerificationCodeRepository:
    return VerificationCodeStore(store, get_settings().OTP_ATTEMPT_CAS_RETRIES)


def get_code_delivery() -> ICodeDelivery:
    """Development delivery; production apps override this with their mailer."""
    return LoggingCodeDelivery(test_mode=get_settings().TEST_MODE)


def get_subject_repository() -> ISubjectRepository:
    """Placeholder the host application must override."""
    raise ConfigurationError(
        "No subject repository configured; override get_subject_repository"
    )


def get_verification_service(
    code_repository: IVerificationCodeRepository = Depends(get_code_repository),
    limiter: SlidingWindowRateLimiter = Depends(get_rate_limiter),
    subject_repository: ISubjectRepository = Depends(get_subject_repository),
    code_delivery: ICodeDelivery = Depends(get_code_delivery),
    event_publisher: IOperationEventPublisher = Depends(get_event_publisher),
) -> VerificationCodeService:
    settings = get_settings()
    return VerificationCodeService(
        code_repository=code_repository,
        rate_limiter=limiter,
        generation_policy=generation_policy_from_settings(settings),
        subject_repository=subject_repository,
        code_delivery=code_delivery,
        event_publisher=event_publisher,
        code_length=settings.OTP_LENGTH,
        code_ttl_seconds=settings.otp_ttl_seconds,
        max_attempts=settings.OTP_MAX_VERIFICATION_ATTEMPTS,
    )
