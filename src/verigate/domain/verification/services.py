"""Verification Code Engine.

This service owns the lifecycle of single-use numeric verification codes:
generation behind a sliding-window quota, attempt-limited verification,
resend, status and administrative cleanup. User-facing messages are
resolved through the locale catalogs.

Key DDD Principles Applied:
- Single Responsibility: code semantics only; delivery, subject persistence
  and event transport are collaborators behind interfaces
- Dependency Inversion: the code repository, rate limiter, clock and random
  source are all injected
- Expected outcomes are results, faults are exceptions

Failure policy:
- Code store faults propagate as StoreUnavailableError (fail closed). A store
  outage must never grant a verification.
- The generation quota check goes through the rate limiter, which fails open.
- Delivery and event publishing are best effort and never fail the operation.

Security:
- Codes come from the OS CSPRNG and are compared in constant time
- Failed attempts never extend a code's lifetime
- Codes are never logged; contact addresses are masked
"""

from __future__ import annotations

import hmac
from typing import Iterable, Optional

import structlog

from verigate.core.clock import SecureRandomSource, SystemClock, generate_numeric_code
from verigate.core.exceptions import StoreUnavailableError, SubjectNotFoundError, VerigateError
from verigate.core.logging import mask_email
from verigate.domain.events.operation_events import OperationEvent
from verigate.domain.interfaces.collaborators import (
    ICodeDelivery,
    IOperationEventPublisher,
    ISubjectRepository,
)
from verigate.domain.interfaces.repositories import IVerificationCodeRepository
from verigate.domain.rate_limiting.services import SlidingWindowRateLimiter
from verigate.domain.rate_limiting.value_objects import RateLimitPolicy
from verigate.utils.i18n import get_translated_message

from .entities import VerificationCode, VerificationState
from .value_objects import (
    BulkVerificationResult,
    CodeStatus,
    DeliveryStatus,
    GenerationResult,
    VerificationErrorCode,
    VerificationResult,
)

logger = structlog.get_logger(__name__)

# Message keys resolved through the locale catalogs
MSG_CODE_SENT = "verification_code_sent"
MSG_CODE_GENERATED_DELIVERY_FAILED = "verification_code_delivery_failed"
MSG_RATE_LIMITED = "verification_rate_limited"
MSG_NOT_FOUND = "verification_code_not_found"
MSG_MAX_ATTEMPTS = "verification_max_attempts_exceeded"
MSG_INVALID = "verification_code_invalid"
MSG_VERIFIED = "email_verified_successfully"
MSG_ALREADY_VERIFIED = "email_already_verified"

# Sign-in methods whose identity provider has already verified the email address
TRUSTED_AUTH_METHODS = frozenset({"google"})



class VerificationCodeService:
    """Generates, verifies and resends verification codes.

    Args:
        code_repository: Persistence for the live code of each subject
        rate_limiter: Limiter gating generation
        generation_policy: Generation quota (default 3 per hour)
        subject_repository: Owner of the subjects being verified
        code_delivery: Optional transport for sending codes
        event_publisher: Optional sink for operation events
        code_length: Digits per code
        code_ttl_seconds: Lifetime of a code
        max_attempts: Wrong guesses allowed before the code is destroyed
        clock: Time source
        random_source: Secure random source
        language: Locale of result messages when a call passes none
    """

    def __init__(
        self,
        code_repository: IVerificationCodeRepository,
        rate_limiter: SlidingWindowRateLimiter,
        generation_policy: RateLimitPolicy,
        subject_repository: ISubjectRepository,
        code_delivery: Optional[ICodeDelivery] = None,
        event_publisher: Optional[IOperationEventPublisher] = None,
        code_length: int = 6,
        code_ttl_seconds: int = 30 * 60,
        max_attempts: int = 5,
        clock: Optional[SystemClock] = None,
        random_source: Optional[SecureRandomSource] = None,
        language: Optional[str] = None,
    ):
        self._codes = code_repository
        self._rate_limiter = rate_limiter
        self._generation_policy = generation_policy
        self._subjects = subject_repository
        self._delivery = code_delivery
        self._event_publisher = event_publisher
        self._code_length = code_length
        self._code_ttl_seconds = code_ttl_seconds
        self._max_attempts = max_attempts
        self._clock = clock or SystemClock()
        self._random = random_source or SecureRandomSource()
        self._language = language

    @property
    def max_attempts(self) -> int:
        return self._max_attempts

    async def generate(
        self, subject_id: str, contact_address: str, locale: Optional[str] = None
    ) -> GenerationResult:
        """Issue a new code for a subject, replacing any live one.

        Args:
            subject_id: Subject being verified
            contact_address: Where the code is sent
            locale: Language of the result message

        Returns:
            GenerationResult: success with delivery status, or a quota denial
                carrying `retry_after` seconds

        Raises:
            StoreUnavailableError: If the code could not be stored
        """
        started = self._clock.monotonic()
        decision = await self._rate_limiter.check(
            self._generation_key(subject_id), self._generation_policy
        )
        if not decision.allowed:
            retry_after = decision.retry_after_seconds(self._clock.now_ms())
            logger.warning(
                "Verification code generation rate limited",
                subject_id=subject_id,
                retry_after=retry_after,
            )
            await self._emit("generate", subject_id, False, started, VerificationErrorCode.RATE_LIMITED)
            return GenerationResult(
                success=False,
                message=self._message(MSG_RATE_LIMITED, locale, seconds=retry_after),
                retry_after=retry_after,
                error_code=VerificationErrorCode.RATE_LIMITED,
            )

        record = VerificationCode(
            subject_id=subject_id,
            code=generate_numeric_code(self._code_length, self._random),
            contact_address=contact_address,
            attempts=0,
            created_at=self._clock.now(),
        )
        try:
            await self._codes.put(record, self._code_ttl_seconds)
        except StoreUnavailableError:
            await self._emit("generate", subject_id, False, started, VerificationErrorCode.STORE_UNAVAILABLE)
            raise

        delivery_status = await self._deliver(record)
        logger.info(
            "Verification code generated",
            subject_id=subject_id,
            email=mask_email(contact_address),
            delivery_status=delivery_status.value,
            expires_in_seconds=self._code_ttl_seconds,
        )
        await self._emit("generate", subject_id, True, started)
        message_key = (
            MSG_CODE_SENT
            if delivery_status is DeliveryStatus.SENT
            else MSG_CODE_GENERATED_DELIVERY_FAILED
        )
        return GenerationResult(
            success=True,
            message=self._message(message_key, locale),
            delivery_status=delivery_status,
        )

    async def verify(
        self, subject_id: str, candidate: str, locale: Optional[str] = None
    ) -> VerificationResult:
        """Check a candidate code against the subject's live code.

        A match consumes the code. A mismatch counts one attempt without
        refreshing the code's TTL; the attempt that reaches the maximum
        destroys the code.

        Raises:
            StoreUnavailableError: If the code store fails
        """
        started = self._clock.monotonic()
        try:
            result = await self._verify(subject_id, candidate, locale)
        except StoreUnavailableError:
            await self._emit("verify", subject_id, False, started, VerificationErrorCode.STORE_UNAVAILABLE)
            raise
        await self._emit("verify", subject_id, result.success, started, result.error_code)
        return result

    async def resend(self, subject_id: str, locale: Optional[str] = None) -> GenerationResult:
        """Discard any live code and generate a new one.

        The generation quota applies, so resend cannot bypass it.

        Raises:
            SubjectNotFoundError: If the subject does not exist
            StoreUnavailableError: If the code store fails
        """
        started = self._clock.monotonic()
        subject = await self._subjects.get_subject(subject_id)
        if subject is None:
            raise SubjectNotFoundError()
        if subject.is_verified:
            logger.info("Resend skipped for verified subject", subject_id=subject_id)
            await self._emit("resend", subject_id, False, started, VerificationErrorCode.ALREADY_VERIFIED)
            return GenerationResult(
                success=False,
                message=self._message(MSG_ALREADY_VERIFIED, locale),
                error_code=VerificationErrorCode.ALREADY_VERIFIED,
            )

        await self._codes.delete(subject_id)
        result = await self.generate(subject_id, subject.contact_address, locale)
        await self._emit("resend", subject_id, result.success, started, result.error_code)
        return result

    async def status(self, subject_id: str) -> CodeStatus:
        """Read-only snapshot of a subject's code, lockout and generation quota.

        Neither the code, the lockout marker nor the rate limit window is
        modified.
        """
        record = await self._codes.get(subject_id)
        remaining_ttl = await self._codes.remaining_ttl(subject_id) if record else None
        quota = await self._rate_limiter.status(
            self._generation_key(subject_id), self._generation_policy
        )
        if record is not None:
            state = VerificationState.ACTIVE
        elif await self._codes.is_locked(subject_id):
            state = VerificationState.LOCKED
        elif await self.is_verified(subject_id):
            state = VerificationState.VERIFIED
        else:
            state = VerificationState.NONE
        return CodeStatus(
            has_active_code=record is not None,
            can_resend=quota.allowed,
            remaining_ttl=remaining_ttl,
            attempts=record.attempts if record else None,
            state=state,
        )

    async def is_verified(self, subject_id: str) -> bool:
        """Whether the subject exists and its address is verified."""
        subject = await self._subjects.get_subject(subject_id)
        return subject is not None and subject.is_verified

    async def requires_verification(self, subject_id: str) -> bool:
        """Whether the subject still has to verify its address with a code.

        Unknown subjects, verified subjects and subjects signing in through a
        trusted identity provider do not.
        """
        subject = await self._subjects.get_subject(subject_id)
        if subject is None:
            return False
        if TRUSTED_AUTH_METHODS.intersection(subject.auth_methods):
            return False
        return not subject.is_verified

    async def clear(self, subject_id: str) -> None:
        """Administrative cleanup of a subject's code, lockout and generation quota."""
        await self._codes.delete(subject_id)
        await self._codes.consume_lock(subject_id)
        await self._rate_limiter.reset(self._generation_key(subject_id), self._generation_policy)
        logger.info("Verification data cleared", subject_id=subject_id)

    async def bulk_verify(self, subject_ids: Iterable[str]) -> BulkVerificationResult:
        """Administratively mark subjects verified and discard their codes.

        Per-subject failures are collected rather than aborting the batch.
        """
        result = BulkVerificationResult()
        for subject_id in subject_ids:
            try:
                subject = await self._subjects.get_subject(subject_id)
                if subject is None:
                    raise SubjectNotFoundError()
                if not subject.is_verified:
                    await self._subjects.mark_verified(subject_id)
                await self._codes.delete(subject_id)
            except VerigateError as exc:
                logger.warning("Bulk verification failed", subject_id=subject_id, error=exc.code)
                result.failed.append(subject_id)
                continue
            result.verified.append(subject_id)

        logger.info(
            "Bulk verification completed",
            verified=result.verified_count,
            failed=result.failed_count,
        )
        return result

    async def _verify(self, subject_id: str, candidate: str, locale: Optional[str]) -> VerificationResult:
        record = await self._codes.get(subject_id)
        if record is None:
            if await self._codes.consume_lock(subject_id):
                return self._exhausted(locale)
            return self._not_found(locale)

        if record.attempts >= self._max_attempts:
            await self._codes.delete(subject_id)
            logger.warning("Verification attempts already exhausted", subject_id=subject_id)
            return self._exhausted(locale)

        if not hmac.compare_digest(candidate.encode("utf-8"), record.code.encode("utf-8")):
            return await self._record_mismatch(subject_id, locale)

        # Only the caller whose delete removes the record wins a concurrent race.
        if not await self._codes.delete(subject_id):
            return self._not_found(locale)
        await self._subjects.mark_verified(subject_id)
        logger.info("Verification code accepted", subject_id=subject_id)
        return VerificationResult(success=True, message=self._message(MSG_VERIFIED, locale))

    async def _record_mismatch(self, subject_id: str, locale: Optional[str]) -> VerificationResult:
        updated = await self._codes.increment_attempts(subject_id)
        if updated is None:
            # Lost the race to the guess that exhausted the code.
            if await self._codes.is_locked(subject_id):
                return self._exhausted(locale)
            return self._not_found(locale)

        if updated.attempts >= self._max_attempts:
            remaining_ttl = await self._codes.remaining_ttl(subject_id)
            if remaining_ttl > 0:
                # Marker before delete: a reader never finds neither.
                await self._codes.lock(subject_id, remaining_ttl)
                await self._codes.delete(subject_id)
            logger.warning(
                "Verification code locked after failed attempts",
                subject_id=subject_id,
                attempts=updated.attempts,
            )
            return self._exhausted(locale)

        remaining = self._max_attempts - updated.attempts
        logger.info(
            "Invalid verification code",
            subject_id=subject_id,
            attempts=updated.attempts,
            remaining_attempts=remaining,
        )
        return VerificationResult(
            success=False,
            message=self._message(MSG_INVALID, locale, remaining=remaining),
            remaining_attempts=remaining,
            error_code=VerificationErrorCode.INVALID_OTP,
        )

    async def _deliver(self, record: VerificationCode) -> DeliveryStatus:
        if self._delivery is None:
            return DeliveryStatus.FAILED
        try:
            sent = await self._delivery.send_code(
                record.subject_id,
                record.contact_address,
                record.code,
                self._code_ttl_seconds // 60,
            )
        except Exception as exc:
            logger.error(
                "Verification code delivery failed",
                subject_id=record.subject_id,
                email=mask_email(record.contact_address),
                error=str(exc),
            )
            return DeliveryStatus.FAILED
        return DeliveryStatus.SENT if sent else DeliveryStatus.FAILED

    async def _emit(
        self,
        operation: str,
        subject_id: str,
        success: bool,
        started: float,
        error_code: Optional[VerificationErrorCode] = None,
    ) -> None:
        if self._event_publisher is None:
            return
        event = OperationEvent.create(
            operation=operation,
            subject_id=subject_id,
            success=success,
            started_at=started,
            finished_at=self._clock.monotonic(),
            error_code=error_code.value if error_code else None,
        )
        try:
            await self._event_publisher.publish(event)
        except Exception as exc:
            logger.warning("Failed to publish verification event", operation=operation, error=str(exc))

    def _message(self, key: str, locale: Optional[str], **params) -> str:
        message = get_translated_message(key, locale or self._language)
        return message.format(**params) if params else message

    @staticmethod
    def _generation_key(subject_id: str) -> str:
        return f"generation:{subject_id}"

    def _not_found(self, locale: Optional[str]) -> VerificationResult:
        return VerificationResult(
            success=False,
            message=self._message(MSG_NOT_FOUND, locale),
            error_code=VerificationErrorCode.OTP_NOT_FOUND,
        )

    def _exhausted(self, locale: Optional[str]) -> VerificationResult:
        return VerificationResult(
            success=False,
            message=self._message(MSG_MAX_ATTEMPTS, locale),
            remaining_attempts=0,
            error_code=VerificationErrorCode.MAX_ATTEMPTS_EXCEEDED,
        )
