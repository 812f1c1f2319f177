"""Verification Code Store implementation over the shared store.

This module persists the single live verification code of each subject as a
JSON document under `otp:<subject_id>`, with the code's lifetime carried by
the key TTL.

Key DDD Principles Applied:
- Repository Pattern for data access abstraction
- Dependency Inversion through interface implementation
- Fail-Fast error handling: store faults propagate as StoreUnavailableError

Concurrency:
- Attempt increments are an optimistic compare-and-set loop driven by
  tenacity. Each retry re-reads the record, so concurrent wrong guesses are
  all counted. If every retry loses its race the increment fails closed with
  StoreUnavailableError rather than silently dropping the attempt.
- A lockout marker `otp:<subject_id>:locked` survives the deletion of an
  exhausted code for the rest of its lifetime, so the next verification
  reports exhaustion once before falling back to "no code".
"""

from typing import Optional

from structlog import get_logger
from tenacity import (
    AsyncRetrying,
    RetryError,
    retry_if_exception_type,
    stop_after_attempt,
    wait_random,
)

from verigate.core.exceptions import StoreUnavailableError, WriteConflictError
from verigate.domain.interfaces.repositories import IVerificationCodeRepository
from verigate.domain.interfaces.store import ISharedStore
from verigate.domain.verification.entities import VerificationCode

logger = get_logger(__name__)


class VerificationCodeStore(IVerificationCodeRepository):
    """Shared-store implementation of the verification code repository."""

    KEY_PREFIX = "otp"

    def __init__(self, store: ISharedStore, max_cas_retries: int = 5):
        """Initialize the code store.

        Args:
            store: Shared store holding the records
            max_cas_retries: Compare-and-set attempts per increment
        """
        self._store = store
        self._max_cas_retries = max_cas_retries

    def key_for(self, subject_id: str) -> str:
        return f"{self.KEY_PREFIX}:{subject_id}"

    def lock_key_for(self, subject_id: str) -> str:
        return f"{self.KEY_PREFIX}:{subject_id}:locked"

    async def put(self, record: VerificationCode, ttl_seconds: int) -> None:
        await self._store.delete(self.lock_key_for(record.subject_id))
        await self._store.set(self.key_for(record.subject_id), record.to_json(), ttl_seconds)
        logger.debug(
            "Verification code stored",
            subject_id=record.subject_id,
            ttl_seconds=ttl_seconds,
        )

    async def get(self, subject_id: str) -> Optional[VerificationCode]:
        raw = await self._store.get(self.key_for(subject_id))
        if raw is None:
            return None
        try:
            return VerificationCode.from_json(raw)
        except ValueError as exc:
            logger.warning(
                "Ignoring malformed verification code record",
                subject_id=subject_id,
                error=str(exc),
            )
            return None

    async def delete(self, subject_id: str) -> bool:
        return await self._store.delete(self.key_for(subject_id)) > 0

    async def remaining_ttl(self, subject_id: str) -> int:
        return max(0, await self._store.ttl(self.key_for(subject_id)))

    async def increment_attempts(self, subject_id: str) -> Optional[VerificationCode]:
        retrying = AsyncRetrying(
            stop=stop_after_attempt(self._max_cas_retries),
            wait=wait_random(min=0, max=0.02),
            retry=retry_if_exception_type(WriteConflictError),
        )
        try:
            async for attempt in retrying:
                with attempt:
                    return await self._increment_once(subject_id)
        except RetryError as exc:
            logger.error(
                "Attempt counter update kept conflicting",
                subject_id=subject_id,
                retries=self._max_cas_retries,
            )
            raise StoreUnavailableError() from exc
        return None

    async def lock(self, subject_id: str, ttl_seconds: int) -> None:
        await self._store.set(self.lock_key_for(subject_id), "1", max(1, ttl_seconds))

    async def is_locked(self, subject_id: str) -> bool:
        return await self._store.get(self.lock_key_for(subject_id)) is not None

    async def consume_lock(self, subject_id: str) -> bool:
        return await self._store.delete(self.lock_key_for(subject_id)) > 0

    async def _increment_once(self, subject_id: str) -> Optional[VerificationCode]:
        key = self.key_for(subject_id)
        raw = await self._store.get(key)
        if raw is None:
            return None
        updated = VerificationCode.from_json(raw).with_failed_attempt()
        if not await self._store.compare_and_set(key, raw, updated.to_json()):
            raise WriteConflictError()
        return updated
