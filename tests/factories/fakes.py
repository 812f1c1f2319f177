"""Deterministic stand-ins for the clock, randomness, shared store and subject repository."""

from __future__ import annotations

import asyncio
import itertools
from dataclasses import replace
from datetime import datetime, timezone
from typing import Dict, List, Optional

from verigate.core.clock import SecureRandomSource, SystemClock
from verigate.domain.interfaces.collaborators import ISubjectRepository
from verigate.domain.interfaces.store import SlidingWindowHit
from verigate.domain.verification.entities import VerificationSubject
from verigate.infrastructure.stores.memory_store import InMemorySharedStore


START_MS = 1_700_000_000_000


class ManualClock(SystemClock):
    """Clock that only moves when a test advances it."""

    def __init__(self, start_ms: int = START_MS):
        self._now_ms = start_ms
        self._monotonic = 0.0

    def now_ms(self) -> int:
        return self._now_ms

    def now(self) -> datetime:
        return datetime.fromtimestamp(self._now_ms / 1000, tz=timezone.utc)

    def monotonic(self) -> float:
        return self._monotonic

    def advance(self, ms: int) -> None:
        self._now_ms += ms
        self._monotonic += ms / 1000


class FixedRandomSource(SecureRandomSource):
    """Random source handing out queued codes.

    Without a queued code every digit is 9. Token ids come from a counter
    so window entries stay unique.
    """

    def __init__(self, codes: Optional[List[str]] = None):
        self._codes = list(codes or [])
        self._counter = itertools.count()

    def queue_code(self, code: str) -> None:
        self._codes.append(code)

    def random_bytes(self, length: int) -> bytes:
        if self._codes:
            code = self._codes.pop(0)
            return bytes(int(digit) for digit in code[:length])
        return bytes([9] * length)

    def token_hex(self, length: int = 8) -> str:
        return f"{next(self._counter):0{length * 2}x}"


class FakeSubjectRepository(ISubjectRepository):
    """Dictionary of subjects keyed by id."""

    def __init__(self):
        self.subjects: Dict[str, VerificationSubject] = {}

    def add(self, subject: VerificationSubject) -> VerificationSubject:
        self.subjects[subject.subject_id] = subject
        return subject

    async def get_subject(self, subject_id: str) -> Optional[VerificationSubject]:
        return self.subjects.get(subject_id)

    async def mark_verified(self, subject_id: str) -> None:
        self.subjects[subject_id] = replace(self.subjects[subject_id], is_verified=True)


class InterleavingSharedStore(InMemorySharedStore):
    """In-memory store that yields to the event loop before every primitive.

    Each primitive stays atomic, but coroutines gathered together interleave
    between primitives the way concurrent requests do against Redis.
    `peak_in_flight` records the most primitives awaited at the same time.
    """

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.in_flight = 0
        self.peak_in_flight = 0

    async def _interleave(self, operation, *args):
        self.in_flight += 1
        self.peak_in_flight = max(self.peak_in_flight, self.in_flight)
        try:
            await asyncio.sleep(0)
            return await operation(*args)
        finally:
            self.in_flight -= 1

    async def get(self, key: str) -> Optional[str]:
        return await self._interleave(super().get, key)

    async def set(self, key: str, value: str, ttl_seconds: int) -> None:
        await self._interleave(super().set, key, value, ttl_seconds)

    async def delete(self, *keys: str) -> int:
        return await self._interleave(super().delete, *keys)

    async def ttl(self, key: str) -> int:
        return await self._interleave(super().ttl, key)

    async def compare_and_set(self, key: str, expected: str, value: str) -> bool:
        return await self._interleave(super().compare_and_set, key, expected, value)

    async def record_hit(
        self,
        key: str,
        window_start_ms: int,
        now_ms: int,
        member: str,
        limit: int,
        ttl_seconds: int,
    ) -> SlidingWindowHit:
        return await self._interleave(
            super().record_hit, key, window_start_ms, now_ms, member, limit, ttl_seconds
        )

    async def remove_hit(self, key: str, member: str) -> None:
        await self._interleave(super().remove_hit, key, member)

    async def count_hits(self, key: str, window_start_ms: int) -> int:
        return await self._interleave(super().count_hits, key, window_start_ms)
