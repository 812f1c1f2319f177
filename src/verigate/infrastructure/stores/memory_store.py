"""
In-memory Shared Store

Single-process `ISharedStore` for development and tests. Expiry is computed
from an injectable clock, so tests can move time forward without sleeping.
All operations run under one asyncio lock, which makes each of them atomic
with respect to other coroutines in the same event loop.
"""

import asyncio
import math
from dataclasses import dataclass
from typing import Dict, Optional, Union

from verigate.core.clock import SystemClock
from verigate.domain.interfaces.store import ISharedStore, SlidingWindowHit


@dataclass
class _Entry:
    value: Union[str, Dict[str, int]]
    expires_at_ms: Optional[int] = None


class InMemorySharedStore(ISharedStore):
    """Dictionary-backed shared store.

    Args:
        clock: Time source for expiry, defaults to the system clock.
        conditional_insert: When False, `record_hit` always inserts, mirroring
            the Redis MULTI/EXEC batch so the limiter's rollback path runs.
    """

    def __init__(self, clock: Optional[SystemClock] = None, conditional_insert: bool = True):
        self._clock = clock or SystemClock()
        self._conditional_insert = conditional_insert
        self._data: Dict[str, _Entry] = {}
        self._lock = asyncio.Lock()

    async def get(self, key: str) -> Optional[str]:
        async with self._lock:
            entry = self._live(key)
            if entry is None or not isinstance(entry.value, str):
                return None
            return entry.value

    async def set(self, key: str, value: str, ttl_seconds: int) -> None:
        async with self._lock:
            self._data[key] = _Entry(value, self._clock.now_ms() + max(1, int(ttl_seconds)) * 1000)

    async def delete(self, *keys: str) -> int:
        async with self._lock:
            removed = 0
            for key in keys:
                if self._live(key) is not None:
                    del self._data[key]
                    removed += 1
            return removed

    async def ttl(self, key: str) -> int:
        async with self._lock:
            entry = self._live(key)
            if entry is None:
                return -2
            if entry.expires_at_ms is None:
                return -1
            return math.ceil((entry.expires_at_ms - self._clock.now_ms()) / 1000)

    async def compare_and_set(self, key: str, expected: str, value: str) -> bool:
        async with self._lock:
            entry = self._live(key)
            if entry is None or entry.value != expected:
                return False
            entry.value = value
            return True

    async def record_hit(
        self,
        key: str,
        window_start_ms: int,
        now_ms: int,
        member: str,
        limit: int,
        ttl_seconds: int,
    ) -> SlidingWindowHit:
        async with self._lock:
            window = self._window(key, window_start_ms)
            count = len(window)
            if count < limit or not self._conditional_insert:
                window[member] = now_ms
                self._data[key] = _Entry(window, self._clock.now_ms() + ttl_seconds * 1000)
                return SlidingWindowHit(count_before=count, inserted=True)
            return SlidingWindowHit(count_before=count, inserted=False)

    async def remove_hit(self, key: str, member: str) -> None:
        async with self._lock:
            entry = self._live(key)
            if entry is not None and isinstance(entry.value, dict):
                entry.value.pop(member, None)

    async def count_hits(self, key: str, window_start_ms: int) -> int:
        async with self._lock:
            return len(self._window(key, window_start_ms))

    async def ping(self) -> bool:
        return True

    def _live(self, key: str) -> Optional[_Entry]:
        entry = self._data.get(key)
        if entry is None:
            return None
        if entry.expires_at_ms is not None and entry.expires_at_ms <= self._clock.now_ms():
            del self._data[key]
            return None
        return entry

    def _window(self, key: str, window_start_ms: int) -> Dict[str, int]:
        entry = self._live(key)
        if entry is None or not isinstance(entry.value, dict):
            return {}
        pruned = {m: score for m, score in entry.value.items() if score > window_start_ms}
        entry.value = pruned
        return pruned
