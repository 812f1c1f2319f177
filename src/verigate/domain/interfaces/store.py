"""Shared ephemeral store interface.

The store is the only place verification and rate limit state lives. Every
component receives an implementation through its constructor, which keeps
the domain free of any Redis dependency and lets tests use the in-memory
implementation.

Failure contract: implementations raise `StoreUnavailableError` for any
transport fault or timeout. Callers decide whether that fails open or closed.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Optional


@dataclass(frozen=True, slots=True)
class SlidingWindowHit:
    """Outcome of one atomic prune, count and conditional insert.

    Attributes:
        count_before: Entries left in the window after pruning, before inserting.
        inserted: Whether the new entry was written to the window.
    """

    count_before: int
    inserted: bool


class ISharedStore(ABC):
    """Interface for the TTL-capable key-value store."""

    @abstractmethod
    async def get(self, key: str) -> Optional[str]:
        """Return the string value at `key`, or None when absent or expired."""
        pass

    @abstractmethod
    async def set(self, key: str, value: str, ttl_seconds: int) -> None:
        """Overwrite `key` with `value`, expiring after `ttl_seconds`."""
        pass

    @abstractmethod
    async def delete(self, *keys: str) -> int:
        """Delete keys.

        Returns:
            int: Number of keys that existed and were removed
        """
        pass

    @abstractmethod
    async def ttl(self, key: str) -> int:
        """Remaining time to live in whole seconds.

        Returns:
            int: Seconds left, -1 when the key has no expiry, -2 when missing
        """
        pass

    @abstractmethod
    async def compare_and_set(self, key: str, expected: str, value: str) -> bool:
        """Replace the value at `key` only if it still equals `expected`.

        The key's remaining TTL is preserved.

        Args:
            key: Key to update
            expected: Value previously read by the caller
            value: Replacement value

        Returns:
            bool: False when the key changed or vanished since it was read
        """
        pass

    @abstractmethod
    async def record_hit(
        self,
        key: str,
        window_start_ms: int,
        now_ms: int,
        member: str,
        limit: int,
        ttl_seconds: int,
    ) -> SlidingWindowHit:
        """Prune, count and conditionally insert into a sliding window.

        Executed as one atomic unit: entries scored at or before
        `window_start_ms` are removed, the remainder counted, and `member`
        added with score `now_ms` when the count is below `limit`. Adding an
        entry refreshes the key TTL to `ttl_seconds`.

        Implementations that cannot branch atomically may insert
        unconditionally and report `inserted=True`; the caller rolls the
        entry back when `count_before` already reached the limit.

        Returns:
            SlidingWindowHit: Pre-insert count and whether an entry was added
        """
        pass

    @abstractmethod
    async def remove_hit(self, key: str, member: str) -> None:
        """Remove a single window entry previously added by `record_hit`."""
        pass

    @abstractmethod
    async def count_hits(self, key: str, window_start_ms: int) -> int:
        """Prune entries at or before `window_start_ms` and count the rest."""
        pass

    @abstractmethod
    async def ping(self) -> bool:
        """Check connectivity to the store."""
        pass
