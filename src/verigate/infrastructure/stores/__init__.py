"""Shared store implementations."""

from .memory_store import InMemorySharedStore
from .redis_store import RedisSharedStore

__all__ = ["InMemorySharedStore", "RedisSharedStore"]
