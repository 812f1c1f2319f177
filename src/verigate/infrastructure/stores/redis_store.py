"""
Redis Shared Store

Concrete `ISharedStore` backed by redis.asyncio.

Atomicity:
- The sliding window runs as a Lua script (prune, count, conditional add and
  expire in one server-side step). With scripting disabled it runs as a
  MULTI/EXEC batch that always inserts; the limiter then rolls back entries
  that landed past the quota.
- Compare-and-set uses WATCH/MULTI and `SET ... KEEPTTL`, so the remaining
  expiry of a code record is untouched by attempt updates.

Every call is bounded by a timeout. Transport errors and timeouts surface as
`StoreUnavailableError`.

**Security Note**: Use a rediss:// URL and a password outside trusted
networks, and never log the connection URL (OWASP A02:2021).
"""

import asyncio
from typing import Awaitable, Optional, TypeVar

import structlog
from redis.asyncio import Redis
from redis.exceptions import NoScriptError, RedisError, WatchError

from verigate.core.exceptions import StoreUnavailableError
from verigate.domain.interfaces.store import ISharedStore, SlidingWindowHit

logger = structlog.get_logger(__name__)

T = TypeVar("T")

SLIDING_WINDOW_SCRIPT = """
local key = KEYS[1]
local window_start = tonumber(ARGV[1])
local now = tonumber(ARGV[2])
local member = ARGV[3]
local limit = tonumber(ARGV[4])
local ttl = tonumber(ARGV[5])
redis.call('ZREMRANGEBYSCORE', key, '-inf', window_start)
local count = redis.call('ZCARD', key)
if count < limit then
    redis.call('ZADD', key, now, member)
    redis.call('EXPIRE', key, ttl)
    return {count, 1}
end
return {count, 0}
"""


class RedisSharedStore(ISharedStore):
    """Shared store over a Redis client created with `decode_responses=True`."""

    def __init__(
        self,
        redis_client: Redis,
        operation_timeout: float = 2.0,
        use_scripting: bool = True,
    ):
        """
        Args:
            redis_client: The async Redis client instance.
            operation_timeout: Seconds allowed for each store call.
            use_scripting: Run the sliding window as a Lua script instead of
                a MULTI/EXEC batch with rollback.
        """
        self.redis = redis_client
        self.operation_timeout = operation_timeout
        self.use_scripting = use_scripting
        self._sliding_window_sha: Optional[str] = None

    async def get(self, key: str) -> Optional[str]:
        return await self._run("get", key, self.redis.get(key))

    async def set(self, key: str, value: str, ttl_seconds: int) -> None:
        await self._run("set", key, self.redis.set(key, value, ex=max(1, int(ttl_seconds))))

    async def delete(self, *keys: str) -> int:
        if not keys:
            return 0
        removed = await self._run("delete", keys[0], self.redis.delete(*keys))
        return int(removed or 0)

    async def ttl(self, key: str) -> int:
        return int(await self._run("ttl", key, self.redis.ttl(key)))

    async def compare_and_set(self, key: str, expected: str, value: str) -> bool:
        return await self._run("compare_and_set", key, self._compare_and_set(key, expected, value))

    async def record_hit(
        self,
        key: str,
        window_start_ms: int,
        now_ms: int,
        member: str,
        limit: int,
        ttl_seconds: int,
    ) -> SlidingWindowHit:
        if self.use_scripting:
            coro = self._record_hit_script(key, window_start_ms, now_ms, member, limit, ttl_seconds)
        else:
            coro = self._record_hit_batch(key, window_start_ms, now_ms, member, ttl_seconds)
        return await self._run("record_hit", key, coro)

    async def remove_hit(self, key: str, member: str) -> None:
        await self._run("remove_hit", key, self.redis.zrem(key, member))

    async def count_hits(self, key: str, window_start_ms: int) -> int:
        return await self._run("count_hits", key, self._count_hits(key, window_start_ms))

    async def ping(self) -> bool:
        try:
            return bool(await asyncio.wait_for(self.redis.ping(), timeout=self.operation_timeout))
        except (RedisError, OSError, asyncio.TimeoutError) as exc:
            logger.warning("Redis ping failed", error=str(exc))
            return False

    async def close(self) -> None:
        await self.redis.aclose()
        logger.debug("Redis connection closed")

    async def _run(self, operation: str, key: str, awaitable: Awaitable[T]) -> T:
        try:
            return await asyncio.wait_for(awaitable, timeout=self.operation_timeout)
        except asyncio.TimeoutError as exc:
            logger.error("Redis operation timed out", operation=operation, key=key,
                         timeout=self.operation_timeout)
            raise StoreUnavailableError() from exc
        except (RedisError, OSError) as exc:
            logger.error("Redis operation failed", operation=operation, key=key, error=str(exc))
            raise StoreUnavailableError() from exc

    async def _register_scripts(self) -> str:
        """Register the sliding window Lua script with Redis."""
        if self._sliding_window_sha is None:
            self._sliding_window_sha = await self.redis.script_load(SLIDING_WINDOW_SCRIPT)
        return self._sliding_window_sha

    async def _record_hit_script(
        self,
        key: str,
        window_start_ms: int,
        now_ms: int,
        member: str,
        limit: int,
        ttl_seconds: int,
    ) -> SlidingWindowHit:
        args = (window_start_ms, now_ms, member, limit, ttl_seconds)
        sha = await self._register_scripts()
        try:
            count, added = await self.redis.evalsha(sha, 1, key, *args)
        except NoScriptError:
            # Script cache was flushed (restart or SCRIPT FLUSH); load it again.
            self._sliding_window_sha = None
            sha = await self._register_scripts()
            count, added = await self.redis.evalsha(sha, 1, key, *args)
        return SlidingWindowHit(count_before=int(count), inserted=bool(int(added)))

    async def _record_hit_batch(
        self,
        key: str,
        window_start_ms: int,
        now_ms: int,
        member: str,
        ttl_seconds: int,
    ) -> SlidingWindowHit:
        async with self.redis.pipeline(transaction=True) as pipe:
            pipe.zremrangebyscore(key, "-inf", window_start_ms)
            pipe.zcard(key)
            pipe.zadd(key, {member: now_ms})
            pipe.expire(key, ttl_seconds)
            _, count, _, _ = await pipe.execute()
        return SlidingWindowHit(count_before=int(count), inserted=True)

    async def _count_hits(self, key: str, window_start_ms: int) -> int:
        async with self.redis.pipeline(transaction=True) as pipe:
            pipe.zremrangebyscore(key, "-inf", window_start_ms)
            pipe.zcard(key)
            _, count = await pipe.execute()
        return int(count)

    async def _compare_and_set(self, key: str, expected: str, value: str) -> bool:
        async with self.redis.pipeline(transaction=True) as pipe:
            try:
                await pipe.watch(key)
                current = await pipe.get(key)
                if current != expected:
                    await pipe.unwatch()
                    return False
                pipe.multi()
                pipe.set(key, value, keepttl=True)
                await pipe.execute()
                return True
            except WatchError:
                logger.debug("Compare-and-set lost a race", key=key)
                return False
