"""
Redis Connection Module

Creates the asynchronous Redis client backing the shared store. One client
(with its connection pool) is shared by the whole process; it is closed by
the application lifespan.

**Security Note**: Ensure that REDIS_URL uses rediss:// when Redis is reached
over an untrusted network, and never log the URL since it may embed the
password (OWASP A09:2021 - Security Logging and Monitoring Failures).
"""

from typing import Optional

import structlog
from redis.asyncio import Redis

from verigate.core.config.settings import settings

logger = structlog.get_logger(__name__)


def create_redis_client(redis_url: Optional[str] = None) -> Redis:
    """
    Provides an asynchronous Redis client.

    Responses are decoded to `str`, which the shared store relies on for
    compare-and-set equality checks.

    Args:
        redis_url: Connection URL, defaults to REDIS_URL from settings.

    Returns:
        Redis: An asynchronous Redis client instance.
    """
    client = Redis.from_url(
        redis_url or settings.REDIS_URL,
        encoding="utf-8",
        decode_responses=True,
        socket_timeout=settings.STORE_OPERATION_TIMEOUT_SECONDS,
        socket_connect_timeout=settings.STORE_OPERATION_TIMEOUT_SECONDS,
    )
    logger.debug("Redis client created", ssl=settings.REDIS_SSL)
    return client
