"""Redis client factory — backs the fast cache when REDIS_URL is set.

The pool is created lazily; `from_url` itself opens no socket, the first
command does. Returns None when no Redis is configured so callers fall back
to the in-process store.
"""

import redis.asyncio as aioredis

from config.settings import settings

_redis_pool: aioredis.Redis | None = None


def get_redis() -> aioredis.Redis | None:
    """Get or create the Redis connection pool."""
    global _redis_pool  # noqa: PLW0603
    if _redis_pool is None and settings.REDIS_URL:
        _redis_pool = aioredis.from_url(
            settings.REDIS_URL,
            decode_responses=True,
            socket_connect_timeout=settings.HTTP_TIMEOUT_SECONDS,
        )
    return _redis_pool


async def close_redis() -> None:
    """Close the Redis connection pool."""
    global _redis_pool  # noqa: PLW0603
    if _redis_pool is not None:
        await _redis_pool.aclose()
        _redis_pool = None
