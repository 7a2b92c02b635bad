"""Shared Redis connection.

Learn: One connection pool per process, opened in the app lifespan and
closed on shutdown. Only the rate limiter uses it today. If Redis is down
at startup the app still serves requests; get_redis() raises and callers
that can live without Redis skip their work.
"""

from typing import Optional

import redis.asyncio as aioredis

from tenantry.config import settings

_redis: Optional[aioredis.Redis] = None


async def init_redis(url: Optional[str] = None) -> aioredis.Redis:
    """Open the pool and ping it."""
    global _redis
    _redis = aioredis.from_url(
        url or settings.redis_url,
        encoding="utf-8",
        decode_responses=True,
    )
    await _redis.ping()
    return _redis


async def close_redis() -> None:
    global _redis
    if _redis:
        await _redis.close()
        _redis = None


def get_redis() -> aioredis.Redis:
    if _redis is None:
        raise RuntimeError("Redis not initialized. Call init_redis() first.")
    return _redis
