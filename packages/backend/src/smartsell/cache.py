"""Redis connection pool.

Redis is optional: it backs the per-IP rate limiter and nothing else.
Live metrics never go through Redis; the subscription hub is in-process.
"""

from typing import Optional

import redis.asyncio as aioredis

from smartsell.config import settings

# Global Redis connection pool (initialized in lifespan)
_redis: Optional[aioredis.Redis] = None


class RedisUnavailableError(RuntimeError):
    """Raised when Redis was never initialized or failed its ping."""
    pass


async def init_redis() -> aioredis.Redis:
    """Initialize the Redis connection pool; only kept if it answers a ping."""
    global _redis
    client = aioredis.from_url(
        settings.redis_url,
        encoding="utf-8",
        decode_responses=True,
    )
    try:
        await client.ping()
    except Exception:
        await client.aclose()
        raise
    _redis = client
    return _redis


async def close_redis() -> None:
    """Close the Redis connection pool."""
    global _redis
    if _redis:
        await _redis.aclose()
        _redis = None


def get_redis() -> aioredis.Redis:
    """Get the Redis connection (must be initialized first)."""
    if _redis is None:
        raise RedisUnavailableError("Redis not initialized. Call init_redis() first.")
    return _redis
