"""
Redis Configuration

Async Redis client shared by rate limiting and the readiness probe.
"""

import logging

from redis.asyncio import Redis, from_url

from kys_portal.core.config import settings

logger = logging.getLogger(__name__)

# Redis client instance
redis_client: Redis | None = None


async def init_redis() -> Redis | None:
    """
    Initialize the Redis connection on application startup.

    Redis is optional: on failure the client stays None and callers fall
    back to in-process behavior.
    """
    global redis_client
    client = from_url(
        settings.redis_url,
        encoding="utf-8",
        decode_responses=True,
    )
    try:
        await client.ping()
    except Exception as e:
        logger.warning(f"Redis unavailable at startup, continuing without it: {e}")
        await client.aclose()
        redis_client = None
        return None

    redis_client = client
    logger.info("Redis connection established")
    return redis_client


async def get_redis() -> Redis | None:
    """
    Get Redis client instance.

    Returns None if Redis is not available (optional dependency).
    """
    return redis_client


def is_redis_available() -> bool:
    """Check if Redis client is initialized and available."""
    return redis_client is not None


async def close_redis() -> None:
    """Close Redis connection."""
    global redis_client
    if redis_client:
        await redis_client.aclose()
        redis_client = None
