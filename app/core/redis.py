"""
Redis connection handling.

Redis only backs the failed-login counters, so connections use short
timeouts: callers treat any Redis error as "no limit" rather than waiting.
"""

from collections.abc import AsyncGenerator

import redis.asyncio as redis

from app.config import settings


def create_redis_client() -> redis.Redis:  # type: ignore[type-arg]
    """New client for REDIS_URL with 2 second connect/read timeouts."""
    return redis.from_url(
        settings.REDIS_URL,
        encoding="utf-8",
        decode_responses=True,
        socket_connect_timeout=2,
        socket_timeout=2,
    )


async def get_redis() -> AsyncGenerator[redis.Redis, None]:  # type: ignore[type-arg]
    """Dependency yielding a Redis client closed after the request."""
    client = create_redis_client()
    try:
        yield client
    finally:
        await client.aclose()
