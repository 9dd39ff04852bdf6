"""Rate limiting service using Redis."""

from datetime import timedelta

import redis.asyncio as redis
from fastapi import HTTPException, status

from app.config import settings
from app.core.logging import get_logger

logger = get_logger(__name__)


def _login_key(ip_address: str) -> str:
    return f"login_failures:{ip_address}"


async def check_login_rate_limit(ip_address: str, redis_client: redis.Redis) -> None:  # type: ignore[type-arg]
    """
    Refuse login attempts from an IP that failed too often.

    Limit: LOGIN_RATE_LIMIT failures per LOGIN_RATE_WINDOW_MINUTES.
    Gracefully degrades if Redis is unavailable (allows the request).

    Raises:
        HTTPException: 429 if rate limit exceeded
    """
    try:
        count_bytes = await redis_client.get(_login_key(ip_address))
    except (redis.RedisError, OSError):
        logger.warning("login_rate_limit_redis_error", ip_address=ip_address, exc_info=True)
        return

    count = int(count_bytes) if count_bytes else 0
    if count >= settings.LOGIN_RATE_LIMIT:
        logger.warning(
            "login_rate_limit_exceeded",
            ip_address=ip_address,
            count=count,
            limit=settings.LOGIN_RATE_LIMIT,
        )
        raise HTTPException(
            status_code=status.HTTP_429_TOO_MANY_REQUESTS,
            detail=f"Too many failed login attempts. Please try again in {settings.LOGIN_RATE_WINDOW_MINUTES} minutes.",
            headers={"Retry-After": str(settings.LOGIN_RATE_WINDOW_MINUTES * 60)},
        )


async def record_failed_login(ip_address: str, redis_client: redis.Redis) -> None:  # type: ignore[type-arg]
    """Count a failed login for ip_address within the current window."""
    key = _login_key(ip_address)
    try:
        count = await redis_client.incr(key)
        if count == 1:
            # First failure in this window - set expiration
            await redis_client.expire(key, timedelta(minutes=settings.LOGIN_RATE_WINDOW_MINUTES))
    except (redis.RedisError, OSError):
        logger.warning("login_rate_limit_redis_error", ip_address=ip_address, exc_info=True)


async def clear_failed_logins(ip_address: str, redis_client: redis.Redis) -> None:  # type: ignore[type-arg]
    """Reset the failure counter after a successful login."""
    try:
        await redis_client.delete(_login_key(ip_address))
    except (redis.RedisError, OSError):
        logger.warning("login_rate_limit_redis_error", ip_address=ip_address, exc_info=True)
