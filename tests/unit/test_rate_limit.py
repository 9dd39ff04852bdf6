"""Tests for failed-login rate limiting."""

from datetime import timedelta
from unittest.mock import AsyncMock

import pytest
from fastapi import HTTPException
from redis.exceptions import ConnectionError as RedisConnectionError

from app.config import settings
from app.services.rate_limit import (
    check_login_rate_limit,
    clear_failed_logins,
    record_failed_login,
)


@pytest.fixture
def mock_redis():
    return AsyncMock()


@pytest.mark.unit
class TestCheckLoginRateLimit:
    async def test_allows_first_attempt(self, mock_redis):
        mock_redis.get.return_value = None

        # Should not raise
        await check_login_rate_limit("10.0.0.1", mock_redis)

        mock_redis.get.assert_awaited_once_with("login_failures:10.0.0.1")

    async def test_allows_below_limit(self, mock_redis):
        mock_redis.get.return_value = str(settings.LOGIN_RATE_LIMIT - 1).encode()

        await check_login_rate_limit("10.0.0.1", mock_redis)

    async def test_rejects_at_limit(self, mock_redis):
        mock_redis.get.return_value = str(settings.LOGIN_RATE_LIMIT).encode()

        with pytest.raises(HTTPException) as exc_info:
            await check_login_rate_limit("10.0.0.1", mock_redis)

        assert exc_info.value.status_code == 429
        assert exc_info.value.headers["Retry-After"] == str(settings.LOGIN_RATE_WINDOW_MINUTES * 60)

    async def test_redis_error_allows(self, mock_redis):
        mock_redis.get.side_effect = RedisConnectionError("down")

        await check_login_rate_limit("10.0.0.1", mock_redis)


@pytest.mark.unit
class TestRecordFailedLogin:
    async def test_first_failure_sets_window(self, mock_redis):
        mock_redis.incr.return_value = 1

        await record_failed_login("10.0.0.1", mock_redis)

        mock_redis.expire.assert_awaited_once_with(
            "login_failures:10.0.0.1", timedelta(minutes=settings.LOGIN_RATE_WINDOW_MINUTES)
        )

    async def test_later_failures_keep_window(self, mock_redis):
        mock_redis.incr.return_value = 3

        await record_failed_login("10.0.0.1", mock_redis)

        mock_redis.expire.assert_not_awaited()

    async def test_redis_error_is_swallowed(self, mock_redis):
        mock_redis.incr.side_effect = RedisConnectionError("down")

        await record_failed_login("10.0.0.1", mock_redis)

    async def test_clear(self, mock_redis):
        await clear_failed_logins("10.0.0.1", mock_redis)

        mock_redis.delete.assert_awaited_once_with("login_failures:10.0.0.1")
