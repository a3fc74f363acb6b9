from unittest.mock import AsyncMock, MagicMock

import pytest
import redis.asyncio as redis
from fastapi import HTTPException

from baas.core.rate_limit import RateLimiter, client_ip


def _request(host="10.0.0.1", forwarded=None):
    request = MagicMock()
    request.headers = {"x-forwarded-for": forwarded} if forwarded else {}
    request.client.host = host
    return request


def _limiter(count=None, error=None):
    limiter = RateLimiter(redis_url="redis://localhost:6379/15", enabled=True)
    pipe = MagicMock()
    pipe.execute = AsyncMock(return_value=[0, 1, count, True], side_effect=error)
    limiter.redis_client = MagicMock()
    limiter.redis_client.pipeline.return_value = pipe
    return limiter


class TestClientIp:

    def test_forwarded_header_wins(self):
        assert client_ip(_request(forwarded="1.2.3.4, 10.0.0.1")) == "1.2.3.4"

    def test_falls_back_to_peer(self):
        assert client_ip(_request()) == "10.0.0.1"


class TestRateLimiter:

    async def test_within_limit(self):
        limiter = _limiter(count=5)

        assert await limiter.check_rate_limit("ip:test", 10, 60, _request()) is True

    async def test_exceeding_limit_raises_429(self):
        limiter = _limiter(count=11)

        with pytest.raises(HTTPException) as exc_info:
            await limiter.check_rate_limit("ip:test", 10, 60, _request())

        assert exc_info.value.status_code == 429
        assert exc_info.value.headers["Retry-After"] == "60"

    async def test_redis_failure_fails_open(self):
        limiter = _limiter(error=redis.ConnectionError("down"))

        assert await limiter.check_rate_limit("ip:test", 10, 60, _request()) is True

    async def test_disabled_limiter_skips_redis(self):
        limiter = _limiter(count=1000)
        limiter.enabled = False

        assert await limiter.check_rate_limit("ip:test", 10, 60, _request()) is True
        limiter.redis_client.pipeline.assert_not_called()

    async def test_key_limit_uses_key_bucket(self):
        limiter = _limiter(count=1)

        await limiter.check_api_key_rate_limit("a" * 24, _request())

        pipe = limiter.redis_client.pipeline.return_value
        assert pipe.zcard.call_args.args[0] == f"api_key:{'a' * 24}"
