import time
import uuid
from typing import Optional

import redis.asyncio as redis
from fastapi import HTTPException, Request, status

from baas.core.config import get_settings
from baas.core.logging import get_logger

logger = get_logger(__name__)


def client_ip(request: Request) -> str:
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return request.client.host if request.client else "unknown"


class RateLimiter:
    def __init__(self, redis_url: Optional[str] = None, enabled: Optional[bool] = None):
        settings = get_settings()
        self.settings = settings
        self.enabled = settings.RATE_LIMIT_ENABLED if enabled is None else enabled
        self.redis_client = redis.from_url(redis_url or settings.RATE_LIMIT_REDIS_URL)

    async def check_rate_limit(
        self,
        key: str,
        limit: int,
        window: int,
        request: Request
    ) -> bool:
        """
        Check if request is within rate limit using sliding window.

        Args:
            key: Rate limit key (e.g., IP address, API key id)
            limit: Number of requests allowed
            window: Time window in seconds
            request: FastAPI request object

        Returns:
            True if within limit, raises HTTPException if exceeded
        """
        if not self.enabled:
            return True

        now = time.time()
        window_start = now - window

        try:
            pipe = self.redis_client.pipeline()
            pipe.zremrangebyscore(key, 0, window_start)
            pipe.zadd(key, {f"{now}:{uuid.uuid4().hex}": now})
            pipe.zcard(key)
            pipe.expire(key, window)

            results = await pipe.execute()
            request_count = results[2]

            if request_count > limit:
                logger.warning(
                    f"Rate limit exceeded for {key}: {request_count}/{limit} "
                    f"requests in {window}s window. IP: {client_ip(request)}"
                )

                raise HTTPException(
                    status_code=status.HTTP_429_TOO_MANY_REQUESTS,
                    detail=f"Rate limit exceeded. Try again in {window} seconds.",
                    headers={"Retry-After": str(window)}
                )

            return True

        except redis.RedisError as e:
            logger.error(f"Redis error in rate limiting: {e}")
            # Fail open when Redis is unavailable
            return True

    async def check_ip_rate_limit(self, request: Request) -> bool:
        """Check the per-IP limit on the key-authenticated API."""
        return await self.check_rate_limit(
            f"ip:{client_ip(request)}",
            self.settings.RATE_LIMIT_IP_REQUESTS,
            self.settings.RATE_LIMIT_IP_WINDOW_SECONDS,
            request,
        )

    async def check_api_key_rate_limit(self, key_id: str, request: Request) -> bool:
        """Check the per-key limit."""
        return await self.check_rate_limit(
            f"api_key:{key_id}",
            self.settings.RATE_LIMIT_KEY_REQUESTS,
            self.settings.RATE_LIMIT_KEY_WINDOW_SECONDS,
            request,
        )
