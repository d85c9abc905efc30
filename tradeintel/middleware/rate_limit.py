"""Per-caller rate limiting middleware using a Redis sliding window."""

import hashlib
import logging
import time
import uuid
from typing import Callable

import redis.asyncio as redis
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import JSONResponse, Response

from tradeintel.config import Settings

logger = logging.getLogger(__name__)

KEY_PREFIX = "tradeintel:ratelimit"
_EXEMPT_PATHS = frozenset({"/health", "/health/ready", "/metrics"})


class RateLimitMiddleware(BaseHTTPMiddleware):
    """Sliding window rate limiter keyed by bearer token, else client IP.

    The inbound webhook is exempt: the platform delivers bursts from a
    handful of addresses and dropped deliveries would lose messages.
    """

    def __init__(self, app, settings: Settings) -> None:
        super().__init__(app)
        self._max_requests = settings.rate_limit_per_minute
        self._window_seconds = 60
        self._redis: redis.Redis | None = None
        self._redis_url = settings.redis_url
        self._webhook_prefix = f"{settings.api_prefix}/webhook/"

    async def _get_redis(self) -> redis.Redis:
        if self._redis is None:
            self._redis = redis.from_url(self._redis_url, decode_responses=True)
        return self._redis

    def _is_exempt(self, path: str) -> bool:
        return path in _EXEMPT_PATHS or path.startswith(self._webhook_prefix)

    @staticmethod
    def _identifier(request: Request) -> str | None:
        auth = request.headers.get("authorization", "")
        if auth.startswith("Bearer "):
            # Only a digest of the token is stored
            return "tok:" + hashlib.sha256(auth[7:].encode()).hexdigest()[:16]
        if request.client:
            return f"ip:{request.client.host}"
        return None

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        if self._is_exempt(request.url.path):
            return await call_next(request)

        identifier = self._identifier(request)
        if not identifier:
            return await call_next(request)

        try:
            r = await self._get_redis()
            key = f"{KEY_PREFIX}:{identifier}"
            now = time.time()

            pipe = r.pipeline()
            pipe.zremrangebyscore(key, 0, now - self._window_seconds)
            pipe.zcard(key)
            # Unique member so simultaneous requests are each counted
            pipe.zadd(key, {f"{now}:{uuid.uuid4().hex[:8]}": now})
            pipe.expire(key, self._window_seconds)
            results = await pipe.execute()
        except Exception as e:
            logger.warning("Rate limit Redis error (allowing request): %s", e)
            return await call_next(request)

        request_count = results[1]
        if request_count >= self._max_requests:
            logger.info("Rate limit exceeded for %s on %s", identifier[:8], request.url.path)
            return JSONResponse(
                status_code=429,
                content={"detail": "Rate limit exceeded. Try again later."},
                headers={
                    "Retry-After": str(self._window_seconds),
                    "X-RateLimit-Limit": str(self._max_requests),
                    "X-RateLimit-Remaining": "0",
                },
            )

        response = await call_next(request)
        response.headers["X-RateLimit-Limit"] = str(self._max_requests)
        response.headers["X-RateLimit-Remaining"] = str(max(0, self._max_requests - request_count - 1))
        return response
