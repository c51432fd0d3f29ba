"""
CareLink Service — Sliding window rate limiter middleware (Redis-backed)

Applies RATE_LIMIT_MAX_REQUESTS per RATE_LIMIT_WINDOW_SECONDS per client IP
to every /api route, against the client the app holds on app.state.redis.
Uses sorted sets (ZADD/ZREMRANGEBYSCORE/ZCARD) for a true sliding window.
"""
import time
import uuid
import logging

from fastapi import Request, Response
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware
from redis.exceptions import RedisError

from app.core.config import get_settings

settings = get_settings()
logger = logging.getLogger(__name__)

RATE_LIMIT_PREFIX = "ratelimit:"


class SlidingWindowRateLimiter(BaseHTTPMiddleware):

    async def dispatch(self, request: Request, call_next) -> Response:
        if not request.url.path.startswith("/api/"):
            return await call_next(request)

        client_host = request.client.host if request.client else "unknown"
        key = f"{RATE_LIMIT_PREFIX}{client_host}"
        now = time.time()
        window_start = now - settings.RATE_LIMIT_WINDOW_SECONDS

        try:
            pipe = request.app.state.redis.pipeline()
            # Remove entries outside the window
            pipe.zremrangebyscore(key, "-inf", window_start)
            # Count current requests in window
            pipe.zcard(key)
            # Add this request
            pipe.zadd(key, {f"{now}:{uuid.uuid4().hex[:8]}": now})
            pipe.expire(key, settings.RATE_LIMIT_WINDOW_SECONDS + 1)
            results = await pipe.execute()
        except RedisError as exc:
            # Limiter is best-effort: an unreachable Redis must not take the API down
            logger.warning("Rate limiter unavailable: %s", exc)
            return await call_next(request)

        request_count = results[1]  # count before this request

        if request_count >= settings.RATE_LIMIT_MAX_REQUESTS:
            return JSONResponse(
                status_code=429,
                content={
                    "detail": "Too many requests, please try again later.",
                    "retry_after_seconds": settings.RATE_LIMIT_WINDOW_SECONDS,
                },
                headers={"Retry-After": str(settings.RATE_LIMIT_WINDOW_SECONDS)},
            )

        return await call_next(request)
