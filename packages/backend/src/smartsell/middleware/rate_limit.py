"""Rate limiting middleware, Redis fixed-window counter per IP.

Each IP gets a counter key like "smartsell:rl:{ip}:{bucket}:{minute}".
Counter endpoints (view/share/click) get their own bucket so a page that
reports a view per render cannot starve the rest of the API.

Skips rate limiting entirely when Redis is unavailable (e.g., in tests).
"""

import time

import structlog
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import JSONResponse, Response

from smartsell.cache import RedisUnavailableError, get_redis

logger = structlog.get_logger()

_TRACKING_SUFFIXES = ("/view", "/share", "/click")


def bucket_for(path: str) -> str:
    if path.startswith("/api/v1/listings/") and path.endswith(_TRACKING_SUFFIXES):
        return "track"
    return "api"


class RateLimitMiddleware(BaseHTTPMiddleware):
    """Redis-based rate limiting per IP per minute."""

    def __init__(self, app, default_rpm: int = 100, track_rpm: int = 600):
        super().__init__(app)
        self.limits = {"api": default_rpm, "track": track_rpm}

    async def dispatch(self, request: Request, call_next) -> Response:
        try:
            redis = get_redis()
        except RedisUnavailableError:
            return await call_next(request)

        client_ip = request.client.host if request.client else "unknown"
        bucket = bucket_for(request.url.path)
        rpm = self.limits[bucket]
        window = int(time.time() // 60)
        key = f"smartsell:rl:{client_ip}:{bucket}:{window}"

        try:
            count = await redis.incr(key)
            if count == 1:
                await redis.expire(key, 120)
        except Exception as e:
            # Redis error, don't block the request
            logger.debug("rate_limit.redis_error", error=str(e))
            return await call_next(request)

        if count > rpm:
            return JSONResponse(
                status_code=429,
                content={"detail": "Rate limit exceeded. Try again later."},
                headers={"Retry-After": "60"},
            )

        response = await call_next(request)
        response.headers["X-RateLimit-Limit"] = str(rpm)
        response.headers["X-RateLimit-Remaining"] = str(max(0, rpm - count))
        return response
