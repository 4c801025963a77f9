"""Redis fixed-window rate limiting: global per-IP middleware and per-user score limit."""

import logging
import time
from typing import Any

from fastapi import Depends, HTTPException, status
from redis.exceptions import RedisError
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import JSONResponse, Response

from komoru.config import get_settings
from komoru.dependencies import get_current_user_id
from komoru.redis_client import get_redis_or_none

logger = logging.getLogger(__name__)

# Paths exempt from rate limiting
_EXEMPT_PATHS = frozenset({"/health", "/ready", "/api/health"})


async def _hit(key_prefix: str, window_seconds: int) -> int | None:
    """Count one request in the current window. None when Redis is not configured."""
    redis = get_redis_or_none()
    if redis is None:
        return None

    window = int(time.time()) // window_seconds
    rate_key = f"{key_prefix}:{window}"
    try:
        pipe = redis.pipeline()
        pipe.incr(rate_key)
        pipe.expire(rate_key, window_seconds + 1)
        results: list[Any] = await pipe.execute()
    except RedisError:
        # Fail open: an unreachable Redis must not take the API down.
        logger.warning("Rate limit check skipped, Redis unavailable", exc_info=True)
        return None
    return int(results[0])


class RateLimitMiddleware(BaseHTTPMiddleware):
    """Rate limit requests per IP using Redis counters."""

    def __init__(self, app: Any, requests_per_window: int = 100, window_seconds: int = 60) -> None:  # noqa: ANN401
        super().__init__(app)
        self.requests_per_window = requests_per_window
        self.window_seconds = window_seconds

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        """Check rate limit, return 429 if exceeded."""
        if request.url.path in _EXEMPT_PATHS:
            return await call_next(request)

        client_ip = request.client.host if request.client else "unknown"
        current_count = await _hit(f"ratelimit:{client_ip}", self.window_seconds)
        if current_count is None:
            return await call_next(request)

        if current_count > self.requests_per_window:
            return JSONResponse(
                status_code=429,
                content={"detail": "Rate limit exceeded. Try again later."},
                headers={
                    "Retry-After": str(self.window_seconds),
                    "X-RateLimit-Remaining": "0",
                    "X-RateLimit-Limit": str(self.requests_per_window),
                },
            )

        response = await call_next(request)
        response.headers["X-RateLimit-Remaining"] = str(max(0, self.requests_per_window - current_count))
        response.headers["X-RateLimit-Limit"] = str(self.requests_per_window)
        return response


async def score_rate_limit(user_id: str = Depends(get_current_user_id)) -> None:
    """Per-user limit on score submissions (dependency for the score endpoint)."""
    settings = get_settings()
    current_count = await _hit(f"ratelimit:scores:{user_id}", settings.rate_limit_scores_window_seconds)
    if current_count is not None and current_count > settings.rate_limit_scores:
        raise HTTPException(
            status_code=status.HTTP_429_TOO_MANY_REQUESTS,
            detail="Too many score submissions. Try again later.",
            headers={"Retry-After": str(settings.rate_limit_scores_window_seconds)},
        )
