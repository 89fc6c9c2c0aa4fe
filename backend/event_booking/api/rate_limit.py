"""
Per-client request rate limiting.

Fixed window per client IP: at most RATE_LIMIT_REQUESTS requests per
RATE_LIMIT_WINDOW_SECONDS, after which requests get 429 with Retry-After
until the window rolls over. Counters are kept in Redis (INCR on a key per
client and window, expiring with the window) so every worker shares them;
when Redis is disabled or fails, the process-local counter takes over.
"""

import time
from typing import Optional

from redis.exceptions import RedisError
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

from event_booking.core.config import get_settings
from event_booking.core.exceptions import RateLimitedError, error_response
from event_booking.core.logging import get_logger
from event_booking.services.cache_service import get_redis

logger = get_logger(__name__)
settings = get_settings()

RATE_LIMIT_PREFIX = "ratelimit:"
LIMIT_EXCEEDED_MESSAGE = "Too many requests from this IP, please try again later."
# probes are never limited
_EXEMPT_PATHS = frozenset({"/health", "/metrics"})


class FixedWindowCounter:
    """Process-local counters: client -> (window index, hits)."""

    def __init__(self):
        self._hits: dict[str, tuple[int, int]] = {}

    def hit(self, client: str, window: int) -> int:
        current_window, count = self._hits.get(client, (window, 0))
        if current_window != window:
            count = 0
        count += 1
        self._hits[client] = (window, count)
        return count

    def reset(self) -> None:
        self._hits.clear()


local_counter = FixedWindowCounter()


def client_ip(request: Request) -> str:
    if settings.RATE_LIMIT_TRUST_FORWARDED_FOR:
        forwarded = request.headers.get("X-Forwarded-For", "")
        if forwarded:
            return forwarded.split(",")[0].strip()
    return request.client.host if request.client else "unknown"


async def _hit_redis(client: str, window: int, window_seconds: int) -> Optional[int]:
    redis_client = await get_redis()
    if redis_client is None:
        return None

    key = f"{RATE_LIMIT_PREFIX}{client}:{window}"
    try:
        count = await redis_client.incr(key)
        if count == 1:
            await redis_client.expire(key, window_seconds)
    except RedisError as e:
        logger.warning("rate_limit_store_failed", error=str(e))
        return None
    return count


async def register_hit(client: str, now: Optional[float] = None) -> tuple[int, int]:
    """Count one request for client. Returns (hits in this window, seconds until it resets)."""
    window_seconds = settings.RATE_LIMIT_WINDOW_SECONDS
    now = time.time() if now is None else now
    window = int(now // window_seconds)
    reset_in = max(1, int((window + 1) * window_seconds - now))

    count = await _hit_redis(client, window, window_seconds)
    if count is None:
        count = local_counter.hit(client, window)
    return count, reset_in


class RateLimitMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next) -> Response:
        if not settings.RATE_LIMIT_ENABLED or request.url.path in _EXEMPT_PATHS:
            return await call_next(request)

        client = client_ip(request)
        limit = settings.RATE_LIMIT_REQUESTS
        count, reset_in = await register_hit(client)
        headers = {
            "X-RateLimit-Limit": str(limit),
            "X-RateLimit-Remaining": str(max(0, limit - count)),
            "X-RateLimit-Reset": str(reset_in),
        }

        if count > limit:
            logger.warning("rate_limited", client=client, hits=count, limit=limit)
            return error_response(RateLimitedError(LIMIT_EXCEEDED_MESSAGE, retry_after=reset_in), headers)

        response = await call_next(request)
        response.headers.update(headers)
        return response
