"""
Redis cache for event listing pages.

Only GET /events responses are cached. Single events and everything the
inventory ledger reads come straight from the database: seat counts used for
booking decisions are always the locked row's, and a cached listing may show
a seat count that lags by one invalidation.

Keys are namespaced by a generation number:

    events:list:gen            -> integer, bumped on every invalidation
    events:list:<gen>:<query>  -> JSON page, expires after REDIS_CACHE_TTL

Invalidation (any reserve, cancel or event write) is a single INCR; pages of
older generations are never read again and simply age out.

Redis being disabled or down never fails a request; every call degrades to a
cache miss.
"""

import json
from typing import Optional

import redis.asyncio as redis
from redis.exceptions import RedisError

from event_booking.core.config import get_settings
from event_booking.core.logging import get_logger
from event_booking.core.metrics import record_cache_operation

logger = get_logger(__name__)
settings = get_settings()

EVENT_LIST_PREFIX = "events:list:"
GENERATION_KEY = f"{EVENT_LIST_PREFIX}gen"

_client: Optional[redis.Redis] = None


async def get_redis() -> Optional[redis.Redis]:
    """Shared client, connected lazily. None when disabled or unreachable."""
    global _client

    if not settings.REDIS_ENABLED:
        return None
    if _client is not None:
        return _client

    client = redis.from_url(
        settings.REDIS_URL,
        encoding="utf-8",
        decode_responses=True,
        socket_connect_timeout=2,
        socket_timeout=2,
    )
    try:
        await client.ping()
    except (RedisError, OSError) as e:
        logger.warning("redis_unreachable", url=settings.REDIS_URL, error=str(e))
        await client.aclose()
        return None

    logger.info("redis_connected", url=settings.REDIS_URL)
    _client = client
    return _client


async def close_redis() -> None:
    global _client
    if _client is not None:
        await _client.aclose()
        _client = None


def make_event_list_key(params: dict) -> str:
    """Stable key suffix for a listing query, independent of parameter order."""
    return "&".join(f"{name}={params[name]}" for name in sorted(params))


async def _page_key(client: redis.Redis, params: dict) -> str:
    generation = await client.get(GENERATION_KEY) or "0"
    return f"{EVENT_LIST_PREFIX}{generation}:{make_event_list_key(params)}"


async def get_cached_events(params: dict) -> Optional[dict]:
    client = await get_redis()
    if client is None:
        return None

    try:
        data = await client.get(await _page_key(client, params))
    except RedisError as e:
        record_cache_operation("get", "error")
        logger.warning("cache_get_failed", error=str(e))
        return None

    record_cache_operation("get", "hit" if data else "miss")
    return json.loads(data) if data else None


async def set_cached_events(params: dict, page: dict) -> None:
    client = await get_redis()
    if client is None:
        return

    try:
        key = await _page_key(client, params)
        await client.set(key, json.dumps(page, default=str), ex=settings.REDIS_CACHE_TTL)
    except RedisError as e:
        record_cache_operation("set", "error")
        logger.warning("cache_set_failed", error=str(e))
        return
    record_cache_operation("set", "ok")


async def invalidate_event_cache() -> None:
    """Make every cached listing page unreachable."""
    client = await get_redis()
    if client is None:
        return

    try:
        generation = await client.incr(GENERATION_KEY)
    except RedisError as e:
        record_cache_operation("invalidate", "error")
        logger.warning("cache_invalidate_failed", error=str(e))
        return
    record_cache_operation("invalidate", "ok")
    logger.debug("event_cache_invalidated", generation=generation)


async def get_cache_stats() -> dict:
    """Cache status for /health."""
    client = await get_redis()
    if client is None:
        return {"status": "disabled" if not settings.REDIS_ENABLED else "unavailable"}

    try:
        info = await client.info("stats")
        generation = await client.get(GENERATION_KEY)
    except RedisError as e:
        return {"status": "error", "error": str(e)}

    hits = info.get("keyspace_hits", 0)
    misses = info.get("keyspace_misses", 0)
    return {
        "status": "connected",
        "generation": int(generation or 0),
        "hit_rate": round(hits / max(hits + misses, 1) * 100, 2),
    }
