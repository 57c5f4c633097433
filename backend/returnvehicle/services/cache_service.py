"""
Redis caching service for the public ride catalog.

What we cache:
  - Search result pages (JSON-serialized RideListResponse)
  - Key pattern: "rides:list:<sorted query string>"

Invalidation:
  - Any ride write (create, update, delete) and any seat movement (book,
    cancel, reject, reconcile) deletes every "rides:list:*" key
  - TTL-based expiry as safety net

What we never cache:
  - Ride detail and anything on the booking path. Seat counts shown before
    booking are advisory; the conditional UPDATE in booking_service is the
    only authority, so a stale page can at worst produce seat_unavailable.

Redis is optional. When disabled or unreachable every call degrades to a
no-op and the catalog is served from the database.
"""

import json
from typing import Optional
from urllib.parse import urlencode

import redis.asyncio as redis
from redis.exceptions import RedisError

from returnvehicle.core.config import get_settings
from returnvehicle.core.logging import get_logger
from returnvehicle.core.metrics import record_cache_operation

logger = get_logger(__name__)
settings = get_settings()

LIST_KEY_PREFIX = "rides:list:"

_redis_client: Optional[redis.Redis] = None


async def get_redis() -> Optional[redis.Redis]:
    """Get or create Redis connection. Returns None if Redis is disabled."""
    global _redis_client

    if not settings.REDIS_ENABLED:
        return None

    if _redis_client is None:
        client = redis.from_url(
            settings.REDIS_URL,
            encoding="utf-8",
            decode_responses=True,
            socket_connect_timeout=2,
            socket_timeout=2,
            retry_on_timeout=True,
        )
        try:
            await client.ping()
        except (RedisError, OSError) as e:
            logger.error("redis_connection_failed", error=str(e))
            await client.aclose()
            return None
        _redis_client = client
        logger.info("redis_connected", url=settings.REDIS_URL)

    return _redis_client


async def close_redis() -> None:
    global _redis_client
    if _redis_client:
        await _redis_client.aclose()
        _redis_client = None


def make_list_key(params: dict) -> str:
    cleaned = {k: v for k, v in sorted(params.items()) if v not in (None, "")}
    return LIST_KEY_PREFIX + urlencode(cleaned)


async def get_cached_list(params: dict) -> Optional[dict]:
    client = await get_redis()
    if not client:
        return None

    key = make_list_key(params)
    try:
        data = await client.get(key)
    except RedisError as e:
        logger.error("cache_get_error", key=key, error=str(e))
        return None

    record_cache_operation("get", hit=data is not None)
    if data:
        logger.debug("cache_hit", key=key)
        return json.loads(data)
    logger.debug("cache_miss", key=key)
    return None


async def set_cached_list(params: dict, data: dict) -> None:
    client = await get_redis()
    if not client:
        return

    key = make_list_key(params)
    try:
        await client.setex(key, settings.REDIS_CACHE_TTL, json.dumps(data, default=str))
        record_cache_operation("set", hit=False)
    except RedisError as e:
        logger.error("cache_set_error", key=key, error=str(e))


async def invalidate_ride_cache() -> None:
    client = await get_redis()
    if not client:
        return

    try:
        deleted = 0
        async for key in client.scan_iter(match=LIST_KEY_PREFIX + "*", count=100):
            await client.delete(key)
            deleted += 1
        logger.info("cache_invalidated", keys_deleted=deleted)
    except RedisError as e:
        logger.error("cache_invalidation_error", error=str(e))


async def get_cache_stats() -> dict:
    client = await get_redis()
    if not client:
        return {"status": "disabled"}

    try:
        info = await client.info("stats")
    except RedisError as e:
        return {"status": "error", "error": str(e)}

    hits = info.get("keyspace_hits", 0)
    misses = info.get("keyspace_misses", 0)
    return {
        "status": "connected",
        "hits": hits,
        "misses": misses,
        "hit_rate": round(hits / max(hits + misses, 1) * 100, 2),
    }
