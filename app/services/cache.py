"""Redis-backed cache for curated news views.

Curated views (featured, latest, most-viewed, by category, by author) are
cheap to serve from Redis for a short TTL. Any write to the news table drops
every cached view. Redis being unavailable is never fatal: reads fall through
to the database and the failure is logged.
"""

import json
import logging

import redis.asyncio as redis
from redis.exceptions import RedisError

from app.config import settings

logger = logging.getLogger(__name__)

CURATED_PREFIX = "news:curated:"

redis_client: redis.Redis | None = None


async def init_redis():
    global redis_client
    redis_client = redis.from_url(settings.redis_url, decode_responses=True)


async def close_redis():
    global redis_client
    if redis_client:
        await redis_client.aclose()
        redis_client = None


async def get_redis() -> redis.Redis | None:
    return redis_client


def curated_key(view: str, limit: int, arg: str = "") -> str:
    return f"{CURATED_PREFIX}{view}:{arg}:{limit}"


async def get_cached_view(key: str, r: redis.Redis | None) -> list[dict] | None:
    if r is None:
        return None
    try:
        raw = await r.get(key)
    except RedisError as e:
        logger.warning("Cache read failed for %s: %s", key, e)
        return None
    return json.loads(raw) if raw else None


async def cache_view(key: str, items: list[dict], r: redis.Redis | None) -> None:
    if r is None:
        return
    try:
        await r.set(key, json.dumps(items), ex=settings.curated_cache_ttl)
    except RedisError as e:
        logger.warning("Cache write failed for %s: %s", key, e)


async def invalidate_curated(r: redis.Redis | None) -> int:
    """Drop every cached curated view. Returns the number of keys removed."""
    if r is None:
        return 0
    try:
        keys = [key async for key in r.scan_iter(match=f"{CURATED_PREFIX}*")]
        if keys:
            await r.delete(*keys)
    except RedisError as e:
        logger.warning("Cache invalidation failed: %s", e)
        return 0
    return len(keys)
