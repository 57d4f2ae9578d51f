'''
Cache-aside read layer over Redis, invalidated by resource tag after writes.
'''
import hashlib
import json
from typing import Any, Optional

from redis.asyncio import Redis
from redis.exceptions import RedisError

from ..common.config import settings
from ..common.logger import log
from ..database.db_enums import CacheTagEnum

# We define it as None. It will be created by the app's lifespan.
redis_client: Redis | None = None


def create_cache_client():
    """
    Creates the shared Redis client when REDIS_URL is configured.
    Without it the cache stays disabled and every read goes to the database.
    """
    global redis_client
    if not settings.REDIS_URL:
        log.info("REDIS_URL not set; response cache disabled.")
        redis_client = None
        return
    redis_client = Redis.from_url(settings.REDIS_URL, decode_responses=True)
    log.info("Redis cache client created.")


async def close_cache_client():
    global redis_client
    if redis_client is not None:
        await redis_client.aclose()
        log.info("Redis cache client closed.")
    redis_client = None


class CacheService:
    """
    Keys look like `cache:<TAG>:<name>:<digest>` so a whole resource tag
    can be dropped with one pattern.
    """
    PREFIX = "cache"

    # a listing denormalizes instructors and rooms, so they ripple into CLASSES
    RIPPLE = {
        CacheTagEnum.INSTRUCTORS: (CacheTagEnum.INSTRUCTORS, CacheTagEnum.CLASSES),
        CacheTagEnum.ROOMS: (CacheTagEnum.ROOMS, CacheTagEnum.CLASSES),
        CacheTagEnum.CLASSES: (CacheTagEnum.CLASSES,),
    }

    def __init__(self, client: Optional[Redis] = None, ttl_seconds: Optional[int] = None):
        self.client = client
        self.ttl_seconds = ttl_seconds or settings.CACHE_TTL_SECONDS

    @property
    def enabled(self) -> bool:
        return self.client is not None

    def make_key(self, tag: CacheTagEnum, name: str, params: Optional[dict[str, Any]] = None) -> str:
        payload = json.dumps(params or {}, sort_keys=True, separators=(",", ":"), default=str)
        digest = hashlib.sha256(payload.encode("utf-8")).hexdigest()
        return f"{self.PREFIX}:{tag.value}:{name}:{digest}"

    async def get_json(self, key: str) -> Optional[Any]:
        if not self.enabled:
            return None
        try:
            cached = await self.client.get(key)
        except RedisError as e:
            log.warning(f"Cache read failed for {key}, falling back to database: {e}")
            return None
        if cached is None:
            return None
        log.info(f"Cache hit for {key}")
        return json.loads(cached)

    async def set_json(self, key: str, value: Any):
        if not self.enabled:
            return
        try:
            await self.client.set(key, json.dumps(value, default=str), ex=self.ttl_seconds)
        except RedisError as e:
            log.warning(f"Cache write failed for {key}: {e}")

    async def invalidate(self, tag: CacheTagEnum):
        if not self.enabled:
            log.info(f"Cache disabled; nothing to invalidate for {tag.value}.")
            return
        pattern = f"{self.PREFIX}:{tag.value}:*"
        try:
            removed = 0
            async for key in self.client.scan_iter(match=pattern, count=500):
                await self.client.delete(key)
                removed += 1
            log.info(f"Cache cleared for pattern {pattern} ({removed} keys).")
        except RedisError as e:
            # the write already committed; stale entries expire with their TTL
            log.error(f"Cache invalidation failed for {pattern}: {e}", exc_info=True)

    async def invalidate_resource(self, resource: CacheTagEnum):
        """Invalidates the resource's own tag plus every tag it ripples into."""
        for tag in self.RIPPLE[resource]:
            await self.invalidate(tag)


def get_cache_service() -> CacheService:
    """FastAPI dependency returning a CacheService over the shared client."""
    return CacheService(client=redis_client)
