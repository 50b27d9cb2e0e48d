import json
import logging
import time
from typing import Any, Callable, NamedTuple, Optional

from cachetools import TLRUCache
from redis.asyncio import Redis, RedisError

from tasktracker.core.config import Settings, get_settings

logger = logging.getLogger(__name__)

_MISSING = object()


class _L1Entry(NamedTuple):
    value: Any
    ttl: int


class CacheLayer:
    """
    Two-tier cache store.

    L1: Process-local TLRUCache (fast, limited size). Each entry expires after
        min(its own TTL, l1_ttl_seconds)
    L2: Redis (shared, entries expire after the TTL given to set())

    Features:
    - Graceful degradation when Redis is unavailable (L1 only)
    - Redis errors are logged and counted, never raised
    - Automatic key namespacing
    """

    def __init__(
        self,
        settings: Settings | None = None,
        redis: Redis | None = None,
        timer: Callable[[], float] = time.monotonic,
    ):
        self._settings = settings
        self._redis: Redis | None = redis
        self._timer = timer
        self.l1: TLRUCache | None = None
        self._initialized = False

        # Stats tracking
        self.stats = {
            "l1_hits": 0,
            "l2_hits": 0,
            "misses": 0,
            "errors": 0,
        }

    async def init_cache(self):
        """Initialize settings, L1 cache, and Redis connection."""
        if self._initialized:
            return

        if self._settings is None:
            self._settings = get_settings()

        settings = self._settings

        if self.l1 is None:
            self.l1 = TLRUCache(
                maxsize=settings.l1_maxsize, ttu=self._l1_expiry, timer=self._timer
            )

        try:
            if self._redis is None:
                self._redis = Redis.from_url(
                    settings.redis_dsn,
                    encoding="utf-8",
                    decode_responses=True,
                    max_connections=settings.redis_pool_size,
                    socket_connect_timeout=5,
                    socket_keepalive=True,
                    health_check_interval=30,
                )

            # Verify connection
            await self._redis.ping()
            logger.info("Redis connection established")

        except (RedisError, OSError) as e:
            logger.error(f"Redis initialization failed, running L1 only: {e}")
            self._redis = None

        self._initialized = True
        logger.info("Cache layer initialized")

    @property
    def degraded(self) -> bool:
        return self._initialized and self._redis is None

    def _l1_key(self, key: str) -> str:
        """Build namespaced L1 cache key."""
        return f"{self._settings.cache_namespace}l1:{key}"

    def _l2_key(self, key: str) -> str:
        """Build namespaced L2 cache key."""
        return f"{self._settings.cache_namespace}l2:{key}"

    def _serialize(self, value: Any) -> str:
        """Serialize value for storage."""
        try:
            return json.dumps(value, default=str)
        except (TypeError, ValueError) as e:
            logger.error(f"Serialization failed: {e}")
            raise

    def _deserialize(self, raw: str) -> Any:
        """Deserialize value from storage."""
        try:
            return json.loads(raw)
        except json.JSONDecodeError:
            # Return raw string if not valid JSON
            return raw

    def _l1_expiry(self, _key: str, entry: _L1Entry, now: float) -> float:
        return now + min(entry.ttl, self._settings.l1_ttl_seconds)

    def _l1_set(self, l1_key: str, value: Any, ttl: int):
        self.l1[l1_key] = _L1Entry(value, ttl)

    async def get(self, key: str) -> Any:
        """
        Retrieve value from cache hierarchy: L1 -> L2.

        Returns:
            Cached value, or None on a miss
        """
        await self.init_cache()

        l1_key = self._l1_key(key)

        # 1) Check L1 (fast path); one lookup so expiry cannot race a second read
        entry = self.l1.get(l1_key, _MISSING)
        if entry is not _MISSING:
            self.stats["l1_hits"] += 1
            logger.debug(f"L1 hit: {key}")
            return entry.value

        # 2) Check L2 (Redis)
        if self._redis:
            try:
                l2_key = self._l2_key(key)
                raw = await self._redis.get(l2_key)
                if raw is not None:
                    self.stats["l2_hits"] += 1
                    logger.debug(f"L2 hit: {key}")
                    value = self._deserialize(raw)
                    # Populate L1 for no longer than the L2 entry has left
                    # (-1: no expiry set, -2: expired since the GET)
                    remaining = await self._redis.ttl(l2_key)
                    if remaining == -1:
                        remaining = self._settings.l1_ttl_seconds
                    if remaining > 0:
                        self._l1_set(l1_key, value, remaining)
                    return value
            except RedisError as e:
                logger.error(f"Redis GET error for {key}: {e}")
                self.stats["errors"] += 1

        self.stats["misses"] += 1
        logger.debug(f"Cache miss: {key}")
        return None

    async def set(self, key: str, value: Any, ttl: Optional[int] = None):
        """
        Set a value in both cache layers.

        Args:
            key: Cache key (will be namespaced automatically)
            value: JSON-serializable value
            ttl: TTL in seconds for both tiers (uses task_list_ttl_seconds if
                None). L1 additionally caps it at l1_ttl_seconds.
        """
        await self.init_cache()
        ttl = ttl or self._settings.task_list_ttl_seconds

        # Always set L1 (it's local and fast)
        self._l1_set(self._l1_key(key), value, ttl)

        if self._redis:
            try:
                data = self._serialize(value)
                await self._redis.set(self._l2_key(key), data, ex=ttl)
                logger.debug(f"Stored in L2: {key}")
            except RedisError as e:
                logger.error(f"Redis SET error for {key}: {e}")
                self.stats["errors"] += 1

    async def delete(self, key: str):
        """
        Delete a key from both cache layers.

        Deleting from Redis is critical to prevent stale data.
        """
        await self.init_cache()

        # Always delete from L1
        self.l1.pop(self._l1_key(key), None)

        if self._redis:
            try:
                await self._redis.delete(self._l2_key(key))
                logger.debug(f"Deleted from both layers: {key}")
            except RedisError as e:
                logger.error(f"Redis DELETE error for {key}: {e}")
                self.stats["errors"] += 1

    async def close(self):
        """Graceful shutdown of cache connections."""
        if self._redis:
            try:
                await self._redis.aclose()
                logger.info("Redis connection closed")
            except RedisError as e:
                logger.error(f"Error closing Redis: {e}")
        self._redis = None
        self._initialized = False

    def get_stats(self) -> dict:
        """Get cache statistics."""
        total = sum(
            [self.stats["l1_hits"], self.stats["l2_hits"], self.stats["misses"]]
        )

        return {
            **self.stats,
            "l1_size": len(self.l1) if self.l1 else 0,
            "l1_maxsize": self.l1.maxsize if self.l1 else 0,
            "redis_connected": self._redis is not None,
            "hit_rate": (
                (self.stats["l1_hits"] + self.stats["l2_hits"]) / total
                if total > 0
                else 0
            ),
        }


# Cache layer instance (singleton per worker)
cache_layer = CacheLayer()
