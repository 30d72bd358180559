"""Local persistent key → JSON value cache.

Backs the offline fallback of the permission-group and package catalogues
and small settings.  Production uses Redis; mock mode keeps values in
process memory.
"""

import json
import logging
from typing import Any, Optional, Protocol

import redis.asyncio as redis

from bizdesk.config import settings

logger = logging.getLogger(__name__)

# Global Redis connection pool
_redis_client: Optional[redis.Redis] = None


async def get_redis() -> redis.Redis:
    """Get or create Redis client connection."""
    global _redis_client
    if _redis_client is None:
        _redis_client = redis.from_url(
            settings.redis_url,
            encoding="utf-8",
            decode_responses=True,
            max_connections=50,
        )
    return _redis_client


async def close_redis():
    """Close Redis connection (call on app shutdown)."""
    global _redis_client
    if _redis_client:
        await _redis_client.aclose()
        _redis_client = None


class KeyValueCache(Protocol):
    async def get(self, key: str) -> Any: ...

    async def set(self, key: str, value: Any) -> bool: ...

    async def remove(self, key: str) -> bool: ...


class RedisCache:
    """JSON values in Redis under `{prefix}:{key}`.

    No TTL: entries survive restarts until overwritten or removed.
    Redis failures are logged and reported as a miss / False, never raised.
    """

    def __init__(self, client: Optional[redis.Redis] = None, prefix: str | None = None):
        self._client = client
        self.prefix = prefix if prefix is not None else settings.cache_prefix

    def _key(self, key: str) -> str:
        return f"{self.prefix}:{key}" if self.prefix else key

    async def _redis(self) -> redis.Redis:
        if self._client is None:
            self._client = await get_redis()
        return self._client

    async def get(self, key: str) -> Any:
        try:
            client = await self._redis()
            raw = await client.get(self._key(key))
        except redis.RedisError as e:
            logger.warning(f"Redis error reading {key} (treating as miss): {e}")
            return None
        if raw is None:
            return None
        try:
            return json.loads(raw)
        except json.JSONDecodeError:
            logger.warning(f"Discarding undecodable cache entry: {key}")
            return None

    async def set(self, key: str, value: Any) -> bool:
        try:
            client = await self._redis()
            await client.set(self._key(key), json.dumps(value))
            return True
        except redis.RedisError as e:
            logger.warning(f"Redis error writing {key}: {e}")
            return False

    async def remove(self, key: str) -> bool:
        try:
            client = await self._redis()
            await client.delete(self._key(key))
            return True
        except redis.RedisError as e:
            logger.warning(f"Redis error removing {key}: {e}")
            return False


class MemoryCache:
    """In-process cache for mock/offline mode.

    Values are stored JSON-encoded so callers get fresh copies, the same as
    reading back from Redis.
    """

    def __init__(self):
        self._data: dict[str, str] = {}

    async def get(self, key: str) -> Any:
        raw = self._data.get(key)
        return json.loads(raw) if raw is not None else None

    async def set(self, key: str, value: Any) -> bool:
        self._data[key] = json.dumps(value)
        return True

    async def remove(self, key: str) -> bool:
        self._data.pop(key, None)
        return True


_memory_cache: Optional[MemoryCache] = None


def get_cache() -> KeyValueCache:
    """Cache for the configured mode."""
    global _memory_cache
    if settings.is_mock:
        if _memory_cache is None:
            _memory_cache = MemoryCache()
        return _memory_cache
    return RedisCache()
