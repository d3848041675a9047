"""
Caching utilities for read-heavy projections
"""
import hashlib
import json
import logging
from functools import wraps
from typing import Any, Callable, Optional

import redis

from config.settings import settings

logger = logging.getLogger(__name__)

# Redis client (lazy initialization)
_redis_client: Optional[redis.Redis] = None


def get_redis_client() -> redis.Redis:
    """Get Redis client with lazy initialization"""
    global _redis_client
    if _redis_client is None:
        _redis_client = redis.from_url(settings.REDIS_URL, decode_responses=True)
    return _redis_client


class CacheManager:
    """Thin JSON cache over Redis. A Redis outage is a cache miss, never an error."""

    def __init__(self, enabled: Optional[bool] = None):
        self._enabled = enabled

    @property
    def enabled(self) -> bool:
        return settings.CACHE_ENABLED if self._enabled is None else self._enabled

    @property
    def redis_client(self) -> redis.Redis:
        return get_redis_client()

    def make_key(self, prefix: str, *args, **kwargs) -> str:
        key_data = f"{prefix}:{str(args)}:{str(sorted(kwargs.items()))}"
        return f"cache:{prefix}:{hashlib.md5(key_data.encode()).hexdigest()}"

    def get(self, key: str) -> Optional[Any]:
        if not self.enabled:
            return None
        try:
            cached_value = self.redis_client.get(key)
            if cached_value:
                return json.loads(cached_value)
        except (redis.RedisError, json.JSONDecodeError) as exc:
            logger.warning("Cache read failed for %s: %s", key, exc)
        return None

    def set(self, key: str, value: Any, expiry_seconds: Optional[int] = None) -> bool:
        if not self.enabled:
            return False
        try:
            serialized_value = json.dumps(value, default=str)
            return bool(self.redis_client.setex(key, expiry_seconds or settings.CACHE_DEFAULT_TTL, serialized_value))
        except (redis.RedisError, TypeError) as exc:
            logger.warning("Cache write failed for %s: %s", key, exc)
            return False

    def delete(self, key: str) -> bool:
        if not self.enabled:
            return False
        try:
            return bool(self.redis_client.delete(key))
        except redis.RedisError as exc:
            logger.warning("Cache delete failed for %s: %s", key, exc)
            return False

    def delete_pattern(self, pattern: str) -> int:
        """Delete all keys matching pattern"""
        if not self.enabled:
            return 0
        try:
            keys = list(self.redis_client.scan_iter(match=pattern))
            if keys:
                return self.redis_client.delete(*keys)
            return 0
        except redis.RedisError as exc:
            logger.warning("Cache invalidation failed for %s: %s", pattern, exc)
            return 0


# Global cache manager instance; connects on first use
cache_manager = CacheManager()


def cache_result(key_prefix: str, expiry_seconds: Optional[int] = None, skip_args: int = 0):
    """
    Cache a function's JSON-serialisable result.

    `skip_args` leading positional arguments (a db session, say) are left out
    of the cache key.
    """
    def decorator(func: Callable) -> Callable:
        @wraps(func)
        def wrapper(*args, **kwargs):
            cache_key = cache_manager.make_key(key_prefix, *args[skip_args:], **kwargs)
            cached_result = cache_manager.get(cache_key)
            if cached_result is not None:
                return cached_result

            result = func(*args, **kwargs)
            cache_manager.set(cache_key, result, expiry_seconds)
            return result

        wrapper.cache_clear = lambda: cache_manager.delete_pattern(f"cache:{key_prefix}:*")
        return wrapper
    return decorator
