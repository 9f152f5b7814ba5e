import json
import logging
import redis
from typing import Optional, Any

from app.config import get_settings

settings = get_settings()
logger = logging.getLogger(__name__)

# Create Redis client (connects lazily on first command)
redis_client = redis.from_url(settings.REDIS_URL, decode_responses=True)


class CacheService:
    """
    Redis cache for product details.

    The cache is optional: every Redis failure is logged and reported as a
    miss (or as False for writes), never raised to the caller.
    """

    def __init__(self, client: redis.Redis = None, ttl: int = None):
        self.client = client or redis_client
        self.ttl = ttl or settings.CACHE_TTL

    def _make_key(self, prefix: str, key: str) -> str:
        """Create a namespaced cache key."""
        return f"{prefix}:{key}"

    def get(self, prefix: str, key: str) -> Optional[Any]:
        """
        Get a value from cache.

        Args:
            prefix: Cache key prefix (e.g., 'product')
            key: Unique identifier

        Returns:
            Cached value or None if not found
        """
        cache_key = self._make_key(prefix, key)
        try:
            value = self.client.get(cache_key)
            if value:
                return json.loads(value)
            return None
        except (redis.RedisError, json.JSONDecodeError) as e:
            logger.debug(f"Cache read failed for {cache_key}: {e}")
            return None

    def set(self, prefix: str, key: str, value: Any, ttl: int = None) -> bool:
        """Store a JSON-serializable value with a TTL (seconds)."""
        cache_key = self._make_key(prefix, key)
        try:
            self.client.setex(cache_key, ttl or self.ttl, json.dumps(value, default=str))
            return True
        except (redis.RedisError, TypeError) as e:
            logger.debug(f"Cache write failed for {cache_key}: {e}")
            return False

    def delete(self, prefix: str, key: str) -> bool:
        """Drop a cached value. Returns False if Redis could not be reached."""
        cache_key = self._make_key(prefix, key)
        try:
            self.client.delete(cache_key)
            return True
        except redis.RedisError as e:
            logger.debug(f"Cache delete failed for {cache_key}: {e}")
            return False


# Singleton cache service instance
cache_service = CacheService()
