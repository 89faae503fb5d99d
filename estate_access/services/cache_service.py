"""Redis cache for resolved menus and effective permissions.

The cache is process-wide, created lazily on first use, invalidated after every
committed access-control mutation and never required for correctness: any
Redis failure degrades to a cache miss.

Entries are stamped with the invalidation generation read before they were
computed. Invalidation bumps the generation, so a value computed from a
snapshot older than the latest mutation is never served even if it was
written after the keys were cleared.
"""

import json
import logging
from typing import Optional, Any, Callable
import redis

from estate_access.core.config import settings

logger = logging.getLogger("estate_access.cache")

ACCESS_PREFIX = "access:"
# Outside the access: pattern so clearing entries keeps the counter
GENERATION_KEY = "access_generation"


class CacheService:
    """Redis-backed caching service."""

    def __init__(self):
        self._client: Optional[redis.Redis] = None

    @property
    def enabled(self) -> bool:
        return settings.CACHE_ENABLED

    @property
    def client(self) -> redis.Redis:
        if self._client is None:
            self._client = redis.from_url(
                settings.REDIS_URL,
                decode_responses=True,
                max_connections=100,
                socket_connect_timeout=1,
            )
        return self._client

    def get(self, key: str) -> Optional[str]:
        """Get a cached value by key."""
        if not self.enabled:
            return None
        try:
            return self.client.get(key)
        except redis.RedisError:
            return None

    def set(self, key: str, value: str, ttl_seconds: int = 300) -> None:
        """Set a cached value with TTL."""
        if not self.enabled:
            return
        try:
            self.client.setex(key, ttl_seconds, value)
        except redis.RedisError:
            pass  # Cache failures are non-fatal

    def get_json(self, key: str) -> Optional[Any]:
        """Get and parse a JSON cached value."""
        raw = self.get(key)
        if raw:
            return json.loads(raw)
        return None

    def set_json(self, key: str, value: Any, ttl_seconds: int = 300) -> None:
        """Serialize and cache a JSON value."""
        self.set(key, json.dumps(value, default=str), ttl_seconds)

    def generation(self) -> Optional[int]:
        """Current invalidation generation, or None when the cache is unusable."""
        if not self.enabled:
            return None
        try:
            return int(self.client.get(GENERATION_KEY) or 0)
        except redis.RedisError:
            return None

    def get_or_set_json(self, key: str, compute: Callable[[], Any]) -> Any:
        """Read-through: return the cached value or compute, store and return it."""
        generation = self.generation()
        if generation is None:
            return compute()
        cached = self.get_json(key)
        if isinstance(cached, dict) and cached.get("generation") == generation:
            return cached["value"]
        value = compute()
        self.set_json(
            key, {"generation": generation, "value": value}, settings.ACCESS_CACHE_TTL_SECONDS
        )
        return value

    def invalidate_pattern(self, pattern: str) -> None:
        """Delete all keys matching a pattern."""
        if not self.enabled:
            return
        try:
            keys = list(self.client.scan_iter(match=pattern))
            if keys:
                self.client.delete(*keys)
        except redis.RedisError:
            logger.warning("Failed to invalidate cache pattern %s", pattern)

    def invalidate_access(self) -> None:
        """Drop every cached menu and permission set."""
        if not self.enabled:
            return
        try:
            self.client.incr(GENERATION_KEY)
        except redis.RedisError:
            logger.warning("Failed to bump the access cache generation")
        self.invalidate_pattern(f"{ACCESS_PREFIX}*")

    def health_check(self) -> bool:
        """Check if Redis is reachable."""
        if not self.enabled:
            return False
        try:
            return self.client.ping()
        except redis.RedisError:
            return False


def menu_key(user_id: Optional[int]) -> str:
    return f"{ACCESS_PREFIX}menu:{user_id if user_id is not None else 'anonymous'}"


def permissions_key(user_id: int) -> str:
    return f"{ACCESS_PREFIX}perms:{user_id}"


cache_service = CacheService()
