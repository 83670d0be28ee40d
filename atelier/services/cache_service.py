"""
Redis cache for small JSON documents such as the site configuration snapshot.

Redis is optional: when it is disabled or unreachable every read is a miss and
every write is dropped, so callers always fall back to the database.
"""

import json
import logging
from typing import Any, Callable, Optional

import redis
from redis.exceptions import RedisError
from flask import Flask

logger = logging.getLogger(__name__)


class CacheService:
    """JSON values stored under '{prefix}:{namespace}:{key}'."""

    def __init__(self, app: Optional[Flask] = None):
        self.client: Optional[redis.Redis] = None
        self.prefix = 'atelier'
        self.default_ttl = 60

        if app:
            self.init_app(app)

    def init_app(self, app: Flask) -> None:
        self.prefix = app.config.get('CACHE_KEY_PREFIX', self.prefix)
        self.default_ttl = app.config.get('CACHE_DEFAULT_TTL', self.default_ttl)

        if not app.config.get('CACHE_ENABLED', True):
            logger.info("[CACHE] Disabled by configuration")
            return

        url = app.config.get('REDIS_URL', 'redis://redis:6379/0')
        client = redis.from_url(url, decode_responses=True, socket_connect_timeout=3, socket_timeout=3)
        try:
            client.ping()
        except RedisError as e:
            logger.warning(f"[CACHE] Redis unreachable at {url}, running without cache: {e}")
            return

        self.client = client
        logger.info(f"[CACHE] Using Redis at {url}")

    @property
    def enabled(self) -> bool:
        return self.client is not None

    def _key(self, namespace: str, key: str) -> str:
        return f"{self.prefix}:{namespace}:{key}"

    def get(self, namespace: str, key: str) -> Optional[Any]:
        if not self.enabled:
            return None
        try:
            raw = self.client.get(self._key(namespace, key))
            return json.loads(raw) if raw is not None else None
        except (RedisError, ValueError) as e:
            logger.warning(f"[CACHE] Read of {namespace}:{key} failed: {e}")
            return None

    def set(self, namespace: str, key: str, value: Any, ttl: Optional[int] = None) -> bool:
        if not self.enabled:
            return False
        try:
            self.client.set(self._key(namespace, key), json.dumps(value), ex=ttl or self.default_ttl)
            return True
        except (RedisError, TypeError) as e:
            logger.warning(f"[CACHE] Write of {namespace}:{key} failed: {e}")
            return False

    def delete(self, namespace: str, key: str) -> bool:
        if not self.enabled:
            return False
        try:
            self.client.delete(self._key(namespace, key))
            return True
        except RedisError as e:
            logger.warning(f"[CACHE] Delete of {namespace}:{key} failed: {e}")
            return False

    def memoize(self, namespace: str, key: str, loader: Callable[[], Any], ttl: Optional[int] = None) -> Any:
        """Return the cached value, or load it and cache it for next time."""
        cached = self.get(namespace, key)
        if cached is not None:
            return cached
        value = loader()
        self.set(namespace, key, value, ttl)
        return value


_cache: Optional[CacheService] = None


def init_cache(app: Flask) -> None:
    global _cache
    _cache = CacheService(app)
    app.extensions['cache'] = _cache


def get_cache() -> CacheService:
    if _cache is None:
        raise RuntimeError("Cache not initialized.")
    return _cache
