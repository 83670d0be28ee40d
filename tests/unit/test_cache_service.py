"""
Unit tests for the Redis cache wrapper and its degradation to cache misses.
"""

from flask import Flask
from redis.exceptions import ConnectionError as RedisConnectionError

from atelier.services.cache_service import CacheService


class InMemoryRedis:
    """Stands in for a redis.Redis client with decode_responses=True."""

    def __init__(self):
        self.data = {}
        self.expiry = {}

    def get(self, key):
        return self.data.get(key)

    def set(self, key, value, ex=None):
        self.data[key] = value
        self.expiry[key] = ex

    def delete(self, key):
        self.data.pop(key, None)


class DownRedis:

    def get(self, key):
        raise RedisConnectionError('redis down')

    def set(self, key, value, ex=None):
        raise RedisConnectionError('redis down')

    def delete(self, key):
        raise RedisConnectionError('redis down')


def _cache(client=None):
    app = Flask(__name__)
    app.config.update(CACHE_ENABLED=False, CACHE_KEY_PREFIX='test', CACHE_DEFAULT_TTL=45)
    cache = CacheService(app)
    cache.client = client
    return cache


class TestCacheService:

    def test_disabled_cache_always_loads(self):
        cache = _cache()
        calls = []

        def loader():
            calls.append(1)
            return {'version': 'v1'}

        assert cache.memoize('site_config', 'snapshot', loader) == {'version': 'v1'}
        assert cache.memoize('site_config', 'snapshot', loader) == {'version': 'v1'}
        assert len(calls) == 2
        assert cache.enabled is False

    def test_memoize_serves_second_read_from_redis(self):
        client = InMemoryRedis()
        cache = _cache(client)
        calls = []

        def loader():
            calls.append(1)
            return {'featured_discounts': {'7': '15'}}

        cache.memoize('site_config', 'snapshot', loader, ttl=30)
        cached = cache.memoize('site_config', 'snapshot', loader, ttl=30)

        assert cached == {'featured_discounts': {'7': '15'}}
        assert len(calls) == 1
        assert client.expiry['test:site_config:snapshot'] == 30

    def test_default_ttl(self):
        client = InMemoryRedis()
        cache = _cache(client)
        cache.set('site_config', 'snapshot', {'a': 1})
        assert client.expiry['test:site_config:snapshot'] == 45

    def test_delete(self):
        client = InMemoryRedis()
        cache = _cache(client)
        cache.set('site_config', 'snapshot', {'a': 1})
        assert cache.delete('site_config', 'snapshot') is True
        assert cache.get('site_config', 'snapshot') is None

    def test_redis_errors_degrade_to_misses(self):
        cache = _cache(DownRedis())

        assert cache.get('site_config', 'snapshot') is None
        assert cache.set('site_config', 'snapshot', {'a': 1}) is False
        assert cache.delete('site_config', 'snapshot') is False
        assert cache.memoize('site_config', 'snapshot', lambda: {'a': 1}) == {'a': 1}

    def test_corrupt_entry_is_a_miss(self):
        client = InMemoryRedis()
        client.data['test:site_config:snapshot'] = '{not json'
        cache = _cache(client)
        assert cache.get('site_config', 'snapshot') is None
