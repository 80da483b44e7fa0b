"""Shared fixtures for the cache tests.

Uses fakeredis so no real Redis server is required.
"""

import pytest
from redis.exceptions import ConnectionError as RedisConnectionError

from techtrend.cache.layered import LayeredCache
from techtrend.cache.stats import StatsAggregator


@pytest.fixture
def redis_client():
    """An in-process async Redis with string responses and a private keyspace."""
    try:
        import fakeredis
    except ImportError:
        pytest.skip("fakeredis not installed")
    return fakeredis.FakeAsyncRedis(server=fakeredis.FakeServer(), decode_responses=True)


@pytest.fixture
def stats() -> StatsAggregator:
    return StatsAggregator()


@pytest.fixture
def cache(redis_client) -> LayeredCache:
    return LayeredCache(redis_client)


class BrokenRedis:
    """Client whose every command fails as if Redis were down."""

    def __init__(self) -> None:
        self.calls = 0

    async def get(self, *args, **kwargs):
        self.calls += 1
        raise RedisConnectionError("Connection refused")

    async def set(self, *args, **kwargs):
        self.calls += 1
        raise RedisConnectionError("Connection refused")

    async def delete(self, *args, **kwargs):
        self.calls += 1
        raise RedisConnectionError("Connection refused")

    async def scan_iter(self, *args, **kwargs):
        self.calls += 1
        raise RedisConnectionError("Connection refused")
        yield  # pragma: no cover


@pytest.fixture
def broken_redis() -> BrokenRedis:
    return BrokenRedis()


class Counter:
    """Async compute function that counts its calls."""

    def __init__(self, value=None, error: Exception = None) -> None:
        self.value = value if value is not None else {"articles": [], "total": 0}
        self.error = error
        self.calls = 0

    async def __call__(self):
        self.calls += 1
        if self.error is not None:
            raise self.error
        return self.value


@pytest.fixture
def make_compute():
    return Counter
