"""Tests for RedisStore implementation.

These tests run against fakeredis and are skipped if it is not installed.
"""

import time

import pytest

pytest.importorskip("fakeredis")

import fakeredis  # noqa: E402
from redis.exceptions import ConnectionError as RedisConnectionError  # noqa: E402

from idemguard.exceptions import StoreUnavailableError  # noqa: E402
from idemguard.stores import RedisStore  # noqa: E402


@pytest.fixture
def redis_client():
    """Create a fake Redis client for testing."""
    client = fakeredis.FakeRedis()
    yield client
    client.flushall()


@pytest.fixture
def redis_store(redis_client):
    """Create a RedisStore instance for testing."""
    store = RedisStore(redis_client, prefix="test:idempotency:")
    yield store
    store.clear()


class BrokenClient:
    """Client whose every command fails like a dropped connection."""

    def exists(self, *args, **kwargs):
        raise RedisConnectionError("Connection refused")

    def set(self, *args, **kwargs):
        raise RedisConnectionError("Connection refused")


def test_redis_store_exists_set(redis_store):
    """Test basic exists/set operations with RedisStore."""
    assert redis_store.exists("abc") is False
    redis_store.set("abc", ttl=None)
    assert redis_store.exists("abc") is True


def test_redis_store_marker_and_prefix(redis_client, redis_store):
    """Test the raw key layout."""
    redis_store.set("abc")
    assert redis_client.get("test:idempotency:abc") == b"1"


def test_redis_store_millisecond_ttl(redis_client, redis_store):
    """Test that positive TTLs become a millisecond expiry."""
    redis_store.set("abc", ttl=1.5)

    pttl = redis_client.pttl("test:idempotency:abc")
    assert 0 < pttl <= 1500


def test_redis_store_permanent(redis_client, redis_store):
    """Test that ttl <= 0 leaves the key without expiry."""
    redis_store.set("zero", ttl=0)
    redis_store.set("none", ttl=None)

    assert redis_client.ttl("test:idempotency:zero") == -1
    assert redis_client.ttl("test:idempotency:none") == -1


def test_redis_store_ttl(redis_store):
    """Test TTL expiration with RedisStore."""
    redis_store.set("abc", ttl=0.1)
    assert redis_store.exists("abc") is True

    time.sleep(0.2)

    assert redis_store.exists("abc") is False


def test_redis_store_sweep_is_noop(redis_store):
    """Test that Redis expires keys itself."""
    redis_store.set("abc", ttl=10)
    assert redis_store.sweep() == 0
    assert redis_store.exists("abc") is True


def test_redis_store_clear(redis_store):
    """Test clearing all records with RedisStore."""
    redis_store.set("a")
    redis_store.set("b")

    redis_store.clear()

    assert redis_store.exists("a") is False
    assert redis_store.exists("b") is False


def test_redis_store_prefix_isolation(redis_client):
    """Test that different prefixes isolate data."""
    store1 = RedisStore(redis_client, prefix="app1:")
    store2 = RedisStore(redis_client, prefix="app2:")

    store1.set("abc")

    assert store1.exists("abc") is True
    assert store2.exists("abc") is False


def test_redis_store_errors_are_not_misses():
    """Test that connection failures raise instead of reporting absent."""
    store = RedisStore(BrokenClient())

    with pytest.raises(StoreUnavailableError) as exc_info:
        store.exists("abc")
    assert exc_info.value.backend == "redis"
    assert isinstance(exc_info.value.__cause__, RedisConnectionError)

    with pytest.raises(StoreUnavailableError):
        store.set("abc", ttl=5)
