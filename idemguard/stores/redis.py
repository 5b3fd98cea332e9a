"""Redis-based store implementation."""

from typing import TYPE_CHECKING

from redis.exceptions import RedisError

from ..exceptions import StoreUnavailableError
from ..utils import is_permanent
from .base import Store

if TYPE_CHECKING:
    from redis import Redis


class RedisStore(Store):
    """Redis-based store for idempotency records.

    Each fingerprint is a single key holding a marker value. Positive
    TTLs become a millisecond expiry set atomically with the value, so
    Redis itself expires records. The store is shared by every process
    and server pointing at it, but each guard only asks the store about
    fingerprints its own Bloom filter has seen. A freshly started process
    re-executes calls committed elsewhere unless it loads a persisted
    filter (``GuardSettings.bloom_path``).

    Args:
        client: Redis client instance
        prefix: Key prefix for namespacing (default: "idempotency:")
    """

    backend = "redis"

    def __init__(self, client: "Redis", prefix: str = "idempotency:") -> None:
        self.client = client
        self.prefix = prefix

    def _key(self, key: str) -> str:
        """Add prefix to key."""
        return f"{self.prefix}{key}"

    def exists(self, key: str) -> bool:
        """Check for the key in Redis."""
        try:
            return bool(self.client.exists(self._key(key)))
        except RedisError as e:
            raise StoreUnavailableError(self.backend, str(e)) from e

    def set(self, key: str, ttl: float | None = None) -> None:
        """Store a marker in Redis with optional millisecond TTL."""
        try:
            if is_permanent(ttl):
                self.client.set(self._key(key), "1")
            else:
                self.client.set(self._key(key), "1", px=max(1, int(ttl * 1000)))
        except RedisError as e:
            raise StoreUnavailableError(self.backend, str(e)) from e

    def close(self) -> None:
        self.client.close()

    def clear(self) -> None:
        """Clear all records with this prefix (useful for testing)."""
        pattern = f"{self.prefix}*"
        cursor = 0

        while True:
            cursor, keys = self.client.scan(cursor, match=pattern, count=100)
            if keys:
                self.client.delete(*keys)
            if cursor == 0:
                break
