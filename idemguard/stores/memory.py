"""In-memory store implementation."""

import threading
import time

from ..record import Record
from .base import Store


class MemoryStore(Store):
    """Thread-safe in-memory store for idempotency records.

    Note: This store does NOT persist across processes or restarts.
    Use FileStore, RedisStore, MongoStore or PostgresStore for
    multi-process scenarios.
    """

    backend = "memory"

    def __init__(self) -> None:
        self._records: dict[str, Record] = {}
        self._global_lock = threading.Lock()

    def exists(self, key: str) -> bool:
        """Check for a live record, dropping it if expired."""
        with self._global_lock:
            record = self._records.get(key)
            if record is None:
                return False

            if not record.is_live():
                del self._records[key]
                return False

            return True

    def set(self, key: str, ttl: float | None = None) -> None:
        """Store a record with optional TTL."""
        record = Record.create(key, ttl)
        with self._global_lock:
            self._records[key] = record

    def sweep(self) -> int:
        """Remove every expired record."""
        now = time.time()
        with self._global_lock:
            expired = [
                key for key, record in self._records.items() if not record.is_live(now)
            ]
            for key in expired:
                del self._records[key]
        return len(expired)

    def __len__(self) -> int:
        with self._global_lock:
            return len(self._records)

    def clear(self) -> None:
        """Clear all records (useful for testing)."""
        with self._global_lock:
            self._records.clear()
