"""Base store interface for idempotency records."""

from abc import ABC, abstractmethod


class Store(ABC):
    """Abstract base class for durable idempotency stores.

    Stores are the authoritative source for whether a fingerprint has
    been committed. They are responsible for:
    - Upserting records atomically (supplied by the backing technology)
    - Reporting only live records from ``exists``
    - Managing TTL/expiration, eagerly or at read time

    Backend failures must be raised as StoreUnavailableError, never
    reported as a missing key.
    """

    backend = "abstract"

    @abstractmethod
    def exists(self, key: str) -> bool:
        """Check for a live record.

        Args:
            key: The fingerprint

        Returns:
            True if a record exists and has not expired
        """
        pass

    @abstractmethod
    def set(self, key: str, ttl: float | None = None) -> None:
        """Upsert a live record.

        Args:
            key: The fingerprint
            ttl: Time-to-live in seconds (None or <= 0 = no expiration)
        """
        pass

    def sweep(self) -> int:
        """Delete records whose expiry has passed.

        Returns:
            Number of records removed. Backends whose server expires
            keys on its own remove nothing here.
        """
        return 0

    def close(self) -> None:
        """Release any resources held by the store."""
