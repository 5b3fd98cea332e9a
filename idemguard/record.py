"""Record dataclass for committed idempotency keys."""

import time
from dataclasses import dataclass, field

from idemguard.utils import ensure_float, expiry_from_ttl


@dataclass
class Record:
    """A committed fingerprint in a durable store.

    Attributes:
        key: Fingerprint of the executed operation
        created_at: Timestamp of the commit
        expire_at: Timestamp after which the record is no longer live
            (None = permanent)
    """

    key: str
    created_at: float = field(default_factory=time.time)
    expire_at: float | None = None

    @classmethod
    def create(cls, key: str, ttl: float | None = None) -> "Record":
        """Create a record committed now, expiring after ``ttl`` seconds."""
        now = time.time()
        return cls(key=key, created_at=now, expire_at=expiry_from_ttl(ttl, now))

    def is_live(self, now: float | None = None) -> bool:
        """A record is live until its expiry has passed."""
        if self.expire_at is None:
            return True
        if now is None:
            now = time.time()
        return self.expire_at > now

    def to_dict(self) -> dict[str, object]:
        """Convert record to dictionary for serialization."""
        return {
            "key": self.key,
            "value": True,
            "created_at": self.created_at,
            "expire_at": self.expire_at,
        }

    @classmethod
    def from_dict(cls, data: dict[str, object]) -> "Record":
        """Create record from dictionary."""
        if data.get("value") is not True:
            raise ValueError(f"Missing record marker for key: {data.get('key')}")

        created_at = ensure_float(value=data["created_at"])
        expire_at = ensure_float(value=data.get("expire_at"), default=None)

        return cls(
            key=str(data["key"]),
            created_at=created_at,
            expire_at=expire_at,
        )
