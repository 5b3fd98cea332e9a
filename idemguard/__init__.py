"""Idempotency Guard - at-most-once execution for repeated calls.

Prevents duplicate side effects caused by retries, duplicate requests,
or at-least-once delivery. A Bloom filter answers "definitely new"
cheaply; a durable store is the authority for everything else.

Example:
    guard = IdempotencyGuard(MemoryStore(), BloomFilter.for_capacity(10_000))

    result = guard.invoke(["user-42", "charge", "10.00"], charge, ttl=5)
    if result is SKIPPED:
        ...
"""

from .bloom import BloomFilter
from .decorator import idempotent
from .exceptions import (
    CommitError,
    DuplicateExecutionError,
    IdempotencyError,
    SerializationError,
    StoreUnavailableError,
)
from .guard import SKIPPED, IdempotencyGuard, is_skipped
from .key import derive_key
from .stores import MemoryStore, Store

__version__ = "0.2.0"

__all__ = [
    "idempotent",
    "IdempotencyGuard",
    "SKIPPED",
    "is_skipped",
    "derive_key",
    "BloomFilter",
    "IdempotencyError",
    "DuplicateExecutionError",
    "SerializationError",
    "StoreUnavailableError",
    "CommitError",
    "Store",
    "MemoryStore",
]
