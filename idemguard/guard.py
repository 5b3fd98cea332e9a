"""Execute-or-skip orchestration over a Bloom filter and a durable store."""

import threading
from collections.abc import Callable, Iterator, Sequence
from contextlib import contextmanager
from typing import TypeVar

import structlog

from .bloom import BloomFilter
from .exceptions import CommitError, DuplicateExecutionError, StoreUnavailableError
from .key import derive_key
from .stores.base import Store

logger = structlog.get_logger(__name__)

T = TypeVar("T")

DEFAULT_TTL = 20.0

STORE_ERROR_POLICIES = ("fail_closed", "fail_open")
DUPLICATE_POLICIES = ("skip", "raise")


class _Skipped:
    """Type of the SKIPPED sentinel."""

    _instance = None

    def __new__(cls) -> "_Skipped":
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "SKIPPED"

    def __bool__(self) -> bool:
        return False


SKIPPED = _Skipped()


def is_skipped(value: object) -> bool:
    """Return True if ``value`` is the result of a suppressed duplicate call."""
    return value is SKIPPED


class IdempotencyGuard:
    """Run an operation at most once per fingerprint and TTL window.

    The filter answers "definitely new" cheaply; anything it might have
    seen is confirmed against the store, which is authoritative. There is
    no lock around check, execute and commit: two concurrent calls with the
    same arguments can both run if neither has committed yet. Duplicates
    are reliably suppressed once a previous commit has landed.

    The filter is process-local. A commit made by another process, or
    before a restart, is only detected after the filter has recorded that
    fingerprint, so restarts need a persisted filter to keep suppressing.

    Args:
        store: Authoritative durable store
        bloom_filter: Process-wide filter shared by every guarded call
        default_ttl: TTL in seconds when a call gives none (default: 20)
        on_store_error: Policy when the store cannot be reached:
            - "fail_closed": Reject the call (default)
            - "fail_open": Execute anyway, risking a duplicate
        on_duplicate: Behavior when duplicate detected:
            - "skip": Return SKIPPED without running the operation (default)
            - "raise": Raise DuplicateExecutionError
        strict: Serialize calls with the same fingerprint inside this
            process and re-check after acquiring
    """

    def __init__(
        self,
        store: Store,
        bloom_filter: BloomFilter,
        default_ttl: float = DEFAULT_TTL,
        on_store_error: str = "fail_closed",
        on_duplicate: str = "skip",
        strict: bool = False,
    ) -> None:
        if on_store_error not in STORE_ERROR_POLICIES:
            raise ValueError(
                f"on_store_error must be 'fail_closed' or 'fail_open', got '{on_store_error}'"
            )
        if on_duplicate not in DUPLICATE_POLICIES:
            raise ValueError(
                f"on_duplicate must be 'skip' or 'raise', got '{on_duplicate}'"
            )

        self.store = store
        self.bloom_filter = bloom_filter
        self.default_ttl = default_ttl
        self.on_store_error = on_store_error
        self.on_duplicate = on_duplicate
        self.strict = strict

        self._key_locks: dict[str, tuple[threading.Lock, int]] = {}
        self._key_locks_guard = threading.Lock()

    def invoke(
        self,
        args: Sequence[object],
        operation: Callable[[], T],
        ttl: float | None = None,
    ) -> T | _Skipped:
        """Run ``operation`` unless a call with equal ``args`` already ran.

        Args:
            args: Arguments identifying the operation
            operation: Zero-argument callable performing the work
            ttl: Seconds the call stays deduplicated; None uses
                ``default_ttl``, <= 0 means forever

        Returns:
            The operation's result, or SKIPPED for a duplicate

        Raises:
            SerializationError: If ``args`` cannot be canonicalized
            DuplicateExecutionError: On a duplicate with on_duplicate="raise"
            StoreUnavailableError: If the store fails under "fail_closed"
            CommitError: If the operation ran but could not be recorded
                under "fail_closed"
        """
        key = derive_key(args)
        if ttl is None:
            ttl = self.default_ttl

        if not self.strict:
            return self._invoke(key, operation, ttl)

        with self._key_lock(key):
            return self._invoke(key, operation, ttl)

    def seen(self, args: Sequence[object]) -> bool:
        """Ask the store whether a call with ``args`` is currently recorded."""
        return self.store.exists(derive_key(args))

    def _invoke(self, key: str, operation: Callable[[], T], ttl: float) -> T | _Skipped:
        if self._is_duplicate(key):
            logger.info("guard_duplicate_skipped", key=key)
            if self.on_duplicate == "raise":
                raise DuplicateExecutionError(key)
            return SKIPPED

        result = operation()

        self.bloom_filter.add(key)
        try:
            self.store.set(key, ttl)
        except StoreUnavailableError as e:
            logger.error(
                "guard_commit_failed",
                key=key,
                backend=self.store.backend,
                policy=self.on_store_error,
                error=str(e),
            )
            if self.on_store_error == "fail_closed":
                raise CommitError(key, result, self.store.backend, e.reason) from e
            return result

        logger.debug("guard_executed", key=key, ttl=ttl)
        return result

    def _is_duplicate(self, key: str) -> bool:
        if not self.bloom_filter.might_contain(key):
            return False

        try:
            found = self.store.exists(key)
        except StoreUnavailableError as e:
            if self.on_store_error == "fail_closed":
                logger.error(
                    "guard_store_check_failed",
                    key=key,
                    backend=self.store.backend,
                    policy=self.on_store_error,
                    error=str(e),
                )
                raise
            logger.warning(
                "guard_store_check_failed",
                key=key,
                backend=self.store.backend,
                policy=self.on_store_error,
                error=str(e),
            )
            return False

        if not found:
            logger.debug("guard_filter_false_positive", key=key)
        return found

    @contextmanager
    def _key_lock(self, key: str) -> Iterator[None]:
        with self._key_locks_guard:
            lock, users = self._key_locks.get(key, (threading.Lock(), 0))
            self._key_locks[key] = (lock, users + 1)

        try:
            with lock:
                yield
        finally:
            with self._key_locks_guard:
                lock, users = self._key_locks[key]
                if users == 1:
                    del self._key_locks[key]
                else:
                    self._key_locks[key] = (lock, users - 1)
