"""Build the store, filter and guard once at process startup."""

from dataclasses import dataclass

import structlog

from .bloom import BloomFilter
from .config import GuardSettings, get_settings
from .exceptions import StoreUnavailableError
from .guard import IdempotencyGuard
from .log import configure_logging
from .stores import MemoryStore, Store
from .sweeper import Sweeper

logger = structlog.get_logger(__name__)

# Backends whose server does not expire records on its own.
_SWEPT_BACKENDS = ("memory", "file", "postgres")


def build_store(settings: GuardSettings | None = None) -> Store:
    """Create the configured durable store."""
    settings = settings or get_settings()
    timeout_ms = int(settings.store_timeout * 1000)

    if settings.backend == "memory":
        return MemoryStore()

    if settings.backend == "file":
        from .stores.file import FileStore

        return FileStore(settings.file_directory)

    if settings.backend == "redis":
        from redis import Redis

        from .stores.redis import RedisStore

        client = Redis.from_url(
            settings.redis_url,
            socket_timeout=settings.store_timeout,
            socket_connect_timeout=settings.store_timeout,
        )
        return RedisStore(client, prefix=settings.redis_prefix)

    if settings.backend == "mongo":
        from pymongo import MongoClient

        from .stores.mongo import MongoStore

        client = MongoClient(
            settings.mongo_url,
            serverSelectionTimeoutMS=timeout_ms,
            socketTimeoutMS=timeout_ms,
        )
        mongo_store = MongoStore(client[settings.mongo_database][settings.mongo_collection])
        mongo_store.ensure_indexes()
        return mongo_store

    if settings.backend == "postgres":
        import psycopg

        from .stores.postgres import PostgresStore

        def connect() -> psycopg.Connection:
            try:
                return psycopg.connect(
                    settings.postgres_dsn,
                    autocommit=True,
                    connect_timeout=max(1, int(settings.store_timeout)),
                    options=f"-c statement_timeout={timeout_ms}",
                )
            except psycopg.Error as e:
                raise StoreUnavailableError("postgres", str(e)) from e

        pg_store = PostgresStore(
            connect(), table=settings.postgres_table, sweep_connection=connect()
        )
        pg_store.ensure_schema()
        return pg_store

    raise ValueError(f"Unknown backend: {settings.backend}")


def build_filter(settings: GuardSettings | None = None) -> BloomFilter:
    """Load the persisted filter if there is one, else size a new one."""
    settings = settings or get_settings()
    if settings.bloom_path is not None and settings.bloom_path.exists():
        return BloomFilter.load(settings.bloom_path)
    return BloomFilter.for_capacity(settings.expected_items, settings.false_positive_rate)


def build_guard(
    settings: GuardSettings | None = None,
    store: Store | None = None,
    bloom_filter: BloomFilter | None = None,
) -> IdempotencyGuard:
    """Wire a guard from settings, reusing ``store``/``bloom_filter`` if given."""
    settings = settings or get_settings()
    return IdempotencyGuard(
        store if store is not None else build_store(settings),
        bloom_filter if bloom_filter is not None else build_filter(settings),
        default_ttl=settings.default_ttl,
        on_store_error=settings.on_store_error,
        on_duplicate=settings.on_duplicate,
        strict=settings.strict,
    )


@dataclass
class GuardRuntime:
    """The long-lived guard state of one process.

    Created once at startup and torn down at shutdown: ``close`` stops the
    sweeper, persists the filter when ``bloom_path`` is set and closes the
    store.
    """

    guard: IdempotencyGuard
    sweeper: Sweeper | None
    settings: GuardSettings

    def close(self) -> None:
        try:
            if self.sweeper is not None:
                self.sweeper.stop()
            if self.settings.bloom_path is not None:
                self.guard.bloom_filter.dump(self.settings.bloom_path)
        finally:
            self.guard.store.close()

    def __enter__(self) -> "GuardRuntime":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()


def build_runtime(settings: GuardSettings | None = None) -> GuardRuntime:
    """Build the guard and start sweeping if its backend needs it."""
    settings = settings or get_settings()
    configure_logging(settings.log_level, settings.log_format)
    guard = build_guard(settings)

    sweeper = None
    if settings.backend in _SWEPT_BACKENDS:
        sweeper = Sweeper(guard.store, interval=settings.sweep_interval)
        sweeper.start()

    logger.info(
        "guard_started",
        backend=settings.backend,
        bloom_size=guard.bloom_filter.size,
        bloom_hashes=guard.bloom_filter.num_hashes,
        default_ttl=settings.default_ttl,
        on_store_error=settings.on_store_error,
    )
    return GuardRuntime(guard=guard, sweeper=sweeper, settings=settings)
