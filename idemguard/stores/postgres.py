"""PostgreSQL-based store implementation."""

import threading

import psycopg
from psycopg import sql

from ..exceptions import StoreUnavailableError
from ..utils import is_permanent
from .base import Store

_CREATE_TABLE = sql.SQL(
    "CREATE TABLE IF NOT EXISTS {table} ("
    "key VARCHAR(64) PRIMARY KEY, "
    "value BOOLEAN NOT NULL DEFAULT TRUE, "
    "created_at TIMESTAMPTZ NOT NULL DEFAULT now(), "
    "expire_at TIMESTAMPTZ)"
)

_CREATE_INDEX = sql.SQL(
    "CREATE INDEX IF NOT EXISTS {index} ON {table} (expire_at) "
    "WHERE expire_at IS NOT NULL"
)

_UPSERT = sql.SQL(
    "INSERT INTO {table} (key, value, created_at, expire_at) "
    "VALUES (%(key)s, TRUE, now(), now() + %(ttl)s::float8 * interval '1 second') "
    "ON CONFLICT (key) DO UPDATE SET value = EXCLUDED.value, "
    "created_at = EXCLUDED.created_at, expire_at = EXCLUDED.expire_at"
)

_EXISTS = sql.SQL(
    "SELECT 1 FROM {table} WHERE key = %(key)s AND value "
    "AND (expire_at IS NULL OR expire_at > now())"
)

_SWEEP = sql.SQL(
    "DELETE FROM {table} WHERE expire_at IS NOT NULL AND expire_at <= now()"
)


class PostgresStore(Store):
    """PostgreSQL-based store for idempotency records.

    Rows are ``(key, value, created_at, expire_at)``; ``set`` upserts with
    ``INSERT .. ON CONFLICT`` and ``exists`` only counts rows whose expiry
    is in the future. Expired rows are deleted by ``sweep``, which a
    Sweeper runs on a fixed interval.

    A psycopg connection runs one statement at a time, so each connection
    is guarded by its own lock. Without a ``sweep_connection`` the sweep
    shares the request connection and its lock, and a running DELETE blocks
    ``exists`` and ``set``. Pass a ``sweep_connection`` whenever a Sweeper
    is attached; ``build_store`` always does.

    Args:
        connection: psycopg connection used by ``exists`` and ``set``
        table: Table name (default: "idempotency_keys")
        sweep_connection: Connection used by ``sweep``; needed with a Sweeper
    """

    backend = "postgres"

    def __init__(
        self,
        connection: psycopg.Connection,
        table: str = "idempotency_keys",
        sweep_connection: psycopg.Connection | None = None,
    ) -> None:
        self.connection = connection
        self.sweep_connection = sweep_connection or connection
        self.table = table
        self._table = sql.Identifier(table)
        self._lock = threading.Lock()
        self._sweep_lock = (
            threading.Lock() if sweep_connection is not None else self._lock
        )

    def _execute(
        self,
        connection: psycopg.Connection,
        lock: threading.Lock,
        query: sql.Composable,
        params: dict[str, object] | None = None,
    ) -> tuple[int, tuple | None]:
        """Run one statement in its own transaction.

        Returns:
            The affected row count and the first result row, if any
        """
        try:
            with lock, connection.transaction():
                cursor = connection.execute(query, params)
                row = cursor.fetchone() if cursor.description is not None else None
                return cursor.rowcount, row
        except psycopg.Error as e:
            raise StoreUnavailableError(self.backend, str(e)) from e

    def ensure_schema(self) -> None:
        """Create the table and its expiry index if missing."""
        index = sql.Identifier(f"{self.table}_expire_at_idx")
        self._execute(
            self.connection, self._lock, _CREATE_TABLE.format(table=self._table)
        )
        self._execute(
            self.connection,
            self._lock,
            _CREATE_INDEX.format(index=index, table=self._table),
        )

    def exists(self, key: str) -> bool:
        """Check for a live row."""
        _, row = self._execute(
            self.connection,
            self._lock,
            _EXISTS.format(table=self._table),
            {"key": key},
        )
        return row is not None

    def set(self, key: str, ttl: float | None = None) -> None:
        """Upsert the row for ``key``."""
        self._execute(
            self.connection,
            self._lock,
            _UPSERT.format(table=self._table),
            {"key": key, "ttl": None if is_permanent(ttl) else float(ttl)},
        )

    def sweep(self) -> int:
        """Delete rows whose expiry has passed.

        Runs on ``sweep_connection``; when none was given it waits for and
        blocks the request path.
        """
        rowcount, _ = self._execute(
            self.sweep_connection, self._sweep_lock, _SWEEP.format(table=self._table)
        )
        return rowcount

    def close(self) -> None:
        self.connection.close()
        if self.sweep_connection is not self.connection:
            self.sweep_connection.close()
