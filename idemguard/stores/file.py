"""File-based store implementation with cross-process locking."""

import fcntl
import json
import os
import uuid
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path

from ..exceptions import StoreUnavailableError
from ..record import Record
from .base import Store


class FileStore(Store):
    """File-based store for idempotency records.

    Uses one JSON file per fingerprint, written atomically with a temp
    file + rename. Expired records are filtered at read time and removed
    by ``sweep``. Writers hold a shared fcntl lock on the directory and
    ``sweep`` an exclusive one, so a sweep never deletes a record that a
    concurrent ``set`` just refreshed.

    Args:
        directory: Path to directory for storing records
    """

    backend = "file"

    def __init__(self, directory: str | Path) -> None:
        self.directory = Path(directory)
        self.directory.mkdir(parents=True, exist_ok=True)
        self._lock_path = self.directory / ".sweep.lock"

    def _record_path(self, key: str) -> Path:
        """Get file path for a record."""
        safe_key = key.replace("/", "_").replace(":", "_")
        return self.directory / f"{safe_key}.json"

    @contextmanager
    def _directory_lock(self, operation: int) -> Iterator[None]:
        fd = os.open(self._lock_path, os.O_CREAT | os.O_RDWR)
        try:
            fcntl.flock(fd, operation)
            yield
        finally:
            fcntl.flock(fd, fcntl.LOCK_UN)
            os.close(fd)

    def _read(self, path: Path) -> Record | None:
        try:
            with open(path) as f:
                data = json.load(f)
        except FileNotFoundError:
            return None
        except (OSError, json.JSONDecodeError) as e:
            raise StoreUnavailableError(self.backend, f"cannot read {path}: {e}") from e

        try:
            return Record.from_dict(data)
        except (KeyError, ValueError) as e:
            raise StoreUnavailableError(self.backend, f"corrupt record {path}: {e}") from e

    def exists(self, key: str) -> bool:
        """Check for a live record, ignoring expired ones."""
        record = self._read(self._record_path(key))
        return record is not None and record.is_live()

    def set(self, key: str, ttl: float | None = None) -> None:
        """Store a record with optional TTL."""
        record_path = self._record_path(key)
        temp_path = record_path.with_suffix(f".{uuid.uuid4().hex}.tmp")

        try:
            with self._directory_lock(fcntl.LOCK_SH):
                with open(temp_path, "w") as f:
                    json.dump(Record.create(key, ttl).to_dict(), f)
                # Atomic rename
                temp_path.replace(record_path)
        except OSError as e:
            temp_path.unlink(missing_ok=True)
            raise StoreUnavailableError(self.backend, f"cannot write {record_path}: {e}") from e

    def sweep(self) -> int:
        """Delete every expired record file."""
        removed = 0
        try:
            with self._directory_lock(fcntl.LOCK_EX):
                for path in self.directory.glob("*.json"):
                    record = self._read(path)
                    if record is not None and not record.is_live():
                        path.unlink(missing_ok=True)
                        removed += 1
        except OSError as e:
            raise StoreUnavailableError(self.backend, f"sweep failed: {e}") from e
        return removed

    def clear(self) -> None:
        """Clear all records (useful for testing)."""
        for path in self.directory.glob("*.json"):
            path.unlink(missing_ok=True)
        for path in self.directory.glob("*.tmp"):
            path.unlink(missing_ok=True)
