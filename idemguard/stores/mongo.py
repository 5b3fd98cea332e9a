"""MongoDB-based store implementation."""

import datetime
from typing import TYPE_CHECKING

from pymongo import ASCENDING
from pymongo.errors import PyMongoError

from ..exceptions import StoreUnavailableError
from ..utils import is_permanent
from .base import Store

if TYPE_CHECKING:
    from pymongo.collection import Collection


def _utcnow() -> datetime.datetime:
    # BSON dates are UTC; pymongo hands back naive datetimes by default.
    return datetime.datetime.now(datetime.timezone.utc).replace(tzinfo=None)


class MongoStore(Store):
    """MongoDB-based store for idempotency records.

    Each fingerprint is one document ``{_id, value, created_at, expire_at}``.
    A TTL index on ``expire_at`` with zero grace lets the server reap
    expired documents; ``exists`` also filters on ``expire_at`` because the
    reaper only runs about once a minute.

    Args:
        collection: pymongo collection holding the records
    """

    backend = "mongo"

    def __init__(self, collection: "Collection") -> None:
        self.collection = collection

    def ensure_indexes(self) -> None:
        """Create the TTL index on ``expire_at``."""
        try:
            self.collection.create_index(
                [("expire_at", ASCENDING)], expireAfterSeconds=0
            )
        except PyMongoError as e:
            raise StoreUnavailableError(self.backend, str(e)) from e

    def exists(self, key: str) -> bool:
        """Look up a live document with the record marker."""
        query = {
            "_id": key,
            "value": True,
            "$or": [{"expire_at": None}, {"expire_at": {"$gt": _utcnow()}}],
        }
        try:
            return self.collection.find_one(query, projection={"_id": 1}) is not None
        except PyMongoError as e:
            raise StoreUnavailableError(self.backend, str(e)) from e

    def set(self, key: str, ttl: float | None = None) -> None:
        """Upsert the document for ``key``."""
        now = _utcnow()
        expire_at = None
        if not is_permanent(ttl):
            expire_at = now + datetime.timedelta(seconds=ttl)

        try:
            self.collection.update_one(
                {"_id": key},
                {"$set": {"value": True, "created_at": now, "expire_at": expire_at}},
                upsert=True,
            )
        except PyMongoError as e:
            raise StoreUnavailableError(self.backend, str(e)) from e

    def sweep(self) -> int:
        """Delete expired documents ahead of the server's TTL reaper."""
        try:
            result = self.collection.delete_many(
                {"expire_at": {"$ne": None, "$lte": _utcnow()}}
            )
        except PyMongoError as e:
            raise StoreUnavailableError(self.backend, str(e)) from e
        return result.deleted_count

    def close(self) -> None:
        self.collection.database.client.close()
