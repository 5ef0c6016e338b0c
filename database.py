"""
Record store backed by MongoDB.

Each entity lives in its own collection named after the lowercase model
class (Student -> "student"). Identifiers are ObjectIds generated on insert
and exposed to clients as the string field ``_id``.
"""

import logging
from contextlib import contextmanager
from datetime import datetime, timezone
from functools import lru_cache
from typing import Any, Dict, List, Optional, Set

from bson import ObjectId
from bson.errors import InvalidId
from pymongo import ASCENDING, MongoClient, ReturnDocument
from pymongo.database import Database
from pymongo.errors import DuplicateKeyError, PyMongoError

from config import get_settings
from errors import ConflictError, NotFoundError, StorageUnavailableError

logger = logging.getLogger(__name__)


@lru_cache()
def get_client() -> MongoClient:
    settings = get_settings()
    logger.info("Connecting to MongoDB database %s", settings.DATABASE_NAME)
    return MongoClient(
        settings.DATABASE_URL,
        serverSelectionTimeoutMS=settings.DATABASE_TIMEOUT_MS,
        tz_aware=True,
    )


def ensure_indexes(db: Database) -> None:
    """Create the indexes the application relies on. Safe to repeat."""
    with storage_errors():
        # One account per email, even when two registrations race
        db["user"].create_index("email", unique=True)


_indexed: Set[str] = set()


def get_db() -> Database:
    """FastAPI dependency returning the application database."""
    try:
        db = get_client()[get_settings().DATABASE_NAME]
    except PyMongoError as e:
        logger.exception("MongoDB client could not be created")
        raise StorageUnavailableError() from e
    if db.name not in _indexed:
        try:
            ensure_indexes(db)
            _indexed.add(db.name)
        except StorageUnavailableError:
            logger.warning("Indexes on %s not created, retrying on next request", db.name)
    return db


def serialize(doc: Dict[str, Any]) -> Dict[str, Any]:
    doc["_id"] = str(doc["_id"])
    return doc


@contextmanager
def storage_errors():
    """Translate driver failures into application errors."""
    try:
        yield
    except DuplicateKeyError as e:
        raise ConflictError() from e
    except PyMongoError as e:
        logger.exception("MongoDB operation failed")
        raise StorageUnavailableError() from e


class RecordStore:
    """CRUD and aggregate access to one entity collection."""

    def __init__(self, db: Database, collection: str):
        self.collection = db[collection]
        self.resource = collection.capitalize()

    def _object_id(self, record_id: str) -> ObjectId:
        # A malformed id can never match a stored record
        try:
            return ObjectId(record_id)
        except (InvalidId, TypeError):
            raise NotFoundError(self.resource, record_id)

    def insert(self, fields: Dict[str, Any]) -> Dict[str, Any]:
        now = datetime.now(timezone.utc)
        doc = {**fields, "createdAt": now, "updatedAt": now}
        with storage_errors():
            res = self.collection.insert_one(doc)
        doc["_id"] = res.inserted_id
        logger.info("Created %s %s", self.resource, res.inserted_id)
        return serialize(doc)

    def list_all(self, query: Optional[Dict[str, Any]] = None, sort: Optional[str] = None) -> List[Dict[str, Any]]:
        with storage_errors():
            cursor = self.collection.find(query or {})
            # ObjectIds grow with insertion time
            keys = [(sort, ASCENDING)] if sort else []
            cursor = cursor.sort(keys + [("_id", ASCENDING)])
            return [serialize(d) for d in cursor]

    def find_by_id(self, record_id: str) -> Dict[str, Any]:
        oid = self._object_id(record_id)
        with storage_errors():
            doc = self.collection.find_one({"_id": oid})
        if not doc:
            raise NotFoundError(self.resource, record_id)
        return serialize(doc)

    def find_one(self, query: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        with storage_errors():
            doc = self.collection.find_one(query)
        return serialize(doc) if doc else None

    def replace(self, record_id: str, fields: Dict[str, Any]) -> Dict[str, Any]:
        """Set the given fields on an existing record; never upserts."""
        if not fields:
            return self.find_by_id(record_id)
        oid = self._object_id(record_id)
        data = {**fields, "updatedAt": datetime.now(timezone.utc)}
        with storage_errors():
            doc = self.collection.find_one_and_update(
                {"_id": oid},
                {"$set": data},
                return_document=ReturnDocument.AFTER,
            )
        if not doc:
            logger.warning("Update of unknown %s %s", self.resource, record_id)
            raise NotFoundError(self.resource, record_id)
        logger.info("Updated %s %s", self.resource, record_id)
        return serialize(doc)

    def remove(self, record_id: str) -> None:
        oid = self._object_id(record_id)
        with storage_errors():
            res = self.collection.delete_one({"_id": oid})
        if res.deleted_count == 0:
            logger.warning("Delete of unknown %s %s", self.resource, record_id)
            raise NotFoundError(self.resource, record_id)
        logger.info("Deleted %s %s", self.resource, record_id)

    def total(self, expression: Any) -> float:
        """Sum ``expression`` over every record of the collection."""
        pipeline = [{"$group": {"_id": None, "total": {"$sum": expression}}}]
        with storage_errors():
            result = list(self.collection.aggregate(pipeline))
        return result[0]["total"] if result else 0


def ping(db: Database) -> List[str]:
    with storage_errors():
        return db.list_collection_names()
