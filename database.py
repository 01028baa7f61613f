"""
MongoDB access for the site.

The client is created once at import time when a connection string is
configured; ``db`` stays ``None`` otherwise so the landing page can fall
back to demo mode. Request handlers get the database through ``get_db``,
which tests override.
"""

import logging
from datetime import datetime
from typing import Optional, List

from bson import ObjectId
from bson.errors import InvalidId
from pymongo import ASCENDING, DESCENDING, MongoClient
from pymongo.database import Database

import config

logger = logging.getLogger(__name__)

db: Optional[Database] = None

if config.MONGODB_URI:
    try:
        _client = MongoClient(config.MONGODB_URI, serverSelectionTimeoutMS=config.MONGODB_TIMEOUT_MS)
        db = _client[config.DATABASE_NAME]
    except Exception:
        logger.exception("Could not create MongoDB client")
        db = None
else:
    logger.warning("MONGODB_URI is not set, running without database")


def get_db() -> Optional[Database]:
    return db


def ensure_indexes(database: Database) -> None:
    database["member"].create_index([("email", ASCENDING)], unique=True)
    database["member"].create_index([("created_at", DESCENDING)])
    database["event"].create_index([("date", ASCENDING)])


def parse_object_id(value: str) -> Optional[ObjectId]:
    """Return the ObjectId for ``value`` or None when it is malformed."""
    try:
        return ObjectId(value)
    except (InvalidId, TypeError):
        return None


def serialize(doc: Optional[dict]) -> Optional[dict]:
    """Turn ``_id`` into a string ``id`` so documents are JSON friendly."""
    if doc is None:
        return None
    out = dict(doc)
    out["id"] = str(out.pop("_id"))
    return out


def create_document(database: Database, collection_name: str, data: dict) -> str:
    doc = dict(data)
    doc.setdefault("created_at", datetime.utcnow())
    res = database[collection_name].insert_one(doc)
    return str(res.inserted_id)


def get_documents(
    database: Database,
    collection_name: str,
    filter_dict: Optional[dict] = None,
    limit: Optional[int] = None,
    sort: Optional[list] = None,
) -> List[dict]:
    cursor = database[collection_name].find(filter_dict or {})
    if sort:
        cursor = cursor.sort(sort)
    if limit:
        cursor = cursor.limit(limit)
    return [serialize(d) for d in cursor]
