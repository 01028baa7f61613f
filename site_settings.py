"""The site settings record.

One document in the ``settings`` collection. It is created by
``ensure_settings`` at startup (or ``python main.py init-db``), never as a
side effect of reading.
"""

import logging
from datetime import datetime
from typing import Optional

from pymongo import ReturnDocument
from pymongo.database import Database

from schemas import SiteSettings, SettingsUpdate

logger = logging.getLogger(__name__)

COLLECTION = "settings"


def default_settings() -> SiteSettings:
    return SiteSettings()


def _from_doc(doc: dict) -> SiteSettings:
    data = {k: v for k, v in doc.items() if k != "_id"}
    if data.get("next_event_id") is not None:
        data["next_event_id"] = str(data["next_event_id"])
    return SiteSettings(**data)


def ensure_settings(db: Database) -> SiteSettings:
    """Insert the default settings document unless one exists."""
    defaults = default_settings().model_dump(exclude={"updated_at"})
    defaults["updated_at"] = datetime.utcnow()
    doc = db[COLLECTION].find_one_and_update(
        {},
        {"$setOnInsert": defaults},
        upsert=True,
        return_document=ReturnDocument.AFTER,
    )
    return _from_doc(doc)


def load_settings(db: Optional[Database]) -> SiteSettings:
    if db is None:
        return default_settings()
    doc = db[COLLECTION].find_one()
    if doc is None:
        logger.warning("Settings document missing, using defaults")
        return default_settings()
    return _from_doc(doc)


def update_settings(db: Database, payload: SettingsUpdate) -> SiteSettings:
    """Apply only the fields present in ``payload``."""
    changes = payload.model_dump(exclude_unset=True)
    # null is meaningful only for nextEventId
    changes = {k: v for k, v in changes.items() if v is not None or k == "next_event_id"}
    changes["updated_at"] = datetime.utcnow()
    db[COLLECTION].update_one({}, {"$set": changes}, upsert=True)
    return load_settings(db)


def clear_next_event(db: Database, event_id: str) -> None:
    res = db[COLLECTION].update_one(
        {"next_event_id": event_id},
        {"$set": {"next_event_id": None, "updated_at": datetime.utcnow()}},
    )
    if res.modified_count:
        logger.info(f"Cleared nextEventId {event_id} after event deletion")
