"""Meetup events stored in the ``event`` collection."""

import logging
from datetime import datetime, timedelta
from typing import List, Optional, Tuple

from pymongo import ASCENDING, DESCENDING
from pymongo.database import Database

from database import create_document, get_documents, parse_object_id, serialize
from errors import NotFound
from schemas import Event, EventCreate, EventUpdate, SiteSettings
import site_settings

logger = logging.getLogger(__name__)

COLLECTION = "event"
NOT_FOUND = "Event nicht gefunden."
ARCHIVE_DISABLED = "Event-Archiv ist deaktiviert."


def _from_doc(doc: dict) -> Event:
    return Event(**serialize(doc))


def _with_start_time(day: datetime, time_str: str) -> datetime:
    # A bare date from the admin form gets the event's start time
    if day.hour or day.minute or day.second:
        return day
    hours, minutes = (int(p) for p in time_str.split(":"))
    return day + timedelta(hours=hours, minutes=minutes)


def list_events(db: Database) -> List[Event]:
    return [Event(**d) for d in get_documents(db, COLLECTION, sort=[("date", DESCENDING)])]


def get_event(db: Database, event_id: str) -> Event:
    oid = parse_object_id(event_id)
    doc = db[COLLECTION].find_one({"_id": oid}) if oid else None
    if doc is None:
        raise NotFound(NOT_FOUND)
    return _from_doc(doc)


def get_next_event(db: Database, settings: SiteSettings, now: Optional[datetime] = None) -> Optional[Event]:
    """The pinned event from the settings, else the soonest active upcoming one."""
    now = now or datetime.utcnow()
    if settings.next_event_id:
        oid = parse_object_id(settings.next_event_id)
        doc = db[COLLECTION].find_one({"_id": oid}) if oid else None
        if doc is not None:
            return _from_doc(doc)
        logger.warning(f"nextEventId {settings.next_event_id} does not exist, falling back to date lookup")

    doc = db[COLLECTION].find_one(
        {"is_active": True, "date": {"$gte": now}},
        sort=[("date", ASCENDING)],
    )
    return _from_doc(doc) if doc else None


def get_archive(
    db: Database,
    settings: SiteSettings,
    limit: Optional[int] = None,
    now: Optional[datetime] = None,
) -> Tuple[List[Event], Optional[str]]:
    """Past events, newest first. Returns ``([], message)`` when the archive is off."""
    if not settings.show_event_archive:
        return [], ARCHIVE_DISABLED
    now = now or datetime.utcnow()
    cursor = db[COLLECTION].find({"date": {"$lt": now}}).sort("date", DESCENDING)
    if limit:
        cursor = cursor.limit(limit)
    return [_from_doc(d) for d in cursor], None


def upcoming_events(db: Database, limit: int = 5, now: Optional[datetime] = None) -> List[Event]:
    now = now or datetime.utcnow()
    cursor = db[COLLECTION].find({"date": {"$gte": now}}).sort("date", ASCENDING).limit(limit)
    return [_from_doc(d) for d in cursor]


def create_event(db: Database, payload: EventCreate) -> Event:
    event = Event(
        title=payload.title.strip(),
        description=payload.description,
        date=_with_start_time(payload.date, payload.time),
        time=payload.time,
        location=payload.location.strip(),
        address=payload.address.strip(),
        max_attendees=payload.max_attendees,
        registered_count=0,
        is_active=True,
        created_at=datetime.utcnow(),
    )
    doc = event.model_dump(exclude={"id"})
    event.id = create_document(db, COLLECTION, doc)
    logger.info(f"Created event {event.id} ({event.title})")
    return event


def update_event(db: Database, event_id: str, payload: EventUpdate) -> Event:
    oid = parse_object_id(event_id)
    if oid is None:
        raise NotFound(NOT_FOUND)
    changes = payload.model_dump(exclude_unset=True)
    for key in ("title", "location", "address"):
        if changes.get(key):
            changes[key] = changes[key].strip()
    if "date" in changes:
        time_str = changes.get("time")
        if time_str is None:
            current = db[COLLECTION].find_one({"_id": oid}, {"time": 1})
            time_str = current.get("time") if current else None
        if time_str:
            changes["date"] = _with_start_time(changes["date"], time_str)

    if changes:
        res = db[COLLECTION].update_one({"_id": oid}, {"$set": changes})
        if res.matched_count == 0:
            raise NotFound(NOT_FOUND)
    return get_event(db, event_id)


def delete_event(db: Database, event_id: str) -> None:
    oid = parse_object_id(event_id)
    res = db[COLLECTION].delete_one({"_id": oid}) if oid else None
    if res is None or res.deleted_count == 0:
        raise NotFound(NOT_FOUND)
    site_settings.clear_next_event(db, event_id)
    logger.info(f"Deleted event {event_id}")


def count_events(db: Database) -> int:
    return db[COLLECTION].count_documents({})


def count_upcoming(db: Database, now: Optional[datetime] = None) -> int:
    return db[COLLECTION].count_documents({"date": {"$gte": now or datetime.utcnow()}})
