"""JSON API. Every response uses the ``{success, data, error, message}`` envelope."""

import logging
from contextlib import contextmanager
from typing import Any, Optional

from fastapi import APIRouter, Depends, Request, Response
from pymongo.database import Database

import auth
import config
import events
import members
import site_settings
from blog import BlogStore, get_blog_store
from database import get_db
from errors import AppError, NotFound, Unauthorized, ValidationFailed
from schemas import (
    EventCreate,
    EventUpdate,
    LoginRequest,
    PostCreate,
    PostUpdate,
    RegisterRequest,
    SettingsUpdate,
    SiteSettings,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api")

POST_NOT_FOUND = "Beitrag nicht gefunden."
SLUG_REQUIRED = "Slug ist erforderlich."


def ok(data: Any = None, message: Optional[str] = None, **extra) -> dict:
    body = {"success": True}
    if data is not None:
        body["data"] = data
    if message:
        body["message"] = message
    body.update(extra)
    return body


@contextmanager
def failing_with(message: str):
    """Turn unexpected errors into a 500 with ``message``; the cause is only logged."""
    try:
        yield
    except AppError:
        raise
    except Exception:
        logger.exception(message)
        raise AppError(message)


def require_db(database: Optional[Database] = Depends(get_db)) -> Database:
    if database is None:
        raise AppError("Datenbank nicht verfügbar.")
    return database


def get_site_settings(database: Database = Depends(require_db)) -> SiteSettings:
    with failing_with("Fehler beim Laden der Einstellungen."):
        return site_settings.load_settings(database)


# Auth

@router.post("/auth/login")
def login(payload: LoginRequest, response: Response):
    user = auth.authenticate(payload.email, payload.password)
    if user is None:
        raise Unauthorized(auth.INVALID_CREDENTIALS)
    token = auth.create_session_token(user)
    response.set_cookie(
        config.SESSION_COOKIE,
        token,
        max_age=config.SESSION_EXPIRES_MIN * 60,
        httponly=True,
        samesite="lax",
    )
    return ok({"token": token, "user": user}, "Erfolgreich angemeldet.")


@router.post("/auth/logout")
def logout(response: Response):
    response.delete_cookie(config.SESSION_COOKIE)
    return ok(message="Erfolgreich abgemeldet.")


@router.get("/auth/session")
def session(request: Request):
    return ok({"user": auth.current_admin(request)})


# Members

@router.post("/members")
def register_member(payload: RegisterRequest, database: Database = Depends(require_db)):
    with failing_with("Ein Fehler ist aufgetreten. Bitte versuchen Sie es später erneut."):
        member = members.register(database, payload)
    return ok(
        {"id": member.id, "email": member.email, "name": member.name},
        members.REGISTERED_MESSAGE,
    )


@router.get("/members")
def list_members(
    q: Optional[str] = None,
    database: Database = Depends(require_db),
    admin: dict = Depends(auth.require_admin),
):
    with failing_with("Fehler beim Laden der Mitglieder."):
        items = members.list_members(database, q)
    return ok([m.to_json() for m in items])


@router.get("/members/export")
def export_members(database: Database = Depends(require_db), admin: dict = Depends(auth.require_admin)):
    with failing_with("Fehler beim Exportieren der Mitglieder."):
        body = members.export_csv(members.list_members(database))
    return Response(
        content=body,
        media_type="text/csv; charset=utf-8",
        headers={"Content-Disposition": f'attachment; filename="{members.export_filename()}"'},
    )


@router.delete("/members/{member_id}")
def delete_member(member_id: str, database: Database = Depends(require_db), admin: dict = Depends(auth.require_admin)):
    with failing_with("Fehler beim Löschen des Mitglieds."):
        members.delete_member(database, member_id)
    return ok(message="Mitglied erfolgreich gelöscht.")


# Events

@router.get("/events")
def list_events(type: Optional[str] = None, database: Database = Depends(require_db)):
    with failing_with("Fehler beim Laden der Events."):
        if type == "next":
            settings = site_settings.load_settings(database)
            event = events.get_next_event(database, settings)
            return {
                "success": True,
                "data": event.to_json() if event else None,
                "settings": {
                    "showCountdown": settings.show_countdown,
                    "showEventArchive": settings.show_event_archive,
                },
            }
        if type == "archive":
            settings = site_settings.load_settings(database)
            past, message = events.get_archive(database, settings)
            return ok([e.to_json() for e in past], message)
        return ok([e.to_json() for e in events.list_events(database)])


@router.post("/events")
def create_event(payload: EventCreate, database: Database = Depends(require_db), admin: dict = Depends(auth.require_admin)):
    with failing_with("Fehler beim Erstellen des Events."):
        event = events.create_event(database, payload)
    return ok(event.to_json(), "Event erfolgreich erstellt.")


@router.get("/events/{event_id}")
def get_event(event_id: str, database: Database = Depends(require_db)):
    with failing_with("Fehler beim Laden des Events."):
        event = events.get_event(database, event_id)
    return ok(event.to_json())


@router.put("/events/{event_id}")
def update_event(
    event_id: str,
    payload: EventUpdate,
    database: Database = Depends(require_db),
    admin: dict = Depends(auth.require_admin),
):
    with failing_with("Fehler beim Aktualisieren des Events."):
        event = events.update_event(database, event_id, payload)
    return ok(event.to_json(), "Event erfolgreich aktualisiert.")


@router.delete("/events/{event_id}")
def delete_event(event_id: str, database: Database = Depends(require_db), admin: dict = Depends(auth.require_admin)):
    with failing_with("Fehler beim Löschen des Events."):
        events.delete_event(database, event_id)
    return ok(message="Event erfolgreich gelöscht.")


# Posts

@router.get("/posts")
def list_posts(
    request: Request,
    slug: Optional[str] = None,
    category: Optional[str] = None,
    published: Optional[str] = None,
    store: BlogStore = Depends(get_blog_store),
):
    published_only = published == "true" or auth.current_admin(request) is None
    with failing_with("Fehler beim Laden der Beiträge."):
        if slug:
            post = store.get(slug)
            if post is None or (published_only and not post.is_published):
                raise NotFound(POST_NOT_FOUND)
            return ok(post.to_json())

        posts = store.list_published() if published_only else store.list_all()
        if category:
            posts = [p for p in posts if p.category == category]
    return ok([p.to_json() for p in posts])


@router.post("/posts")
def create_post(payload: PostCreate, store: BlogStore = Depends(get_blog_store), admin: dict = Depends(auth.require_admin)):
    with failing_with("Fehler beim Erstellen des Beitrags."):
        post = store.create(payload)
    return ok(post.to_json(), "Beitrag erfolgreich erstellt.")


@router.put("/posts")
def update_post(
    payload: PostUpdate,
    slug: Optional[str] = None,
    store: BlogStore = Depends(get_blog_store),
    admin: dict = Depends(auth.require_admin),
):
    if not slug:
        raise ValidationFailed(SLUG_REQUIRED)
    with failing_with("Fehler beim Aktualisieren des Beitrags."):
        changes = payload.model_dump(exclude_unset=True)
        # null only clears the cover image
        changes = {k: v for k, v in changes.items() if v is not None or k == "cover_image"}
        post = store.update(slug, changes)
    if post is None:
        raise NotFound(POST_NOT_FOUND)
    return ok(post.to_json(), "Beitrag erfolgreich aktualisiert.")


@router.delete("/posts")
def delete_post(slug: Optional[str] = None, store: BlogStore = Depends(get_blog_store), admin: dict = Depends(auth.require_admin)):
    if not slug:
        raise ValidationFailed(SLUG_REQUIRED)
    with failing_with("Fehler beim Löschen des Beitrags."):
        deleted = store.delete(slug)
    if not deleted:
        raise NotFound(POST_NOT_FOUND)
    return ok(message="Beitrag erfolgreich gelöscht.")


# Settings

@router.get("/settings")
def get_settings(settings: SiteSettings = Depends(get_site_settings)):
    return ok(settings.to_json())


@router.put("/settings")
def put_settings(payload: SettingsUpdate, database: Database = Depends(require_db), admin: dict = Depends(auth.require_admin)):
    with failing_with("Fehler beim Speichern der Einstellungen."):
        settings = site_settings.update_settings(database, payload)
    return ok(settings.to_json(), "Einstellungen erfolgreich gespeichert.")


# Dashboard

@router.get("/stats")
def stats(
    database: Database = Depends(require_db),
    store: BlogStore = Depends(get_blog_store),
    admin: dict = Depends(auth.require_admin),
):
    with failing_with("Fehler beim Laden der Statistiken."):
        posts = store.list_all()
        data = {
            "members": members.count_members(database),
            "events": events.count_events(database),
            "upcomingEvents": events.count_upcoming(database),
            "posts": len(posts),
            "publishedPosts": len([p for p in posts if p.is_published]),
        }
    return ok(data)
