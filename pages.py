"""Server-rendered pages: landing page, blog and the admin back-office."""

import logging
from datetime import datetime
from functools import wraps
from typing import Dict, List, Optional
from urllib.parse import quote

from fastapi import APIRouter, Depends, Form, Request
from fastapi.responses import HTMLResponse, RedirectResponse, Response
from fastapi.templating import Jinja2Templates
from pydantic import ValidationError
from pymongo.database import Database
from pymongo.errors import PyMongoError

import auth
import config
import events
import members
import site_settings
from blog import BlogStore, get_blog_store
from database import get_db
from errors import AppError, validation_message
from schemas import (
    BLOG_CATEGORIES,
    EventCreate,
    EventUpdate,
    PostCreate,
    PostUpdate,
    RegisterRequest,
    SettingsUpdate,
)

logger = logging.getLogger(__name__)

router = APIRouter(include_in_schema=False)
templates = Jinja2Templates(directory=str(config.TEMPLATES_DIR))

OFFLINE_NOTICE = "Datenbank ist nicht erreichbar. Die Seite läuft im Demo-Modus."


def format_date(value: Optional[datetime], fmt: str = "%d.%m.%Y") -> str:
    if not value:
        return ""
    return value.strftime(fmt)


def countdown(target: datetime, now: Optional[datetime] = None) -> Dict[str, int]:
    """Days, hours, minutes and seconds until ``target``; all zero once it has passed."""
    now = now or datetime.utcnow()
    remaining = int((target - now).total_seconds())
    if remaining <= 0:
        return {"days": 0, "hours": 0, "minutes": 0, "seconds": 0}
    days, rest = divmod(remaining, 86400)
    hours, rest = divmod(rest, 3600)
    minutes, seconds = divmod(rest, 60)
    return {"days": days, "hours": hours, "minutes": minutes, "seconds": seconds}


templates.env.filters["format_date"] = format_date
templates.env.globals.update(
    site_title=config.SITE_TITLE,
    categories=BLOG_CATEGORIES,
    now=datetime.utcnow,
)


def render(request: Request, name: str, status_code: int = 200, **context) -> HTMLResponse:
    context.setdefault("user", auth.current_admin(request))
    context.setdefault("msg", request.query_params.get("msg"))
    context.setdefault("error", request.query_params.get("error"))
    return templates.TemplateResponse(request, name, context, status_code=status_code)


def redirect(url: str, msg: Optional[str] = None, error: Optional[str] = None) -> RedirectResponse:
    url, _, fragment = url.partition("#")
    if msg:
        url += ("&" if "?" in url else "?") + "msg=" + quote(msg)
    if error:
        url += ("&" if "?" in url else "?") + "error=" + quote(error)
    if fragment:
        url += "#" + fragment
    return RedirectResponse(url, status_code=303)


def login_required(view):
    @wraps(view)
    def wrapped(*args, **kwargs):
        request: Request = kwargs["request"]
        if auth.current_admin(request) is None:
            return redirect(f"/admin/login?next={quote(request.url.path)}")
        return view(*args, **kwargs)

    return wrapped


def _tags(raw: str) -> List[str]:
    return [t.strip() for t in (raw or "").split(",") if t.strip()]


# Public pages

def load_home_data(database: Optional[Database]) -> dict:
    """Settings and events for the landing page, or demo data when the database is down."""
    try:
        if database is None:
            raise PyMongoError("database not configured")
        settings = site_settings.load_settings(database)
        next_event = events.get_next_event(database, settings)
        past_events, _ = events.get_archive(database, settings, limit=3)
        return {"settings": settings, "next_event": next_event, "past_events": past_events, "is_offline": False}
    except PyMongoError as e:
        if "refused" in str(e).lower() or database is None:
            logger.debug(f"Landing page in demo mode: {e}")
        else:
            logger.warning(f"Landing page in demo mode: {e}")
        return {
            "settings": site_settings.default_settings(),
            "next_event": None,
            "past_events": [],
            "is_offline": True,
        }


@router.get("/", response_class=HTMLResponse)
def landing(request: Request, database: Optional[Database] = Depends(get_db), store: BlogStore = Depends(get_blog_store)):
    data = load_home_data(database)
    next_event = data["next_event"]
    return render(
        request,
        "landing.html",
        posts=store.list_published()[:3],
        countdown=countdown(next_event.date) if next_event else None,
        offline_notice=OFFLINE_NOTICE,
        **data,
    )


@router.post("/register")
def register(
    request: Request,
    email: str = Form(""),
    company: str = Form(""),
    name: str = Form(""),
    industry: str = Form(""),
    accept_privacy: bool = Form(False),
    database: Optional[Database] = Depends(get_db),
):
    if database is None:
        return redirect("/#register", error=OFFLINE_NOTICE)
    try:
        payload = RegisterRequest(
            email=email, company=company, name=name, industry=industry, accept_privacy=accept_privacy
        )
        members.register(database, payload)
    except ValidationError as e:
        return redirect("/#register", error=validation_message(e))
    except AppError as e:
        return redirect("/#register", error=e.message)
    return redirect("/#register", msg=members.REGISTERED_MESSAGE)


@router.get("/blog", response_class=HTMLResponse)
def blog_index(request: Request, category: Optional[str] = None, store: BlogStore = Depends(get_blog_store)):
    posts = store.list_by_category(category) if category in BLOG_CATEGORIES else store.list_published()
    return render(request, "blog_index.html", posts=posts, active_category=category)


@router.get("/blog/{slug}", response_class=HTMLResponse)
def blog_post(request: Request, slug: str, store: BlogStore = Depends(get_blog_store)):
    post = store.get(slug)
    if post is None or (not post.is_published and auth.current_admin(request) is None):
        return render(request, "not_found.html", status_code=404)
    return render(request, "blog_post.html", post=post, content_html=store.render_html(post))


@router.get("/datenschutz", response_class=HTMLResponse)
def privacy(request: Request):
    return render(request, "datenschutz.html")


# Admin: session

@router.get("/admin/login", response_class=HTMLResponse)
def admin_login_form(request: Request, next: str = "/admin"):
    return render(request, "admin_login.html", next=next)


@router.post("/admin/login")
def admin_login(request: Request, email: str = Form(""), password: str = Form(""), next: str = Form("/admin")):
    user = auth.authenticate(email.strip(), password)
    if user is None:
        return render(request, "admin_login.html", status_code=401, next=next, error=auth.INVALID_CREDENTIALS)
    # only local redirects
    target = next if next.startswith("/") and not next.startswith("//") else "/admin"
    response = RedirectResponse(target, status_code=303)
    response.set_cookie(
        config.SESSION_COOKIE,
        auth.create_session_token(user),
        max_age=config.SESSION_EXPIRES_MIN * 60,
        httponly=True,
        samesite="lax",
    )
    return response


@router.get("/admin/logout")
def admin_logout():
    response = redirect("/")
    response.delete_cookie(config.SESSION_COOKIE)
    return response


# Admin: dashboard and members

@router.get("/admin", response_class=HTMLResponse)
@login_required
def admin_dashboard(request: Request, database: Optional[Database] = Depends(get_db), store: BlogStore = Depends(get_blog_store)):
    posts = store.list_all()
    stats = {"posts": len(posts), "published_posts": len([p for p in posts if p.is_published])}
    recent_members, upcoming = [], []
    if database is not None:
        stats["members"] = members.count_members(database)
        stats["events"] = events.count_events(database)
        stats["upcoming_events"] = events.count_upcoming(database)
        recent_members = members.list_members(database)[:5]
        upcoming = events.upcoming_events(database, limit=5)
    return render(
        request,
        "admin_dashboard.html",
        stats=stats,
        recent_members=recent_members,
        upcoming_events=upcoming,
    )


@router.get("/admin/members", response_class=HTMLResponse)
@login_required
def admin_members(request: Request, q: Optional[str] = None, database: Optional[Database] = Depends(get_db)):
    items = members.list_members(database, q) if database is not None else []
    return render(request, "admin_members.html", members=items, q=q or "")


@router.get("/admin/members/export")
@login_required
def admin_members_export(request: Request, database: Optional[Database] = Depends(get_db)):
    items = members.list_members(database) if database is not None else []
    return Response(
        content=members.export_csv(items),
        media_type="text/csv; charset=utf-8",
        headers={"Content-Disposition": f'attachment; filename="{members.export_filename()}"'},
    )


@router.post("/admin/members/{member_id}/delete")
@login_required
def admin_member_delete(request: Request, member_id: str, database: Optional[Database] = Depends(get_db)):
    if database is None:
        return redirect("/admin/members", error=OFFLINE_NOTICE)
    try:
        members.delete_member(database, member_id)
    except AppError as e:
        return redirect("/admin/members", error=e.message)
    return redirect("/admin/members", msg="Mitglied erfolgreich gelöscht.")


# Admin: events

def _event_form(title, description, date, time, location, address, max_attendees) -> dict:
    return {
        "title": title,
        "description": description,
        "date": date,
        "time": time,
        "location": location,
        "address": address,
        "maxAttendees": max_attendees,
    }


@router.get("/admin/events", response_class=HTMLResponse)
@login_required
def admin_events(request: Request, database: Optional[Database] = Depends(get_db)):
    items = events.list_events(database) if database is not None else []
    return render(request, "admin_events.html", events=items)


@router.post("/admin/events")
@login_required
def admin_event_create(
    request: Request,
    title: str = Form(""),
    description: str = Form(""),
    date: str = Form(""),
    time: str = Form(""),
    location: str = Form(""),
    address: str = Form(""),
    max_attendees: str = Form(""),
    database: Optional[Database] = Depends(get_db),
):
    if database is None:
        return redirect("/admin/events", error=OFFLINE_NOTICE)
    try:
        payload = EventCreate.model_validate(
            _event_form(title, description, date, time, location, address, max_attendees)
        )
        events.create_event(database, payload)
    except ValidationError as e:
        return redirect("/admin/events", error=validation_message(e))
    return redirect("/admin/events", msg="Event erfolgreich erstellt.")


@router.get("/admin/events/{event_id}", response_class=HTMLResponse)
@login_required
def admin_event_edit(request: Request, event_id: str, database: Optional[Database] = Depends(get_db)):
    if database is None:
        return redirect("/admin/events", error=OFFLINE_NOTICE)
    try:
        event = events.get_event(database, event_id)
    except AppError as e:
        return redirect("/admin/events", error=e.message)
    return render(request, "admin_event_edit.html", event=event)


@router.post("/admin/events/{event_id}")
@login_required
def admin_event_update(
    request: Request,
    event_id: str,
    title: str = Form(""),
    description: str = Form(""),
    date: str = Form(""),
    time: str = Form(""),
    location: str = Form(""),
    address: str = Form(""),
    max_attendees: str = Form(""),
    is_active: bool = Form(False),
    database: Optional[Database] = Depends(get_db),
):
    if database is None:
        return redirect("/admin/events", error=OFFLINE_NOTICE)
    data = _event_form(title, description, date, time, location, address, max_attendees)
    data["isActive"] = is_active
    try:
        events.update_event(database, event_id, EventUpdate.model_validate(data))
    except ValidationError as e:
        return redirect(f"/admin/events/{event_id}", error=validation_message(e))
    except AppError as e:
        return redirect("/admin/events", error=e.message)
    return redirect("/admin/events", msg="Event erfolgreich aktualisiert.")


@router.post("/admin/events/{event_id}/delete")
@login_required
def admin_event_delete(request: Request, event_id: str, database: Optional[Database] = Depends(get_db)):
    if database is None:
        return redirect("/admin/events", error=OFFLINE_NOTICE)
    try:
        events.delete_event(database, event_id)
    except AppError as e:
        return redirect("/admin/events", error=e.message)
    return redirect("/admin/events", msg="Event erfolgreich gelöscht.")


# Admin: posts

@router.get("/admin/posts", response_class=HTMLResponse)
@login_required
def admin_posts(request: Request, store: BlogStore = Depends(get_blog_store)):
    return render(request, "admin_posts.html", posts=store.list_all())


@router.get("/admin/posts/new", response_class=HTMLResponse)
@login_required
def admin_post_new(request: Request):
    return render(request, "admin_post_edit.html", post=None)


@router.post("/admin/posts/new")
@login_required
def admin_post_create(
    request: Request,
    title: str = Form(""),
    slug: str = Form(""),
    excerpt: str = Form(""),
    content: str = Form(""),
    author: str = Form(""),
    category: str = Form(""),
    cover_image: str = Form(""),
    tags: str = Form(""),
    is_published: bool = Form(False),
    store: BlogStore = Depends(get_blog_store),
):
    try:
        payload = PostCreate(
            title=title,
            slug=slug or None,
            excerpt=excerpt,
            content=content,
            author=author,
            category=category,
            cover_image=cover_image or None,
            tags=_tags(tags),
            is_published=is_published,
        )
        store.create(payload)
    except ValidationError as e:
        return redirect("/admin/posts/new", error=validation_message(e))
    except AppError as e:
        return redirect("/admin/posts/new", error=e.message)
    return redirect("/admin/posts", msg="Beitrag erfolgreich erstellt.")


@router.get("/admin/posts/{slug}/edit", response_class=HTMLResponse)
@login_required
def admin_post_edit(request: Request, slug: str, store: BlogStore = Depends(get_blog_store)):
    post = store.get(slug)
    if post is None:
        return redirect("/admin/posts", error="Beitrag nicht gefunden.")
    return render(request, "admin_post_edit.html", post=post)


@router.post("/admin/posts/{slug}/edit")
@login_required
def admin_post_update(
    request: Request,
    slug: str,
    title: str = Form(""),
    excerpt: str = Form(""),
    content: str = Form(""),
    author: str = Form(""),
    category: str = Form(""),
    cover_image: str = Form(""),
    tags: str = Form(""),
    is_published: bool = Form(False),
    store: BlogStore = Depends(get_blog_store),
):
    try:
        payload = PostUpdate(
            title=title,
            excerpt=excerpt,
            content=content,
            author=author or "Admin",
            category=category or None,
            cover_image=cover_image or None,
            tags=_tags(tags),
            is_published=is_published,
        )
    except ValidationError as e:
        return redirect(f"/admin/posts/{slug}/edit", error=validation_message(e))
    changes = payload.model_dump(exclude_none=True)
    changes["cover_image"] = payload.cover_image
    if store.update(slug, changes) is None:
        return redirect("/admin/posts", error="Beitrag nicht gefunden.")
    return redirect("/admin/posts", msg="Beitrag erfolgreich aktualisiert.")


@router.post("/admin/posts/{slug}/delete")
@login_required
def admin_post_delete(request: Request, slug: str, store: BlogStore = Depends(get_blog_store)):
    if not store.delete(slug):
        return redirect("/admin/posts", error="Beitrag nicht gefunden.")
    return redirect("/admin/posts", msg="Beitrag erfolgreich gelöscht.")


# Admin: settings

@router.get("/admin/settings", response_class=HTMLResponse)
@login_required
def admin_settings(request: Request, database: Optional[Database] = Depends(get_db)):
    settings = site_settings.load_settings(database)
    upcoming = events.list_events(database) if database is not None else []
    return render(request, "admin_settings.html", settings=settings, events=upcoming)


@router.post("/admin/settings")
@login_required
def admin_settings_save(
    request: Request,
    show_countdown: bool = Form(False),
    show_event_archive: bool = Form(False),
    next_event_id: str = Form(""),
    hero_title: str = Form(""),
    hero_subtitle: str = Form(""),
    database: Optional[Database] = Depends(get_db),
):
    if database is None:
        return redirect("/admin/settings", error=OFFLINE_NOTICE)
    data = {
        "showCountdown": show_countdown,
        "showEventArchive": show_event_archive,
        "nextEventId": next_event_id or None,
    }
    if hero_title.strip():
        data["heroTitle"] = hero_title.strip()
    if hero_subtitle.strip():
        data["heroSubtitle"] = hero_subtitle.strip()
    try:
        site_settings.update_settings(database, SettingsUpdate.model_validate(data))
    except ValidationError as e:
        return redirect("/admin/settings", error=validation_message(e))
    return redirect("/admin/settings", msg="Einstellungen erfolgreich gespeichert.")
