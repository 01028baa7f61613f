"""Tests for the server-rendered pages."""

from datetime import datetime, timedelta
from urllib.parse import unquote

import pytest

import events
import pages
from schemas import EventCreate, PostCreate

ADMIN_EMAIL = "admin@ki-stammtisch.de"
ADMIN_PASSWORD = "geheim123"


class TestCountdown:
    def test_breakdown(self):
        now = datetime(2026, 10, 19, 12, 0, 0)
        target = now + timedelta(days=2, hours=3, minutes=4, seconds=5)
        assert pages.countdown(target, now) == {"days": 2, "hours": 3, "minutes": 4, "seconds": 5}

    def test_past_target_is_zero(self):
        now = datetime(2026, 10, 19)
        assert pages.countdown(now - timedelta(hours=1), now) == {"days": 0, "hours": 0, "minutes": 0, "seconds": 0}


class TestLanding:
    def test_renders_settings_and_next_event(self, client, db):
        events.create_event(
            db,
            EventCreate(
                title="KI im Mittelstand",
                description="Praxisabend",
                date=datetime.utcnow() + timedelta(days=10),
                time="19:00",
                location="Brauhaus",
                address="Köln",
            ),
        )
        res = client.get("/")
        assert res.status_code == 200
        assert "KI-Stammtisch Köln" in res.text
        assert "KI im Mittelstand" in res.text
        assert "Nächstes Treffen in:" in res.text
        assert "Demo-Modus" not in res.text

    def test_offline_mode(self, offline_client):
        res = offline_client.get("/")
        assert res.status_code == 200
        assert pages.OFFLINE_NOTICE in res.text
        assert "KI-Stammtisch Köln" in res.text

    def test_shows_latest_posts(self, client, store):
        store.create(PostCreate(title="Erster Beitrag", content="x"))
        assert "Erster Beitrag" in client.get("/").text


class TestRegisterForm:
    def test_success_redirect(self, client, db):
        res = client.post(
            "/register",
            data={"email": "anna@acme.de", "company": "ACME", "name": "Anna", "accept_privacy": "true"},
            follow_redirects=False,
        )
        assert res.status_code == 303
        assert "msg=" in res.headers["location"]
        assert res.headers["location"].endswith("#register")
        assert db["member"].count_documents({}) == 1

    def test_freemail_redirects_with_error(self, client, db):
        res = client.post(
            "/register",
            data={"email": "anna@gmail.com", "company": "ACME", "name": "Anna", "accept_privacy": "true"},
            follow_redirects=False,
        )
        assert "error=" in res.headers["location"]
        assert db["member"].count_documents({}) == 0


class TestBlogPages:
    def test_index_and_detail(self, client, store):
        store.create(PostCreate(title="Hallo Köln", content="## Unterzeile", category="use-cases"))
        index = client.get("/blog")
        assert "Hallo Köln" in index.text

        detail = client.get("/blog/hallo-koeln")
        assert detail.status_code == 200
        assert "<h2>Unterzeile</h2>" in detail.text

    def test_category_filter(self, client, store):
        store.create(PostCreate(title="Use Case", content="x", category="use-cases"))
        store.create(PostCreate(title="Tutorial", content="x", category="tutorials"))
        res = client.get("/blog", params={"category": "tutorials"})
        assert "/blog/tutorial" in res.text
        assert "/blog/use-case" not in res.text

    def test_missing_post(self, client):
        assert client.get("/blog/gibt-es-nicht").status_code == 404

    def test_draft_hidden(self, client, store):
        store.create(PostCreate(title="Geheim", content="x", is_published=False))
        assert client.get("/blog/geheim").status_code == 404

    def test_privacy_page(self, client):
        assert "Datenschutzerklärung" in client.get("/datenschutz").text


class TestAdminForms:
    def test_create_event(self, admin_client, db):
        res = admin_client.post(
            "/admin/events",
            data={
                "title": "Neues Event",
                "description": "d",
                "date": "2099-01-15",
                "time": "18:00",
                "location": "Ort",
                "address": "Adresse",
                "max_attendees": "",
            },
            follow_redirects=False,
        )
        assert res.status_code == 303
        assert "msg=" in res.headers["location"]
        doc = db["event"].find_one({"title": "Neues Event"})
        assert doc["date"] == datetime(2099, 1, 15, 18, 0)
        assert doc["max_attendees"] is None

    def test_create_event_missing_fields(self, admin_client, db):
        res = admin_client.post("/admin/events", data={"title": "x"}, follow_redirects=False)
        assert "error=" in res.headers["location"]
        assert db["event"].count_documents({}) == 0

    def test_create_post(self, admin_client, store):
        res = admin_client.post(
            "/admin/posts/new",
            data={"title": "Formular Beitrag", "content": "Text", "tags": "a, b", "is_published": "true"},
            follow_redirects=False,
        )
        assert res.status_code == 303
        post = store.get("formular-beitrag")
        assert post.tags == ["a", "b"]
        assert post.category == "ki-news"

    def test_save_settings_unchecked_boxes(self, admin_client, db):
        admin_client.post("/admin/settings", data={"hero_title": "Neu"}, follow_redirects=False)
        doc = db["settings"].find_one()
        assert doc["hero_title"] == "Neu"
        assert doc["show_countdown"] is False
        assert doc["show_event_archive"] is False

    def test_members_page_and_export(self, admin_client):
        admin_client.post(
            "/api/members",
            json={"email": "a@acme.de", "company": "ACME", "name": "Anna", "acceptPrivacy": True},
        )
        assert "a@acme.de" in admin_client.get("/admin/members").text
        export = admin_client.get("/admin/members/export")
        assert export.text.startswith("Name;E-Mail;Firma;Branche;Registriert")


class TestAdminWithoutDatabase:
    @pytest.fixture
    def offline_admin(self, offline_client):
        res = offline_client.post("/api/auth/login", json={"email": ADMIN_EMAIL, "password": ADMIN_PASSWORD})
        assert res.status_code == 200
        return offline_client

    @pytest.mark.parametrize(
        "url, data, target",
        [
            ("/admin/events", {"title": "t", "description": "d", "date": "2099-01-15", "time": "18:00",
                               "location": "l", "address": "a"}, "/admin/events"),
            ("/admin/events/507f1f77bcf86cd799439011", {"title": "t"}, "/admin/events"),
            ("/admin/events/507f1f77bcf86cd799439011/delete", {}, "/admin/events"),
            ("/admin/members/507f1f77bcf86cd799439011/delete", {}, "/admin/members"),
            ("/admin/settings", {"hero_title": "Neu"}, "/admin/settings"),
        ],
    )
    def test_forms_redirect_with_notice(self, offline_admin, url, data, target):
        res = offline_admin.post(url, data=data, follow_redirects=False)
        assert res.status_code == 303
        location = res.headers["location"]
        assert location.startswith(target + "?error=")
        assert unquote(location.split("error=", 1)[1]) == pages.OFFLINE_NOTICE

    def test_event_edit_page_redirects(self, offline_admin):
        res = offline_admin.get("/admin/events/507f1f77bcf86cd799439011", follow_redirects=False)
        assert res.status_code == 303
        assert "error=" in res.headers["location"]

    def test_settings_page_still_renders(self, offline_admin):
        assert offline_admin.get("/admin/settings").status_code == 200


class TestAdminPostEdit:
    def test_clearing_cover_image(self, admin_client, store):
        store.create(PostCreate(title="Mit Bild", content="x", cover_image="/img/a.png"))
        res = admin_client.post(
            "/admin/posts/mit-bild/edit",
            data={"title": "Mit Bild", "content": "x", "category": "ki-news", "is_published": "true"},
            follow_redirects=False,
        )
        assert res.status_code == 303
        assert store.get("mit-bild").cover_image is None
