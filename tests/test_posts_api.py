"""Tests for the /api/posts routes."""

POST = {
    "title": "Mein Test: KI & Sie!",
    "content": "Ein **kurzer** Beitrag.",
    "excerpt": "Kurz",
    "category": "tutorials",
    "tags": ["ki", "praxis"],
}


class TestPostsApi:
    def test_create_requires_admin(self, client):
        assert client.post("/api/posts", json=POST).status_code == 401

    def test_create_and_fetch_by_slug(self, admin_client):
        res = admin_client.post("/api/posts", json=POST)
        body = res.json()
        assert res.status_code == 200
        assert body["data"]["slug"] == "mein-test-ki-sie"
        assert body["message"] == "Beitrag erfolgreich erstellt."

        fetched = admin_client.get("/api/posts", params={"slug": "mein-test-ki-sie"}).json()["data"]
        assert fetched["title"] == POST["title"]
        assert fetched["content"].strip() == POST["content"]
        assert fetched["tags"] == ["ki", "praxis"]
        assert fetched["isPublished"] is True

    def test_title_and_content_required(self, admin_client):
        res = admin_client.post("/api/posts", json={"title": "Nur Titel"})
        assert res.status_code == 400
        assert res.json()["error"] == "Titel und Inhalt sind erforderlich."

    def test_unknown_category(self, admin_client):
        res = admin_client.post("/api/posts", json=dict(POST, category="klatsch"))
        assert res.status_code == 400
        assert res.json()["error"] == "Unbekannte Kategorie."

    def test_duplicate_slug_conflict(self, admin_client):
        admin_client.post("/api/posts", json=POST)
        res = admin_client.post("/api/posts", json=POST)
        assert res.status_code == 409
        assert res.json()["success"] is False

    def test_filters(self, admin_client):
        admin_client.post("/api/posts", json=POST)
        admin_client.post("/api/posts", json={"title": "Entwurf", "content": "x", "isPublished": False})
        admin_client.post("/api/posts", json={"title": "News", "content": "y", "category": "ki-news"})

        all_posts = admin_client.get("/api/posts").json()["data"]
        assert len(all_posts) == 3
        published = admin_client.get("/api/posts", params={"published": "true"}).json()["data"]
        assert {p["slug"] for p in published} == {"mein-test-ki-sie", "news"}
        tutorials = admin_client.get("/api/posts", params={"category": "tutorials"}).json()["data"]
        assert [p["slug"] for p in tutorials] == ["mein-test-ki-sie"]

    def test_drafts_hidden_from_public(self, client, store):
        from schemas import PostCreate

        store.create(PostCreate(title="Entwurf", content="x", is_published=False))
        assert client.get("/api/posts").json()["data"] == []
        assert client.get("/api/posts", params={"slug": "entwurf"}).status_code == 404

    def test_update(self, admin_client):
        admin_client.post("/api/posts", json=POST)
        res = admin_client.put("/api/posts", params={"slug": "mein-test-ki-sie"}, json={"excerpt": "Neu"})
        data = res.json()["data"]
        assert data["excerpt"] == "Neu"
        assert data["title"] == POST["title"]
        assert data["updatedAt"] is not None

    def test_update_clears_cover_image(self, admin_client):
        admin_client.post("/api/posts", json=dict(POST, coverImage="/img/titel.png"))
        res = admin_client.put("/api/posts", params={"slug": "mein-test-ki-sie"}, json={"coverImage": None})
        data = res.json()["data"]
        assert data["coverImage"] is None
        assert data["category"] == "tutorials"

    def test_update_ignores_null_fields(self, admin_client):
        admin_client.post("/api/posts", json=POST)
        res = admin_client.put("/api/posts", params={"slug": "mein-test-ki-sie"}, json={"category": None, "excerpt": "Neu"})
        assert res.status_code == 200
        assert res.json()["data"]["category"] == "tutorials"

    def test_update_without_slug(self, admin_client):
        res = admin_client.put("/api/posts", json={"excerpt": "x"})
        assert res.status_code == 400
        assert res.json()["error"] == "Slug ist erforderlich."

    def test_update_unknown(self, admin_client):
        res = admin_client.put("/api/posts", params={"slug": "fehlt"}, json={"excerpt": "x"})
        assert res.status_code == 404

    def test_delete_then_not_found(self, admin_client):
        admin_client.post("/api/posts", json=POST)
        res = admin_client.delete("/api/posts", params={"slug": "mein-test-ki-sie"})
        assert res.json() == {"success": True, "message": "Beitrag erfolgreich gelöscht."}
        assert admin_client.get("/api/posts", params={"slug": "mein-test-ki-sie"}).status_code == 404

    def test_delete_unknown(self, admin_client):
        res = admin_client.delete("/api/posts", params={"slug": "fehlt"})
        assert res.status_code == 404
        assert res.json() == {"success": False, "error": "Beitrag nicht gefunden."}


class TestStatsApi:
    def test_counts(self, admin_client):
        admin_client.post("/api/posts", json=POST)
        admin_client.post(
            "/api/members",
            json={"email": "a@acme.de", "company": "ACME", "name": "A", "acceptPrivacy": True},
        )
        data = admin_client.get("/api/stats").json()["data"]
        assert data == {"members": 1, "events": 0, "upcomingEvents": 0, "posts": 1, "publishedPosts": 1}
