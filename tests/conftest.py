"""Shared test fixtures: in-memory MongoDB, temporary blog directory, admin login."""

import mongomock
import pytest
from fastapi.testclient import TestClient

import config
import database
from blog import BlogStore, get_blog_store
from main import app, init_db

ADMIN_EMAIL = "admin@ki-stammtisch.de"
ADMIN_PASSWORD = "geheim123"


@pytest.fixture
def db():
    """A fresh mongomock database with indexes and the settings document."""
    mock_db = mongomock.MongoClient()["ki_stammtisch_test"]
    init_db(mock_db)
    return mock_db


@pytest.fixture
def store(tmp_path):
    return BlogStore(tmp_path / "blog")


@pytest.fixture(autouse=True)
def admin_credentials(monkeypatch):
    monkeypatch.setattr(config, "ADMIN_EMAIL", ADMIN_EMAIL)
    monkeypatch.setattr(config, "ADMIN_PASSWORD", ADMIN_PASSWORD)
    monkeypatch.setattr(config, "AUTH_SECRET", "test-secret")


@pytest.fixture
def client(db, store):
    app.dependency_overrides[database.get_db] = lambda: db
    app.dependency_overrides[get_blog_store] = lambda: store
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def admin_client(client):
    res = client.post("/api/auth/login", json={"email": ADMIN_EMAIL, "password": ADMIN_PASSWORD})
    assert res.status_code == 200
    return client


@pytest.fixture
def offline_client(store):
    app.dependency_overrides[database.get_db] = lambda: None
    app.dependency_overrides[get_blog_store] = lambda: store
    yield TestClient(app)
    app.dependency_overrides.clear()
