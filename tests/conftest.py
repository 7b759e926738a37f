"""Shared pytest fixtures: in-memory database, test settings, API client, session tokens."""

from __future__ import annotations

import os

# Must be set before patent_search.db.session builds its engine
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["APP_MODE"] = "production"

from datetime import datetime, timedelta, timezone
import json

import jwt
import pytest
from fastapi.testclient import TestClient

from patent_search.core.config import Settings, get_settings
from patent_search.db.base import Base
from patent_search.db.session import SessionLocal, engine, get_db
from patent_search.main import app

JWT_SECRET = "test-jwt-secret-with-enough-length-for-hs256"


class FakeResponse:
    """Stand-in for requests.Response with just what the services read."""

    def __init__(self, status_code=200, json_body=None, text=None, headers=None):
        self.status_code = status_code
        self._json = json_body
        if text is None:
            text = json.dumps(json_body) if json_body is not None else ""
        self.text = text
        self.content = text.encode()
        self.headers = headers or {"content-type": "application/json"}

    @property
    def ok(self):
        return 200 <= self.status_code < 400

    def json(self):
        if self._json is None:
            return json.loads(self.text)
        return self._json

    def raise_for_status(self):
        if not self.ok:
            import requests

            raise requests.HTTPError(f"{self.status_code} Error")


@pytest.fixture
def fake_response():
    return FakeResponse


@pytest.fixture
def test_settings():
    return Settings(
        _env_file=None,
        APP_MODE="production",
        DATABASE_URL="sqlite://",
        APP_URL="https://patents.example.com",
        VALYU_SUPABASE_URL="https://valyu-auth.example.com",
        VALYU_CLIENT_ID="client-123",
        VALYU_CLIENT_SECRET="secret-456",
        VALYU_APP_URL="https://platform.example.com",
        SUPABASE_URL="https://project.supabase.example.com",
        SUPABASE_SERVICE_ROLE_KEY="service-role-key",
        SUPABASE_JWT_SECRET=JWT_SECRET,
        CRON_SECRET="cron-secret",
    )


@pytest.fixture
def db():
    Base.metadata.create_all(bind=engine)
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def client(db, test_settings):
    app.dependency_overrides[get_db] = lambda: db
    app.dependency_overrides[get_settings] = lambda: test_settings
    try:
        # https so the Secure anonymous-id cookie round-trips
        yield TestClient(app, base_url="https://testserver")
    finally:
        app.dependency_overrides.clear()


def make_token(user_id="user-1", email="alice@example.com", expires_in=3600, secret=JWT_SECRET, **claims):
    now = datetime.now(timezone.utc)
    payload = {
        "sub": user_id,
        "email": email,
        "aud": "authenticated",
        "iat": now,
        "exp": now + timedelta(seconds=expires_in),
        **claims,
    }
    return jwt.encode(payload, secret, algorithm="HS256")


@pytest.fixture
def auth_headers():
    def _headers(user_id="user-1", email="alice@example.com"):
        return {"Authorization": f"Bearer {make_token(user_id, email)}"}

    return _headers


@pytest.fixture
def make_jwt():
    return make_token
