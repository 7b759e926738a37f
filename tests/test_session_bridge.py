import pytest
import requests

from patent_search.main import app
from patent_search.models import User
from patent_search.services import session_bridge
from patent_search.services.supabase_admin import SupabaseAdminError, get_supabase_admin

PROFILE = {
    "sub": "valyu-sub-1",
    "email": "Alice@Example.com",
    "name": "Alice Inventor",
    "picture": "https://cdn.example.com/alice.png",
    "valyu_user_type": "organisation",
    "valyu_organisation_id": "org-1",
    "valyu_organisation_name": "Acme Patents",
}


class FakeAdmin:
    def __init__(self):
        self.users = {}
        self.fail = set()
        self.calls = []
        self._next_id = 1

    def _maybe_fail(self, step):
        self.calls.append(step)
        if step in self.fail:
            raise SupabaseAdminError(f"{step} failed", status_code=500)

    def find_user_by_email(self, email):
        self._maybe_fail("find")
        return next((u for u in self.users.values() if u["email"] == email), None)

    def create_user(self, email, user_metadata):
        self._maybe_fail("create")
        user_id = f"sb-user-{self._next_id}"
        self._next_id += 1
        self.users[user_id] = {"id": user_id, "email": email, "user_metadata": user_metadata}
        return self.users[user_id]

    def update_user_metadata(self, user_id, user_metadata):
        self._maybe_fail("update")
        self.users[user_id]["user_metadata"] = user_metadata
        return self.users[user_id]

    def generate_magic_link(self, email):
        self._maybe_fail("link")
        return f"hash-for-{email}"


@pytest.fixture
def admin(client):
    fake = FakeAdmin()
    app.dependency_overrides[get_supabase_admin] = lambda: fake
    return fake


@pytest.fixture
def userinfo(monkeypatch, fake_response):
    state = {"response": fake_response(200, dict(PROFILE)), "calls": []}

    def fake_get(url, headers=None, timeout=None):
        state["calls"].append({"url": url, "headers": headers})
        if isinstance(state["response"], Exception):
            raise state["response"]
        return state["response"]

    monkeypatch.setattr(session_bridge.requests, "get", fake_get)
    return state


def _bridge(client, token="valyu-access-token"):
    return client.post("/api/auth/valyu/session", json={"valyu_access_token": token})


def test_first_sign_in_creates_user_and_profile(client, db, admin, userinfo):
    response = _bridge(client)

    assert response.status_code == 200
    body = response.json()
    assert body["user_id"] == "sb-user-1"
    assert body["email"] == "alice@example.com"
    assert body["token_hash"] == "hash-for-alice@example.com"
    assert body["valyu_user"]["sub"] == "valyu-sub-1"
    assert body["valyu_user"]["valyu_organisation_id"] == "org-1"

    assert userinfo["calls"][0]["url"] == "https://platform.example.com/api/oauth/userinfo"
    assert userinfo["calls"][0]["headers"]["Authorization"] == "Bearer valyu-access-token"
    assert admin.users["sb-user-1"]["user_metadata"]["full_name"] == "Alice Inventor"

    profile = db.get(User, "sb-user-1")
    assert profile.subscription_tier == "free"
    assert profile.valyu_organisation_name == "Acme Patents"


def test_repeat_sign_in_updates_metadata_and_keeps_tier(client, db, admin, userinfo, fake_response):
    _bridge(client)
    profile = db.get(User, "sb-user-1")
    profile.subscription_tier = "unlimited"
    db.commit()

    userinfo["response"] = fake_response(200, {**PROFILE, "name": "Alice R. Inventor"})
    response = _bridge(client)

    assert response.status_code == 200
    assert response.json()["user_id"] == "sb-user-1"
    assert len(admin.users) == 1
    assert "update" in admin.calls

    profile = db.query(User).filter(User.id == "sb-user-1").populate_existing().one()
    assert profile.subscription_tier == "unlimited"
    assert profile.full_name == "Alice R. Inventor"
    assert db.query(User).count() == 1


def test_missing_token(client, admin, userinfo):
    response = client.post("/api/auth/valyu/session", json={})

    assert response.status_code == 400
    assert response.json()["error"] == "missing_token"
    assert userinfo["calls"] == []


def test_unconfigured_supabase_is_server_error(client, userinfo, test_settings):
    test_settings.SUPABASE_SERVICE_ROLE_KEY = ""

    response = _bridge(client)

    assert response.status_code == 500
    assert response.json()["error"] == "server_error"


@pytest.mark.parametrize(
    "upstream",
    [
        "http_401",
        "network",
        "no_sub",
    ],
)
def test_userinfo_failures(client, admin, userinfo, fake_response, upstream):
    if upstream == "http_401":
        userinfo["response"] = fake_response(401, {"error": "invalid_token"})
    elif upstream == "network":
        userinfo["response"] = requests.Timeout("slow")
    else:
        userinfo["response"] = fake_response(200, {"email": "alice@example.com"})

    response = _bridge(client)

    assert response.status_code == 401
    assert response.json()["error"] == "userinfo_failed"
    assert admin.calls == []


def test_missing_email_creates_nothing(client, db, admin, userinfo, fake_response):
    userinfo["response"] = fake_response(200, {"sub": "valyu-sub-1", "name": "No Email"})

    response = _bridge(client)

    assert response.status_code == 400
    assert response.json()["error"] == "missing_email"
    assert admin.calls == []
    assert db.query(User).count() == 0


@pytest.mark.parametrize(
    "step, error",
    [
        ("find", "lookup_user_failed"),
        ("create", "create_user_failed"),
        ("link", "session_failed"),
    ],
)
def test_admin_step_failures(client, admin, userinfo, step, error):
    admin.fail.add(step)

    response = _bridge(client)

    assert response.status_code == 500
    assert response.json()["error"] == error


def test_update_failure(client, admin, userinfo):
    _bridge(client)
    admin.fail.add("update")

    response = _bridge(client)

    assert response.status_code == 500
    assert response.json()["error"] == "update_user_failed"


def test_profile_sync_failure(client, admin, userinfo, monkeypatch):
    def broken_upsert(*args, **kwargs):
        raise RuntimeError("database unavailable")

    monkeypatch.setattr(session_bridge, "upsert_profile", broken_upsert)

    response = _bridge(client)

    assert response.status_code == 500
    assert response.json()["error"] == "profile_sync_failed"
    assert "link" not in admin.calls


def test_retry_after_failure_converges(client, db, admin, userinfo):
    admin.fail.add("link")
    assert _bridge(client).status_code == 500

    admin.fail.clear()
    response = _bridge(client)

    assert response.status_code == 200
    assert len(admin.users) == 1
    assert db.query(User).count() == 1


def test_recreated_supabase_user_converges_on_existing_profile(client, db, admin, userinfo):
    db.add(User(id="old-id", email="alice@example.com", subscription_tier="pay_per_use"))
    db.commit()

    first = _bridge(client)
    second = _bridge(client)

    assert first.status_code == 200
    assert second.status_code == 200
    assert second.json()["user_id"] == "sb-user-1"
    profile = db.query(User).populate_existing().one()
    assert profile.id == "sb-user-1"
    assert profile.email == "alice@example.com"
    assert profile.subscription_tier == "pay_per_use"
    assert profile.valyu_organisation_name == "Acme Patents"


def test_malformed_body_is_structured_400(client, admin, userinfo):
    response = client.post("/api/auth/valyu/session", json={"valyu_access_token": 42})

    assert response.status_code == 400
    assert response.json() == {"error": "invalid_request", "error_description": "Invalid request body"}
    assert userinfo["calls"] == []
