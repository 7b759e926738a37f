import pytest
import requests

from patent_search.services import valyu_proxy


@pytest.fixture
def upstream(monkeypatch, fake_response):
    state = {
        "response": fake_response(200, {"results": [{"title": "Solar cell"}]}, headers={
            "content-type": "application/json",
            "X-Request-Id": "req-42",
        }),
        "calls": [],
    }

    def fake_post(url, json=None, headers=None, timeout=None):
        state["calls"].append({"url": url, "json": json, "headers": headers})
        if isinstance(state["response"], Exception):
            raise state["response"]
        return state["response"]

    monkeypatch.setattr(valyu_proxy.requests, "post", fake_post)
    return state


def test_forwards_with_user_token(client, upstream):
    response = client.post(
        "/api/valyu-proxy",
        json={"path": "/v1/search", "body": {"query": "perovskite"}},
        headers={"x-valyu-token": "user-token"},
    )

    assert response.status_code == 200
    assert response.json() == {"results": [{"title": "Solar cell"}]}
    assert response.headers["X-Proxy-Request-Id"] == "req-42"
    call = upstream["calls"][0]
    assert call["url"] == "https://platform.example.com/api/oauth/proxy"
    assert call["headers"]["Authorization"] == "Bearer user-token"
    assert call["json"] == {"path": "/v1/search", "method": "POST", "body": {"query": "perovskite"}}


def test_passes_through_upstream_errors(client, upstream, fake_response):
    upstream["response"] = fake_response(402, text="Insufficient credits", headers={"content-type": "text/plain"})

    response = client.post("/api/valyu-proxy", json={"path": "/v1/search"}, headers={"x-valyu-token": "t"})

    assert response.status_code == 402
    assert response.text == "Insufficient credits"
    assert response.headers["content-type"].startswith("text/plain")
    assert response.headers["X-Proxy-Request-Id"] == ""


def test_missing_token(client, upstream):
    response = client.post("/api/valyu-proxy", json={"path": "/v1/search"})

    assert response.status_code == 401
    assert response.json()["error"] == "missing_token"
    assert upstream["calls"] == []


def test_missing_path(client, upstream):
    response = client.post("/api/valyu-proxy", json={"body": {}}, headers={"x-valyu-token": "t"})

    assert response.status_code == 400
    assert response.json()["error"] == "invalid_request"


def test_network_failure(client, upstream):
    upstream["response"] = requests.ConnectionError("down")

    response = client.post("/api/valyu-proxy", json={"path": "/v1/search"}, headers={"x-valyu-token": "t"})

    assert response.status_code == 500
    assert response.json()["error"] == "proxy_error"


def test_custom_proxy_url(client, upstream, test_settings):
    test_settings.VALYU_OAUTH_PROXY_URL = "https://proxy.example.com/relay"

    client.post("/api/valyu-proxy", json={"path": "/v1/contents"}, headers={"x-valyu-token": "t"})

    assert upstream["calls"][0]["url"] == "https://proxy.example.com/relay"


def test_malformed_body_is_structured_400(client, upstream):
    response = client.post(
        "/api/valyu-proxy",
        content=b"{not json",
        headers={"x-valyu-token": "t", "content-type": "application/json"},
    )

    assert response.status_code == 400
    assert response.json() == {"error": "invalid_request", "error_description": "Invalid request body"}
    assert upstream["calls"] == []
