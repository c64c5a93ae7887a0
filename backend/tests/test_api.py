from __future__ import annotations

import time

import pytest
from fastapi.testclient import TestClient

from logvault import main as main_module
from logvault.core.config import get_settings
from logvault.main import create_app
from logvault.storage import LogStorage

from conftest import make_settings


@pytest.fixture
def client(tmp_path):
    settings = make_settings(database_url=f"sqlite+aiosqlite:///{tmp_path / 'api.db'}", flush_interval_ms=50)
    app = create_app(LogStorage(settings))
    with TestClient(app) as test_client:
        yield test_client


def _wait_for_logs(client, expected: int, **params):
    for _ in range(100):
        items = client.get("/logs", params=params).json()["items"]
        if len(items) >= expected:
            return items
        time.sleep(0.05)
    return client.get("/logs", params=params).json()["items"]


def test_root(client):
    assert client.get("/").json() == {"app": "logvault"}


def test_post_then_list_logs(client):
    response = client.post(
        "/logs",
        json=[
            {"hostname": "web-1", "source": "console", "level": "error", "message": "disk full"},
            {"hostname": "web-2", "source": "console", "level": "info", "message": "ok"},
        ],
    )
    assert response.status_code == 202
    assert response.json() == {}

    items = _wait_for_logs(client, 2)
    assert [item["message"] for item in items] == ["disk full", "ok"]

    filtered = client.get("/logs", params={"level_json": ["console:error"]}).json()["items"]
    assert [item["hostname"] for item in filtered] == ["web-1"]

    assert client.get("/logs/hostnames").json() == {"items": ["web-1", "web-2"]}

    meta = client.get(f"/logs/{items[0]['id']}/meta")
    assert meta.status_code == 200
    assert meta.json()["item"]["id"] == items[0]["id"]

    search = client.post("/logs/search", json={"terms": ["disk"], "filters": {"limit": 10}}).json()
    assert [item["message"] for item in search["items"]] == ["disk full"]
    assert search["filters"]["limit"] == 10

    assert client.delete("/logs").json() == {}
    assert client.get("/logs").json() == {"items": []}


def test_missing_meta_is_404(client):
    assert client.get("/logs/999/meta").status_code == 404


def test_config_endpoints(client):
    assert client.get("/config/logsTTL").json()["item"]["value"] == "2592000000"

    response = client.put("/config/logsTTL", json={"value": "3600000"})
    assert response.status_code == 200
    assert response.json()["item"]["value"] == "3600000"

    assert client.delete("/config/logsTTL").json() == {}
    assert client.get("/config/logsTTL").json() == {"item": None}
    assert client.delete("/config/logsTTL").status_code == 404


def test_user_endpoints_map_errors_to_status_codes(client):
    payload = {"name": "Ada", "email": "ada@example.com", "password": "s3cret!", "role": "admin"}

    created = client.post("/users", json=payload)
    assert created.status_code == 201
    user_id = created.json()["item"]["id"]
    assert "hashed_password" not in created.json()["item"]

    assert client.post("/users", json=payload).status_code == 409
    assert client.post("/users", json={"email": "x@example.com"}).status_code == 422
    assert client.get("/users/count").json() == {"count": 1}

    assert client.post("/users/verify", json={"email": "ada@example.com", "password": "s3cret!"}).status_code == 200
    assert client.post("/users/verify", json={"email": "ada@example.com", "password": "bad"}).status_code == 401

    patched = client.patch("/users/ada@example.com", json={"role": "viewer"})
    assert patched.json()["item"]["role"] == "viewer"
    assert client.patch("/users/bob@example.com", json={"role": "viewer"}).status_code == 404

    changed = client.post(
        "/users/ada@example.com/password", json={"current_password": "s3cret!", "new_password": "n3xt!"}
    )
    assert changed.status_code == 200

    assert client.delete(f"/users/id/{user_id}").json() == {}
    assert client.delete(f"/users/id/{user_id}").status_code == 404
    assert client.get("/users").json() == {"items": []}


def test_main_serves_the_app_factory_with_configured_address(monkeypatch):
    calls = []
    monkeypatch.setattr(main_module.uvicorn, "run", lambda app, **kwargs: calls.append((app, kwargs)))
    monkeypatch.setenv("LOGVAULT_API_PORT", "8765")
    get_settings.cache_clear()
    try:
        main_module.main()
    finally:
        get_settings.cache_clear()

    assert calls == [("logvault.main:create_app", {"factory": True, "host": "127.0.0.1", "port": 8765})]
