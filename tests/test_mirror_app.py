from __future__ import annotations

from fastapi.testclient import TestClient

from streakify.mirror_app import build_mirror_app
from streakify.storage import LocalStore, MemoryStore


def test_health() -> None:
    client = TestClient(build_mirror_app(MemoryStore()))
    resp = client.get("/health")
    assert resp.status_code == 200
    body = resp.json()
    assert body["status"] == "OK"
    assert body["timestamp"].endswith("Z")


def test_missing_key_returns_null() -> None:
    client = TestClient(build_mirror_app(MemoryStore()))
    resp = client.get("/storage/streakify_tasks")
    assert resp.status_code == 200
    assert resp.json() == {"data": None}


def test_write_read_delete(tmp_path) -> None:
    store = LocalStore(tmp_path / "mirror.db")
    client = TestClient(build_mirror_app(store))
    value = [{"id": "t1", "createdAt": "2026-02-11T09:00:00.000Z"}]

    resp = client.post("/storage/streakify_tasks", json=value)
    assert resp.json() == {"success": True, "data": value}
    assert client.get("/storage/streakify_tasks").json() == {"data": value}

    resp = client.put("/storage/streakify_tasks", json=[])
    assert resp.json()["success"] is True
    assert client.get("/storage/streakify_tasks").json() == {"data": []}

    assert client.delete("/storage/streakify_tasks").json() == {"success": True}
    assert client.get("/storage/streakify_tasks").json() == {"data": None}


def test_invalid_json_rejected() -> None:
    store = MemoryStore()
    client = TestClient(build_mirror_app(store))
    resp = client.post(
        "/storage/streakify_tasks",
        content=b"{not json",
        headers={"content-type": "application/json"},
    )
    assert resp.status_code == 400
    assert store.keys() == []
