from __future__ import annotations

import json
import sqlite3
from dataclasses import replace
from datetime import date, datetime
from zoneinfo import ZoneInfo

import httpx
import pytest

import streakify.storage.remote as remote_mod
from streakify.errors import MalformedImport
from streakify.models import DailyGoal, StreakEntry, Task, UserSettings
from streakify.storage import LocalStore, MemoryStore, PersistenceGateway, RemoteMirror
from streakify.storage.gateway import KEY_TASKS


def _dt(y: int, m: int, d: int, h: int = 10, minute: int = 0) -> datetime:
    return datetime(y, m, d, h, minute, tzinfo=ZoneInfo("Europe/Oslo"))


class _Resp:
    def __init__(self, status_code: int, data: object) -> None:
        self.status_code = status_code
        self._data = data

    def json(self) -> object:
        return self._data


def _client_class(handler):
    class _Client:
        def __init__(self, *args, **kwargs) -> None:
            pass

        def __enter__(self):
            return self

        def __exit__(self, exc_type, exc, tb):
            return False

        def get(self, url: str):
            return handler("GET", url, None)

        def post(self, url: str, json: object):
            return handler("POST", url, json)

        def delete(self, url: str):
            return handler("DELETE", url, None)

    return _Client


def _down(method: str, url: str, payload: object):
    raise httpx.ConnectError("connection refused")


def _task(task_id: str = "t1") -> Task:
    return Task(id=task_id, title="Write report", priority="high", created_at=_dt(2026, 2, 11), xp_reward=25)


def test_local_store_persists_across_instances(tmp_path) -> None:
    store = LocalStore(tmp_path / "data" / "app.db")
    store.set("k", '{"a": 1}')
    store.set("k", '{"a": 2}')
    again = LocalStore(tmp_path / "data" / "app.db")
    assert again.get("k") == '{"a": 2}'
    assert again.keys() == ["k"]
    again.remove("k")
    assert again.get("k") is None


def test_save_and_load_revives_dates(tmp_path) -> None:
    gateway = PersistenceGateway(LocalStore(tmp_path / "app.db"))
    assert gateway.save_tasks([_task()]) is True
    tasks = gateway.load_tasks()
    assert len(tasks) == 1
    assert tasks[0].created_at == _dt(2026, 2, 11)
    assert tasks[0].title == "Write report"


def test_missing_keys_fall_back_to_defaults() -> None:
    gateway = PersistenceGateway(MemoryStore())
    now = _dt(2026, 2, 11)
    assert gateway.load_tasks() == []
    assert gateway.load_settings() == UserSettings()
    profile = gateway.load_profile(now)
    assert profile.name == "Student"
    assert profile.level == 1
    assert gateway.load_reset_marker() is None


def test_corrupt_local_value_uses_default() -> None:
    store = MemoryStore()
    store.set(KEY_TASKS, "{not json")
    assert PersistenceGateway(store).load_tasks() == []


def test_undecodable_items_are_skipped() -> None:
    store = MemoryStore()
    good = {"id": "t1", "title": "ok", "priority": "low", "createdAt": "2026-02-11T09:00:00.000Z"}
    store.set(KEY_TASKS, json.dumps([good, {"title": "no id"}]))
    tasks = PersistenceGateway(store).load_tasks()
    assert [t.id for t in tasks] == ["t1"]


def test_remote_down_keeps_local_working(monkeypatch) -> None:
    monkeypatch.setattr(remote_mod.httpx, "Client", _client_class(_down))
    gateway = PersistenceGateway(MemoryStore(), RemoteMirror("http://mirror.local"))
    assert gateway.save_tasks([_task()]) is True
    assert [t.id for t in gateway.load_tasks()] == ["t1"]
    assert gateway.remove(KEY_TASKS) is True


def test_remote_value_preferred_over_local(monkeypatch) -> None:
    remote_tasks = [
        {"id": "remote", "title": "From mirror", "priority": "low", "createdAt": "2026-02-11T09:00:00.000Z"}
    ]

    def handler(method: str, url: str, payload: object):
        if method == "GET" and url.endswith(KEY_TASKS):
            return _Resp(200, {"data": remote_tasks})
        return _Resp(200, {"data": None})

    store = MemoryStore()
    PersistenceGateway(store).save_tasks([_task("local")])
    monkeypatch.setattr(remote_mod.httpx, "Client", _client_class(handler))
    gateway = PersistenceGateway(store, RemoteMirror("http://mirror.local"))
    assert [t.id for t in gateway.load_tasks()] == ["remote"]
    # mirror has no goals, local copy is used
    assert gateway.load_goals() == []


def test_remote_push_receives_camel_case(monkeypatch) -> None:
    pushed: dict[str, object] = {}

    def handler(method: str, url: str, payload: object):
        pushed[url] = payload
        return _Resp(200, {"success": True, "data": payload})

    monkeypatch.setattr(remote_mod.httpx, "Client", _client_class(handler))
    gateway = PersistenceGateway(MemoryStore(), RemoteMirror("http://mirror.local/"))
    gateway.save_tasks([_task()])
    payload = pushed[f"http://mirror.local/storage/{KEY_TASKS}"]
    assert payload[0]["xpReward"] == 25
    assert payload[0]["createdAt"] == "2026-02-11T09:00:00.000Z"


def test_remote_http_error_is_unavailable(monkeypatch) -> None:
    monkeypatch.setattr(
        remote_mod.httpx, "Client", _client_class(lambda method, url, payload: _Resp(500, {"error": "boom"}))
    )
    mirror = RemoteMirror("http://mirror.local")
    assert mirror.health() is False
    gateway = PersistenceGateway(MemoryStore(), mirror)
    assert gateway.save_tasks([_task()]) is True


def test_local_failure_reports_false() -> None:
    class _BrokenStore(MemoryStore):
        def set(self, key: str, value: str) -> None:
            raise sqlite3.OperationalError("disk full")

    gateway = PersistenceGateway(_BrokenStore())
    assert gateway.save_tasks([_task()]) is False


def test_export_import_round_trip() -> None:
    now = _dt(2026, 2, 11)
    source = PersistenceGateway(MemoryStore())
    source.save_tasks([_task()])
    source.save_goals(
        [DailyGoal(id="g1", title="Water", target_count=8, created_at=now, last_reset_date=now, current_count=3)]
    )
    source.save_streak_entries([StreakEntry(day=date(2026, 2, 11), tasks_completed=1, xp_earned=25)])
    exported = source.export_all(now)
    assert json.loads(exported)["exportedAt"] == "2026-02-11T09:00:00.000Z"

    target = PersistenceGateway(MemoryStore())
    imported = target.import_all(exported)
    assert "tasks" in imported
    assert target.load_tasks() == source.load_tasks()
    assert target.load_goals()[0].current_count == 3
    assert target.load_streak_entries()[0].day == date(2026, 2, 11)


def test_import_merges_duplicate_streak_days() -> None:
    gateway = PersistenceGateway(MemoryStore())
    gateway.import_all(
        {
            "streakEntries": [
                {"date": "2026-02-11", "tasksCompleted": 1, "xpEarned": 10},
                {"date": "2026-02-11", "goalsCompleted": 1, "xpEarned": 30},
            ]
        }
    )
    entries = gateway.load_streak_entries()
    assert len(entries) == 1
    assert entries[0].xp_earned == 40


@pytest.mark.parametrize("snapshot", ["{not json", "[]", {"unknown": 1}, {"tasks": "nope"}])
def test_malformed_import_raises(snapshot) -> None:
    gateway = PersistenceGateway(MemoryStore())
    with pytest.raises(MalformedImport):
        gateway.import_all(snapshot)


def test_malformed_import_changes_nothing() -> None:
    gateway = PersistenceGateway(MemoryStore())
    gateway.save_tasks([_task()])
    with pytest.raises(MalformedImport):
        gateway.import_all({"tasks": [], "dailyGoals": [{"title": "missing fields"}]})
    assert [t.id for t in gateway.load_tasks()] == ["t1"]


def test_clear_all_removes_everything() -> None:
    store = MemoryStore()
    gateway = PersistenceGateway(store)
    gateway.save_tasks([_task()])
    gateway.save_reset_marker("2026-02-11")
    assert gateway.clear_all() is True
    assert store.keys() == []


def test_timestamp_like_text_is_kept_verbatim() -> None:
    gateway = PersistenceGateway(MemoryStore())
    now = _dt(2026, 2, 11)
    task = Task(
        id="t1",
        title="2026-02-11T10:00:00Z",
        description="2026-02-11T10:00:00.000Z",
        priority="low",
        created_at=now,
    )
    goal = DailyGoal(id="g1", title="2026-02-12T08:00:00Z", target_count=1, created_at=now, last_reset_date=now)
    gateway.save_tasks([task])
    gateway.save_goals([goal])
    gateway.save_profile(replace(gateway.load_profile(now), name="2026-02-11T10:00:00Z"))

    loaded = gateway.load_tasks()[0]
    assert loaded.title == "2026-02-11T10:00:00Z"
    assert loaded.description == "2026-02-11T10:00:00.000Z"
    assert loaded.created_at == now
    assert gateway.load_goals()[0].title == "2026-02-12T08:00:00Z"
    assert gateway.load_profile(now).name == "2026-02-11T10:00:00Z"

    # the generic loader still revives timestamps
    assert isinstance(gateway.load(KEY_TASKS, [])[0]["createdAt"], datetime)


def test_import_places_utc_midnight_timestamps_on_local_day() -> None:
    gateway = PersistenceGateway(MemoryStore(), tz_name="Europe/Oslo")
    gateway.import_all(
        {
            "streakEntries": [
                {"date": "2026-02-10T23:00:00.000Z", "tasksCompleted": 1},
                {"date": "2026-02-11T23:00:00.000Z", "goalsCompleted": 1},
                {"date": "2026-02-13", "pomodorosCompleted": 1},
            ]
        }
    )
    assert [e.day for e in gateway.load_streak_entries()] == [
        date(2026, 2, 11),
        date(2026, 2, 12),
        date(2026, 2, 13),
    ]
