from __future__ import annotations

import asyncio
import threading
from datetime import datetime
from zoneinfo import ZoneInfo

from streakify.daily_reset import DailyResetScheduler, reset_goal, run_reset_loop
from streakify.models import DailyGoal
from streakify.storage import MemoryStore, PersistenceGateway
from streakify.storage.gateway import KEY_DAILY_GOALS


def _dt(y: int, m: int, d: int, h: int = 10, minute: int = 0) -> datetime:
    return datetime(y, m, d, h, minute, tzinfo=ZoneInfo("Europe/Oslo"))


def _goal(now: datetime, done: bool = True) -> DailyGoal:
    return DailyGoal(
        id="g1",
        title="Drink water",
        target_count=8,
        created_at=now,
        last_reset_date=now,
        current_count=8 if done else 3,
        is_completed=done,
        completed_at=now if done else None,
        xp_granted=done,
    )


def test_reset_goal_clears_progress_and_grant() -> None:
    now = _dt(2026, 2, 12, 0, 1)
    goal = reset_goal(_goal(_dt(2026, 2, 11)), now)
    assert goal.current_count == 0
    assert goal.is_completed is False
    assert goal.completed_at is None
    assert goal.xp_granted is False
    assert goal.last_reset_date == now


def test_reset_runs_once_per_day() -> None:
    gateway = PersistenceGateway(MemoryStore())
    scheduler = DailyResetScheduler(gateway, "Europe/Oslo")
    first = scheduler.check_and_reset([_goal(_dt(2026, 2, 11))], _dt(2026, 2, 12, 0, 1))
    assert first.did_reset is True
    assert first.persisted is True
    assert gateway.load_reset_marker() == "2026-02-12"

    progressed = [_goal(_dt(2026, 2, 12), done=False)]
    second = scheduler.check_and_reset(progressed, _dt(2026, 2, 12, 18, 0))
    assert second.did_reset is False
    assert second.goals[0].current_count == 3


def test_missed_days_reset_once() -> None:
    gateway = PersistenceGateway(MemoryStore())
    gateway.save_reset_marker("2026-02-08")
    scheduler = DailyResetScheduler(gateway, "Europe/Oslo")
    outcome = scheduler.check_and_reset([_goal(_dt(2026, 2, 8))], _dt(2026, 2, 12))
    assert outcome.did_reset is True
    assert gateway.load_reset_marker() == "2026-02-12"
    assert scheduler.is_due(_dt(2026, 2, 12, 23, 59)) is False


def test_day_boundary_follows_timezone() -> None:
    gateway = PersistenceGateway(MemoryStore())
    gateway.save_reset_marker("2026-02-11")
    scheduler = DailyResetScheduler(gateway, "Europe/Oslo")
    utc_late = datetime(2026, 2, 11, 23, 30, tzinfo=ZoneInfo("UTC"))
    assert scheduler.today_key(utc_late) == "2026-02-12"
    assert scheduler.is_due(utc_late) is True


def test_marker_not_moved_when_goals_not_saved() -> None:
    class _GoalsFail(MemoryStore):
        def set(self, key: str, value: str) -> None:
            if key == KEY_DAILY_GOALS:
                raise OSError("read-only")
            super().set(key, value)

    gateway = PersistenceGateway(_GoalsFail())
    scheduler = DailyResetScheduler(gateway, "Europe/Oslo")
    outcome = scheduler.check_and_reset([_goal(_dt(2026, 2, 11))], _dt(2026, 2, 12))
    assert outcome.did_reset is True
    assert outcome.persisted is False
    assert gateway.load_reset_marker() is None
    assert scheduler.is_due(_dt(2026, 2, 12, 11, 0)) is True


def test_reset_loop_checks_until_stopped() -> None:
    calls: list[str] = []

    class _Target:
        def check_daily_reset(self, now=None):
            calls.append(threading.current_thread().name)
            if len(calls) == 1:
                raise RuntimeError("storage hiccup")

    async def _run() -> None:
        stop = asyncio.Event()
        loop_task = asyncio.create_task(run_reset_loop(_Target(), 0.01, stop))
        while len(calls) < 3:
            await asyncio.sleep(0.01)
        stop.set()
        await asyncio.wait_for(loop_task, timeout=2)

    asyncio.run(asyncio.wait_for(_run(), timeout=5))
    assert len(calls) >= 3
    assert threading.main_thread().name not in calls
