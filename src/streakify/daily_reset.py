from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, replace
from datetime import datetime
from typing import Any, Protocol

from streakify.models import DailyGoal
from streakify.storage import PersistenceGateway
from streakify.time_utils import day_key, local_day

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ResetOutcome:
    goals: list[DailyGoal]
    did_reset: bool
    persisted: bool = True


class ResetTarget(Protocol):
    def check_daily_reset(self, now: datetime | None = None) -> Any: ...


def reset_goal(goal: DailyGoal, now: datetime) -> DailyGoal:
    return replace(
        goal,
        current_count=0,
        is_completed=False,
        completed_at=None,
        xp_granted=False,
        last_reset_date=now,
    )


class DailyResetScheduler:
    """Zeroes daily goals once per local calendar day.

    The last processed day is kept under its own storage key. A missing or
    stale marker means the goals are due; a marker equal to today's key means
    nothing happens, so any number of checks on the same day reset at most once.
    """

    def __init__(self, gateway: PersistenceGateway, tz_name: str | None = None) -> None:
        self.gateway = gateway
        self.tz_name = tz_name

    def today_key(self, now: datetime) -> str:
        return day_key(local_day(now, self.tz_name))

    def is_due(self, now: datetime) -> bool:
        return self.gateway.load_reset_marker() != self.today_key(now)

    def check_and_reset(self, goals: list[DailyGoal], now: datetime) -> ResetOutcome:
        if not self.is_due(now):
            return ResetOutcome(goals=goals, did_reset=False)

        reset = [reset_goal(g, now) for g in goals]
        # marker only moves once the zeroed goals are stored, otherwise the next tick retries
        persisted = self.gateway.save_goals(reset)
        if persisted:
            persisted = self.gateway.save_reset_marker(self.today_key(now))
        logger.info("daily goals reset day=%s goals=%s persisted=%s", self.today_key(now), len(reset), persisted)
        return ResetOutcome(goals=reset, did_reset=True, persisted=persisted)


async def run_reset_loop(target: ResetTarget, interval_seconds: float, stop_event: asyncio.Event) -> None:
    while True:
        try:
            # sqlite and the mirror call block, keep them off the event loop
            await asyncio.to_thread(target.check_daily_reset)
        except Exception:
            logger.exception("daily reset check failed")
        try:
            await asyncio.wait_for(stop_event.wait(), timeout=interval_seconds)
        except asyncio.TimeoutError:
            continue
        return
