from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import datetime

from streakify.models import DailyGoal, PomodoroSession, Profile, StreakEntry, Task, UserSettings, default_profile
from streakify.progression import DEFAULT_TUNING, ProgressionTuning, level_for
from streakify.storage import PersistenceGateway


@dataclass
class AppState:
    """In-memory owner of every aggregate; all mutations go through the ledger."""

    profile: Profile
    tasks: list[Task]
    goals: list[DailyGoal]
    sessions: list[PomodoroSession]
    streak_entries: list[StreakEntry]
    settings: UserSettings

    @classmethod
    def empty(cls, now: datetime) -> AppState:
        return cls(
            profile=default_profile(now),
            tasks=[],
            goals=[],
            sessions=[],
            streak_entries=[],
            settings=UserSettings(),
        )

    @classmethod
    def load(
        cls,
        gateway: PersistenceGateway,
        now: datetime,
        tuning: ProgressionTuning = DEFAULT_TUNING,
    ) -> AppState:
        profile = gateway.load_profile(now)
        # level is a cache of total_xp and is never trusted from storage
        profile = replace(profile, level=level_for(profile.total_xp, tuning))
        return cls(
            profile=profile,
            tasks=gateway.load_tasks(),
            goals=gateway.load_goals(),
            sessions=gateway.load_sessions(),
            streak_entries=gateway.load_streak_entries(),
            settings=gateway.load_settings(),
        )
