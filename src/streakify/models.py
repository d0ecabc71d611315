from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime

KIND_TASK = "task"
KIND_GOAL = "goal"
KIND_POMODORO = "pomodoro"
ACTIVITY_KINDS = (KIND_TASK, KIND_GOAL, KIND_POMODORO)

THEMES = ("light", "dark")


@dataclass(frozen=True)
class Profile:
    id: str
    name: str
    total_xp: int
    level: int
    current_streak: int
    longest_streak: int
    tasks_completed: int
    goals_completed: int
    pomodoros_completed: int
    created_at: datetime
    updated_at: datetime


@dataclass(frozen=True)
class Task:
    id: str
    title: str
    priority: str
    created_at: datetime
    description: str | None = None
    tags: tuple[str, ...] = ()
    is_completed: bool = False
    has_quantity: bool = False
    current_count: int = 0
    target_count: int = 1
    xp_reward: int = 10
    completed_at: datetime | None = None
    due_date: datetime | None = None
    xp_granted: bool = False


@dataclass(frozen=True)
class DailyGoal:
    id: str
    title: str
    target_count: int
    created_at: datetime
    last_reset_date: datetime
    description: str | None = None
    current_count: int = 0
    xp_reward: int = 30
    is_completed: bool = False
    completed_at: datetime | None = None
    xp_granted: bool = False


@dataclass(frozen=True)
class PomodoroSession:
    id: str
    duration: int
    completed_at: datetime
    xp_earned: int
    task_id: str | None = None


@dataclass(frozen=True)
class StreakEntry:
    day: date
    tasks_completed: int = 0
    goals_completed: int = 0
    pomodoros_completed: int = 0
    xp_earned: int = 0

    @property
    def has_activity(self) -> bool:
        return (self.tasks_completed + self.goals_completed + self.pomodoros_completed) > 0


@dataclass(frozen=True)
class UserSettings:
    theme: str = "light"
    notifications: bool = True
    pomodoro_length: int = 25
    short_break_length: int = 5
    long_break_length: int = 15
    daily_goal_reminder_time: str = "09:00"
    sound_enabled: bool = True


def default_profile(now: datetime) -> Profile:
    return Profile(
        id="1",
        name="Student",
        total_xp=0,
        level=1,
        current_streak=0,
        longest_streak=0,
        tasks_completed=0,
        goals_completed=0,
        pomodoros_completed=0,
        created_at=now,
        updated_at=now,
    )
