"""Explicit update types for the mutable aggregates.

Each patch lists exactly the fields a user may change. ``None`` means
"keep the current value". Patches are validated against the merged result
before anything is replaced, so a rejected patch leaves the prior state intact.
"""
from __future__ import annotations

import re
from dataclasses import dataclass, replace
from datetime import datetime

from streakify.errors import ValidationError
from streakify.models import THEMES, DailyGoal, PomodoroSession, Profile, Task, UserSettings
from streakify.progression import PRIORITIES
from streakify.time_utils import is_valid_hhmm

TITLE_MAX = 100
TASK_DESCRIPTION_MAX = 500
GOAL_DESCRIPTION_MAX = 300
PROFILE_NAME_MAX = 50
TAG_MAX = 20
MAX_TAGS = 5
MAX_TARGET_COUNT = 100
MIN_POMODORO_DURATION = 1
MAX_POMODORO_DURATION = 120

TAG_PATTERN = re.compile(r"^[a-zA-Z0-9_-]+$")

SETTINGS_BOUNDS = {
    "pomodoro_length": (5, 60),
    "short_break_length": (1, 30),
    "long_break_length": (5, 60),
}


@dataclass(frozen=True)
class TaskPatch:
    title: str | None = None
    description: str | None = None
    priority: str | None = None
    tags: tuple[str, ...] | None = None
    has_quantity: bool | None = None
    target_count: int | None = None
    due_date: datetime | None = None


@dataclass(frozen=True)
class GoalPatch:
    title: str | None = None
    description: str | None = None
    target_count: int | None = None
    xp_reward: int | None = None


@dataclass(frozen=True)
class ProfilePatch:
    name: str | None = None


@dataclass(frozen=True)
class SettingsPatch:
    theme: str | None = None
    notifications: bool | None = None
    pomodoro_length: int | None = None
    short_break_length: int | None = None
    long_break_length: int | None = None
    daily_goal_reminder_time: str | None = None
    sound_enabled: bool | None = None


def _changes(patch: object) -> dict[str, object]:
    return {k: v for k, v in vars(patch).items() if v is not None}


def _check_title(title: str) -> None:
    if not title.strip():
        raise ValidationError("Title is required")
    if len(title) > TITLE_MAX:
        raise ValidationError(f"Title must be at most {TITLE_MAX} characters")


def normalize_tags(tags: tuple[str, ...] | list[str]) -> tuple[str, ...]:
    seen: list[str] = []
    for raw in tags:
        tag = str(raw).strip()
        if tag and tag not in seen:
            seen.append(tag)
    return tuple(seen)


def validate_task(task: Task) -> Task:
    _check_title(task.title)
    if task.description is not None and len(task.description) > TASK_DESCRIPTION_MAX:
        raise ValidationError(f"Description must be at most {TASK_DESCRIPTION_MAX} characters")
    if task.priority not in PRIORITIES:
        raise ValidationError(f"Unknown priority: {task.priority}")
    if len(task.tags) > MAX_TAGS:
        raise ValidationError(f"At most {MAX_TAGS} tags allowed")
    for tag in task.tags:
        if len(tag) > TAG_MAX or not TAG_PATTERN.match(tag):
            raise ValidationError(f"Invalid tag: {tag!r}")
    if not 1 <= task.target_count <= MAX_TARGET_COUNT:
        raise ValidationError(f"Target count must be between 1 and {MAX_TARGET_COUNT}")
    if not 0 <= task.current_count <= task.target_count:
        raise ValidationError("Current count must be between 0 and target count")
    if task.xp_reward <= 0:
        raise ValidationError("XP reward must be positive")
    if task.is_completed and task.completed_at is None:
        raise ValidationError("Completed task needs a completion time")
    return task


def validate_goal(goal: DailyGoal) -> DailyGoal:
    _check_title(goal.title)
    if goal.description is not None and len(goal.description) > GOAL_DESCRIPTION_MAX:
        raise ValidationError(f"Description must be at most {GOAL_DESCRIPTION_MAX} characters")
    if not 1 <= goal.target_count <= MAX_TARGET_COUNT:
        raise ValidationError(f"Target count must be between 1 and {MAX_TARGET_COUNT}")
    if not 0 <= goal.current_count <= goal.target_count:
        raise ValidationError("Current count must be between 0 and target count")
    if goal.xp_reward <= 0:
        raise ValidationError("XP reward must be positive")
    return goal


def validate_session(session: PomodoroSession) -> PomodoroSession:
    if not MIN_POMODORO_DURATION <= session.duration <= MAX_POMODORO_DURATION:
        raise ValidationError(
            f"Duration must be between {MIN_POMODORO_DURATION} and {MAX_POMODORO_DURATION} minutes"
        )
    if session.xp_earned <= 0:
        raise ValidationError("XP earned must be positive")
    return session


def validate_settings(settings: UserSettings) -> UserSettings:
    if settings.theme not in THEMES:
        raise ValidationError(f"Unknown theme: {settings.theme}")
    for name, (low, high) in SETTINGS_BOUNDS.items():
        value = getattr(settings, name)
        if not low <= value <= high:
            raise ValidationError(f"{name} must be between {low} and {high}")
    if not is_valid_hhmm(settings.daily_goal_reminder_time):
        raise ValidationError("Reminder time must be HH:MM")
    return settings


def apply_task_patch(task: Task, patch: TaskPatch) -> Task:
    changes = _changes(patch)
    if "tags" in changes:
        changes["tags"] = normalize_tags(changes["tags"])  # type: ignore[arg-type]
    target = changes.get("target_count")
    if target is not None and not 1 <= int(target) <= MAX_TARGET_COUNT:  # type: ignore[call-overload]
        raise ValidationError(f"Target count must be between 1 and {MAX_TARGET_COUNT}")
    updated = replace(task, **changes)
    if not updated.has_quantity:
        updated = replace(updated, current_count=1 if updated.is_completed else 0, target_count=1)
    elif updated.is_completed:
        updated = replace(updated, current_count=updated.target_count)
    elif updated.current_count >= updated.target_count:
        # an open task must stay below its target
        updated = replace(updated, current_count=updated.target_count - 1)
    return validate_task(updated)


def apply_goal_patch(goal: DailyGoal, patch: GoalPatch) -> DailyGoal:
    updated = replace(goal, **_changes(patch))
    if updated.is_completed:
        updated = replace(updated, current_count=updated.target_count)
    elif updated.current_count >= updated.target_count:
        updated = replace(updated, current_count=max(updated.target_count - 1, 0))
    return validate_goal(updated)


def apply_profile_patch(profile: Profile, patch: ProfilePatch) -> Profile:
    changes = _changes(patch)
    if "name" in changes:
        name = str(changes["name"]).strip()
        if not name or len(name) > PROFILE_NAME_MAX:
            raise ValidationError(f"Name must be 1 to {PROFILE_NAME_MAX} characters")
        changes["name"] = name
    return replace(profile, **changes)


def apply_settings_patch(settings: UserSettings, patch: SettingsPatch) -> UserSettings:
    return validate_settings(replace(settings, **_changes(patch)))
