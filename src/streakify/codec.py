from __future__ import annotations

import re
from datetime import date, datetime, timezone
from typing import Any

from streakify.models import DailyGoal, PomodoroSession, Profile, StreakEntry, Task, UserSettings
from streakify.time_utils import local_day

ISO_TIMESTAMP_PATTERN = re.compile(r"^\d{4}-\d{2}-\d{2}T\d{2}:\d{2}:\d{2}(\.\d{3})?Z$")


def format_timestamp(dt: datetime) -> str:
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    utc = dt.astimezone(timezone.utc)
    return utc.strftime("%Y-%m-%dT%H:%M:%S") + f".{utc.microsecond // 1000:03d}Z"


def parse_timestamp(value: str) -> datetime:
    raw = value.strip()
    if raw.endswith("Z"):
        raw = raw[:-1] + "+00:00"
    parsed = datetime.fromisoformat(raw)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


def is_iso_timestamp(value: str) -> bool:
    return bool(ISO_TIMESTAMP_PATTERN.match(value))


def revive_dates(value: Any) -> Any:
    """Turn strict ``YYYY-MM-DDTHH:MM:SS[.mmm]Z`` strings into datetimes, recursively."""
    if isinstance(value, str):
        return parse_timestamp(value) if is_iso_timestamp(value) else value
    if isinstance(value, list):
        return [revive_dates(item) for item in value]
    if isinstance(value, dict):
        return {key: revive_dates(item) for key, item in value.items()}
    return value


def to_jsonable(value: Any) -> Any:
    if isinstance(value, datetime):
        return format_timestamp(value)
    if isinstance(value, date):
        return value.isoformat()
    if isinstance(value, (list, tuple)):
        return [to_jsonable(item) for item in value]
    if isinstance(value, dict):
        return {key: to_jsonable(item) for key, item in value.items()}
    return value


def _as_datetime(value: Any, field_name: str) -> datetime:
    if isinstance(value, datetime):
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value
    if isinstance(value, str) and value.strip():
        try:
            return parse_timestamp(value)
        except ValueError as exc:
            raise ValueError(f"{field_name}: invalid timestamp {value!r}") from exc
    raise ValueError(f"{field_name}: expected timestamp, got {value!r}")


def _opt_datetime(value: Any, field_name: str) -> datetime | None:
    if value is None or value == "":
        return None
    return _as_datetime(value, field_name)


def _opt_ts(value: datetime | None) -> str | None:
    return format_timestamp(value) if value is not None else None


def _as_day(value: Any, tz_name: str | None = None) -> date:
    """Local calendar day of a streak date.

    Plain ``YYYY-MM-DD`` keys are taken as-is. Timestamps (older exports store
    local midnight in UTC) are converted to ``tz_name`` before taking the day.
    """
    if isinstance(value, str) and "T" in value:
        value = parse_timestamp(value.strip())
    if isinstance(value, datetime):
        return local_day(value, tz_name)
    if isinstance(value, date):
        return value
    if isinstance(value, str) and value.strip():
        return date.fromisoformat(value.strip())
    raise ValueError(f"date: expected day key, got {value!r}")


def _int(data: dict[str, Any], key: str, default: int = 0) -> int:
    value = data.get(key, default)
    if value is None:
        return default
    if isinstance(value, bool):
        raise ValueError(f"{key}: expected integer, got {value!r}")
    return int(value)


def _opt_str(data: dict[str, Any], key: str) -> str | None:
    value = data.get(key)
    if value is None:
        return None
    return str(value)


def _require_mapping(data: Any, what: str) -> dict[str, Any]:
    if not isinstance(data, dict):
        raise ValueError(f"{what}: expected object, got {type(data).__name__}")
    return data


def _require_list(data: Any, what: str) -> list[Any]:
    if not isinstance(data, list):
        raise ValueError(f"{what}: expected array, got {type(data).__name__}")
    return data


def profile_to_dict(profile: Profile) -> dict[str, Any]:
    return {
        "id": profile.id,
        "name": profile.name,
        "totalXP": profile.total_xp,
        "level": profile.level,
        "currentStreak": profile.current_streak,
        "longestStreak": profile.longest_streak,
        "tasksCompleted": profile.tasks_completed,
        "goalsCompleted": profile.goals_completed,
        "pomodorosCompleted": profile.pomodoros_completed,
        "createdAt": format_timestamp(profile.created_at),
        "updatedAt": format_timestamp(profile.updated_at),
    }


def profile_from_dict(raw: Any) -> Profile:
    data = _require_mapping(raw, "profile")
    current = max(0, _int(data, "currentStreak"))
    return Profile(
        id=str(data.get("id") or "1"),
        name=str(data.get("name") or "Student"),
        total_xp=max(0, _int(data, "totalXP")),
        level=max(1, _int(data, "level", 1)),
        current_streak=current,
        longest_streak=max(current, _int(data, "longestStreak")),
        tasks_completed=max(0, _int(data, "tasksCompleted")),
        goals_completed=max(0, _int(data, "goalsCompleted")),
        pomodoros_completed=max(0, _int(data, "pomodorosCompleted")),
        created_at=_as_datetime(data.get("createdAt"), "profile.createdAt"),
        updated_at=_as_datetime(data.get("updatedAt"), "profile.updatedAt"),
    )


def task_to_dict(task: Task) -> dict[str, Any]:
    payload: dict[str, Any] = {
        "id": task.id,
        "title": task.title,
        "priority": task.priority,
        "tags": list(task.tags),
        "isCompleted": task.is_completed,
        "hasQuantity": task.has_quantity,
        "currentCount": task.current_count,
        "targetCount": task.target_count,
        "xpReward": task.xp_reward,
        "xpGranted": task.xp_granted,
        "createdAt": format_timestamp(task.created_at),
    }
    if task.description is not None:
        payload["description"] = task.description
    if task.completed_at is not None:
        payload["completedAt"] = format_timestamp(task.completed_at)
    if task.due_date is not None:
        payload["dueDate"] = format_timestamp(task.due_date)
    return payload


def task_from_dict(raw: Any) -> Task:
    data = _require_mapping(raw, "task")
    tags_raw = data.get("tags") or []
    is_completed = bool(data.get("isCompleted", False))
    return Task(
        id=str(data["id"]),
        title=str(data.get("title", "")),
        description=_opt_str(data, "description"),
        priority=str(data.get("priority") or "medium"),
        tags=tuple(str(t) for t in _require_list(tags_raw, "task.tags")),
        is_completed=is_completed,
        has_quantity=bool(data.get("hasQuantity", False)),
        current_count=_int(data, "currentCount"),
        target_count=_int(data, "targetCount", 1),
        xp_reward=_int(data, "xpReward", 10),
        created_at=_as_datetime(data.get("createdAt"), "task.createdAt"),
        completed_at=_opt_datetime(data.get("completedAt"), "task.completedAt"),
        due_date=_opt_datetime(data.get("dueDate"), "task.dueDate"),
        # older exports carry no grant flag; a completed task was already paid
        xp_granted=bool(data.get("xpGranted", is_completed)),
    )


def goal_to_dict(goal: DailyGoal) -> dict[str, Any]:
    payload: dict[str, Any] = {
        "id": goal.id,
        "title": goal.title,
        "targetCount": goal.target_count,
        "currentCount": goal.current_count,
        "xpReward": goal.xp_reward,
        "isCompleted": goal.is_completed,
        "xpGranted": goal.xp_granted,
        "createdAt": format_timestamp(goal.created_at),
        "lastResetDate": format_timestamp(goal.last_reset_date),
    }
    if goal.description is not None:
        payload["description"] = goal.description
    if goal.completed_at is not None:
        payload["completedAt"] = format_timestamp(goal.completed_at)
    return payload


def goal_from_dict(raw: Any) -> DailyGoal:
    data = _require_mapping(raw, "dailyGoal")
    is_completed = bool(data.get("isCompleted", False))
    created_at = _as_datetime(data.get("createdAt"), "dailyGoal.createdAt")
    return DailyGoal(
        id=str(data["id"]),
        title=str(data.get("title", "")),
        description=_opt_str(data, "description"),
        target_count=_int(data, "targetCount", 1),
        current_count=_int(data, "currentCount"),
        xp_reward=_int(data, "xpReward", 30),
        is_completed=is_completed,
        completed_at=_opt_datetime(data.get("completedAt"), "dailyGoal.completedAt"),
        created_at=created_at,
        last_reset_date=_opt_datetime(data.get("lastResetDate"), "dailyGoal.lastResetDate") or created_at,
        xp_granted=bool(data.get("xpGranted", is_completed)),
    )


def session_to_dict(session: PomodoroSession) -> dict[str, Any]:
    payload: dict[str, Any] = {
        "id": session.id,
        "duration": session.duration,
        "completedAt": format_timestamp(session.completed_at),
        "xpEarned": session.xp_earned,
    }
    if session.task_id is not None:
        payload["taskId"] = session.task_id
    return payload


def session_from_dict(raw: Any) -> PomodoroSession:
    data = _require_mapping(raw, "pomodoroSession")
    return PomodoroSession(
        id=str(data["id"]),
        duration=_int(data, "duration", 25),
        completed_at=_as_datetime(data.get("completedAt"), "pomodoroSession.completedAt"),
        task_id=_opt_str(data, "taskId"),
        xp_earned=_int(data, "xpEarned", 25),
    )


def streak_entry_to_dict(entry: StreakEntry) -> dict[str, Any]:
    return {
        "id": entry.day.isoformat(),
        "date": entry.day.isoformat(),
        "tasksCompleted": entry.tasks_completed,
        "goalsCompleted": entry.goals_completed,
        "pomodorosCompleted": entry.pomodoros_completed,
        "xpEarned": entry.xp_earned,
        "hasActivity": entry.has_activity,
    }


def streak_entry_from_dict(raw: Any, tz_name: str | None = None) -> StreakEntry:
    data = _require_mapping(raw, "streakEntry")
    return StreakEntry(
        day=_as_day(data.get("date"), tz_name),
        tasks_completed=max(0, _int(data, "tasksCompleted")),
        goals_completed=max(0, _int(data, "goalsCompleted")),
        pomodoros_completed=max(0, _int(data, "pomodorosCompleted")),
        xp_earned=max(0, _int(data, "xpEarned")),
    )


def settings_to_dict(settings: UserSettings) -> dict[str, Any]:
    return {
        "theme": settings.theme,
        "notifications": settings.notifications,
        "pomodoroLength": settings.pomodoro_length,
        "shortBreakLength": settings.short_break_length,
        "longBreakLength": settings.long_break_length,
        "dailyGoalReminderTime": settings.daily_goal_reminder_time,
        "soundEnabled": settings.sound_enabled,
    }


def settings_from_dict(raw: Any) -> UserSettings:
    data = _require_mapping(raw, "settings")
    defaults = UserSettings()
    return UserSettings(
        theme=str(data.get("theme") or defaults.theme),
        notifications=bool(data.get("notifications", defaults.notifications)),
        pomodoro_length=_int(data, "pomodoroLength", defaults.pomodoro_length),
        short_break_length=_int(data, "shortBreakLength", defaults.short_break_length),
        long_break_length=_int(data, "longBreakLength", defaults.long_break_length),
        daily_goal_reminder_time=str(data.get("dailyGoalReminderTime") or defaults.daily_goal_reminder_time),
        sound_enabled=bool(data.get("soundEnabled", defaults.sound_enabled)),
    )


def merge_streak_entries(entries: list[StreakEntry]) -> list[StreakEntry]:
    """Collapse duplicate day keys (summing counters) and sort by day."""
    by_day: dict[date, StreakEntry] = {}
    for entry in entries:
        existing = by_day.get(entry.day)
        if existing is None:
            by_day[entry.day] = entry
            continue
        by_day[entry.day] = StreakEntry(
            day=entry.day,
            tasks_completed=existing.tasks_completed + entry.tasks_completed,
            goals_completed=existing.goals_completed + entry.goals_completed,
            pomodoros_completed=existing.pomodoros_completed + entry.pomodoros_completed,
            xp_earned=existing.xp_earned + entry.xp_earned,
        )
    return [by_day[d] for d in sorted(by_day)]
