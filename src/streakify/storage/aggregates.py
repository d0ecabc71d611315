from __future__ import annotations

import json
import logging
from datetime import datetime
from typing import Any, Callable, Protocol, TypeVar

from streakify.codec import (
    format_timestamp,
    goal_from_dict,
    goal_to_dict,
    merge_streak_entries,
    profile_from_dict,
    profile_to_dict,
    session_from_dict,
    session_to_dict,
    settings_from_dict,
    settings_to_dict,
    streak_entry_from_dict,
    streak_entry_to_dict,
    task_from_dict,
    task_to_dict,
)
from streakify.errors import LocalWriteFailed, MalformedImport
from streakify.models import DailyGoal, PomodoroSession, Profile, StreakEntry, Task, UserSettings, default_profile
from streakify.storage.gateway import (
    KEY_DAILY_GOALS,
    KEY_LAST_DAILY_RESET,
    KEY_POMODORO_SESSIONS,
    KEY_PROFILE,
    KEY_SETTINGS,
    KEY_STREAK_ENTRIES,
    KEY_TASKS,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")

DECODE_ERRORS = (KeyError, TypeError, ValueError)


def _decode_list(raw: Any, decode: Callable[[Any], T], what: str) -> list[T]:
    if not isinstance(raw, list):
        raise ValueError(f"{what}: expected array")
    return [decode(item) for item in raw]


# export field -> (storage key, decoder(raw, tz_name), encoder)
SNAPSHOT_FIELDS: dict[str, tuple[str, Callable[[Any, str | None], Any], Callable[[Any], Any]]] = {
    "profile": (KEY_PROFILE, lambda raw, tz: profile_from_dict(raw), profile_to_dict),
    "tasks": (
        KEY_TASKS,
        lambda raw, tz: _decode_list(raw, task_from_dict, "tasks"),
        lambda items: [task_to_dict(t) for t in items],
    ),
    "dailyGoals": (
        KEY_DAILY_GOALS,
        lambda raw, tz: _decode_list(raw, goal_from_dict, "dailyGoals"),
        lambda items: [goal_to_dict(g) for g in items],
    ),
    "pomodoroSessions": (
        KEY_POMODORO_SESSIONS,
        lambda raw, tz: _decode_list(raw, session_from_dict, "pomodoroSessions"),
        lambda items: [session_to_dict(s) for s in items],
    ),
    "streakEntries": (
        KEY_STREAK_ENTRIES,
        lambda raw, tz: merge_streak_entries(
            _decode_list(raw, lambda item: streak_entry_from_dict(item, tz), "streakEntries")
        ),
        lambda items: [streak_entry_to_dict(e) for e in items],
    ),
    "settings": (KEY_SETTINGS, lambda raw, tz: settings_from_dict(raw), settings_to_dict),
}


class GatewayProtocol(Protocol):
    tz_name: str | None

    def load_raw(self, key: str, default: Any) -> Any: ...
    def save(self, key: str, value: Any) -> bool: ...
    def _load_items(self, key: str, decode: Callable[[Any], T]) -> list[T]: ...
    def load_profile(self, now: datetime) -> Profile: ...
    def load_tasks(self) -> list[Task]: ...
    def load_goals(self) -> list[DailyGoal]: ...
    def load_sessions(self) -> list[PomodoroSession]: ...
    def load_streak_entries(self) -> list[StreakEntry]: ...
    def load_settings(self) -> UserSettings: ...


class AggregateMixin:
    def _load_items(self: GatewayProtocol, key: str, decode: Callable[[Any], T]) -> list[T]:
        raw = self.load_raw(key, [])
        if not isinstance(raw, list):
            logger.warning("stored value is not a list key=%s", key)
            return []
        items: list[T] = []
        for item in raw:
            try:
                items.append(decode(item))
            except DECODE_ERRORS as exc:
                logger.warning("skipping undecodable item key=%s: %s", key, exc)
        return items

    def load_profile(self: GatewayProtocol, now: datetime) -> Profile:
        raw = self.load_raw(KEY_PROFILE, None)
        if raw is None:
            return default_profile(now)
        try:
            return profile_from_dict(raw)
        except DECODE_ERRORS as exc:
            logger.warning("stored profile is invalid, using default: %s", exc)
            return default_profile(now)

    def save_profile(self: GatewayProtocol, profile: Profile) -> bool:
        return self.save(KEY_PROFILE, profile_to_dict(profile))

    def load_tasks(self: GatewayProtocol) -> list[Task]:
        return self._load_items(KEY_TASKS, task_from_dict)

    def save_tasks(self: GatewayProtocol, tasks: list[Task]) -> bool:
        return self.save(KEY_TASKS, [task_to_dict(t) for t in tasks])

    def load_goals(self: GatewayProtocol) -> list[DailyGoal]:
        return self._load_items(KEY_DAILY_GOALS, goal_from_dict)

    def save_goals(self: GatewayProtocol, goals: list[DailyGoal]) -> bool:
        return self.save(KEY_DAILY_GOALS, [goal_to_dict(g) for g in goals])

    def load_sessions(self: GatewayProtocol) -> list[PomodoroSession]:
        return self._load_items(KEY_POMODORO_SESSIONS, session_from_dict)

    def save_sessions(self: GatewayProtocol, sessions: list[PomodoroSession]) -> bool:
        return self.save(KEY_POMODORO_SESSIONS, [session_to_dict(s) for s in sessions])

    def load_streak_entries(self: GatewayProtocol) -> list[StreakEntry]:
        tz_name = self.tz_name
        return merge_streak_entries(
            self._load_items(KEY_STREAK_ENTRIES, lambda item: streak_entry_from_dict(item, tz_name))
        )

    def save_streak_entries(self: GatewayProtocol, entries: list[StreakEntry]) -> bool:
        return self.save(KEY_STREAK_ENTRIES, [streak_entry_to_dict(e) for e in entries])

    def load_settings(self: GatewayProtocol) -> UserSettings:
        raw = self.load_raw(KEY_SETTINGS, None)
        if raw is None:
            return UserSettings()
        try:
            return settings_from_dict(raw)
        except DECODE_ERRORS as exc:
            logger.warning("stored settings are invalid, using defaults: %s", exc)
            return UserSettings()

    def save_settings(self: GatewayProtocol, settings: UserSettings) -> bool:
        return self.save(KEY_SETTINGS, settings_to_dict(settings))

    def load_reset_marker(self: GatewayProtocol) -> str | None:
        raw = self.load_raw(KEY_LAST_DAILY_RESET, None)
        return raw if isinstance(raw, str) and raw else None

    def save_reset_marker(self: GatewayProtocol, marker: str) -> bool:
        return self.save(KEY_LAST_DAILY_RESET, marker)

    def export_all(self: GatewayProtocol, now: datetime) -> str:
        data = {
            "profile": profile_to_dict(self.load_profile(now)),
            "tasks": [task_to_dict(t) for t in self.load_tasks()],
            "dailyGoals": [goal_to_dict(g) for g in self.load_goals()],
            "pomodoroSessions": [session_to_dict(s) for s in self.load_sessions()],
            "streakEntries": [streak_entry_to_dict(e) for e in self.load_streak_entries()],
            "settings": settings_to_dict(self.load_settings()),
            "exportedAt": format_timestamp(now),
        }
        return json.dumps(data, indent=2, ensure_ascii=False)

    def import_all(self: GatewayProtocol, snapshot: str | dict[str, Any]) -> list[str]:
        """Replace every aggregate present in ``snapshot``; returns the imported fields.

        All present fields are decoded before anything is written, so a bad
        snapshot leaves the stored data untouched.
        """
        if isinstance(snapshot, str):
            try:
                data = json.loads(snapshot)
            except json.JSONDecodeError as exc:
                raise MalformedImport(f"Import is not valid JSON: {exc}") from exc
        else:
            data = snapshot
        if not isinstance(data, dict):
            raise MalformedImport("Import must be a JSON object")

        present = [name for name in SNAPSHOT_FIELDS if data.get(name) is not None]
        if not present:
            raise MalformedImport(
                "Import has none of the fields: " + ", ".join(SNAPSHOT_FIELDS)
            )

        decoded: dict[str, Any] = {}
        for name in present:
            _, decode, _ = SNAPSHOT_FIELDS[name]
            try:
                decoded[name] = decode(data[name], self.tz_name)
            except DECODE_ERRORS as exc:
                raise MalformedImport(f"Invalid '{name}' in import: {exc}") from exc

        failed: list[str] = []
        for name in present:
            key, _, encode = SNAPSHOT_FIELDS[name]
            if not self.save(key, encode(decoded[name])):
                failed.append(name)
        if failed:
            raise LocalWriteFailed("Could not store imported fields: " + ", ".join(failed))
        logger.info("imported fields=%s", ",".join(present))
        return present
