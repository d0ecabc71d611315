from __future__ import annotations

import json
import logging
import sqlite3
from typing import Any

from streakify.codec import revive_dates, to_jsonable
from streakify.errors import StorageUnavailable
from streakify.storage.local import KeyValueStore
from streakify.storage.remote import RemoteMirror

logger = logging.getLogger(__name__)

KEY_PROFILE = "streakify_profile"
KEY_TASKS = "streakify_tasks"
KEY_DAILY_GOALS = "streakify_daily_goals"
KEY_POMODORO_SESSIONS = "streakify_pomodoro_sessions"
KEY_STREAK_ENTRIES = "streakify_streak_entries"
KEY_SETTINGS = "streakify_settings"
KEY_LAST_DAILY_RESET = "streakify_last_daily_reset"

AGGREGATE_KEYS = (
    KEY_PROFILE,
    KEY_TASKS,
    KEY_DAILY_GOALS,
    KEY_POMODORO_SESSIONS,
    KEY_STREAK_ENTRIES,
    KEY_SETTINGS,
)
ALL_KEYS = AGGREGATE_KEYS + (KEY_LAST_DAILY_RESET,)


class BaseGateway:
    """Local-first storage with an optional best-effort remote mirror.

    Reads try the mirror first and fall back to the local store; writes always
    go to the local store and are then pushed to the mirror. Neither path
    raises: failures are logged, ``save`` reports local durability as a bool.
    """

    def __init__(
        self,
        local: KeyValueStore,
        remote: RemoteMirror | None = None,
        tz_name: str | None = None,
    ) -> None:
        self.local = local
        self.remote = remote
        self.tz_name = tz_name

    def load(self, key: str, default: Any) -> Any:
        """Stored value with strict ISO timestamp strings revived into datetimes."""
        value = self.load_raw(key, default)
        return default if value is default else revive_dates(value)

    def load_raw(self, key: str, default: Any) -> Any:
        if self.remote is not None:
            try:
                data = self.remote.fetch(key)
            except StorageUnavailable as exc:
                logger.warning("remote load failed, using local store key=%s: %s", key, exc)
            else:
                if data is not None:
                    return data

        try:
            raw = self.local.get(key)
        except (sqlite3.Error, OSError):
            logger.exception("local load failed key=%s", key)
            return default
        if raw is None:
            return default
        try:
            return json.loads(raw)
        except json.JSONDecodeError:
            logger.exception("stored value is not valid JSON key=%s", key)
            return default

    def save(self, key: str, value: Any) -> bool:
        payload = to_jsonable(value)
        persisted = True
        try:
            self.local.set(key, json.dumps(payload, ensure_ascii=False))
        except (sqlite3.Error, OSError, TypeError, ValueError):
            logger.exception("local save failed key=%s", key)
            persisted = False

        if self.remote is not None:
            try:
                self.remote.push(key, payload)
            except StorageUnavailable as exc:
                logger.warning("remote save failed key=%s: %s", key, exc)
        return persisted

    def remove(self, key: str) -> bool:
        removed = True
        try:
            self.local.remove(key)
        except (sqlite3.Error, OSError):
            logger.exception("local remove failed key=%s", key)
            removed = False
        if self.remote is not None:
            try:
                self.remote.delete(key)
            except StorageUnavailable as exc:
                logger.warning("remote remove failed key=%s: %s", key, exc)
        return removed

    def clear_all(self) -> bool:
        ok = True
        for key in ALL_KEYS:
            ok = self.remove(key) and ok
        logger.info("cleared all stored data ok=%s", ok)
        return ok
