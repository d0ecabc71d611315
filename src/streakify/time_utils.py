from __future__ import annotations

from datetime import date, datetime, time
from zoneinfo import ZoneInfo

from streakify.config import DEFAULT_TZ


def now_local(tz_name: str = DEFAULT_TZ) -> datetime:
    return datetime.now(tz=ZoneInfo(tz_name))


def local_day(dt: datetime, tz_name: str | None = None) -> date:
    """Calendar day of ``dt`` as seen in ``tz_name`` (or in dt's own zone)."""
    if tz_name and dt.tzinfo is not None:
        return dt.astimezone(ZoneInfo(tz_name)).date()
    return dt.date()


def day_key(day: date) -> str:
    return day.isoformat()


def parse_hhmm(value: str) -> time:
    hour_str, minute_str = value.split(":", maxsplit=1)
    if len(minute_str) != 2 or not hour_str.isdigit() or not minute_str.isdigit():
        raise ValueError(f"Invalid HH:MM value: {value!r}")
    hour = int(hour_str)
    minute = int(minute_str)
    return time(hour=hour, minute=minute)


def is_valid_hhmm(value: str) -> bool:
    try:
        parse_hhmm(value)
    except ValueError:
        return False
    return True
