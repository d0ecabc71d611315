from datetime import date, datetime
from zoneinfo import ZoneInfo

import pytest

from streakify.time_utils import day_key, is_valid_hhmm, local_day, parse_hhmm


def test_local_day_uses_target_zone() -> None:
    dt = datetime(2026, 2, 4, 23, 30, tzinfo=ZoneInfo("UTC"))
    assert local_day(dt, "Europe/Oslo") == date(2026, 2, 5)
    assert local_day(dt) == date(2026, 2, 4)


def test_day_helpers() -> None:
    assert day_key(date(2026, 2, 4)) == "2026-02-04"


def test_parse_hhmm() -> None:
    assert parse_hhmm("09:00").hour == 9
    assert parse_hhmm("21:45").minute == 45
    with pytest.raises(ValueError):
        parse_hhmm("25:00")
    assert is_valid_hhmm("9:5") is False
    assert is_valid_hhmm("noon") is False
