from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import date, timedelta

from streakify.models import ACTIVITY_KINDS, KIND_GOAL, KIND_TASK, StreakEntry


@dataclass(frozen=True)
class StreakSummary:
    current: int
    longest: int


def entry_for(entries: list[StreakEntry], day: date) -> StreakEntry | None:
    for entry in entries:
        if entry.day == day:
            return entry
    return None


def mark_activity(entries: list[StreakEntry], day: date, kind: str, xp_earned: int) -> list[StreakEntry]:
    """Return a new day-sorted list with ``day`` credited for one ``kind`` completion."""
    if kind not in ACTIVITY_KINDS:
        raise ValueError(f"Unknown activity kind: {kind}")

    entry = entry_for(entries, day) or StreakEntry(day=day)
    xp = entry.xp_earned + max(0, xp_earned)
    if kind == KIND_TASK:
        updated = replace(entry, tasks_completed=entry.tasks_completed + 1, xp_earned=xp)
    elif kind == KIND_GOAL:
        updated = replace(entry, goals_completed=entry.goals_completed + 1, xp_earned=xp)
    else:
        updated = replace(entry, pomodoros_completed=entry.pomodoros_completed + 1, xp_earned=xp)

    others = [e for e in entries if e.day != day]
    return sorted(others + [updated], key=lambda e: e.day)


def longest_run(entries: list[StreakEntry]) -> int:
    active = sorted({e.day for e in entries if e.has_activity})
    best = 0
    run = 0
    previous: date | None = None
    for day in active:
        if previous is not None and day - previous == timedelta(days=1):
            run += 1
        else:
            run = 1
        best = max(best, run)
        previous = day
    return best


def current_run(entries: list[StreakEntry], today: date) -> int:
    active = {e.day for e in entries if e.has_activity}
    cursor = today if today in active else today - timedelta(days=1)
    count = 0
    while cursor in active:
        count += 1
        cursor -= timedelta(days=1)
    return count


def recompute_streak(entries: list[StreakEntry], today: date, previous_longest: int = 0) -> StreakSummary:
    current = current_run(entries, today)
    longest = max(previous_longest, longest_run(entries), current)
    return StreakSummary(current=current, longest=longest)


def activity_window(entries: list[StreakEntry], end: date, days: int) -> list[StreakEntry]:
    """One entry per day for the ``days`` days ending at ``end``; gaps filled with empty entries."""
    by_day = {e.day: e for e in entries}
    start = end - timedelta(days=max(days, 1) - 1)
    window: list[StreakEntry] = []
    for offset in range(max(days, 1)):
        day = start + timedelta(days=offset)
        window.append(by_day.get(day) or StreakEntry(day=day))
    return window
