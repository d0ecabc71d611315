from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

logger = logging.getLogger(__name__)

PRIORITY_LOW = "low"
PRIORITY_MEDIUM = "medium"
PRIORITY_HIGH = "high"
PRIORITIES = (PRIORITY_LOW, PRIORITY_MEDIUM, PRIORITY_HIGH)

DEFAULT_LEVEL_THRESHOLDS = (
    0, 100, 250, 450, 700, 1000, 1350, 1750, 2200, 2700,
    3250, 3850, 4500, 5200, 5950, 6750, 7600, 8500, 9450, 10450,
)

DEFAULT_REWARDS = {
    "task_low": 10,
    "task_medium": 15,
    "task_high": 25,
    "task_min": 5,
    "quantity_factor": 0.8,
    "goal_default": 30,
    "pomodoro": 25,
    "streak_bonus": 5,
}

DEFAULT_TITLES = (
    "Beginner", "Novice", "Apprentice", "Skilled", "Proficient",
    "Expert", "Master", "Grandmaster", "Legend", "Mythical",
    "Transcendent", "Ultimate", "Supreme", "Cosmic", "Infinite",
)


@dataclass(frozen=True)
class StreakMilestone:
    days: int
    title: str
    emoji: str


STREAK_MILESTONES = (
    StreakMilestone(3, "Getting Started", "\U0001f331"),
    StreakMilestone(7, "Week Warrior", "⚡"),
    StreakMilestone(14, "Two Week Champion", "\U0001f4aa"),
    StreakMilestone(30, "Monthly Master", "\U0001f3c6"),
    StreakMilestone(60, "Consistency King", "\U0001f451"),
    StreakMilestone(100, "Century Achiever", "\U0001f48e"),
    StreakMilestone(365, "Year Legend", "\U0001f31f"),
)


@dataclass(frozen=True)
class ProgressionTuning:
    level_thresholds: tuple[int, ...] = DEFAULT_LEVEL_THRESHOLDS
    rewards: dict[str, float] = field(default_factory=lambda: dict(DEFAULT_REWARDS))
    titles: tuple[str, ...] = DEFAULT_TITLES

    def reward(self, key: str) -> float:
        return self.rewards.get(key, DEFAULT_REWARDS[key])


DEFAULT_TUNING = ProgressionTuning()


@dataclass(frozen=True)
class LevelProgress:
    level: int
    current: int
    total: int
    percentage: float


def _valid_thresholds(raw: Any) -> tuple[int, ...] | None:
    if not isinstance(raw, list) or not raw:
        return None
    try:
        values = tuple(int(v) for v in raw)
    except (TypeError, ValueError):
        return None
    if values[0] != 0:
        return None
    if any(b <= a for a, b in zip(values, values[1:])):
        return None
    return values


def load_progression_config(path: Path) -> ProgressionTuning:
    if not path.exists():
        return DEFAULT_TUNING

    try:
        raw = yaml.safe_load(path.read_text()) or {}
    except yaml.YAMLError:
        logger.warning("invalid progression config %s, using defaults", path)
        return DEFAULT_TUNING
    if not isinstance(raw, dict):
        return DEFAULT_TUNING

    thresholds = DEFAULT_LEVEL_THRESHOLDS
    if "level_thresholds" in raw:
        parsed = _valid_thresholds(raw.get("level_thresholds"))
        if parsed is None:
            logger.warning("level_thresholds must ascend strictly from 0, using defaults")
        else:
            thresholds = parsed

    rewards = dict(DEFAULT_REWARDS)
    rewards_raw = raw.get("rewards", {})
    if isinstance(rewards_raw, dict):
        for key, value in rewards_raw.items():
            if key not in DEFAULT_REWARDS:
                continue
            try:
                number = float(value) if key == "quantity_factor" else int(value)
            except (TypeError, ValueError):
                continue
            if number > 0:
                rewards[key] = number

    titles = DEFAULT_TITLES
    titles_raw = raw.get("titles")
    if isinstance(titles_raw, list) and titles_raw:
        titles = tuple(str(t).strip() for t in titles_raw if str(t).strip()) or DEFAULT_TITLES

    return ProgressionTuning(level_thresholds=thresholds, rewards=rewards, titles=titles)


def level_for(total_xp: int, tuning: ProgressionTuning = DEFAULT_TUNING) -> int:
    thresholds = tuning.level_thresholds
    xp = max(0, total_xp)
    for i in range(len(thresholds) - 1, -1, -1):
        if xp >= thresholds[i]:
            return i + 1
    return 1


def progress_within_level(total_xp: int, tuning: ProgressionTuning = DEFAULT_TUNING) -> LevelProgress:
    """Progress inside the current level.

    At the max level the last threshold span is repeated, so the bar keeps
    filling but the level itself stays capped.
    """
    thresholds = tuning.level_thresholds
    xp = max(0, total_xp)
    level = level_for(xp, tuning)
    floor = thresholds[level - 1]
    if level < len(thresholds):
        total = thresholds[level] - floor
    elif len(thresholds) > 1:
        total = thresholds[-1] - thresholds[-2]
    else:
        total = 0
    current = xp - floor
    if total <= 0:
        percentage = 0.0
    else:
        percentage = min(100.0, 100.0 * current / total)
    return LevelProgress(level=level, current=current, total=total, percentage=percentage)


def reward_for_task(
    priority: str,
    has_quantity: bool,
    target_count: int,
    tuning: ProgressionTuning = DEFAULT_TUNING,
) -> int:
    base = {
        PRIORITY_HIGH: int(tuning.reward("task_high")),
        PRIORITY_MEDIUM: int(tuning.reward("task_medium")),
        PRIORITY_LOW: int(tuning.reward("task_low")),
    }.get(priority, int(tuning.reward("task_low")))
    if has_quantity and target_count > 1:
        base = math.floor(base * target_count * tuning.reward("quantity_factor"))
    return max(base, int(tuning.reward("task_min")))


def reward_for_goal(xp_reward: int) -> int:
    return xp_reward


def reward_for_pomodoro(tuning: ProgressionTuning = DEFAULT_TUNING) -> int:
    return int(tuning.reward("pomodoro"))


def streak_bonus(streak_days: int, tuning: ProgressionTuning = DEFAULT_TUNING) -> int:
    return max(0, streak_days) * int(tuning.reward("streak_bonus"))


def default_goal_reward(tuning: ProgressionTuning = DEFAULT_TUNING) -> int:
    return int(tuning.reward("goal_default"))


def daily_xp_target(level: int) -> int:
    return math.floor(50 + (level * 10))


def title_for(level: int, tuning: ProgressionTuning = DEFAULT_TUNING) -> str:
    titles = tuning.titles
    index = min(max(level, 1) - 1, len(titles) - 1)
    return titles[index]


def progress_emoji(percentage: float) -> str:
    if percentage >= 100:
        return "\U0001f389"
    if percentage >= 75:
        return "\U0001f525"
    if percentage >= 50:
        return "⚡"
    if percentage >= 25:
        return "\U0001f4aa"
    return "\U0001f331"


def milestone_reached(previous_streak: int, new_streak: int) -> StreakMilestone | None:
    reached = None
    for milestone in STREAK_MILESTONES:
        if previous_streak < milestone.days <= new_streak:
            reached = milestone
    return reached


def next_milestone(streak_days: int) -> StreakMilestone | None:
    for milestone in STREAK_MILESTONES:
        if milestone.days > streak_days:
            return milestone
    return None
