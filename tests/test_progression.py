from __future__ import annotations

import pytest

from streakify.progression import (
    DEFAULT_TUNING,
    ProgressionTuning,
    daily_xp_target,
    level_for,
    load_progression_config,
    milestone_reached,
    next_milestone,
    progress_emoji,
    progress_within_level,
    reward_for_task,
    streak_bonus,
    title_for,
)


def test_level_thresholds() -> None:
    assert level_for(0) == 1
    assert level_for(99) == 1
    assert level_for(100) == 2
    assert level_for(249) == 2
    assert level_for(250) == 3
    assert level_for(10450) == 20
    assert level_for(999_999) == 20


def test_level_never_below_one_for_negative_xp() -> None:
    assert level_for(-50) == 1


def test_progress_within_level() -> None:
    progress = progress_within_level(150)
    assert progress.level == 2
    assert progress.current == 50
    assert progress.total == 150
    assert progress.percentage == pytest.approx(33.333, rel=1e-3)


def test_progress_at_max_level_repeats_last_span() -> None:
    progress = progress_within_level(10450 + 500)
    assert progress.level == 20
    assert progress.total == 1000
    assert progress.current == 500
    assert progress.percentage == 50.0

    capped = progress_within_level(10450 + 5000)
    assert capped.percentage == 100.0


def test_progress_at_zero() -> None:
    progress = progress_within_level(0)
    assert progress.level == 1
    assert progress.percentage == 0.0


def test_task_rewards() -> None:
    assert reward_for_task("low", False, 1) == 10
    assert reward_for_task("medium", False, 1) == 15
    assert reward_for_task("high", False, 1) == 25
    assert reward_for_task("low", True, 5) == 40
    assert reward_for_task("high", True, 1) == 25


def test_task_reward_respects_minimum() -> None:
    tuning = ProgressionTuning(rewards={"task_low": 2})
    assert reward_for_task("low", False, 1, tuning) == 5


def test_streak_bonus_and_daily_target() -> None:
    assert streak_bonus(0) == 0
    assert streak_bonus(4) == 20
    assert daily_xp_target(1) == 60
    assert daily_xp_target(10) == 150


def test_titles_clamp_to_last() -> None:
    assert title_for(1) == "Beginner"
    assert title_for(2) == "Novice"
    assert title_for(50) == "Infinite"


def test_progress_emoji_bands() -> None:
    assert progress_emoji(0) == "\U0001f331"
    assert progress_emoji(100) == "\U0001f389"


def test_milestones() -> None:
    assert milestone_reached(2, 3).days == 3
    assert milestone_reached(6, 8).days == 7
    assert milestone_reached(3, 3) is None
    assert milestone_reached(0, 14).days == 14
    assert next_milestone(0).days == 3
    assert next_milestone(30).days == 60
    assert next_milestone(365) is None


def test_config_missing_file_uses_defaults(tmp_path) -> None:
    assert load_progression_config(tmp_path / "missing.yaml") is DEFAULT_TUNING


def test_config_overrides_rewards_and_rejects_bad_thresholds(tmp_path) -> None:
    path = tmp_path / "progression.yaml"
    path.write_text(
        "level_thresholds: [0, 50, 40]\n"
        "rewards:\n"
        "  pomodoro: 30\n"
        "  task_high: nope\n"
        "  unknown_key: 3\n"
    )
    tuning = load_progression_config(path)
    assert tuning.level_thresholds == DEFAULT_TUNING.level_thresholds
    assert tuning.reward("pomodoro") == 30
    assert tuning.reward("task_high") == 25
    assert "unknown_key" not in tuning.rewards


def test_config_custom_thresholds(tmp_path) -> None:
    path = tmp_path / "progression.yaml"
    path.write_text("level_thresholds: [0, 10, 30]\n")
    tuning = load_progression_config(path)
    assert level_for(10, tuning) == 2
    assert level_for(1000, tuning) == 3
