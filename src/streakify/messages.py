from __future__ import annotations

from streakify.ledger import CompletionOutcome, StatusView
from streakify.progression import progress_emoji


def _bar(ratio: float, width: int = 20) -> str:
    filled = max(0, min(width, int(round(ratio * width))))
    return "█" * filled + "░" * (width - filled)


def status_message(view: StatusView) -> str:
    pct = view.progress.percentage
    lines = [
        f"📊 Status — {view.name}",
        "",
        f"⚡ Level {view.level} — {view.title}",
        f"📊 XP: {view.progress.current:,} / {view.progress.total:,} (to Level {view.level + 1})",
        f"{_bar(pct / 100)} {pct:.1f}% {progress_emoji(pct)}",
        f"🔥 Streak: {view.streak_current} days (+{view.streak_bonus} XP bonus) | Best: {view.streak_longest}",
    ]
    if view.next_milestone is not None:
        remaining = view.next_milestone.days - view.streak_current
        lines.append(
            f"  Next: {view.next_milestone.emoji} {view.next_milestone.title} in {remaining} days"
        )

    lines.extend(
        [
            "",
            "📅 Today:",
            f"  ✅ Tasks: {view.today.tasks_completed} | 🎯 Goals: {view.today.goals_completed}"
            f" | 🍅 Pomodoros: {view.today.pomodoros_completed}",
            f"  XP: {view.today.xp_earned} / {view.daily_xp_target}",
            "  Last 7 days: " + "".join("■" if e.has_activity else "□" for e in view.last_week),
            "",
            f"📋 Open tasks: {view.open_tasks} | Open goals: {view.open_goals}",
            f"🏁 All time: {view.tasks_completed} tasks, {view.goals_completed} goals,"
            f" {view.pomodoros_completed} pomodoros",
        ]
    )
    return "\n".join(lines)


def completion_message(outcome: CompletionOutcome) -> str:
    if outcome.xp_earned <= 0:
        return f"Already counted: {outcome.kind} {outcome.entity_id}"
    lines = [f"+{outcome.xp_earned} XP for {outcome.kind}"]
    if outcome.leveled_up:
        lines.append(f"🎉 Level up! Now level {outcome.level_after}")
    lines.append(f"🔥 Streak: {outcome.streak.current} days")
    if outcome.milestone is not None:
        lines.append(f"{outcome.milestone.emoji} Milestone reached: {outcome.milestone.title}")
    if not outcome.persisted:
        lines.append("⚠️ Progress may not have been saved")
    return "\n".join(lines)
