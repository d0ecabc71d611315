from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass, replace
from datetime import date, datetime
from typing import Any

from streakify.config import DEFAULT_TZ
from streakify.daily_reset import DailyResetScheduler, ResetOutcome
from streakify.errors import LocalWriteFailed, NotFoundError, ValidationError
from streakify.models import (
    KIND_GOAL,
    KIND_POMODORO,
    KIND_TASK,
    DailyGoal,
    PomodoroSession,
    Profile,
    StreakEntry,
    Task,
    UserSettings,
)
from streakify.patches import (
    GoalPatch,
    ProfilePatch,
    SettingsPatch,
    TaskPatch,
    apply_goal_patch,
    apply_profile_patch,
    apply_settings_patch,
    apply_task_patch,
    normalize_tags,
    validate_goal,
    validate_session,
    validate_task,
)
from streakify.progression import (
    DEFAULT_TUNING,
    PRIORITY_MEDIUM,
    LevelProgress,
    ProgressionTuning,
    StreakMilestone,
    daily_xp_target,
    default_goal_reward,
    level_for,
    milestone_reached,
    next_milestone,
    progress_within_level,
    reward_for_goal,
    reward_for_pomodoro,
    reward_for_task,
    streak_bonus,
    title_for,
)
from streakify.state import AppState
from streakify.storage import PersistenceGateway
from streakify.streaks import StreakSummary, activity_window, entry_for, mark_activity, recompute_streak
from streakify.time_utils import local_day, now_local

logger = logging.getLogger(__name__)

COUNTER_FIELDS = {
    KIND_TASK: "tasks_completed",
    KIND_GOAL: "goals_completed",
    KIND_POMODORO: "pomodoros_completed",
}


@dataclass(frozen=True)
class CompletionOutcome:
    kind: str
    entity_id: str
    xp_earned: int
    level_before: int
    level_after: int
    streak: StreakSummary
    milestone: StreakMilestone | None
    persisted: bool

    @property
    def leveled_up(self) -> bool:
        return self.level_after > self.level_before


@dataclass(frozen=True)
class CountOutcome:
    entity_id: str
    current_count: int
    target_count: int
    is_completed: bool
    completion: CompletionOutcome | None
    persisted: bool


@dataclass(frozen=True)
class StatusView:
    name: str
    level: int
    title: str
    total_xp: int
    progress: LevelProgress
    streak_current: int
    streak_longest: int
    streak_bonus: int
    next_milestone: StreakMilestone | None
    today: StreakEntry
    last_week: list[StreakEntry]
    daily_xp_target: int
    tasks_completed: int
    goals_completed: int
    pomodoros_completed: int
    open_tasks: int
    open_goals: int


def _new_id() -> str:
    return uuid.uuid4().hex


class ActivityLedger:
    """Sequences every completion event: reward, profile, streak day, persistence.

    Steps are persisted one aggregate at a time in a fixed order (entity,
    profile XP, streak entries, profile streak) so an interruption leaves the
    reward granted even if the streak bookkeeping has not caught up yet.
    """

    def __init__(
        self,
        gateway: PersistenceGateway,
        tuning: ProgressionTuning = DEFAULT_TUNING,
        tz_name: str = DEFAULT_TZ,
        state: AppState | None = None,
        now: datetime | None = None,
    ) -> None:
        self.gateway = gateway
        self.tuning = tuning
        self.tz_name = tz_name
        self.scheduler = DailyResetScheduler(gateway, tz_name)
        if state is not None:
            self.state = state
        else:
            now = self._now(now)
            self.state = AppState.load(gateway, now, tuning)
            # session start: goals left over from an earlier day are zeroed before any use
            self.check_daily_reset(now)

    def _now(self, now: datetime | None = None) -> datetime:
        return now if now is not None else now_local(self.tz_name)

    def _today(self, now: datetime) -> date:
        return local_day(now, self.tz_name)

    def _find_task(self, task_id: str) -> Task:
        for task in self.state.tasks:
            if task.id == task_id:
                return task
        raise NotFoundError("task", task_id)

    def _find_goal(self, goal_id: str) -> DailyGoal:
        for goal in self.state.goals:
            if goal.id == goal_id:
                return goal
        raise NotFoundError("goal", goal_id)

    def _store_task(self, task: Task) -> bool:
        self.state.tasks = [task if t.id == task.id else t for t in self.state.tasks]
        return self.gateway.save_tasks(self.state.tasks)

    def _store_goal(self, goal: DailyGoal) -> bool:
        self.state.goals = [goal if g.id == goal.id else g for g in self.state.goals]
        return self.gateway.save_goals(self.state.goals)

    def _store_profile(self, profile: Profile, now: datetime) -> bool:
        self.state.profile = replace(profile, updated_at=now)
        return self.gateway.save_profile(self.state.profile)

    @staticmethod
    def _require(persisted: bool, what: str) -> None:
        if not persisted:
            raise LocalWriteFailed(f"Could not save {what} locally")

    def _current_summary(self) -> StreakSummary:
        return StreakSummary(
            current=self.state.profile.current_streak,
            longest=self.state.profile.longest_streak,
        )

    def _no_grant(self, kind: str, entity_id: str, persisted: bool) -> CompletionOutcome:
        level = self.state.profile.level
        return CompletionOutcome(
            kind=kind,
            entity_id=entity_id,
            xp_earned=0,
            level_before=level,
            level_after=level,
            streak=self._current_summary(),
            milestone=None,
            persisted=persisted,
        )

    def _grant(self, kind: str, entity_id: str, xp: int, now: datetime, persisted: bool) -> CompletionOutcome:
        profile = self.state.profile
        level_before = profile.level
        total_xp = profile.total_xp + xp
        counter = COUNTER_FIELDS[kind]
        profile = replace(
            profile,
            total_xp=total_xp,
            level=level_for(total_xp, self.tuning),
            **{counter: getattr(profile, counter) + 1},
        )
        persisted = self._store_profile(profile, now) and persisted

        today = self._today(now)
        self.state.streak_entries = mark_activity(self.state.streak_entries, today, kind, xp)
        persisted = self.gateway.save_streak_entries(self.state.streak_entries) and persisted

        previous_streak = self.state.profile.current_streak
        summary, streak_persisted = self._refresh_streak(now)
        persisted = streak_persisted and persisted

        outcome = CompletionOutcome(
            kind=kind,
            entity_id=entity_id,
            xp_earned=xp,
            level_before=level_before,
            level_after=self.state.profile.level,
            streak=summary,
            milestone=milestone_reached(previous_streak, summary.current),
            persisted=persisted,
        )
        logger.info(
            "completion kind=%s id=%s xp=%s level=%s streak=%s",
            kind, entity_id, xp, outcome.level_after, summary.current,
        )
        if not persisted:
            logger.warning("completion kind=%s id=%s was not fully saved locally", kind, entity_id)
        return outcome

    def _refresh_streak(self, now: datetime) -> tuple[StreakSummary, bool]:
        profile = self.state.profile
        summary = recompute_streak(self.state.streak_entries, self._today(now), profile.longest_streak)
        if summary == self._current_summary():
            return summary, True
        updated = replace(profile, current_streak=summary.current, longest_streak=summary.longest)
        return summary, self._store_profile(updated, now)

    # tasks

    def add_task(
        self,
        title: str,
        priority: str = PRIORITY_MEDIUM,
        description: str | None = None,
        tags: tuple[str, ...] | list[str] = (),
        has_quantity: bool = False,
        target_count: int = 1,
        due_date: datetime | None = None,
        now: datetime | None = None,
    ) -> Task:
        now = self._now(now)
        target = target_count if has_quantity else 1
        task = validate_task(
            Task(
                id=_new_id(),
                title=title.strip(),
                description=description,
                priority=priority,
                tags=normalize_tags(tags),
                has_quantity=has_quantity,
                target_count=target,
                xp_reward=reward_for_task(priority, has_quantity, target, self.tuning),
                created_at=now,
                due_date=due_date,
            )
        )
        self.state.tasks = self.state.tasks + [task]
        self._require(self.gateway.save_tasks(self.state.tasks), "tasks")
        return task

    def update_task(self, task_id: str, patch: TaskPatch) -> Task:
        task = apply_task_patch(self._find_task(task_id), patch)
        task = replace(
            task,
            xp_reward=reward_for_task(task.priority, task.has_quantity, task.target_count, self.tuning),
        )
        self._require(self._store_task(task), "tasks")
        return task

    def delete_task(self, task_id: str) -> None:
        self._find_task(task_id)
        self.state.tasks = [t for t in self.state.tasks if t.id != task_id]
        self._require(self.gateway.save_tasks(self.state.tasks), "tasks")

    def complete_task(self, task_id: str, now: datetime | None = None) -> CompletionOutcome:
        task = self._find_task(task_id)
        if task.is_completed:
            return self._no_grant(KIND_TASK, task_id, persisted=True)
        now = self._now(now)
        xp = reward_for_task(task.priority, task.has_quantity, task.target_count, self.tuning)
        completed = replace(
            task,
            is_completed=True,
            completed_at=now,
            current_count=task.target_count if task.has_quantity else task.current_count,
            xp_granted=True,
        )
        persisted = self._store_task(completed)
        if task.xp_granted:
            # re-completion after a decrement: flag restored, nothing paid twice
            return self._no_grant(KIND_TASK, task_id, persisted)
        return self._grant(KIND_TASK, task_id, xp, now, persisted)

    def increment_task_count(self, task_id: str, now: datetime | None = None) -> CountOutcome:
        task = self._find_task(task_id)
        if not task.has_quantity:
            raise ValidationError("Task does not track a quantity")
        if task.is_completed:
            return CountOutcome(task.id, task.current_count, task.target_count, True, None, True)

        new_count = min(task.current_count + 1, task.target_count)
        if new_count >= task.target_count:
            completion = self.complete_task(task_id, now)
            done = self._find_task(task_id)
            return CountOutcome(done.id, done.current_count, done.target_count, True, completion, completion.persisted)

        updated = replace(task, current_count=new_count)
        persisted = self._store_task(updated)
        return CountOutcome(updated.id, new_count, updated.target_count, False, None, persisted)

    def decrement_task_count(self, task_id: str) -> CountOutcome:
        task = self._find_task(task_id)
        if not task.has_quantity:
            raise ValidationError("Task does not track a quantity")
        updated = replace(
            task,
            current_count=max(task.current_count - 1, 0),
            is_completed=False,
            completed_at=None,
        )
        persisted = self._store_task(updated)
        return CountOutcome(updated.id, updated.current_count, updated.target_count, False, None, persisted)

    # daily goals

    def add_goal(
        self,
        title: str,
        target_count: int = 1,
        xp_reward: int | None = None,
        description: str | None = None,
        now: datetime | None = None,
    ) -> DailyGoal:
        now = self._now(now)
        goal = validate_goal(
            DailyGoal(
                id=_new_id(),
                title=title.strip(),
                description=description,
                target_count=target_count,
                xp_reward=xp_reward if xp_reward is not None else default_goal_reward(self.tuning),
                created_at=now,
                last_reset_date=now,
            )
        )
        self.state.goals = self.state.goals + [goal]
        self._require(self.gateway.save_goals(self.state.goals), "daily goals")
        return goal

    def update_goal(self, goal_id: str, patch: GoalPatch) -> DailyGoal:
        goal = apply_goal_patch(self._find_goal(goal_id), patch)
        self._require(self._store_goal(goal), "daily goals")
        return goal

    def delete_goal(self, goal_id: str) -> None:
        self._find_goal(goal_id)
        self.state.goals = [g for g in self.state.goals if g.id != goal_id]
        self._require(self.gateway.save_goals(self.state.goals), "daily goals")

    def complete_goal(self, goal_id: str, now: datetime | None = None) -> CompletionOutcome:
        goal = self._find_goal(goal_id)
        if goal.is_completed:
            return self._no_grant(KIND_GOAL, goal_id, persisted=True)
        now = self._now(now)
        completed = replace(
            goal,
            is_completed=True,
            completed_at=now,
            current_count=goal.target_count,
            xp_granted=True,
        )
        persisted = self._store_goal(completed)
        if goal.xp_granted:
            return self._no_grant(KIND_GOAL, goal_id, persisted)
        return self._grant(KIND_GOAL, goal_id, reward_for_goal(goal.xp_reward), now, persisted)

    def increment_goal_count(self, goal_id: str, now: datetime | None = None) -> CountOutcome:
        goal = self._find_goal(goal_id)
        if goal.is_completed:
            return CountOutcome(goal.id, goal.current_count, goal.target_count, True, None, True)

        new_count = min(goal.current_count + 1, goal.target_count)
        if new_count >= goal.target_count:
            completion = self.complete_goal(goal_id, now)
            done = self._find_goal(goal_id)
            return CountOutcome(done.id, done.current_count, done.target_count, True, completion, completion.persisted)

        updated = replace(goal, current_count=new_count)
        persisted = self._store_goal(updated)
        return CountOutcome(updated.id, new_count, updated.target_count, False, None, persisted)

    def decrement_goal_count(self, goal_id: str) -> CountOutcome:
        goal = self._find_goal(goal_id)
        updated = replace(
            goal,
            current_count=max(goal.current_count - 1, 0),
            is_completed=False,
            completed_at=None,
        )
        persisted = self._store_goal(updated)
        return CountOutcome(updated.id, updated.current_count, updated.target_count, False, None, persisted)

    # pomodoro

    def record_pomodoro(
        self,
        duration: int,
        task_id: str | None = None,
        now: datetime | None = None,
    ) -> CompletionOutcome:
        """Log one finished focus session; breaks are never recorded."""
        now = self._now(now)
        session = validate_session(
            PomodoroSession(
                id=_new_id(),
                duration=duration,
                completed_at=now,
                task_id=task_id,
                xp_earned=reward_for_pomodoro(self.tuning),
            )
        )
        self.state.sessions = self.state.sessions + [session]
        persisted = self.gateway.save_sessions(self.state.sessions)
        return self._grant(KIND_POMODORO, session.id, session.xp_earned, now, persisted)

    # profile, settings

    def update_profile(self, patch: ProfilePatch, now: datetime | None = None) -> Profile:
        profile = apply_profile_patch(self.state.profile, patch)
        self._require(self._store_profile(profile, self._now(now)), "profile")
        return self.state.profile

    def update_settings(self, patch: SettingsPatch) -> UserSettings:
        settings = apply_settings_patch(self.state.settings, patch)
        self.state.settings = settings
        self._require(self.gateway.save_settings(settings), "settings")
        return settings

    # daily reset, data management

    def check_daily_reset(self, now: datetime | None = None) -> ResetOutcome:
        now = self._now(now)
        outcome = self.scheduler.check_and_reset(self.state.goals, now)
        if outcome.did_reset:
            self.state.goals = outcome.goals
            # a new day can break the streak without any completion
            self._refresh_streak(now)
        return outcome

    def reload(self, now: datetime | None = None) -> AppState:
        self.state = AppState.load(self.gateway, self._now(now), self.tuning)
        return self.state

    def export_data(self, now: datetime | None = None) -> str:
        return self.gateway.export_all(self._now(now))

    def import_data(self, snapshot: str | dict[str, Any], now: datetime | None = None) -> list[str]:
        now = self._now(now)
        longest_before = self.state.profile.longest_streak
        imported = self.gateway.import_all(snapshot)
        self.reload(now)
        if longest_before > self.state.profile.longest_streak:
            self.state.profile = replace(self.state.profile, longest_streak=longest_before)
        self._refresh_streak(now)
        self.gateway.save_profile(self.state.profile)
        return imported

    def clear_data(self, now: datetime | None = None) -> None:
        ok = self.gateway.clear_all()
        self.state = AppState.empty(self._now(now))
        self._require(ok, "cleared data")

    def status(self, now: datetime | None = None) -> StatusView:
        now = self._now(now)
        today = self._today(now)
        profile = self.state.profile
        summary = recompute_streak(self.state.streak_entries, today, profile.longest_streak)
        return StatusView(
            name=profile.name,
            level=profile.level,
            title=title_for(profile.level, self.tuning),
            total_xp=profile.total_xp,
            progress=progress_within_level(profile.total_xp, self.tuning),
            streak_current=summary.current,
            streak_longest=summary.longest,
            streak_bonus=streak_bonus(summary.current, self.tuning),
            next_milestone=next_milestone(summary.current),
            today=entry_for(self.state.streak_entries, today) or StreakEntry(day=today),
            last_week=activity_window(self.state.streak_entries, today, 7),
            daily_xp_target=daily_xp_target(profile.level),
            tasks_completed=profile.tasks_completed,
            goals_completed=profile.goals_completed,
            pomodoros_completed=profile.pomodoros_completed,
            open_tasks=sum(1 for t in self.state.tasks if not t.is_completed),
            open_goals=sum(1 for g in self.state.goals if not g.is_completed),
        )
