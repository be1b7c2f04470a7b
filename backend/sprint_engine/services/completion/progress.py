"""
Objective Progress

Derives the aggregate progress view of an objective from its sprint and
milestone history. Nothing here is persisted; the only stored progress
state is the streak bookkeeping on the objective itself.

Pace:
    velocity  = completed days per week since the objective was created
    pace      = velocity / 7 (1.0 means one sprint per calendar day)
    on_track  = completed fraction >= 0.8 x elapsed fraction of the estimate

Rating:
    ahead      pace > 1.2
    on-track   on_track
    behind     pace > 0.5
    at-risk    otherwise
"""

import logging
from datetime import date, datetime, timedelta
from typing import Optional

from sprint_engine.enums import PerformanceRating
from sprint_engine.errors import NotFoundError
from sprint_engine.models.completion import NextMilestone, ObjectiveProgress
from sprint_engine.models.lifecycle import Objective
from sprint_engine.services.clock import Clock, utc_now
from sprint_engine.services.skills import SkillMap, SkillTracker
from sprint_engine.store.base import SprintLifecycleStore

logger = logging.getLogger(__name__)

DAYS_PER_WEEK = 7
AHEAD_PACE = 1.2
BEHIND_PACE = 0.5
ON_TRACK_TOLERANCE = 0.8


def advance_streak(current_streak: int, last_completion: Optional[date], today: date) -> int:
    """
    Streak after a completion on `today`.

    Same day keeps the streak, the next calendar day extends it, anything
    else starts a new streak of 1.
    """
    if last_completion is None or current_streak <= 0:
        return 1
    gap = (today - last_completion).days
    if gap <= 0:
        return current_streak
    if gap == 1:
        return current_streak + 1
    return 1


def effective_streak(objective: Objective, today: date) -> int:
    """Stored streak, or 0 once more than one day has passed without a completion."""
    if objective.last_completion_date is None:
        return 0
    if (today - objective.last_completion_date).days > 1:
        return 0
    return objective.current_streak


def performance_rating(pace: float, on_track: bool) -> PerformanceRating:
    if pace > AHEAD_PACE:
        return PerformanceRating.AHEAD
    if on_track:
        return PerformanceRating.ON_TRACK
    if pace > BEHIND_PACE:
        return PerformanceRating.BEHIND
    return PerformanceRating.AT_RISK


def recommended_focus(completed_days: int, estimated_days: int) -> str:
    if completed_days < estimated_days * 0.3:
        return "Build strong fundamentals"
    if completed_days < estimated_days * 0.7:
        return "Practice intermediate concepts"
    return "Complete portfolio projects"


class ProgressCalculator:
    """Computes ObjectiveProgress on demand."""

    def __init__(
        self,
        store: SprintLifecycleStore,
        skill_tracker: Optional[SkillTracker] = None,
        clock: Clock = utc_now,
    ):
        self.store = store
        self.skill_tracker = skill_tracker
        self.clock = clock

    async def get_progress(self, objective_id: str) -> ObjectiveProgress:
        """
        Recompute progress for an objective.

        Raises:
            NotFoundError: Objective absent
        """
        objective = await self.store.get_objective(objective_id)
        if objective is None:
            raise NotFoundError("Objective not found", error_code="OBJECTIVE_NOT_FOUND")

        now = self.clock()
        today = now.date()
        sprints = await self.store.list_sprints(objective_id)
        milestones = await self.store.list_milestones(objective_id)
        completed = [s for s in sprints if s.completed_at is not None]

        estimated_days = objective.estimated_total_days
        completed_days = objective.completed_days
        days_remaining = max(0, estimated_days - completed_days)
        percent_complete = completed_days / estimated_days * 100 if estimated_days > 0 else 0.0

        total_hours = sum(
            s.hours_spent if s.hours_spent is not None else s.total_estimated_hours
            for s in completed
        )
        completion_rate = (
            sum(s.completion_percentage for s in completed) / len(completed) if completed else 0.0
        )

        started = self._start_of(objective, completed, now)
        elapsed_days = max((now - started).total_seconds() / 86400, 1.0)
        velocity = completed_days / (elapsed_days / DAYS_PER_WEEK) if completed_days else 0.0
        pace = velocity / DAYS_PER_WEEK

        expected_fraction = completed_days / estimated_days if estimated_days > 0 else 0.0
        elapsed_fraction = elapsed_days / estimated_days if estimated_days > 0 else 0.0
        on_track = not completed or expected_fraction >= elapsed_fraction * ON_TRACK_TOLERANCE

        if pace > 0:
            projected = today + timedelta(days=round(days_remaining / pace))
        else:
            projected = today + timedelta(days=days_remaining)

        next_milestone = next((m for m in milestones if not m.is_completed), None)

        skill_map = SkillMap()
        if self.skill_tracker is not None:
            skill_map = await self.skill_tracker.get_user_skill_map(objective.user_id, objective_id)

        return ObjectiveProgress(
            objective_id=objective_id,
            total_estimated_days=estimated_days,
            current_day=objective.current_day,
            completed_days=completed_days,
            days_remaining=days_remaining,
            percent_complete=round(percent_complete, 2),
            total_sprints=len(sprints),
            completed_sprints=len(completed),
            current_streak=effective_streak(objective, today),
            longest_streak=objective.longest_streak,
            last_completion_date=objective.last_completion_date,
            milestones_total=len(milestones),
            milestones_completed=sum(1 for m in milestones if m.is_completed),
            next_milestone=(
                NextMilestone(
                    title=next_milestone.title,
                    target_day=next_milestone.target_day,
                    days_until=next_milestone.target_day - completed_days,
                )
                if next_milestone
                else None
            ),
            total_hours_spent=round(total_hours, 2),
            average_hours_per_day=round(total_hours / completed_days, 2) if completed_days else 0.0,
            estimated_completion_date=(started + timedelta(days=estimated_days)).date(),
            projected_completion_date=projected,
            on_track=on_track,
            performance_rating=performance_rating(pace, on_track),
            completion_rate=round(completion_rate, 2),
            velocity=round(velocity, 2),
            struggling_areas=skill_map.struggling_areas,
            mastered_skills=skill_map.mastered_skills,
            recommended_focus=recommended_focus(completed_days, estimated_days),
            goal_reached=completed_days >= estimated_days,
        )

    @staticmethod
    def _start_of(objective: Objective, completed, now: datetime) -> datetime:
        if objective.created_at is not None:
            return objective.created_at
        starts = [s.started_at or s.completed_at for s in completed]
        return min(starts) if starts else now
