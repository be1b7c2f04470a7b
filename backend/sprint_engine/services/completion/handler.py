"""
Sprint Completion Handler

Finalizes a sprint and runs everything that follows from it.

Preconditions (checked before any mutation):
    1. sprint exists                          NotFoundError SPRINT_NOT_FOUND
    2. sprint not yet completed               ConflictError SPRINT_ALREADY_COMPLETED
    3. caller owns the objective              AuthorizationError UNAUTHORIZED
    4. completion rate >= COMPLETION_MIN_RATE ValidationError SPRINT_COMPLETION_VALIDATION_FAILED

Steps after the sprint is marked complete:
    objective days and streak → sprint_completed event → milestones →
    streak notification → recalibration → next sprint → buffer top-up →
    progress → wrap-up / progress notification

Everything after the sprint and objective updates is best-effort: a
failure is logged, recorded in `side_effect_errors` and never fails the
completion. Steps are not rolled back; regenerating a missing sprint is
idempotent.
"""

import logging
from typing import Optional

from sprint_engine.config import Settings, settings as default_settings
from sprint_engine.enums import EventType, SprintStatus
from sprint_engine.errors import (
    AuthorizationError,
    NotFoundError,
    ValidationError,
)
from sprint_engine.models.completion import (
    CompletionData,
    CompletionNotification,
    CompletionResult,
    CompletionStatus,
    ProgressUpdate,
)
from sprint_engine.models.lifecycle import Objective, Sprint
from sprint_engine.services.best_effort import run_best_effort
from sprint_engine.services.clock import Clock, utc_now
from sprint_engine.services.completion import notifications
from sprint_engine.services.completion.progress import ProgressCalculator, advance_streak
from sprint_engine.services.events import EventEmitter, LoggingEventEmitter, emit_safely
from sprint_engine.services.lifecycle import ensure_transition
from sprint_engine.store.base import SprintLifecycleStore, already_completed_error

logger = logging.getLogger(__name__)


class CompletionHandler:
    """
    Sprint completion workflow.

    Attributes:
        store: Lifecycle store
        scheduler: AutoGenerationScheduler, or None to skip generation
        recalibrator: AdaptiveRecalibrator, or None to skip recalibration
        progress: ProgressCalculator
    """

    def __init__(
        self,
        store: SprintLifecycleStore,
        scheduler=None,
        recalibrator=None,
        progress: Optional[ProgressCalculator] = None,
        app_settings: Optional[Settings] = None,
        clock: Clock = utc_now,
        events: Optional[EventEmitter] = None,
    ):
        self.store = store
        self.scheduler = scheduler
        self.recalibrator = recalibrator
        self.clock = clock
        self.progress = progress or ProgressCalculator(store, clock=clock)
        self.settings = app_settings or default_settings
        self.events = events or LoggingEventEmitter()

    # =========================================================================
    # Validation
    # =========================================================================

    async def _load(self, sprint_id: str, user_id: Optional[str]) -> tuple[Sprint, Objective]:
        sprint = await self.store.get_sprint(sprint_id)
        if sprint is None:
            raise NotFoundError("Sprint not found", error_code="SPRINT_NOT_FOUND")
        objective = await self.store.get_objective(sprint.objective_id)
        if objective is None:
            raise NotFoundError("Objective not found", error_code="OBJECTIVE_NOT_FOUND")
        if user_id is not None and objective.user_id != user_id:
            raise AuthorizationError("Sprint belongs to another user")
        return sprint, objective

    def missing_requirements(self, data: CompletionData) -> list[str]:
        missing = []
        if data.completion_rate < self.settings.COMPLETION_MIN_RATE:
            missing.append(
                f"At least {self.settings.COMPLETION_MIN_RATE:g}% of tasks must be completed"
            )
        return missing

    # =========================================================================
    # Completion
    # =========================================================================

    async def complete_sprint(
        self, sprint_id: str, user_id: str, data: CompletionData
    ) -> CompletionResult:
        """
        Complete a sprint and run the follow-up steps.

        Args:
            sprint_id: Sprint to complete
            user_id: Requesting user (must own the objective)
            data: Tasks, hours, evidence flag and reflection

        Returns:
            CompletionResult

        Raises:
            NotFoundError: Sprint or objective absent
            ConflictError: SPRINT_ALREADY_COMPLETED
            AuthorizationError: Caller does not own the objective
            ValidationError: SPRINT_COMPLETION_VALIDATION_FAILED
        """
        sprint, objective = await self._load(sprint_id, None)
        if sprint.completed_at is not None:
            raise already_completed_error(sprint_id)
        if objective.user_id != user_id:
            raise AuthorizationError("Sprint belongs to another user")

        missing = self.missing_requirements(data)
        if missing:
            raise ValidationError(
                "Sprint cannot be completed yet",
                error_code="SPRINT_COMPLETION_VALIDATION_FAILED",
                details={"missing_requirements": missing},
            )
        if not data.evidence_submitted:
            logger.warning(f"Sprint {sprint_id} completed without evidence")

        completed_at = self.clock()
        status = SprintStatus.REVIEWED if sprint.score is not None else SprintStatus.SUBMITTED
        ensure_transition(sprint.status, status)
        rate = data.completion_rate

        changes = {
            "status": status,
            "completed_at": completed_at,
            "completion_percentage": round(rate, 2),
            "tasks_completed": data.tasks_completed,
            "total_tasks": data.total_tasks,
            "hours_spent": data.hours_spent,
        }
        if data.reflection:
            changes["reflection"] = data.reflection
        sprint = await self.store.update_sprint(sprint_id, changes, require_incomplete=True)

        objective = await self._record_day(objective.id, completed_at)
        logger.info(
            f"Completed sprint {sprint_id} (day {sprint.day_number}, {rate:.0f}%), "
            f"objective {objective.id} at {objective.completed_days}/{objective.estimated_total_days} days"
        )

        result = CompletionResult(
            sprint_id=sprint_id,
            day_number=sprint.day_number,
            completion_rate=round(rate, 2),
            status=status.value,
            completed_at=completed_at,
            current_streak=objective.current_streak,
        )

        self._emit(
            result,
            EventType.SPRINT_COMPLETED,
            {
                "objective_id": objective.id,
                "sprint_id": sprint_id,
                "user_id": user_id,
                "day_number": sprint.day_number,
                "completion_rate": round(rate, 2),
                "hours_spent": data.hours_spent,
            },
        )
        result.notifications.append(notifications.sprint_completed(sprint.day_number, rate))

        milestones = await run_best_effort(
            "milestones", self._complete_milestones(objective, user_id, sprint_id, result)
        )
        if not milestones.ok:
            result.side_effect_errors[milestones.step] = milestones.error

        interval = self.settings.STREAK_MILESTONE_INTERVAL
        if objective.current_streak > 0 and interval > 0 and objective.current_streak % interval == 0:
            result.notifications.append(
                notifications.streak_milestone(objective.current_streak, objective.longest_streak)
            )

        if self.recalibrator is not None and self.settings.RECALIBRATE_ON_COMPLETION:
            recalibration = await run_best_effort(
                "recalibration",
                self.recalibrator.recalibrate_after_completion(objective.id, user_id, sprint.day_number),
                context={"objective_id": objective.id},
            )
            if recalibration.ok:
                outcome, notes = recalibration.value
                result.recalibrated = bool(outcome and outcome.applied)
                result.notifications.extend(notes)
            else:
                result.side_effect_errors[recalibration.step] = recalibration.error

        if self.scheduler is not None:
            await self._generate_next(objective.id, user_id, sprint, result)
            buffer = await run_best_effort(
                "buffer_maintenance",
                self.scheduler.maintain_sprint_buffer(objective.id),
                context={"objective_id": objective.id},
            )
            if not buffer.ok:
                result.side_effect_errors[buffer.step] = buffer.error
            elif buffer.value.error:
                result.side_effect_errors[buffer.step] = buffer.value.error

        progress = await run_best_effort("progress", self.progress.get_progress(objective.id))
        if progress.ok:
            result.progress = progress.value
            note = notifications.objective_progress(progress.value, objective.title)
            if note is not None:
                result.notifications.append(note)
        else:
            result.side_effect_errors[progress.step] = progress.error

        return result

    async def _record_day(self, objective_id: str, completed_at) -> Objective:
        today = completed_at.date()

        # Derived from the stored row inside the store's atomic update
        def count_day(current: Objective) -> dict:
            streak = advance_streak(current.current_streak, current.last_completion_date, today)
            return {
                "completed_days": current.completed_days + 1,
                "current_streak": streak,
                "longest_streak": max(current.longest_streak, streak),
                "last_completion_date": today,
            }

        return await self.store.update_objective(objective_id, count_day)

    async def _complete_milestones(
        self, objective: Objective, user_id: str, sprint_id: str, result: CompletionResult
    ) -> None:
        for milestone in await self.store.list_milestones(objective.id):
            if milestone.is_completed or objective.completed_days < milestone.target_day:
                continue
            milestone = await self.store.update_milestone(
                milestone.id, {"is_completed": True, "completed_at": self.clock()}
            )
            result.milestone_reached = True
            result.notifications.append(notifications.milestone_reached(milestone))
            self._emit(
                result,
                EventType.MILESTONE_REACHED,
                {
                    "objective_id": objective.id,
                    "sprint_id": sprint_id,
                    "user_id": user_id,
                    "milestone_id": milestone.id,
                    "milestone_title": milestone.title,
                    "target_day": milestone.target_day,
                },
            )
            logger.info(f"Milestone '{milestone.title}' reached for objective {objective.id}")

    async def _generate_next(
        self, objective_id: str, user_id: str, sprint: Sprint, result: CompletionResult
    ) -> None:
        decision = await run_best_effort(
            "next_sprint_decision",
            self.scheduler.should_generate_next(objective_id, sprint.id),
        )
        if not decision.ok:
            result.side_effect_errors[decision.step] = decision.error
            return
        if not decision.value.should_generate:
            logger.info(f"Next sprint not generated for {objective_id}: {decision.value.reason}")
            return

        generated = await run_best_effort(
            "next_sprint",
            self.scheduler.generate_next_sprint(objective_id, user_id, current_day=sprint.day_number),
            context={"objective_id": objective_id, "day_number": sprint.day_number + 1},
        )
        if generated.ok:
            result.next_sprint_generated = True
            result.next_sprint_id = generated.value.id
        else:
            result.side_effect_errors[generated.step] = generated.error

    def _emit(self, result: CompletionResult, event_type: EventType, payload: dict) -> None:
        if not emit_safely(self.events, event_type, payload):
            result.side_effect_errors[f"event:{event_type.value}"] = "emit failed"

    # =========================================================================
    # Status & partial progress
    # =========================================================================

    async def get_completion_status(
        self, sprint_id: str, user_id: Optional[str] = None
    ) -> CompletionStatus:
        """
        Report whether a sprint could be completed with its recorded progress.

        Task counts come from the recorded completion when present, else
        from the plan's micro tasks and the stored completion percentage.
        """
        sprint, _ = await self._load(sprint_id, user_id)
        plan_tasks = sprint.planner_output.get("microTasks") or []
        total = sprint.total_tasks if sprint.total_tasks is not None else len(plan_tasks)
        if sprint.tasks_completed is not None:
            done = sprint.tasks_completed
        else:
            done = int(sprint.completion_percentage / 100 * total)
        done = min(done, total)

        if sprint.completed_at is not None:
            missing = ["Sprint already completed"]
        else:
            missing = self.missing_requirements(
                CompletionData(tasks_completed=done, total_tasks=total, hours_spent=0)
            )

        return CompletionStatus(
            sprint_id=sprint_id,
            can_complete=not missing,
            is_completed=sprint.completed_at is not None,
            completion_percentage=sprint.completion_percentage,
            tasks_completed=done,
            total_tasks=total,
            missing_requirements=missing,
        )

    async def update_progress(
        self,
        sprint_id: str,
        user_id: str,
        completion_percentage: float,
        hours_spent: Optional[float] = None,
    ) -> ProgressUpdate:
        """
        Record partial progress without completing the sprint.

        The percentage is clamped to 0-100.

        Raises:
            ConflictError: SPRINT_ALREADY_COMPLETED
        """
        sprint, objective = await self._load(sprint_id, user_id)
        if sprint.completed_at is not None:
            raise already_completed_error(sprint_id)

        changes = {"completion_percentage": min(100.0, max(0.0, float(completion_percentage)))}
        if hours_spent is not None:
            changes["hours_spent"] = max(0.0, hours_spent)
        sprint = await self.store.update_sprint(sprint_id, changes, require_incomplete=True)

        sprints = await self.store.list_sprints(objective.id)
        average = sum(s.completion_percentage for s in sprints) / len(sprints) if sprints else 0.0
        logger.debug(f"Sprint {sprint_id} progress {sprint.completion_percentage:.0f}%")
        return ProgressUpdate(
            sprint_id=sprint_id,
            completion_percentage=sprint.completion_percentage,
            hours_spent=sprint.hours_spent,
            objective_progress_percentage=round(average, 2),
        )
