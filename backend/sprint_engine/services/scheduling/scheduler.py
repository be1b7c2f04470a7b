"""
Auto-Generation Scheduler

Decides when the next sprint of an objective should be generated and keeps
a look-ahead buffer of planned sprints ready beyond the learner's
completed days.

Generation modes (config/default.yaml `generation_modes`):

    mode       generate_on_completion  lookahead  batch  min_buffer
    daily      yes                     3          3      1
    weekly     no                      7          1      0
    milestone  no                      1          1      0
    manual     no                      0          1      0

Buffer:
    buffer = last_generated_day - completed_days
    maintain_sprint_buffer() tops up min(lookahead - buffer, batch_size)
    sprints whenever buffer < lookahead, never past estimated_total_days.

Concurrency:
    All generation for an objective runs under that objective's lock. A
    buffer top-up that finds the lock held is a no-op; generate_next_sprint
    waits for the lock and then returns the sprint that already exists for
    the day. No two sprints ever share a day number.

Every generated sprint is a skeleton plan carrying sequential context:
previous sprint summary, upcoming milestone, learner performance and
continuation instructions.
"""

import logging
import uuid
from typing import Any, Optional

from sprint_engine.config import Settings, settings as default_settings, yaml_config
from sprint_engine.enums import EventType, GenerationMode, PlannerMode
from sprint_engine.errors import (
    AuthorizationError,
    ConflictError,
    NotFoundError,
    ProviderError,
    SchemaValidationError,
    ValidationError,
)
from sprint_engine.models.adaptation import (
    BufferReport,
    GenerationDecision,
    GenerationStatus,
    ModeConfig,
)
from sprint_engine.models.lifecycle import Milestone, Objective, Sprint
from sprint_engine.services.clock import Clock, utc_now
from sprint_engine.services.events import EventEmitter, LoggingEventEmitter, emit_safely
from sprint_engine.services.planning.planner import SprintPlanner, build_planner_request
from sprint_engine.services.scheduling.locks import ObjectiveLockRegistry
from sprint_engine.services.skills import SkillTracker
from sprint_engine.store.base import DUPLICATE_DAY_NUMBER, SprintLifecycleStore

logger = logging.getLogger(__name__)

DEFAULT_MODE_CONFIGS: dict[GenerationMode, ModeConfig] = {
    GenerationMode.DAILY: ModeConfig(
        generate_on_completion=True, lookahead_days=3, batch_size=3, min_buffer=1
    ),
    GenerationMode.WEEKLY: ModeConfig(
        generate_on_completion=False, lookahead_days=7, batch_size=1, min_buffer=0
    ),
    GenerationMode.MILESTONE: ModeConfig(
        generate_on_completion=False, lookahead_days=1, batch_size=1, min_buffer=0
    ),
    GenerationMode.MANUAL: ModeConfig(
        generate_on_completion=False, lookahead_days=0, batch_size=1, min_buffer=0
    ),
}

REFLECTION_MAX_CHARS = 160
SKELETON_PREFER_LENGTH = 1


def load_mode_configs() -> dict[GenerationMode, ModeConfig]:
    """Mode presets from config/default.yaml, falling back to the defaults."""
    configured = yaml_config.get("generation_modes") or {}
    configs = dict(DEFAULT_MODE_CONFIGS)
    for mode in GenerationMode:
        if mode.value in configured:
            merged = DEFAULT_MODE_CONFIGS[mode].model_dump()
            merged.update(configured[mode.value])
            configs[mode] = ModeConfig.model_validate(merged)
    return configs


def truncate_reflection(reflection: str, limit: int = REFLECTION_MAX_CHARS) -> str:
    """Collapse whitespace and cut to `limit` characters with an ellipsis."""
    normalized = " ".join(reflection.split())
    if len(normalized) > limit:
        return normalized[: limit - 3] + "..."
    return normalized


class AutoGenerationScheduler:
    """
    Generates sprints ahead of the learner.

    Attributes:
        store: Lifecycle store
        planner: Sprint planner used for every generated sprint
        locks: Per-objective lock registry
    """

    def __init__(
        self,
        store: SprintLifecycleStore,
        planner: SprintPlanner,
        app_settings: Optional[Settings] = None,
        clock: Clock = utc_now,
        locks: Optional[ObjectiveLockRegistry] = None,
        events: Optional[EventEmitter] = None,
        skill_tracker: Optional[SkillTracker] = None,
        mode_configs: Optional[dict[GenerationMode, ModeConfig]] = None,
    ):
        self.store = store
        self.planner = planner
        self.settings = app_settings or default_settings
        self.clock = clock
        self.locks = locks or ObjectiveLockRegistry()
        self.events = events or LoggingEventEmitter()
        self.skill_tracker = skill_tracker
        self.mode_configs = mode_configs or load_mode_configs()

    def mode_config(self, objective: Objective) -> ModeConfig:
        return self.mode_configs[objective.sprint_generation_mode]

    def target_buffer(self, objective: Objective) -> int:
        """Look-ahead target; the daily target is capped by SPRINT_BUFFER_TARGET."""
        config = self.mode_config(objective)
        if objective.sprint_generation_mode == GenerationMode.DAILY:
            return min(config.lookahead_days, self.settings.SPRINT_BUFFER_TARGET)
        return config.lookahead_days

    # =========================================================================
    # Decisions
    # =========================================================================

    async def should_generate_next(
        self, objective_id: str, current_sprint_id: Optional[str] = None
    ) -> GenerationDecision:
        """
        Decide whether the sprint after the current one should be generated.

        The next day is the current sprint's day + 1, or the day after the
        last generated sprint when no current sprint is given.

        Args:
            objective_id: Objective to check
            current_sprint_id: Sprint that was just completed, if any

        Returns:
            GenerationDecision with a reason when generation is refused
        """
        objective = await self.store.get_objective(objective_id)
        if objective is None:
            return GenerationDecision(should_generate=False, reason="Objective not found", next_day_number=0)

        if not objective.auto_generate_next_sprint:
            return GenerationDecision(should_generate=False, reason="Auto-generation disabled", next_day_number=0)

        current_sprint = None
        if current_sprint_id:
            current_sprint = await self.store.get_sprint(current_sprint_id)
            if current_sprint is None or current_sprint.objective_id != objective_id:
                return GenerationDecision(
                    should_generate=False, reason="Current sprint not found", next_day_number=0
                )

        if current_sprint is not None:
            next_day = current_sprint.day_number + 1
        else:
            next_day = await self._last_generated_day(objective_id) + 1

        if next_day > objective.estimated_total_days:
            return GenerationDecision(
                should_generate=False,
                reason="Objective estimated duration reached",
                next_day_number=next_day,
            )

        if current_sprint is not None and current_sprint.completed_at is None:
            return GenerationDecision(
                should_generate=False,
                reason="Current sprint not completed",
                next_day_number=next_day,
            )

        if current_sprint is not None and not self.mode_config(objective).generate_on_completion:
            return GenerationDecision(
                should_generate=False,
                reason=f"Generation mode '{objective.sprint_generation_mode.value}' does not generate on completion",
                next_day_number=next_day,
            )

        return GenerationDecision(
            should_generate=True, reason="Ready to generate next sprint", next_day_number=next_day
        )

    # =========================================================================
    # Generation
    # =========================================================================

    async def generate_next_sprint(
        self, objective_id: str, user_id: str, current_day: Optional[int] = None
    ) -> Sprint:
        """
        Generate the sprint for the day after `current_day`.

        Idempotent: when that day already has a sprint, it is returned as is.

        Args:
            objective_id: Objective to generate for
            user_id: Requesting user (must own the objective)
            current_day: Day to continue from (default: last generated day)

        Returns:
            The new or already existing Sprint

        Raises:
            NotFoundError: Objective absent
            AuthorizationError: User does not own the objective
            ValidationError: Next day is beyond the objective's estimated duration
            ProviderError / SchemaValidationError: Planner failure
        """
        async with self.locks.hold(objective_id):
            objective = await self._owned_objective(objective_id, user_id)
            base_day = current_day if current_day is not None else await self._last_generated_day(objective_id)
            day = base_day + 1

            existing = await self.store.get_sprint_by_day(objective_id, day)
            if existing is not None:
                logger.debug(f"Day {day} of objective {objective_id} already generated")
                return existing

            if day > objective.estimated_total_days:
                raise ValidationError(
                    f"Day {day} is beyond the objective's {objective.estimated_total_days} estimated days",
                    error_code="OBJECTIVE_DURATION_REACHED",
                )
            return await self._generate_day(objective, day)

    async def generate_sprint_batch(
        self, objective_id: str, user_id: str, start_day: int, count: int
    ) -> list[Sprint]:
        """
        Generate up to `count` consecutive sprints starting at `start_day`.

        Days that already exist are returned without regenerating. The batch
        stops at the first planner failure or at the objective's last day.

        Raises:
            ValidationError: count outside 1..MAX_BATCH_SIZE (INVALID_BATCH_SIZE)
            NotFoundError / AuthorizationError: as for generate_next_sprint
        """
        if count < 1 or count > self.settings.MAX_BATCH_SIZE:
            raise ValidationError(
                f"Batch size must be between 1 and {self.settings.MAX_BATCH_SIZE}",
                error_code="INVALID_BATCH_SIZE",
                details={"count": count},
            )
        if start_day < 1:
            raise ValidationError("Start day must be at least 1", error_code="INVALID_START_DAY")

        sprints: list[Sprint] = []
        async with self.locks.hold(objective_id):
            objective = await self._owned_objective(objective_id, user_id)
            for day in range(start_day, start_day + count):
                if day > objective.estimated_total_days:
                    break
                existing = await self.store.get_sprint_by_day(objective_id, day)
                if existing is not None:
                    sprints.append(existing)
                    continue
                try:
                    sprint = await self._generate_day(objective, day)
                except (ProviderError, SchemaValidationError) as e:
                    logger.error(
                        f"Batch generation for objective {objective_id} stopped at day {day}: {e.message}"
                    )
                    break
                sprints.append(sprint)
                objective = await self.store.get_objective(objective_id) or objective

        logger.info(
            f"Batch for objective {objective_id}: {len(sprints)}/{count} sprint(s) from day {start_day}"
        )
        return sprints

    async def maintain_sprint_buffer(self, objective_id: str) -> BufferReport:
        """
        Top up the look-ahead buffer of planned sprints.

        A call that finds generation already in flight for the objective is
        a no-op. Planner failures stop the top-up and are reported in the
        result; sprints generated before the failure are kept.

        Returns:
            BufferReport
        """
        if self.locks.is_locked(objective_id):
            logger.info(f"Buffer maintenance skipped for {objective_id}: generation in progress")
            return BufferReport(objective_id=objective_id, skipped=True, reason="Generation in progress")

        async with self.locks.hold(objective_id):
            objective = await self.store.get_objective(objective_id)
            if objective is None:
                raise NotFoundError("Objective not found", error_code="OBJECTIVE_NOT_FOUND")
            if not objective.auto_generate_next_sprint:
                return BufferReport(objective_id=objective_id, skipped=True, reason="Auto-generation disabled")

            config = self.mode_config(objective)
            target = self.target_buffer(objective)
            last_day = await self._last_generated_day(objective_id)
            buffer_before = last_day - objective.completed_days

            if buffer_before >= target:
                return BufferReport(
                    objective_id=objective_id,
                    skipped=True,
                    reason="Buffer full",
                    buffer_before=buffer_before,
                    buffer_after=buffer_before,
                )

            report = BufferReport(objective_id=objective_id, buffer_before=buffer_before)
            to_generate = min(target - buffer_before, config.batch_size)
            for offset in range(1, to_generate + 1):
                day = last_day + offset
                if day > objective.estimated_total_days:
                    report.reason = "Objective estimated duration reached"
                    break
                try:
                    sprint = await self._generate_day(objective, day)
                except (ProviderError, SchemaValidationError) as e:
                    logger.warning(f"Buffer top-up for {objective_id} stopped at day {day}: {e.message}")
                    report.error = f"{e.error_code}: {e.message}"
                    break
                report.generated_sprint_ids.append(sprint.id)
                objective = await self.store.get_objective(objective_id) or objective

            report.buffer_after = await self._last_generated_day(objective_id) - objective.completed_days
            logger.info(
                f"Buffer for {objective_id}: {report.buffer_before} -> {report.buffer_after} "
                f"(target {target}, generated {len(report.generated_sprint_ids)})"
            )
            return report

    async def get_generation_status(self, objective_id: str) -> GenerationStatus:
        """Report buffer state and whether generation is in flight."""
        objective = await self.store.get_objective(objective_id)
        if objective is None:
            raise NotFoundError("Objective not found", error_code="OBJECTIVE_NOT_FOUND")

        last_day = await self._last_generated_day(objective_id)
        current_day = objective.completed_days + 1
        return GenerationStatus(
            objective_id=objective_id,
            current_day=current_day,
            completed_days=objective.completed_days,
            last_generated_day=last_day,
            buffer_days=last_day - objective.completed_days,
            target_buffer=self.target_buffer(objective),
            is_generating=self.locks.is_locked(objective_id),
            next_sprint_ready=last_day > current_day,
            auto_generate_enabled=objective.auto_generate_next_sprint,
            generation_mode=objective.sprint_generation_mode.value,
        )

    # =========================================================================
    # Internals (caller holds the objective lock)
    # =========================================================================

    async def _owned_objective(self, objective_id: str, user_id: str) -> Objective:
        objective = await self.store.get_objective(objective_id)
        if objective is None:
            raise NotFoundError("Objective not found", error_code="OBJECTIVE_NOT_FOUND")
        if objective.user_id != user_id:
            raise AuthorizationError("Objective belongs to another user")
        return objective

    async def _last_generated_day(self, objective_id: str) -> int:
        sprints = await self.store.list_sprints(objective_id)
        return sprints[-1].day_number if sprints else 0

    async def _generate_day(self, objective: Objective, day: int) -> Sprint:
        sprints = await self.store.list_sprints(objective.id)
        previous = next((s for s in sprints if s.day_number == day - 1), None)
        context = await self.build_sequential_context(objective, day, sprints, previous)

        request = build_planner_request(
            objective,
            mode=PlannerMode.SKELETON,
            prefer_length=SKELETON_PREFER_LENGTH,
            context=context,
        )
        planned = await self.planner.plan(request, day_number=day)
        plan = planned.plan

        sprint = Sprint(
            id=f"sprint_{uuid.uuid4().hex[:16]}",
            objective_id=objective.id,
            day_number=day,
            length_days=plan.length_days,
            total_estimated_hours=plan.total_estimated_hours,
            difficulty=plan.difficulty,
            difficulty_score=objective.current_difficulty,
            planner_mode=PlannerMode.SKELETON,
            planner_input=planned.planner_input,
            planner_output=planned.planner_output,
            plan_metadata=planned.metadata.to_wire(),
            adaptive_metadata={
                "difficulty": objective.current_difficulty,
                "velocity": objective.learning_velocity,
                "recalibrationCount": objective.recalibration_count,
            },
            is_auto_generated=True,
            created_at=self.clock(),
        )

        try:
            sprint = await self.store.create_sprint(sprint)
        except ConflictError as e:
            if e.error_code != DUPLICATE_DAY_NUMBER:
                raise
            existing = await self.store.get_sprint_by_day(objective.id, day)
            if existing is None:
                raise
            logger.info(f"Day {day} of objective {objective.id} was generated concurrently")
            return existing

        if previous is not None:
            await self.store.update_sprint(previous.id, {"next_sprint_id": sprint.id})

        await self.store.update_objective(
            objective.id,
            lambda current: {
                "current_day": max(current.current_day, day),
                "total_sprints_generated": current.total_sprints_generated + 1,
            },
        )

        emit_safely(
            self.events,
            EventType.SPRINT_GENERATED,
            {"objective_id": objective.id, "sprint_id": sprint.id, "day_number": day},
        )
        logger.info(f"Generated sprint {sprint.id} for objective {objective.id} day {day}")
        return sprint

    async def build_sequential_context(
        self,
        objective: Objective,
        day: int,
        sprints: list[Sprint],
        previous: Optional[Sprint],
    ) -> dict[str, Any]:
        """
        Build the planner context that makes consecutive sprints continue
        each other instead of restarting.
        """
        earlier = [s for s in sprints if s.day_number < day]
        completed = [s for s in earlier if s.completed_at is not None]

        average_completion = (
            sum(s.completion_percentage for s in completed) / len(completed) if completed else 0.0
        )
        durations = [
            (s.completed_at - s.started_at).total_seconds() / 86400
            for s in completed
            if s.started_at is not None
        ]
        average_time = sum(durations) / len(durations) if durations else 1.0

        struggling: list[str] = []
        if self.skill_tracker is not None:
            skill_map = await self.skill_tracker.get_user_skill_map(objective.user_id, objective.id)
            struggling = skill_map.struggling_areas

        milestones = await self.store.list_milestones(objective.id)
        upcoming = next((m for m in milestones if not m.is_completed and m.target_day >= day), None)

        previous_context = self._previous_sprint_context(previous) if previous else None
        return {
            "dayNumber": day,
            "totalEstimatedDays": objective.estimated_total_days,
            "previousSprints": [
                {
                    "dayNumber": s.day_number,
                    "title": s.title,
                    "completed": s.completed_at is not None,
                    "completionPercentage": s.completion_percentage,
                }
                for s in earlier[-5:]
            ],
            "previousSprint": previous_context,
            "upcomingMilestone": self._milestone_context(upcoming, day),
            "learnerPerformance": {
                "averageCompletionRate": round(average_completion, 1),
                "averageTimePerSprint": round(average_time, 2),
                "strugglingAreas": struggling,
            },
            "adaptation": {
                "currentDifficulty": objective.current_difficulty,
                "learningVelocity": objective.learning_velocity,
            },
            "customInstructions": self.build_custom_instructions(objective, previous_context),
        }

    @staticmethod
    def _previous_sprint_context(previous: Sprint) -> dict[str, Any]:
        deliverables: list[str] = []
        for project in previous.planner_output.get("projects") or []:
            for deliverable in project.get("deliverables") or []:
                if deliverable.get("title"):
                    deliverables.append(deliverable["title"])
        reflection = previous.self_evaluation_reflection or previous.reflection
        return {
            "dayNumber": previous.day_number,
            "title": previous.title,
            "deliverables": deliverables,
            "completionPercentage": previous.completion_percentage,
            "score": previous.score,
            "reflection": truncate_reflection(reflection) if reflection else None,
        }

    @staticmethod
    def _milestone_context(milestone: Optional[Milestone], day: int) -> Optional[dict[str, Any]]:
        if milestone is None:
            return None
        return {
            "title": milestone.title,
            "targetDay": milestone.target_day,
            "daysUntil": milestone.target_day - day,
        }

    @staticmethod
    def build_custom_instructions(
        objective: Objective, previous: Optional[dict[str, Any]]
    ) -> list[str]:
        """Continuation instructions derived from the previous sprint and profile."""

        def fmt(items: list[str]) -> str:
            return ", ".join(items) if items else "n/a"

        instructions = [
            "ACTIONABLE TASKS: Start task titles with strong verbs such as Build, Configure or Deploy.",
            "CONCISE TEXT: Keep descriptions and instructions to at most 3 sentences.",
            "MEASURABLE TASKS: End every microTask with an observable validation step.",
        ]

        if previous:
            done = "; ".join(previous["deliverables"][:3]) or "previous deliverables"
            instructions.append(
                f"CONTINUATION: Build on Day {previous['dayNumber']}'s outcome "
                f"\"{previous['title']}\" instead of restarting."
            )
            instructions.append(
                f"DO NOT REPEAT: Avoid recreating prior deliverables ({done})."
            )
            if previous.get("reflection"):
                instructions.append(
                    f"ADDRESS REFLECTION: The learner noted \"{previous['reflection']}\". "
                    f"Include a task that tackles it."
                )

        profile = objective.profile
        if profile is not None:
            if profile.gaps:
                instructions.append(
                    f"ADDRESS GAPS ({fmt(profile.gaps)}): Turn each gap into a concrete micro task."
                )
            if profile.strengths:
                instructions.append(
                    f"LEVERAGE STRENGTHS ({fmt(profile.strengths)}): Let one deliverable showcase them."
                )
            if profile.passion_tags or profile.goals:
                instructions.append(
                    f"ALIGN WITH MOTIVATORS ({fmt(profile.passion_tags)} | goals: {fmt(profile.goals)})."
                )

        instructions.append(
            "REFLECTION LOOP: Finish with a micro task that records learnings, blockers and time spent."
        )
        return instructions
