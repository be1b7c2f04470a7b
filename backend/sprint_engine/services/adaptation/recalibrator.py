"""
Adaptive Recalibrator

Moves an objective's difficulty, learning velocity and estimated duration
from recent review scores.

Analysis (scores in percentage points, last RECALIBRATION_WINDOW reviewed
sprints):
    - trend: second-half mean minus first-half mean, +-5 points
    - consistently_high: at least min(3, n) scores >= 90
    - consistently_low: at least min(2, n) scores < 70
    - recommended_action: speed_up / slow_down / review / maintain

Decision:
    Remote-first through the adaptation gateway. Any provider or schema
    failure falls back to the rule-based decision:

        consistently high   difficulty +20 (max 100), velocity x1.3 (max 2.0), days -10
        consistently low    difficulty -20 (min 0),   velocity x0.7 (min 0.5), days +10
        otherwise           maintain

Every applied decision writes an immutable AdaptationHistoryEntry and
updates the objective's live fields in the same step.
"""

import logging
import uuid
from datetime import timedelta
from typing import Optional

from pydantic import ValidationError as PydanticValidationError

from sprint_engine.config import Settings, settings as default_settings, yaml_config
from sprint_engine.enums import (
    AdjustmentType,
    EventType,
    NotificationType,
    PerformanceTrend,
    ProviderPurpose,
    RecommendedAction,
    ReviewSource,
)
from sprint_engine.errors import (
    AuthorizationError,
    NotFoundError,
    ProviderError,
    SchemaValidationError,
    ValidationError,
)
from sprint_engine.models.adaptation import (
    AdaptationDecision,
    DifficultyAdjustment,
    EstimateAdjustment,
    PerformanceAnalysis,
    RecalibrationOutcome,
)
from sprint_engine.models.base import strict_json_schema
from sprint_engine.models.completion import CompletionNotification
from sprint_engine.models.lifecycle import (
    AdaptationHistoryEntry,
    Objective,
    SprintAdaptation,
)
from sprint_engine.services.adaptation.prompts import (
    ADAPTATION_SYSTEM_MESSAGE,
    build_adaptation_prompt,
)
from sprint_engine.services.clock import Clock, utc_now
from sprint_engine.services.events import EventEmitter, LoggingEventEmitter, emit_safely
from sprint_engine.services.providers.gateway import ProviderGateway, ProviderRequest
from sprint_engine.services.skills import SkillMap, SkillTracker

logger = logging.getLogger(__name__)

_adaptation_config = yaml_config.get("adaptation", {})

HIGH_SCORE_THRESHOLD = _adaptation_config.get("high_score_threshold", 90)
LOW_SCORE_THRESHOLD = _adaptation_config.get("low_score_threshold", 70)
TREND_THRESHOLD = _adaptation_config.get("trend_threshold", 5)
DIFFICULTY_STEP = _adaptation_config.get("difficulty_step", 20)
SPEED_UP_FACTOR = _adaptation_config.get("speed_up_factor", 1.3)
SLOW_DOWN_FACTOR = _adaptation_config.get("slow_down_factor", 0.7)
ESTIMATED_DAYS_STEP = _adaptation_config.get("estimated_days_step", 10)

MIN_VELOCITY = 0.5
MAX_VELOCITY = 2.0
HIGH_SCORE_COUNT = 3
LOW_SCORE_COUNT = 2
SLOW_DOWN_STRUGGLING_COUNT = 3


def determine_trend(scores: list[float], threshold: float = TREND_THRESHOLD) -> PerformanceTrend:
    """
    Compare the mean of the first half of `scores` with the second half.

    Halves overlap on the middle element for odd lengths.
    """
    if len(scores) < 2:
        return PerformanceTrend.STABLE
    first = scores[: (len(scores) + 1) // 2]
    second = scores[len(scores) // 2:]
    difference = sum(second) / len(second) - sum(first) / len(first)
    if difference > threshold:
        return PerformanceTrend.IMPROVING
    if difference < -threshold:
        return PerformanceTrend.DECLINING
    return PerformanceTrend.STABLE


def recommend_action(
    consistently_high: bool, consistently_low: bool, struggling: list[str]
) -> RecommendedAction:
    if consistently_high and not struggling:
        return RecommendedAction.SPEED_UP
    if consistently_low or len(struggling) >= SLOW_DOWN_STRUGGLING_COUNT:
        return RecommendedAction.SLOW_DOWN
    if struggling:
        return RecommendedAction.REVIEW
    return RecommendedAction.MAINTAIN


def rule_based_decision(objective: Objective, analysis: PerformanceAnalysis) -> AdaptationDecision:
    """Deterministic decision used when the adaptation provider is unavailable."""
    difficulty = objective.current_difficulty
    velocity = objective.learning_velocity

    if analysis.consistently_high:
        adjustment = AdjustmentType.INCREASE
        difficulty = min(100, difficulty + DIFFICULTY_STEP)
        velocity = min(MAX_VELOCITY, velocity * SPEED_UP_FACTOR)
        days_change = -ESTIMATED_DAYS_STEP
        recommendations = [
            "Increase difficulty and pace",
            "Add more advanced concepts",
            "Skip redundant practice",
        ]
    elif analysis.consistently_low:
        adjustment = AdjustmentType.DECREASE
        difficulty = max(0, difficulty - DIFFICULTY_STEP)
        velocity = max(MIN_VELOCITY, velocity * SLOW_DOWN_FACTOR)
        days_change = ESTIMATED_DAYS_STEP
        recommendations = [
            "Decrease difficulty and slow down",
            "Add more examples and practice",
            "Review fundamentals",
        ]
    else:
        adjustment = AdjustmentType.MAINTAIN
        days_change = 0
        recommendations = ["Maintain current pace"]

    return AdaptationDecision(
        should_adjust=adjustment != AdjustmentType.MAINTAIN,
        adjustment_type=adjustment,
        new_difficulty=difficulty,
        new_velocity=round(min(MAX_VELOCITY, max(MIN_VELOCITY, velocity)), 3),
        reasoning=(
            f"Rule-based adaptation: {adjustment.value} based on an average score of "
            f"{analysis.average_score:.1f}% over {analysis.sprints_analyzed} sprint(s)"
        ),
        recommendations=recommendations,
        estimated_days_change=days_change,
    )


class AdaptiveRecalibrator:
    """
    Performance analysis and recalibration for one objective at a time.

    Attributes:
        DECISION_SCHEMA: Strict JSON schema of AdaptationDecision sent to providers
    """

    DECISION_SCHEMA = strict_json_schema(AdaptationDecision)
    SCHEMA_NAME = "adaptation_decision"

    def __init__(
        self,
        store,
        gateway: Optional[ProviderGateway] = None,
        app_settings: Optional[Settings] = None,
        clock: Clock = utc_now,
        events: Optional[EventEmitter] = None,
        skill_tracker: Optional[SkillTracker] = None,
    ):
        """
        Initialize the recalibrator.

        Args:
            store: SprintLifecycleStore
            gateway: Adaptation gateway. None always uses the rule-based decision.
            app_settings: Settings (defaults to global)
            clock: Source of the current time
            events: Domain event emitter
            skill_tracker: Struggling/mastered skill lookup
        """
        self.store = store
        self.gateway = gateway
        self.settings = app_settings or default_settings
        self.clock = clock
        self.events = events or LoggingEventEmitter()
        self.skill_tracker = skill_tracker

    async def _owned_objective(self, objective_id: str, user_id: str) -> Objective:
        objective = await self.store.get_objective(objective_id)
        if objective is None:
            raise NotFoundError("Objective not found", error_code="OBJECTIVE_NOT_FOUND")
        if objective.user_id != user_id:
            raise AuthorizationError("Objective belongs to another user")
        return objective

    # =========================================================================
    # Analysis
    # =========================================================================

    async def analyze_performance(
        self, objective_id: str, user_id: str, window_size: Optional[int] = None
    ) -> PerformanceAnalysis:
        """
        Analyze the most recent reviewed sprints of an objective.

        Args:
            objective_id: Objective to analyze
            user_id: Requesting user (must own the objective)
            window_size: Number of recent reviewed sprints (default: RECALIBRATION_WINDOW)

        Returns:
            PerformanceAnalysis with scores in percentage points
        """
        await self._owned_objective(objective_id, user_id)
        window = window_size or self.settings.RECALIBRATION_WINDOW
        if window < 1:
            raise ValidationError("Window size must be at least 1", error_code="INVALID_WINDOW_SIZE")

        reviewed = [s for s in await self.store.list_sprints(objective_id) if s.score is not None]
        scores = [round(s.score * 100, 2) for s in reviewed[-window:]]

        if not scores:
            return PerformanceAnalysis(
                objective_id=objective_id,
                sprints_analyzed=0,
                scores=[],
                average_score=0.0,
                trend=PerformanceTrend.STABLE,
                consistently_high=False,
                consistently_low=False,
                recommended_action=RecommendedAction.MAINTAIN,
            )

        skill_map = SkillMap()
        if self.skill_tracker is not None:
            skill_map = await self.skill_tracker.get_user_skill_map(user_id, objective_id)

        consistently_high = sum(1 for s in scores if s >= HIGH_SCORE_THRESHOLD) >= min(HIGH_SCORE_COUNT, len(scores))
        consistently_low = sum(1 for s in scores if s < LOW_SCORE_THRESHOLD) >= min(LOW_SCORE_COUNT, len(scores))

        return PerformanceAnalysis(
            objective_id=objective_id,
            sprints_analyzed=len(scores),
            scores=scores,
            average_score=round(sum(scores) / len(scores), 2),
            trend=determine_trend(scores),
            consistently_high=consistently_high,
            consistently_low=consistently_low,
            struggling_skills=skill_map.struggling_areas,
            mastered_skills=skill_map.mastered_skills,
            recommended_action=recommend_action(
                consistently_high, consistently_low, skill_map.struggling_areas
            ),
        )

    # =========================================================================
    # Recalibration
    # =========================================================================

    async def recalibrate(
        self,
        objective_id: str,
        user_id: str,
        analysis: Optional[PerformanceAnalysis] = None,
    ) -> RecalibrationOutcome:
        """
        Decide on an adaptation and apply it.

        Args:
            objective_id: Objective to recalibrate
            user_id: Requesting user (must own the objective)
            analysis: Precomputed analysis (default: analyze_performance())

        Returns:
            RecalibrationOutcome describing the decision and what changed
        """
        objective = await self._owned_objective(objective_id, user_id)
        if analysis is None:
            analysis = await self.analyze_performance(objective_id, user_id)

        decision, source = await self._decide(objective, analysis)

        previous_estimate = objective.estimated_total_days
        outcome = RecalibrationOutcome(
            objective_id=objective_id,
            decision=decision,
            source=source,
            applied=False,
            previous_difficulty=objective.current_difficulty,
            previous_velocity=objective.learning_velocity,
            previous_estimate=previous_estimate,
            new_estimate=previous_estimate,
        )
        if not decision.should_adjust:
            logger.info(f"Recalibration of {objective_id}: maintain ({source.value})")
            return outcome

        # Never estimate below the days already completed
        new_estimate = max(
            objective.completed_days,
            1,
            previous_estimate + (decision.estimated_days_change or 0),
        )
        now = self.clock()
        entry = await self.store.add_adaptation_history(
            AdaptationHistoryEntry(
                id=f"adapt_{uuid.uuid4().hex[:16]}",
                objective_id=objective_id,
                previous_estimate=previous_estimate,
                new_estimate=new_estimate,
                reason=decision.reasoning,
                performance_scores=analysis.scores,
                velocity=decision.new_velocity,
                difficulty=decision.new_difficulty,
                adjustment_type=decision.adjustment_type.value,
                recommendations=decision.recommendations,
                created_at=now,
            )
        )
        await self.store.update_objective(
            objective_id,
            lambda current: {
                "current_difficulty": decision.new_difficulty,
                "learning_velocity": decision.new_velocity,
                "estimated_total_days": new_estimate,
                "recalibration_count": current.recalibration_count + 1,
                "last_recalibrated_at": now,
            },
        )

        emit_safely(
            self.events,
            EventType.OBJECTIVE_RECALIBRATED,
            {
                "objective_id": objective_id,
                "adjustment_type": decision.adjustment_type.value,
                "previous_difficulty": objective.current_difficulty,
                "new_difficulty": decision.new_difficulty,
                "new_velocity": decision.new_velocity,
                "source": source.value,
            },
        )
        logger.info(
            f"Recalibrated {objective_id} ({source.value}): {decision.adjustment_type.value}, "
            f"difficulty {objective.current_difficulty} -> {decision.new_difficulty}, "
            f"velocity {objective.learning_velocity} -> {decision.new_velocity}, "
            f"estimate {previous_estimate} -> {new_estimate}"
        )
        return outcome.model_copy(
            update={"applied": True, "new_estimate": new_estimate, "history_entry_id": entry.id}
        )

    async def _decide(
        self, objective: Objective, analysis: PerformanceAnalysis
    ) -> tuple[AdaptationDecision, ReviewSource]:
        if self.gateway is None:
            return rule_based_decision(objective, analysis), ReviewSource.FALLBACK

        try:
            response = await self.gateway.send(
                ProviderRequest(
                    system_message=ADAPTATION_SYSTEM_MESSAGE,
                    user_prompt=build_adaptation_prompt(objective, analysis),
                    json_schema=self.DECISION_SCHEMA,
                    schema_name=self.SCHEMA_NAME,
                    temperature=self.settings.ADAPTATION_TEMPERATURE,
                    max_tokens=self.settings.ADAPTATION_MAX_TOKENS,
                    purpose=ProviderPurpose.ADAPTATION.value,
                )
            )
        except ProviderError as e:
            logger.warning(
                f"Adaptation provider unavailable for {objective.id} ({e.reason}); using rules",
                extra={"telemetry": e.telemetry.to_dict() if e.telemetry else None},
            )
            return rule_based_decision(objective, analysis), ReviewSource.FALLBACK

        try:
            decision = AdaptationDecision.model_validate(response.content)
        except PydanticValidationError as e:
            error = SchemaValidationError(
                f"Adaptation decision failed schema validation: {e.error_count()} error(s)",
                errors=[
                    {"loc": list(err["loc"]), "msg": err["msg"], "type": err["type"]}
                    for err in e.errors(include_url=False, include_context=False)
                ],
                telemetry=response.telemetry,
            )
            logger.warning(f"{error.message}; using rules for {objective.id}: {error.errors[:3]}")
            return rule_based_decision(objective, analysis), ReviewSource.FALLBACK

        return decision, ReviewSource.REMOTE

    # =========================================================================
    # Adjustments
    # =========================================================================

    async def adjust_next_sprint_difficulty(
        self,
        objective_id: str,
        next_sprint_id: str,
        analysis: PerformanceAnalysis,
    ) -> DifficultyAdjustment:
        """
        Shift the difficulty score of an upcoming sprint by +-DIFFICULTY_STEP.

        Records a SprintAdaptation and the reasons in the sprint's
        adaptive_metadata. Completed sprints are left untouched.
        """
        sprint = await self.store.get_sprint(next_sprint_id)
        if sprint is None or sprint.objective_id != objective_id:
            raise NotFoundError("Sprint not found", error_code="SPRINT_NOT_FOUND")

        current = sprint.difficulty_score
        if sprint.completed_at is not None:
            return DifficultyAdjustment(
                sprint_id=sprint.id,
                adjusted=False,
                previous_difficulty=current,
                new_difficulty=current,
                notes=["Sprint already completed"],
            )

        if analysis.consistently_high:
            new = min(100, current + DIFFICULTY_STEP)
            adaptation_type = "increased"
            notes = [
                "Increased complexity due to high performance",
                "Added advanced concepts",
                "Reduced basic explanations",
            ]
        elif analysis.consistently_low:
            new = max(0, current - DIFFICULTY_STEP)
            adaptation_type = "decreased"
            notes = [
                "Decreased complexity due to struggling",
                "Added more examples and practice",
                "Broke down complex concepts",
            ]
        else:
            new = current
            adaptation_type = "maintained"
            notes = ["Maintained current difficulty level"]

        adaptive_metadata = dict(sprint.adaptive_metadata)
        adaptive_metadata.update(
            {"adaptedFrom": adaptation_type, "adaptationReason": "; ".join(notes)}
        )
        await self.store.update_sprint(
            sprint.id,
            {"difficulty_score": new, "adaptive_metadata": adaptive_metadata},
        )
        await self.store.add_sprint_adaptation(
            SprintAdaptation(
                id=f"sadapt_{uuid.uuid4().hex[:16]}",
                sprint_id=sprint.id,
                objective_id=objective_id,
                adaptation_type=adaptation_type,
                reason="; ".join(notes),
                previous_difficulty=current,
                new_difficulty=new,
                notes=notes,
                created_at=self.clock(),
            )
        )
        logger.info(f"Sprint {sprint.id} difficulty {adaptation_type}: {current} -> {new}")
        return DifficultyAdjustment(
            sprint_id=sprint.id,
            adjusted=new != current,
            previous_difficulty=current,
            new_difficulty=new,
            notes=notes,
        )

    async def adjust_estimated_days(
        self,
        objective_id: str,
        current_velocity: float,
        completed_days: int,
        remaining_days: int,
    ) -> EstimateAdjustment:
        """
        Rescale the remaining days by the learning velocity.

        estimated_total_days = completed_days + round(remaining_days / velocity)
        """
        if current_velocity <= 0:
            raise ValidationError("Velocity must be positive", error_code="INVALID_VELOCITY")
        objective = await self.store.get_objective(objective_id)
        if objective is None:
            raise NotFoundError("Objective not found", error_code="OBJECTIVE_NOT_FOUND")

        adjusted_remaining = round(max(0, remaining_days) / current_velocity)
        new_estimate = max(1, completed_days + adjusted_remaining)
        change = new_estimate - (completed_days + remaining_days)

        if current_velocity > 1.0:
            reasoning = (
                f"Learning {round((current_velocity - 1) * 100)}% faster than expected. "
                f"Reducing total days by {abs(change)}."
            )
        elif current_velocity < 1.0:
            reasoning = (
                f"Learning {round((1 - current_velocity) * 100)}% slower than expected. "
                f"Adding {abs(change)} more days."
            )
        else:
            reasoning = "On track with original estimate."

        await self.store.update_objective(objective_id, {"estimated_total_days": new_estimate})
        logger.info(f"Estimate for {objective_id}: {objective.estimated_total_days} -> {new_estimate}")
        return EstimateAdjustment(
            objective_id=objective_id,
            previous_estimate=objective.estimated_total_days,
            new_estimate=new_estimate,
            adjusted_remaining_days=adjusted_remaining,
            new_completion_date=(self.clock() + timedelta(days=adjusted_remaining)).date(),
            reasoning=reasoning,
        )

    # =========================================================================
    # Completion integration
    # =========================================================================

    async def recalibrate_after_completion(
        self, objective_id: str, user_id: str, completed_day: int
    ) -> tuple[Optional[RecalibrationOutcome], list[CompletionNotification]]:
        """
        Analyze and recalibrate after a sprint completion.

        Nothing is changed when the analysis recommends maintaining. When a
        sprint already exists for the following day, its difficulty follows
        the new calibration.

        Returns:
            (outcome or None when skipped, notifications for the learner)
        """
        analysis = await self.analyze_performance(objective_id, user_id)
        if analysis.sprints_analyzed == 0 or analysis.recommended_action == RecommendedAction.MAINTAIN:
            return None, []

        outcome = await self.recalibrate(objective_id, user_id, analysis)
        notifications: list[CompletionNotification] = []
        if not outcome.applied:
            return outcome, notifications

        next_sprint = await self.store.get_sprint_by_day(objective_id, completed_day + 1)
        if next_sprint is not None:
            await self.adjust_next_sprint_difficulty(objective_id, next_sprint.id, analysis)

        new_difficulty = outcome.decision.new_difficulty
        if new_difficulty > outcome.previous_difficulty:
            notifications.append(
                CompletionNotification(
                    type=NotificationType.DIFFICULTY_INCREASED,
                    title="Difficulty Increased",
                    message="Great performance! Upcoming sprints will be more challenging.",
                    data={"previous": outcome.previous_difficulty, "new": new_difficulty},
                )
            )
        elif new_difficulty < outcome.previous_difficulty:
            notifications.append(
                CompletionNotification(
                    type=NotificationType.DIFFICULTY_DECREASED,
                    title="Difficulty Adjusted",
                    message="Upcoming sprints will focus on strengthening the fundamentals.",
                    data={"previous": outcome.previous_difficulty, "new": new_difficulty},
                )
            )
        return outcome, notifications
