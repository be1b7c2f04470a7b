"""
Sprint Engine

Wires the services together and exposes the operations an outer layer
(HTTP routes, workers, scripts) calls. Each operation returns a result
model or raises a ServiceError subclass.

Usage:
    engine = get_sprint_engine()
    result = await engine.complete_sprint(sprint_id, user_id, CompletionData(...))

    # Tests and embedding: build with explicit collaborators
    engine = build_engine(store=InMemorySprintStore(), planner_gateway=fake)
"""

import logging
from typing import Optional, Sequence

from sprint_engine.config import Settings, settings as default_settings
from sprint_engine.enums import ProviderPurpose
from sprint_engine.models import (
    BufferReport,
    CompletionData,
    CompletionResult,
    CompletionStatus,
    GenerationDecision,
    GenerationStatus,
    Objective,
    ObjectiveProgress,
    PerformanceAnalysis,
    ProgressUpdate,
    RecalibrationOutcome,
    ReviewArtifact,
    SelfEvaluation,
    Sprint,
    SprintArtifact,
    SprintReview,
)
from sprint_engine.services.adaptation import AdaptiveRecalibrator
from sprint_engine.services.clock import Clock, utc_now
from sprint_engine.services.completion import CompletionHandler, ProgressCalculator
from sprint_engine.services.events import EventEmitter, LoggingEventEmitter
from sprint_engine.services.lifecycle import SprintLifecycleService
from sprint_engine.services.objectives import ObjectiveService
from sprint_engine.services.planning import SprintPlanner
from sprint_engine.services.providers import ProviderGateway, create_gateway
from sprint_engine.services.review import ReviewEngine
from sprint_engine.services.scheduling import AutoGenerationScheduler, ObjectiveLockRegistry
from sprint_engine.services.skills import ReviewHistorySkillTracker, SkillTracker
from sprint_engine.store import SprintLifecycleStore

logger = logging.getLogger(__name__)


class SprintEngine:
    """
    Facade over the sprint services.

    Attributes:
        store: Lifecycle store shared by every service
        planner / reviewer / recalibrator / scheduler / completion /
        lifecycle / objectives / progress: the wired services
    """

    def __init__(
        self,
        store: SprintLifecycleStore,
        planner: SprintPlanner,
        reviewer: ReviewEngine,
        recalibrator: AdaptiveRecalibrator,
        scheduler: AutoGenerationScheduler,
        completion: CompletionHandler,
        lifecycle: SprintLifecycleService,
        objectives: ObjectiveService,
        progress: ProgressCalculator,
    ):
        self.store = store
        self.planner = planner
        self.reviewer = reviewer
        self.recalibrator = recalibrator
        self.scheduler = scheduler
        self.completion = completion
        self.lifecycle = lifecycle
        self.objectives = objectives
        self.progress = progress

    # Objectives

    async def create_objective(self, user_id: str, title: str, **kwargs) -> Objective:
        return await self.objectives.create_objective(user_id, title, **kwargs)

    async def confirm_objective_completion(self, objective_id: str, user_id: str) -> Objective:
        return await self.objectives.confirm_objective_completion(objective_id, user_id)

    async def get_progress(self, objective_id: str) -> ObjectiveProgress:
        return await self.progress.get_progress(objective_id)

    # Completion

    async def complete_sprint(
        self, sprint_id: str, user_id: str, data: CompletionData
    ) -> CompletionResult:
        return await self.completion.complete_sprint(sprint_id, user_id, data)

    async def get_completion_status(
        self, sprint_id: str, user_id: Optional[str] = None
    ) -> CompletionStatus:
        return await self.completion.get_completion_status(sprint_id, user_id)

    async def update_progress(
        self,
        sprint_id: str,
        user_id: str,
        completion_percentage: float,
        hours_spent: Optional[float] = None,
    ) -> ProgressUpdate:
        return await self.completion.update_progress(
            sprint_id, user_id, completion_percentage, hours_spent
        )

    # Generation

    async def should_generate_next(
        self, objective_id: str, current_sprint_id: Optional[str] = None
    ) -> GenerationDecision:
        return await self.scheduler.should_generate_next(objective_id, current_sprint_id)

    async def generate_next_sprint(
        self, objective_id: str, user_id: str, current_day: Optional[int] = None
    ) -> Sprint:
        return await self.scheduler.generate_next_sprint(objective_id, user_id, current_day)

    async def generate_sprint_batch(
        self, objective_id: str, user_id: str, start_day: int, count: int
    ) -> list[Sprint]:
        return await self.scheduler.generate_sprint_batch(objective_id, user_id, start_day, count)

    async def maintain_sprint_buffer(self, objective_id: str) -> BufferReport:
        return await self.scheduler.maintain_sprint_buffer(objective_id)

    async def get_generation_status(self, objective_id: str) -> GenerationStatus:
        return await self.scheduler.get_generation_status(objective_id)

    # Sprint lifecycle

    async def start_sprint(self, sprint_id: str, user_id: str) -> Sprint:
        return await self.lifecycle.start_sprint(sprint_id, user_id)

    async def submit_evidence(
        self,
        sprint_id: str,
        user_id: str,
        artifacts: Sequence[ReviewArtifact],
        self_evaluation: Optional[SelfEvaluation] = None,
    ) -> list[SprintArtifact]:
        return await self.lifecycle.submit_evidence(sprint_id, user_id, artifacts, self_evaluation)

    async def review_sprint(self, sprint_id: str, user_id: str) -> SprintReview:
        return await self.lifecycle.review_sprint(sprint_id, user_id)

    async def expand_sprint(
        self,
        sprint_id: str,
        user_id: str,
        target_length_days: Optional[int] = None,
        additional_micro_tasks: Optional[int] = None,
    ) -> Sprint:
        return await self.lifecycle.expand_sprint(
            sprint_id, user_id, target_length_days, additional_micro_tasks
        )

    # Adaptation

    async def analyze_performance(
        self, objective_id: str, user_id: str, window_size: Optional[int] = None
    ) -> PerformanceAnalysis:
        return await self.recalibrator.analyze_performance(objective_id, user_id, window_size)

    async def recalibrate(
        self,
        objective_id: str,
        user_id: str,
        analysis: Optional[PerformanceAnalysis] = None,
    ) -> RecalibrationOutcome:
        return await self.recalibrator.recalibrate(objective_id, user_id, analysis)


def build_engine(
    store: Optional[SprintLifecycleStore] = None,
    app_settings: Optional[Settings] = None,
    planner_gateway: Optional[ProviderGateway] = None,
    reviewer_gateway: Optional[ProviderGateway] = None,
    adaptation_gateway: Optional[ProviderGateway] = None,
    events: Optional[EventEmitter] = None,
    skill_tracker: Optional[SkillTracker] = None,
    clock: Clock = utc_now,
    locks: Optional[ObjectiveLockRegistry] = None,
) -> SprintEngine:
    """
    Build a SprintEngine.

    Collaborators that are not given are created from settings: gateways
    through create_gateway(), the store as a SQLAlchemySprintStore on the
    configured database.
    """
    app_settings = app_settings or default_settings
    events = events or LoggingEventEmitter()

    if store is None:
        from sprint_engine.db import create_engine_from_settings, create_session_maker
        from sprint_engine.store import SQLAlchemySprintStore

        store = SQLAlchemySprintStore(
            create_session_maker(create_engine_from_settings(app_settings))
        )

    skill_tracker = skill_tracker or ReviewHistorySkillTracker(store)
    planner = SprintPlanner(
        planner_gateway or create_gateway(ProviderPurpose.PLANNER, app_settings),
        app_settings=app_settings,
        clock=clock,
    )
    reviewer = ReviewEngine(
        reviewer_gateway or create_gateway(ProviderPurpose.REVIEWER, app_settings),
        app_settings=app_settings,
    )
    recalibrator = AdaptiveRecalibrator(
        store,
        gateway=adaptation_gateway or create_gateway(ProviderPurpose.ADAPTATION, app_settings),
        app_settings=app_settings,
        clock=clock,
        events=events,
        skill_tracker=skill_tracker,
    )
    scheduler = AutoGenerationScheduler(
        store,
        planner,
        app_settings=app_settings,
        clock=clock,
        locks=locks,
        events=events,
        skill_tracker=skill_tracker,
    )
    progress = ProgressCalculator(store, skill_tracker=skill_tracker, clock=clock)
    completion = CompletionHandler(
        store,
        scheduler=scheduler,
        recalibrator=recalibrator,
        progress=progress,
        app_settings=app_settings,
        clock=clock,
        events=events,
    )
    return SprintEngine(
        store=store,
        planner=planner,
        reviewer=reviewer,
        recalibrator=recalibrator,
        scheduler=scheduler,
        completion=completion,
        lifecycle=SprintLifecycleService(store, review_engine=reviewer, planner=planner, clock=clock),
        objectives=ObjectiveService(store, clock=clock),
        progress=progress,
    )


# Singleton instance
_engine: Optional[SprintEngine] = None


def get_sprint_engine() -> SprintEngine:
    """
    Get or create the singleton engine built from settings.

    Returns:
        Shared SprintEngine instance
    """
    global _engine
    if _engine is None:
        _engine = build_engine()
        logger.info("Sprint engine initialized")
    return _engine


def reset_sprint_engine():
    """Reset the singleton engine (useful for testing)."""
    global _engine
    _engine = None
