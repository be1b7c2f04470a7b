"""
Lifecycle Records (Pydantic)

Domain records persisted through the SprintLifecycleStore:

- LearnerProfile: the snapshot an objective is owned through
- Objective: a learner's multi-week goal
- Sprint: one unit of planned work and its completion/review state
- SprintArtifact: submitted evidence, keyed by (sprint_id, artifact_id)
- Milestone: a target day within an objective
- AdaptationHistoryEntry: immutable record of an applied recalibration
- SprintAdaptation: record of a difficulty change applied to one sprint

ARCHITECTURE NOTE:
    These are the store's unit of exchange. The SQLAlchemy store maps them
    to tables in sprint_engine/db/models.py; the in-memory store keeps deep
    copies so callers can never alias stored state.
"""

from __future__ import annotations

from datetime import date, datetime
from typing import Any, Optional

from pydantic import Field, model_validator

from sprint_engine.enums import (
    ArtifactStatus,
    DeliverableType,
    GenerationMode,
    ObjectiveStatus,
    PlannerMode,
    SprintDifficulty,
    SprintStatus,
)
from sprint_engine.models.base import StrictResponse
from sprint_engine.models.plan import CanonicalSprintPlan


class LearnerProfile(StrictResponse):
    """Learner profile snapshot taken when the objective was created."""

    id: str
    user_id: str
    hours_per_week: Optional[float] = None
    strengths: list[str] = Field(default_factory=list)
    gaps: list[str] = Field(default_factory=list)
    passion_tags: list[str] = Field(default_factory=list)
    blockers: list[str] = Field(default_factory=list)
    goals: list[str] = Field(default_factory=list)


class Objective(StrictResponse):
    """
    A learner's multi-week goal.

    Attributes:
        current_day: Highest day number generated so far
        completed_days: Number of completed sprints (one per day)
        current_difficulty: 0-100, moved by recalibration
        learning_velocity: Pace multiplier in [0.5, 2.0]
        current_streak / longest_streak / last_completion_date: streak bookkeeping
    """

    id: str
    user_id: str
    profile: Optional[LearnerProfile] = None
    title: str
    description: Optional[str] = None
    success_criteria: list[str] = Field(default_factory=list)
    required_skills: list[str] = Field(default_factory=list)
    allowed_resources: Optional[list[str]] = None
    priority: Optional[int] = None
    status: ObjectiveStatus = ObjectiveStatus.ACTIVE

    estimated_total_days: int = Field(default=30, ge=1)
    completed_days: int = 0
    current_day: int = 0
    total_sprints_generated: int = 0

    current_difficulty: int = Field(default=50, ge=0, le=100)
    learning_velocity: float = 1.0
    recalibration_count: int = 0
    last_recalibrated_at: Optional[datetime] = None

    current_streak: int = 0
    longest_streak: int = 0
    last_completion_date: Optional[date] = None

    sprint_generation_mode: GenerationMode = GenerationMode.DAILY
    auto_generate_next_sprint: bool = True

    created_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None


class Sprint(StrictResponse):
    """
    One unit of planned work.

    `completed_at` is set exactly when status is submitted or reviewed.
    """

    id: str
    objective_id: str
    day_number: int = Field(ge=1)
    length_days: int = 1
    total_estimated_hours: float = 0
    difficulty: SprintDifficulty = SprintDifficulty.BEGINNER
    difficulty_score: int = Field(default=50, ge=0, le=100)
    status: SprintStatus = SprintStatus.PLANNED
    planner_mode: PlannerMode = PlannerMode.SKELETON

    planner_input: dict[str, Any] = Field(default_factory=dict)
    planner_output: dict[str, Any] = Field(default_factory=dict)
    plan_metadata: dict[str, Any] = Field(default_factory=dict)
    adaptive_metadata: dict[str, Any] = Field(default_factory=dict)

    is_auto_generated: bool = False
    next_sprint_id: Optional[str] = None

    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    completion_percentage: float = 0
    hours_spent: Optional[float] = None
    tasks_completed: Optional[int] = None
    total_tasks: Optional[int] = None
    reflection: Optional[str] = None

    score: Optional[float] = None
    reviewer_summary: Optional[dict[str, Any]] = None
    reviewed_at: Optional[datetime] = None
    self_evaluation_confidence: Optional[float] = None
    self_evaluation_reflection: Optional[str] = None

    created_at: Optional[datetime] = None

    @model_validator(mode="after")
    def check_completion_state(self) -> "Sprint":
        if (self.completed_at is not None) != self.status.is_completed:
            raise ValueError(
                f"completed_at must be set iff status is submitted/reviewed "
                f"(status={self.status.value})"
            )
        return self

    @property
    def title(self) -> str:
        return self.planner_output.get("title") or f"Day {self.day_number}"

    def plan(self) -> Optional[CanonicalSprintPlan]:
        """Parse the stored planner output, or None if the sprint has no plan."""
        if not self.planner_output:
            return None
        return CanonicalSprintPlan.model_validate(self.planner_output)


class SprintArtifact(StrictResponse):
    """Submitted evidence for one project deliverable of a sprint."""

    sprint_id: str
    artifact_id: str
    project_id: str
    type: DeliverableType
    title: Optional[str] = None
    url: Optional[str] = None
    status: ArtifactStatus = ArtifactStatus.UNKNOWN
    notes: Optional[str] = None
    submitted_at: Optional[datetime] = None


class Milestone(StrictResponse):
    id: str
    objective_id: str
    title: str
    description: Optional[str] = None
    target_day: int = Field(ge=1)
    is_completed: bool = False
    completed_at: Optional[datetime] = None


class AdaptationHistoryEntry(StrictResponse):
    """Immutable record of one applied recalibration."""

    id: str
    objective_id: str
    previous_estimate: int
    new_estimate: int
    reason: str
    performance_scores: list[float] = Field(default_factory=list)
    velocity: float
    difficulty: int
    adjustment_type: str
    recommendations: list[str] = Field(default_factory=list)
    created_at: datetime


class SprintAdaptation(StrictResponse):
    """Record of a difficulty change applied to a not-yet-started sprint."""

    id: str
    sprint_id: str
    objective_id: str
    adaptation_type: str
    reason: str
    previous_difficulty: int
    new_difficulty: int
    notes: list[str] = Field(default_factory=list)
    created_at: datetime
