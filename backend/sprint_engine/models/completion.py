"""
Completion and Progress Models (Pydantic)

Input and result documents for the sprint completion workflow and the
derived objective progress view.
"""

from datetime import date, datetime
from typing import Any, Optional

from pydantic import Field, model_validator

from sprint_engine.enums import NotificationType, PerformanceRating
from sprint_engine.models.base import StrictRequest, StrictResponse


class CompletionData(StrictRequest):
    """Learner's completion submission for a sprint."""

    tasks_completed: int = Field(ge=0)
    total_tasks: int = Field(ge=0)
    hours_spent: float = Field(ge=0)
    evidence_submitted: bool = False
    reflection: Optional[str] = Field(default=None, max_length=2000)

    @model_validator(mode="after")
    def check_task_counts(self) -> "CompletionData":
        if self.tasks_completed > self.total_tasks:
            raise ValueError(
                f"tasks_completed ({self.tasks_completed}) exceeds total_tasks ({self.total_tasks})"
            )
        return self

    @property
    def completion_rate(self) -> float:
        """Percentage of tasks completed (0 when there are no tasks)."""
        if self.total_tasks <= 0:
            return 0.0
        return self.tasks_completed / self.total_tasks * 100


class CompletionNotification(StrictResponse):
    """Presentation notification surfaced with a completion result."""

    type: NotificationType
    title: str
    message: str
    data: dict[str, Any] = Field(default_factory=dict)


class NextMilestone(StrictResponse):
    title: str
    target_day: int
    days_until: int


class ObjectiveProgress(StrictResponse):
    """
    Aggregate progress for an objective, recomputed on every read.

    `goal_reached` reports that completed days met the estimate; it never
    changes the objective's status.
    """

    objective_id: str
    total_estimated_days: int
    current_day: int
    completed_days: int
    days_remaining: int
    percent_complete: float

    total_sprints: int
    completed_sprints: int

    current_streak: int
    longest_streak: int
    last_completion_date: Optional[date] = None

    milestones_total: int
    milestones_completed: int
    next_milestone: Optional[NextMilestone] = None

    total_hours_spent: float
    average_hours_per_day: float

    estimated_completion_date: Optional[date] = None
    projected_completion_date: Optional[date] = None
    on_track: bool
    performance_rating: PerformanceRating
    completion_rate: float
    velocity: float

    struggling_areas: list[str] = Field(default_factory=list)
    mastered_skills: list[str] = Field(default_factory=list)
    recommended_focus: str

    goal_reached: bool


class CompletionResult(StrictResponse):
    """
    Outcome of a successful sprint completion.

    Side-effect failures (generation, buffer, recalibration, events) are
    reported through `side_effect_errors` and never fail the completion.
    """

    success: bool = True
    sprint_completed: bool = True
    sprint_id: str
    day_number: int
    completion_rate: float
    status: str
    completed_at: datetime
    current_streak: int
    milestone_reached: bool = False
    next_sprint_generated: bool = False
    next_sprint_id: Optional[str] = None
    recalibrated: bool = False
    progress: Optional[ObjectiveProgress] = None
    notifications: list[CompletionNotification] = Field(default_factory=list)
    side_effect_errors: dict[str, str] = Field(default_factory=dict)


class CompletionStatus(StrictResponse):
    """Whether a sprint can currently be completed."""

    sprint_id: str
    can_complete: bool
    is_completed: bool
    completion_percentage: float
    tasks_completed: int
    total_tasks: int
    missing_requirements: list[str] = Field(default_factory=list)


class ProgressUpdate(StrictResponse):
    """Result of a partial progress update."""

    sprint_id: str
    completion_percentage: float
    hours_spent: Optional[float] = None
    objective_progress_percentage: float
