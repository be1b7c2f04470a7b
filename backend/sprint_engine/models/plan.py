"""
Sprint Plan Wire Models (Pydantic)

The canonical sprint plan is the document a planner provider must return
and the shape stored on every sprint as its planner output. It is also the
source of the strict JSON schema sent to providers, so these classes are
the single, versioned definition of the plan contract.

Also defined here is the planner request payload: the objective, learner
profile, preferred length, mode and (for expansion) the current plan plus
expansion goal.

ARCHITECTURE NOTE:
    JSON keys are camelCase (provider contract); Python attributes are
    snake_case. Use `plan.to_wire()` to get the provider-shaped dict.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Literal, Optional, Union

from pydantic import Field, field_validator, model_validator

from sprint_engine.enums import (
    AcceptanceTestType,
    CheckpointType,
    DeliverableType,
    MicroTaskType,
    PlannerMode,
    SprintDifficulty,
)
from sprint_engine.models.base import WireModel

PLAN_SCHEMA_VERSION = "2"

ALLOWED_LENGTH_DAYS = (1, 3, 7, 14)
MIN_TASK_MINUTES = 20
MAX_TASK_MINUTES = 90

LengthDays = Literal[1, 3, 7, 14]


# ===========================================
# Project Components
# ===========================================


class Deliverable(WireModel):
    """A piece of evidence a project expects, matched to artifacts by artifact_id."""

    type: DeliverableType
    title: str
    artifact_id: str


class RubricDimension(WireModel):
    """One weighted scoring dimension of an evidence rubric."""

    name: str
    weight: float = Field(ge=0, le=1)
    levels: Optional[list[str]] = None


class EvidenceRubric(WireModel):
    """Named weighted dimensions plus the score needed to pass."""

    dimensions: list[RubricDimension] = Field(min_length=1)
    pass_threshold: float = Field(ge=0, le=1)


class Checkpoint(WireModel):
    id: str
    title: str
    type: CheckpointType
    spec: str


class SupportConcept(WireModel):
    id: str
    title: str
    summary: str


class PracticeKata(WireModel):
    id: str
    title: str
    estimate_min: int = Field(ge=5)


class ProjectSupport(WireModel):
    concepts: Optional[list[SupportConcept]] = None
    practice_katas: Optional[list[PracticeKata]] = None
    allowed_resources: Optional[list[str]] = None


class ProjectReflection(WireModel):
    prompt: str
    mood_check: Optional[bool] = None


class SprintProject(WireModel):
    """
    A portfolio project within a sprint.

    Every project carries an evidence rubric; the planner's sanitizer
    injects the default rubric before validation when a provider omits it.
    """

    id: str = Field(min_length=1)
    title: str
    brief: str
    requirements: list[str] = Field(min_length=1)
    acceptance_criteria: list[str] = Field(min_length=1)
    deliverables: list[Deliverable] = Field(min_length=1)
    evidence_rubric: EvidenceRubric
    checkpoints: Optional[list[Checkpoint]] = None
    support: Optional[ProjectSupport] = None
    reflection: Optional[ProjectReflection] = None


# ===========================================
# Micro Tasks
# ===========================================


class AcceptanceTest(WireModel):
    type: AcceptanceTestType
    spec: Union[str, list[str]]

    @field_validator("spec")
    @classmethod
    def spec_not_empty(cls, v):
        if isinstance(v, list) and not v:
            raise ValueError("acceptance test spec list must not be empty")
        return v


class MicroTask(WireModel):
    """Smallest schedulable unit of a sprint (20-90 minutes)."""

    id: str = Field(min_length=1)
    project_id: str
    title: str
    type: MicroTaskType
    estimated_minutes: int = Field(ge=MIN_TASK_MINUTES, le=MAX_TASK_MINUTES)
    instructions: str
    acceptance_test: AcceptanceTest
    resources: Optional[list[str]] = None


# ===========================================
# Portfolio
# ===========================================


class PortfolioLinks(WireModel):
    repo: Optional[str] = None
    demo: Optional[str] = None
    video: Optional[str] = None


class PortfolioCard(WireModel):
    project_id: str
    cover: Optional[str] = None
    headline: str
    badges: Optional[list[str]] = None
    links: Optional[PortfolioLinks] = None


# ===========================================
# Canonical Plan
# ===========================================


class CanonicalSprintPlan(WireModel):
    """
    The canonical, schema-valid sprint plan.

    Cross-field rules:
        - micro task IDs are unique
        - project IDs are unique
        - every micro task references a project in the plan
    """

    id: str = Field(min_length=1)
    title: str = Field(min_length=3)
    description: str = Field(min_length=5)
    length_days: LengthDays
    total_estimated_hours: float = Field(ge=1)
    difficulty: SprintDifficulty
    projects: list[SprintProject] = Field(min_length=1)
    micro_tasks: list[MicroTask] = Field(min_length=3)
    portfolio_cards: Optional[list[PortfolioCard]] = None
    adaptation_notes: str = Field(min_length=5)

    @model_validator(mode="after")
    def check_references(self) -> "CanonicalSprintPlan":
        project_ids = [p.id for p in self.projects]
        if len(set(project_ids)) != len(project_ids):
            raise ValueError("project ids must be unique")

        task_ids = [t.id for t in self.micro_tasks]
        if len(set(task_ids)) != len(task_ids):
            raise ValueError("micro task ids must be unique")

        known = set(project_ids)
        dangling = [t.id for t in self.micro_tasks if t.project_id not in known]
        if dangling:
            raise ValueError(f"micro tasks reference unknown projects: {dangling}")
        return self


# ===========================================
# Planner Request
# ===========================================


class PlannerObjective(WireModel):
    id: str
    title: str
    description: Optional[str] = None
    success_criteria: list[str] = Field(default_factory=list)
    required_skills: list[str] = Field(default_factory=list)
    priority: Optional[int] = None
    status: Optional[str] = None


class PlannerLearnerProfile(WireModel):
    id: Optional[str] = None
    hours_per_week: Optional[float] = None
    strengths: list[str] = Field(default_factory=list)
    gaps: list[str] = Field(default_factory=list)
    passion_tags: list[str] = Field(default_factory=list)
    blockers: list[str] = Field(default_factory=list)
    goals: list[str] = Field(default_factory=list)


class ExpansionGoal(WireModel):
    target_length_days: Optional[LengthDays] = None
    additional_micro_tasks: Optional[int] = Field(default=None, ge=1, le=20)


class PlannerRequest(WireModel):
    """
    Provider-agnostic planning request.

    `current_plan` and `expansion_goal` are only meaningful in expansion
    mode; they are required there and must be absent in skeleton mode.
    """

    objective: PlannerObjective
    learner_profile: Optional[PlannerLearnerProfile] = None
    prefer_length: Optional[int] = None
    allowed_resources: Optional[list[str]] = None
    context: dict[str, Any] = Field(default_factory=dict)
    mode: PlannerMode = PlannerMode.SKELETON
    current_plan: Optional[CanonicalSprintPlan] = None
    expansion_goal: Optional[ExpansionGoal] = None

    @model_validator(mode="after")
    def check_mode(self) -> "PlannerRequest":
        if self.mode == PlannerMode.EXPANSION:
            if self.current_plan is None:
                raise ValueError("expansion mode requires current_plan")
            if self.expansion_goal is None:
                self.expansion_goal = ExpansionGoal()
        else:
            if self.current_plan is not None:
                raise ValueError("skeleton mode does not accept current_plan")
            self.expansion_goal = None
        return self

    def to_wire(self) -> dict[str, Any]:
        # Keep explicit nulls so providers see every top-level key.
        return self.model_dump(mode="json", by_alias=True)


class PlanMetadata(WireModel):
    """Provenance recorded alongside a generated plan."""

    planner_version: str
    schema_version: str = PLAN_SCHEMA_VERSION
    requested_at: datetime
    provider: str
    model: Optional[str] = None
    mode: PlannerMode
    objective_id: str
    learner_profile_id: Optional[str] = None
    prefer_length: Optional[int] = None
    prompt_hash: Optional[str] = None
    latency_ms: Optional[int] = None
