"""
Review Models (Pydantic)

Request/response documents for sprint evidence review:

- ReviewArtifact / SelfEvaluation: what the learner submitted
- ReviewRequest: the per-project document sent to the reviewer provider
- ReviewOutput: the strict response schema (also produced by the fallback)
- ProjectReview / SprintReview: per-project results and the aggregate
"""

from typing import Optional

from pydantic import Field

from sprint_engine.enums import ArtifactStatus, DeliverableType, ReviewSource
from sprint_engine.models.base import StrictRequest, StrictResponse, WireModel
from sprint_engine.models.plan import SprintProject


class ReviewArtifact(WireModel):
    """
    One submitted piece of evidence as seen by the reviewer.

    `artifact_id` links the artifact to a project deliverable; `project_id`
    scopes it to a project of the sprint.
    """

    artifact_id: str
    project_id: str
    type: DeliverableType
    title: Optional[str] = None
    url: Optional[str] = None
    status: Optional[ArtifactStatus] = None
    notes: Optional[str] = None


class SelfEvaluation(WireModel):
    confidence: Optional[float] = Field(default=None, ge=0, le=10)
    reflection: Optional[str] = Field(default=None, max_length=2000)


class ReviewRequest(WireModel):
    """Per-project review request sent to the reviewer provider."""

    project: SprintProject
    artifacts: list[ReviewArtifact] = Field(default_factory=list)
    self_evaluation: Optional[SelfEvaluation] = None


class ReviewOutput(WireModel):
    """Normalized review of one project (or the aggregate of several)."""

    score: float = Field(ge=0, le=1)
    achieved: list[str] = Field(default_factory=list)
    missing: list[str] = Field(default_factory=list)
    next_recommendations: list[str]
    pass_: bool = Field(alias="pass")


class ProjectReview(StrictResponse):
    """Review of a single project plus where it came from."""

    project_id: str
    review: ReviewOutput
    source: ReviewSource
    error_reason: Optional[str] = None


class SprintReview(StrictResponse):
    """
    Aggregate review across a sprint's projects.

    Attributes:
        score: Arithmetic mean of project scores (0 when no projects)
        passed: True only when every project passed
        achieved: De-duplicated union of project achieved items
        missing: De-duplicated union of project missing items
        recommendations: De-duplicated union of project recommendations
        provider: remote / fallback / mixed
        projects: Per-project reviews
    """

    score: float
    passed: bool
    achieved: list[str]
    missing: list[str]
    recommendations: list[str]
    provider: ReviewSource
    projects: list[ProjectReview]
    summary: str = ""


class EvidenceSubmission(StrictRequest):
    """Caller input for attaching evidence to a sprint."""

    artifacts: list[ReviewArtifact] = Field(default_factory=list)
    self_evaluation: Optional[SelfEvaluation] = None
