"""
Pydantic models package.

Wire documents exchanged with providers (plans, reviews, adaptation
decisions), caller input, results and the lifecycle records persisted
through the store.
"""

from sprint_engine.models.adaptation import (
    AdaptationDecision,
    BufferReport,
    DifficultyAdjustment,
    EstimateAdjustment,
    GenerationDecision,
    GenerationStatus,
    ModeConfig,
    PerformanceAnalysis,
    RecalibrationOutcome,
)
from sprint_engine.models.base import (
    StrictRequest,
    StrictResponse,
    WireModel,
    strict_json_schema,
)
from sprint_engine.models.completion import (
    CompletionData,
    CompletionNotification,
    CompletionResult,
    CompletionStatus,
    NextMilestone,
    ObjectiveProgress,
    ProgressUpdate,
)
from sprint_engine.models.lifecycle import (
    AdaptationHistoryEntry,
    LearnerProfile,
    Milestone,
    Objective,
    Sprint,
    SprintAdaptation,
    SprintArtifact,
)
from sprint_engine.models.plan import (
    CanonicalSprintPlan,
    Deliverable,
    EvidenceRubric,
    ExpansionGoal,
    MicroTask,
    PlanMetadata,
    PlannerLearnerProfile,
    PlannerObjective,
    PlannerRequest,
    RubricDimension,
    SprintProject,
)
from sprint_engine.models.review import (
    EvidenceSubmission,
    ProjectReview,
    ReviewArtifact,
    ReviewOutput,
    ReviewRequest,
    SelfEvaluation,
    SprintReview,
)

__all__ = [
    # Base
    "StrictRequest",
    "StrictResponse",
    "WireModel",
    "strict_json_schema",
    # Plan
    "CanonicalSprintPlan",
    "Deliverable",
    "EvidenceRubric",
    "ExpansionGoal",
    "MicroTask",
    "PlanMetadata",
    "PlannerLearnerProfile",
    "PlannerObjective",
    "PlannerRequest",
    "RubricDimension",
    "SprintProject",
    # Review
    "EvidenceSubmission",
    "ProjectReview",
    "ReviewArtifact",
    "ReviewOutput",
    "ReviewRequest",
    "SelfEvaluation",
    "SprintReview",
    # Lifecycle
    "AdaptationHistoryEntry",
    "LearnerProfile",
    "Milestone",
    "Objective",
    "Sprint",
    "SprintAdaptation",
    "SprintArtifact",
    # Completion
    "CompletionData",
    "CompletionNotification",
    "CompletionResult",
    "CompletionStatus",
    "NextMilestone",
    "ObjectiveProgress",
    "ProgressUpdate",
    # Adaptation & generation
    "AdaptationDecision",
    "BufferReport",
    "DifficultyAdjustment",
    "EstimateAdjustment",
    "GenerationDecision",
    "GenerationStatus",
    "ModeConfig",
    "PerformanceAnalysis",
    "RecalibrationOutcome",
]
