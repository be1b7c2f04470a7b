"""
Enums package.

All closed vocabularies used across the sprint engine are defined here so
that services, models and persistence share one definition.
"""

from sprint_engine.enums.sprint import (
    AcceptanceTestType,
    AdjustmentType,
    ArtifactStatus,
    CheckpointType,
    DeliverableType,
    EventType,
    GenerationMode,
    MicroTaskType,
    NotificationType,
    ObjectiveStatus,
    PerformanceRating,
    PerformanceTrend,
    PlannerMode,
    ProviderName,
    ProviderPurpose,
    RecommendedAction,
    ReviewSource,
    SprintDifficulty,
    SprintStatus,
)

__all__ = [
    "AcceptanceTestType",
    "AdjustmentType",
    "ArtifactStatus",
    "CheckpointType",
    "DeliverableType",
    "EventType",
    "GenerationMode",
    "MicroTaskType",
    "NotificationType",
    "ObjectiveStatus",
    "PerformanceRating",
    "PerformanceTrend",
    "PlannerMode",
    "ProviderName",
    "ProviderPurpose",
    "RecommendedAction",
    "ReviewSource",
    "SprintDifficulty",
    "SprintStatus",
]
