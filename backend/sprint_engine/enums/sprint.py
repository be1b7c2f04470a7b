"""
Sprint Engine Enums

Defines the status state machines for objectives and sprints, plus the
closed vocabularies used by sprint plans, evidence artifacts, reviews and
adaptation decisions.
"""

from enum import Enum


class ObjectiveStatus(str, Enum):
    """Lifecycle of a learner objective."""

    DRAFT = "draft"  # Created at intake, not yet started
    ACTIVE = "active"  # Sprints are being planned and completed
    COMPLETED = "completed"  # Learner explicitly confirmed mastery


class SprintStatus(str, Enum):
    """
    Sprint status state machine.

    State transitions (forward only):
    - PLANNED → IN_PROGRESS (learner starts work)
    - PLANNED | IN_PROGRESS → SUBMITTED (completion without review)
    - PLANNED | IN_PROGRESS | SUBMITTED → REVIEWED (review recorded)
    """

    PLANNED = "planned"  # Generated by the planner, not yet started
    IN_PROGRESS = "in_progress"  # Learner is working on it
    SUBMITTED = "submitted"  # Completed, awaiting review
    REVIEWED = "reviewed"  # Completed and scored

    @property
    def is_completed(self) -> bool:
        return self in (SprintStatus.SUBMITTED, SprintStatus.REVIEWED)

    @property
    def rank(self) -> int:
        return _SPRINT_STATUS_ORDER.index(self)


_SPRINT_STATUS_ORDER = [
    SprintStatus.PLANNED,
    SprintStatus.IN_PROGRESS,
    SprintStatus.SUBMITTED,
    SprintStatus.REVIEWED,
]


class PlannerMode(str, Enum):
    """How the planner builds a sprint plan."""

    SKELETON = "skeleton"  # 1 day, 1 project, exactly 3 micro tasks
    EXPANSION = "expansion"  # Extend an existing plan, IDs preserved


class SprintDifficulty(str, Enum):
    """Difficulty label carried by a canonical sprint plan."""

    BEGINNER = "beginner"
    INTERMEDIATE = "intermediate"
    ADVANCED = "advanced"


class DeliverableType(str, Enum):
    """Kinds of evidence a project deliverable expects."""

    REPOSITORY = "repository"
    DEPLOYMENT = "deployment"
    VIDEO = "video"
    SCREENSHOT = "screenshot"


class ArtifactStatus(str, Enum):
    """Health of a submitted evidence artifact."""

    OK = "ok"
    BROKEN = "broken"
    MISSING = "missing"
    UNKNOWN = "unknown"


class MicroTaskType(str, Enum):
    """Kinds of micro tasks in a sprint plan."""

    CONCEPT = "concept"
    PRACTICE = "practice"
    PROJECT = "project"
    ASSESSMENT = "assessment"
    REFLECTION = "reflection"


class AcceptanceTestType(str, Enum):
    """How a micro task is checked."""

    CHECKLIST = "checklist"
    UNIT_TESTS = "unit_tests"
    QUIZ = "quiz"
    DEMO = "demo"


class CheckpointType(str, Enum):
    """Mid-sprint checkpoint kinds."""

    ASSESSMENT = "assessment"
    QUIZ = "quiz"
    DEMO = "demo"


class ProviderName(str, Enum):
    """Interchangeable reasoning providers."""

    GROQ = "groq"  # Hosted, low latency
    LMSTUDIO = "lmstudio"  # Locally hosted, OpenAI-compatible


class ProviderPurpose(str, Enum):
    """What a provider call is used for. Selects model and provider config."""

    PLANNER = "planner"
    REVIEWER = "reviewer"
    ADAPTATION = "adaptation"


class ReviewSource(str, Enum):
    """Where a review came from."""

    REMOTE = "remote"
    FALLBACK = "fallback"
    MIXED = "mixed"  # Aggregate only: some projects remote, some fallback


class PerformanceTrend(str, Enum):
    """Direction of recent sprint scores."""

    IMPROVING = "improving"
    STABLE = "stable"
    DECLINING = "declining"


class RecommendedAction(str, Enum):
    """Action suggested by performance analysis."""

    SPEED_UP = "speed_up"
    SLOW_DOWN = "slow_down"
    MAINTAIN = "maintain"
    REVIEW = "review"


class AdjustmentType(str, Enum):
    """Direction of a recalibration decision."""

    INCREASE = "increase"
    DECREASE = "decrease"
    MAINTAIN = "maintain"


class GenerationMode(str, Enum):
    """How eagerly an objective's sprints are generated ahead of time."""

    DAILY = "daily"
    WEEKLY = "weekly"
    MILESTONE = "milestone"
    MANUAL = "manual"


class PerformanceRating(str, Enum):
    """Progress velocity bucket."""

    AHEAD = "ahead"
    ON_TRACK = "on-track"
    BEHIND = "behind"
    AT_RISK = "at-risk"


class NotificationType(str, Enum):
    """Presentation notifications surfaced by sprint completion."""

    SPRINT_COMPLETED = "sprint_completed"
    MILESTONE_REACHED = "milestone_reached"
    STREAK_MILESTONE = "streak_milestone"
    OBJECTIVE_PROGRESS = "objective_progress"
    DIFFICULTY_INCREASED = "difficulty_increased"
    DIFFICULTY_DECREASED = "difficulty_decreased"


class EventType(str, Enum):
    """Domain events emitted to the event collaborator."""

    SPRINT_COMPLETED = "sprint_completed"
    MILESTONE_REACHED = "milestone_reached"
    SPRINT_GENERATED = "sprint_generated"
    OBJECTIVE_RECALIBRATED = "objective_recalibrated"
