"""
SQLAlchemy Database Models for the Sprint Lifecycle

Tables:
- objectives: learner goals with streak, difficulty and velocity state
- sprints: planned units of work, unique per (objective_id, day_number)
- sprint_artifacts: submitted evidence, unique per (sprint_id, artifact_id)
- milestones: target days within an objective
- objective_adaptation_history: immutable recalibration records
- sprint_adaptations: difficulty changes applied to individual sprints

ARCHITECTURE NOTE:
    This file contains SQLALCHEMY models for database persistence.
    The corresponding Pydantic records live in sprint_engine/models/lifecycle.py

    Data flows: Service Layer → Pydantic → SQLAlchemy → Database
"""

from datetime import date, datetime, timezone
from typing import Optional

from sqlalchemy import (
    JSON,
    Boolean,
    Date,
    DateTime,
    Float,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column

from sprint_engine.db.base import Base


def _utc_now() -> datetime:
    """Return current UTC time as timezone-aware datetime."""
    return datetime.now(timezone.utc)


# ===========================================
# Objectives & Milestones
# ===========================================


class ObjectiveRow(Base):
    """
    A learner's multi-week objective.

    `profile` holds the learner profile snapshot the objective is owned
    through; `user_id` duplicates its owner for indexed ownership checks.
    """

    __tablename__ = "objectives"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    user_id: Mapped[str] = mapped_column(String(64), index=True)
    profile: Mapped[Optional[dict]] = mapped_column(JSON)

    title: Mapped[str] = mapped_column(String(500))
    description: Mapped[Optional[str]] = mapped_column(Text)
    success_criteria: Mapped[list] = mapped_column(JSON, default=list)
    required_skills: Mapped[list] = mapped_column(JSON, default=list)
    allowed_resources: Mapped[Optional[list]] = mapped_column(JSON)
    priority: Mapped[Optional[int]] = mapped_column(Integer)
    status: Mapped[str] = mapped_column(String(20), default="active")

    estimated_total_days: Mapped[int] = mapped_column(Integer, default=30)
    completed_days: Mapped[int] = mapped_column(Integer, default=0)
    current_day: Mapped[int] = mapped_column(Integer, default=0)
    total_sprints_generated: Mapped[int] = mapped_column(Integer, default=0)

    current_difficulty: Mapped[int] = mapped_column(Integer, default=50)
    learning_velocity: Mapped[float] = mapped_column(Float, default=1.0)
    recalibration_count: Mapped[int] = mapped_column(Integer, default=0)
    last_recalibrated_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True)
    )

    current_streak: Mapped[int] = mapped_column(Integer, default=0)
    longest_streak: Mapped[int] = mapped_column(Integer, default=0)
    last_completion_date: Mapped[Optional[date]] = mapped_column(Date)

    sprint_generation_mode: Mapped[str] = mapped_column(String(20), default="daily")
    auto_generate_next_sprint: Mapped[bool] = mapped_column(Boolean, default=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utc_now
    )
    completed_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))


class MilestoneRow(Base):
    __tablename__ = "milestones"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    objective_id: Mapped[str] = mapped_column(
        ForeignKey("objectives.id"), index=True
    )
    title: Mapped[str] = mapped_column(String(500))
    description: Mapped[Optional[str]] = mapped_column(Text)
    target_day: Mapped[int] = mapped_column(Integer)
    is_completed: Mapped[bool] = mapped_column(Boolean, default=False)
    completed_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))


# ===========================================
# Sprints & Evidence
# ===========================================


class SprintRow(Base):
    """
    One planned sprint.

    planner_input / planner_output hold the request snapshot and the
    canonical plan document (camelCase JSON) respectively.
    """

    __tablename__ = "sprints"
    __table_args__ = (
        UniqueConstraint("objective_id", "day_number", name="uq_sprints_objective_day"),
    )

    id: Mapped[str] = mapped_column(String(96), primary_key=True)
    objective_id: Mapped[str] = mapped_column(
        ForeignKey("objectives.id"), index=True
    )
    day_number: Mapped[int] = mapped_column(Integer)
    length_days: Mapped[int] = mapped_column(Integer, default=1)
    total_estimated_hours: Mapped[float] = mapped_column(Float, default=0)
    difficulty: Mapped[str] = mapped_column(String(20), default="beginner")
    difficulty_score: Mapped[int] = mapped_column(Integer, default=50)
    status: Mapped[str] = mapped_column(String(20), default="planned", index=True)
    planner_mode: Mapped[str] = mapped_column(String(20), default="skeleton")

    planner_input: Mapped[dict] = mapped_column(JSON, default=dict)
    planner_output: Mapped[dict] = mapped_column(JSON, default=dict)
    plan_metadata: Mapped[dict] = mapped_column(JSON, default=dict)
    adaptive_metadata: Mapped[dict] = mapped_column(JSON, default=dict)

    is_auto_generated: Mapped[bool] = mapped_column(Boolean, default=False)
    next_sprint_id: Mapped[Optional[str]] = mapped_column(String(96))

    started_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))
    completed_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))
    completion_percentage: Mapped[float] = mapped_column(Float, default=0)
    hours_spent: Mapped[Optional[float]] = mapped_column(Float)
    tasks_completed: Mapped[Optional[int]] = mapped_column(Integer)
    total_tasks: Mapped[Optional[int]] = mapped_column(Integer)
    reflection: Mapped[Optional[str]] = mapped_column(Text)

    score: Mapped[Optional[float]] = mapped_column(Float)
    reviewer_summary: Mapped[Optional[dict]] = mapped_column(JSON)
    reviewed_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))
    self_evaluation_confidence: Mapped[Optional[float]] = mapped_column(Float)
    self_evaluation_reflection: Mapped[Optional[str]] = mapped_column(Text)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utc_now
    )


class SprintArtifactRow(Base):
    __tablename__ = "sprint_artifacts"
    __table_args__ = (
        UniqueConstraint("sprint_id", "artifact_id", name="uq_sprint_artifacts_key"),
    )

    id: Mapped[int] = mapped_column(primary_key=True)
    sprint_id: Mapped[str] = mapped_column(ForeignKey("sprints.id"), index=True)
    artifact_id: Mapped[str] = mapped_column(String(128))
    project_id: Mapped[str] = mapped_column(String(128))
    type: Mapped[str] = mapped_column(String(20))
    title: Mapped[Optional[str]] = mapped_column(String(500))
    url: Mapped[Optional[str]] = mapped_column(Text)
    status: Mapped[str] = mapped_column(String(20), default="unknown")
    notes: Mapped[Optional[str]] = mapped_column(Text)
    submitted_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))


# ===========================================
# Adaptation History
# ===========================================


class AdaptationHistoryRow(Base):
    """Append-only record of applied recalibrations."""

    __tablename__ = "objective_adaptation_history"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    objective_id: Mapped[str] = mapped_column(
        ForeignKey("objectives.id"), index=True
    )
    previous_estimate: Mapped[int] = mapped_column(Integer)
    new_estimate: Mapped[int] = mapped_column(Integer)
    reason: Mapped[str] = mapped_column(Text)
    performance_scores: Mapped[list] = mapped_column(JSON, default=list)
    velocity: Mapped[float] = mapped_column(Float)
    difficulty: Mapped[int] = mapped_column(Integer)
    adjustment_type: Mapped[str] = mapped_column(String(20))
    recommendations: Mapped[list] = mapped_column(JSON, default=list)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utc_now
    )


class SprintAdaptationRow(Base):
    __tablename__ = "sprint_adaptations"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    sprint_id: Mapped[str] = mapped_column(ForeignKey("sprints.id"), index=True)
    objective_id: Mapped[str] = mapped_column(String(64), index=True)
    adaptation_type: Mapped[str] = mapped_column(String(40))
    reason: Mapped[str] = mapped_column(Text)
    previous_difficulty: Mapped[int] = mapped_column(Integer)
    new_difficulty: Mapped[int] = mapped_column(Integer)
    notes: Mapped[list] = mapped_column(JSON, default=list)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utc_now
    )
