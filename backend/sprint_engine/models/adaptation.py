"""
Adaptation and Generation Models (Pydantic)

Documents produced by performance analysis, recalibration and the
auto-generation scheduler.
"""

from datetime import date
from typing import Optional

from pydantic import Field

from sprint_engine.enums import (
    AdjustmentType,
    PerformanceTrend,
    RecommendedAction,
    ReviewSource,
)
from sprint_engine.models.base import StrictResponse, WireModel


# ===========================================
# Performance Analysis & Recalibration
# ===========================================


class PerformanceAnalysis(WireModel):
    """
    Summary of recent reviewed sprints.

    Scores are in percentage points (0-100).
    """

    objective_id: str
    sprints_analyzed: int
    scores: list[float] = Field(default_factory=list)
    average_score: float
    trend: PerformanceTrend
    consistently_high: bool
    consistently_low: bool
    struggling_skills: list[str] = Field(default_factory=list)
    mastered_skills: list[str] = Field(default_factory=list)
    recommended_action: RecommendedAction


class AdaptationDecision(WireModel):
    """
    Reasoned adaptation decision.

    This is also the strict response schema for the adaptation provider.
    """

    should_adjust: bool
    adjustment_type: AdjustmentType
    new_difficulty: int = Field(ge=0, le=100)
    new_velocity: float = Field(ge=0.5, le=2.0)
    reasoning: str = Field(min_length=20)
    recommendations: list[str] = Field(min_length=1, max_length=5)
    estimated_days_change: Optional[int] = None


class RecalibrationOutcome(StrictResponse):
    """Decision plus what was applied to the objective."""

    objective_id: str
    decision: AdaptationDecision
    source: ReviewSource
    applied: bool
    previous_difficulty: int
    previous_velocity: float
    previous_estimate: int
    new_estimate: int
    history_entry_id: Optional[str] = None


class DifficultyAdjustment(StrictResponse):
    sprint_id: str
    adjusted: bool
    previous_difficulty: int
    new_difficulty: int
    notes: list[str] = Field(default_factory=list)


class EstimateAdjustment(StrictResponse):
    objective_id: str
    previous_estimate: int
    new_estimate: int
    adjusted_remaining_days: int
    new_completion_date: date
    reasoning: str


# ===========================================
# Auto-Generation
# ===========================================


class ModeConfig(StrictResponse):
    """Generation preset for an objective mode."""

    generate_on_completion: bool
    lookahead_days: int = Field(ge=0)
    batch_size: int = Field(ge=1)
    min_buffer: int = Field(ge=0)


class GenerationDecision(StrictResponse):
    should_generate: bool
    reason: Optional[str] = None
    next_day_number: Optional[int] = None


class GenerationStatus(StrictResponse):
    objective_id: str
    current_day: int
    completed_days: int
    last_generated_day: int
    buffer_days: int
    target_buffer: int
    is_generating: bool
    next_sprint_ready: bool
    auto_generate_enabled: bool
    generation_mode: str


class BufferReport(StrictResponse):
    """What a buffer top-up did."""

    objective_id: str
    skipped: bool = False
    reason: Optional[str] = None
    buffer_before: int = 0
    buffer_after: int = 0
    generated_sprint_ids: list[str] = Field(default_factory=list)
    error: Optional[str] = None
