"""
Sprint planning.

SprintPlanner turns an objective (plus optional context or a current plan)
into a canonical sprint plan via a provider gateway; the sanitizer
normalizes and validates provider output.
"""

from sprint_engine.services.planning.planner import (
    PlannedSprint,
    SprintPlanner,
    build_plan_id,
    build_planner_request,
)
from sprint_engine.services.planning.sanitizer import (
    DEFAULT_EVIDENCE_RUBRIC,
    default_evidence_rubric,
    ensure_evidence_rubrics,
    sanitize_plan,
    validate_plan,
)

__all__ = [
    "DEFAULT_EVIDENCE_RUBRIC",
    "PlannedSprint",
    "SprintPlanner",
    "build_plan_id",
    "build_planner_request",
    "default_evidence_rubric",
    "ensure_evidence_rubrics",
    "sanitize_plan",
    "validate_plan",
]
