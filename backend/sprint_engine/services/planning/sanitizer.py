"""
Sprint Plan Sanitizer

Normalizes a raw provider plan into the canonical sprint plan before it is
validated. The sanitizer never mutates its input: it works on a deep copy.

Normalization steps:
    1. Every project gets an evidence rubric. A missing, malformed or
       dimension-less rubric is replaced with the default rubric.
    2. Skeleton mode: exactly 1 day, the first project only, the first 3
       micro tasks (re-pointed at that project), no checkpoints, support,
       reflection or portfolio cards.
    3. Expansion mode: projects and micro tasks of the current plan are
       restored verbatim (in their original order, ahead of new content);
       the plan keeps the current plan's id and the target length is
       applied when the expansion goal names one.

A plan that still fails the canonical schema afterwards raises
SchemaValidationError. Nothing is coerced past that point.
"""

import copy
import logging
from typing import Any, Optional

from pydantic import ValidationError as PydanticValidationError

from sprint_engine.config import yaml_config
from sprint_engine.enums import PlannerMode
from sprint_engine.errors import SchemaValidationError
from sprint_engine.models.plan import CanonicalSprintPlan, ExpansionGoal

logger = logging.getLogger(__name__)

SKELETON_LENGTH_DAYS = 1
SKELETON_PROJECT_COUNT = 1
SKELETON_MICRO_TASK_COUNT = 3
SKELETON_DROPPED_PROJECT_KEYS = ("checkpoints", "support", "reflection")

DEFAULT_EVIDENCE_RUBRIC: dict[str, Any] = {
    "dimensions": [
        {"name": "Functionality", "weight": 0.4},
        {"name": "Code quality", "weight": 0.25},
        {"name": "User experience", "weight": 0.2},
        {"name": "Documentation", "weight": 0.15},
    ],
    "passThreshold": 0.7,
}


def default_evidence_rubric() -> dict[str, Any]:
    """
    Return a fresh copy of the default evidence rubric.

    config/default.yaml can override the built-in dimensions and threshold
    under `default_evidence_rubric`.
    """
    configured = yaml_config.get("default_evidence_rubric")
    if not configured:
        return copy.deepcopy(DEFAULT_EVIDENCE_RUBRIC)
    return {
        "dimensions": copy.deepcopy(configured.get("dimensions", [])),
        "passThreshold": configured.get(
            "pass_threshold", DEFAULT_EVIDENCE_RUBRIC["passThreshold"]
        ),
    }


def _needs_rubric(rubric: Any) -> bool:
    if not isinstance(rubric, dict):
        return True
    dimensions = rubric.get("dimensions")
    return not isinstance(dimensions, list) or not dimensions


def ensure_evidence_rubrics(plan: dict[str, Any]) -> dict[str, Any]:
    """
    Return a copy of the plan where every project carries an evidence rubric.

    Args:
        plan: Raw plan dict (camelCase keys); left untouched

    Returns:
        Deep copy with the default rubric injected where missing
    """
    sanitized = copy.deepcopy(plan) if isinstance(plan, dict) else {}
    projects = sanitized.get("projects")
    if not isinstance(projects, list):
        return sanitized

    for project in projects:
        if isinstance(project, dict) and _needs_rubric(project.get("evidenceRubric")):
            project["evidenceRubric"] = default_evidence_rubric()
            logger.debug(f"Injected default evidence rubric into project {project.get('id')}")
    return sanitized


def _apply_skeleton(plan: dict[str, Any]) -> None:
    plan["lengthDays"] = SKELETON_LENGTH_DAYS
    plan.pop("portfolioCards", None)

    projects = plan.get("projects")
    if isinstance(projects, list) and projects:
        projects = projects[:SKELETON_PROJECT_COUNT]
        plan["projects"] = projects
        project = projects[0]
        if isinstance(project, dict):
            for key in SKELETON_DROPPED_PROJECT_KEYS:
                project.pop(key, None)

    tasks = plan.get("microTasks")
    if isinstance(tasks, list):
        tasks = tasks[:SKELETON_MICRO_TASK_COUNT]
        plan["microTasks"] = tasks
        if isinstance(projects, list) and projects and isinstance(projects[0], dict):
            project_id = projects[0].get("id")
            for task in tasks:
                if isinstance(task, dict):
                    task["projectId"] = project_id


def _merge_by_id(
    existing: list[dict[str, Any]], incoming: Any
) -> list[dict[str, Any]]:
    """Existing items verbatim and in order, then incoming items with new ids."""
    known = {item["id"] for item in existing}
    merged = [copy.deepcopy(item) for item in existing]
    if isinstance(incoming, list):
        for item in incoming:
            if isinstance(item, dict) and item.get("id") not in known:
                merged.append(item)
                known.add(item.get("id"))
    return merged


def _apply_expansion(
    plan: dict[str, Any],
    current_plan: CanonicalSprintPlan,
    goal: Optional[ExpansionGoal],
) -> None:
    current = current_plan.to_wire()
    plan["id"] = current["id"]
    plan["projects"] = _merge_by_id(current["projects"], plan.get("projects"))
    plan["microTasks"] = _merge_by_id(current["microTasks"], plan.get("microTasks"))

    existing_cards = current.get("portfolioCards") or []
    carded = {card["projectId"] for card in existing_cards}
    cards = [copy.deepcopy(card) for card in existing_cards]
    for card in plan.get("portfolioCards") or []:
        if isinstance(card, dict) and card.get("projectId") not in carded:
            cards.append(card)
            carded.add(card.get("projectId"))
    if cards:
        plan["portfolioCards"] = cards
    else:
        plan.pop("portfolioCards", None)

    if goal is not None and goal.target_length_days is not None:
        plan["lengthDays"] = goal.target_length_days
    elif "lengthDays" not in plan:
        plan["lengthDays"] = current["lengthDays"]

    for key in ("title", "description", "difficulty", "adaptationNotes", "totalEstimatedHours"):
        if plan.get(key) in (None, ""):
            plan[key] = current[key]


def sanitize_plan(
    raw_plan: Any,
    mode: PlannerMode,
    plan_id: Optional[str] = None,
    current_plan: Optional[CanonicalSprintPlan] = None,
    expansion_goal: Optional[ExpansionGoal] = None,
) -> dict[str, Any]:
    """
    Normalize a raw provider plan without mutating it.

    Args:
        raw_plan: Parsed provider JSON
        mode: Planner mode the plan was requested in
        plan_id: Id to stamp on a skeleton plan
        current_plan: Plan being expanded (expansion mode)
        expansion_goal: Requested expansion (expansion mode)

    Returns:
        Sanitized plan dict (camelCase keys), not yet validated
    """
    plan = ensure_evidence_rubrics(raw_plan)

    if mode == PlannerMode.SKELETON:
        if plan_id:
            plan["id"] = plan_id
        _apply_skeleton(plan)
    elif current_plan is not None:
        _apply_expansion(plan, current_plan, expansion_goal)
    elif plan_id:
        plan["id"] = plan_id

    return plan


def validate_plan(plan: dict[str, Any]) -> CanonicalSprintPlan:
    """
    Validate a sanitized plan against the canonical schema.

    Raises:
        SchemaValidationError: If the plan does not match the schema
    """
    try:
        return CanonicalSprintPlan.model_validate(plan)
    except PydanticValidationError as e:
        errors = e.errors(include_url=False, include_context=False)
        logger.error(f"Sprint plan failed validation with {len(errors)} error(s)")
        raise SchemaValidationError(
            f"Sprint plan failed schema validation: {e.error_count()} error(s)",
            errors=[
                {"loc": list(err["loc"]), "msg": err["msg"], "type": err["type"]}
                for err in errors
            ],
        ) from e
