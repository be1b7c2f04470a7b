"""
Sprint Lifecycle Service

Learner-driven transitions of a sprint that are not completion itself:
starting work, submitting evidence, requesting a review and expanding a
planned sprint.

Status machine (forward only):

    planned ──► in_progress ──► submitted ──► reviewed
       │              │                          ▲
       └──────────────┴──────────────────────────┘  (completed after an early review)

Completion (CompletionHandler) moves a sprint to submitted, or directly to
reviewed when it was reviewed before completion.
"""

import logging
from typing import Optional, Sequence

from sprint_engine.enums import PlannerMode, SprintStatus
from sprint_engine.errors import (
    AuthorizationError,
    ConflictError,
    NotFoundError,
    ValidationError,
)
from sprint_engine.models.lifecycle import Objective, Sprint, SprintArtifact
from sprint_engine.models.plan import ExpansionGoal
from sprint_engine.models.review import ReviewArtifact, SelfEvaluation, SprintReview
from sprint_engine.services.clock import Clock, utc_now
from sprint_engine.services.planning.planner import build_planner_request
from sprint_engine.store.base import SprintLifecycleStore

logger = logging.getLogger(__name__)

ALLOWED_TRANSITIONS: dict[SprintStatus, frozenset[SprintStatus]] = {
    SprintStatus.PLANNED: frozenset(
        {SprintStatus.IN_PROGRESS, SprintStatus.SUBMITTED, SprintStatus.REVIEWED}
    ),
    SprintStatus.IN_PROGRESS: frozenset({SprintStatus.SUBMITTED, SprintStatus.REVIEWED}),
    SprintStatus.SUBMITTED: frozenset({SprintStatus.REVIEWED}),
    SprintStatus.REVIEWED: frozenset(),
}


def ensure_transition(current: SprintStatus, target: SprintStatus) -> None:
    """
    Reject backward or skipped-back status changes.

    Raises:
        ValidationError: INVALID_STATUS_TRANSITION
    """
    if target not in ALLOWED_TRANSITIONS[current]:
        raise ValidationError(
            f"Cannot move sprint from {current.value} to {target.value}",
            error_code="INVALID_STATUS_TRANSITION",
            details={"from": current.value, "to": target.value},
        )


class SprintLifecycleService:
    """
    Start, evidence, review and expansion of individual sprints.

    Attributes:
        store: Lifecycle store
        review_engine: ReviewEngine used by review_sprint
        planner: SprintPlanner used by expand_sprint
    """

    def __init__(
        self,
        store: SprintLifecycleStore,
        review_engine=None,
        planner=None,
        clock: Clock = utc_now,
    ):
        self.store = store
        self.review_engine = review_engine
        self.planner = planner
        self.clock = clock

    async def _owned_sprint(self, sprint_id: str, user_id: str) -> tuple[Sprint, Objective]:
        sprint = await self.store.get_sprint(sprint_id)
        if sprint is None:
            raise NotFoundError("Sprint not found", error_code="SPRINT_NOT_FOUND")
        objective = await self.store.get_objective(sprint.objective_id)
        if objective is None:
            raise NotFoundError("Objective not found", error_code="OBJECTIVE_NOT_FOUND")
        if objective.user_id != user_id:
            raise AuthorizationError("Sprint belongs to another user")
        return sprint, objective

    async def start_sprint(self, sprint_id: str, user_id: str) -> Sprint:
        """Move a planned sprint to in_progress."""
        sprint, _ = await self._owned_sprint(sprint_id, user_id)
        ensure_transition(sprint.status, SprintStatus.IN_PROGRESS)
        sprint = await self.store.update_sprint(
            sprint_id,
            {"status": SprintStatus.IN_PROGRESS, "started_at": self.clock()},
            require_incomplete=True,
        )
        logger.info(f"Started sprint {sprint_id} (day {sprint.day_number})")
        return sprint

    async def submit_evidence(
        self,
        sprint_id: str,
        user_id: str,
        artifacts: Sequence[ReviewArtifact],
        self_evaluation: Optional[SelfEvaluation] = None,
    ) -> list[SprintArtifact]:
        """
        Upsert artifacts by (sprint_id, artifact_id) and store the self-evaluation.

        Does not complete the sprint. Artifacts for projects that are not in
        the sprint's plan are rejected.

        Returns:
            All artifacts now stored for the sprint
        """
        sprint, _ = await self._owned_sprint(sprint_id, user_id)
        plan = sprint.plan()
        project_ids = {p.id for p in plan.projects} if plan else set()
        unknown = sorted({a.project_id for a in artifacts if a.project_id not in project_ids})
        if unknown:
            raise ValidationError(
                "Artifacts reference projects outside this sprint",
                error_code="UNKNOWN_PROJECT",
                details={"project_ids": unknown},
            )

        submitted_at = self.clock()
        for artifact in artifacts:
            await self.store.upsert_artifact(
                SprintArtifact(
                    sprint_id=sprint_id,
                    submitted_at=submitted_at,
                    **artifact.model_dump(exclude_none=True),
                )
            )

        if self_evaluation is not None:
            await self.store.update_sprint(
                sprint_id,
                {
                    "self_evaluation_confidence": self_evaluation.confidence,
                    "self_evaluation_reflection": self_evaluation.reflection,
                },
            )

        stored = await self.store.list_artifacts(sprint_id)
        logger.info(f"Sprint {sprint_id}: {len(artifacts)} artifact(s) submitted, {len(stored)} stored")
        return stored

    async def review_sprint(self, sprint_id: str, user_id: str) -> SprintReview:
        """
        Review the sprint's stored evidence and record the result.

        A submitted sprint moves to reviewed; any other status is kept so a
        later completion goes straight to reviewed.
        """
        if self.review_engine is None:
            raise ConflictError("Reviewing is not configured", error_code="REVIEW_UNAVAILABLE")
        sprint, _ = await self._owned_sprint(sprint_id, user_id)
        plan = sprint.plan()
        if plan is None:
            raise ValidationError("Sprint has no plan to review", error_code="SPRINT_HAS_NO_PLAN")

        artifacts = [
            ReviewArtifact(
                artifact_id=a.artifact_id,
                project_id=a.project_id,
                type=a.type,
                title=a.title,
                url=a.url,
                status=a.status,
                notes=a.notes,
            )
            for a in await self.store.list_artifacts(sprint_id)
        ]
        self_evaluation = None
        if sprint.self_evaluation_confidence is not None or sprint.self_evaluation_reflection:
            self_evaluation = SelfEvaluation(
                confidence=sprint.self_evaluation_confidence,
                reflection=sprint.self_evaluation_reflection,
            )

        review = await self.review_engine.review_sprint(plan.projects, artifacts, self_evaluation)

        changes = {
            "score": review.score,
            "reviewer_summary": review.model_dump(mode="json", by_alias=True),
            "reviewed_at": self.clock(),
        }
        if sprint.status == SprintStatus.SUBMITTED:
            ensure_transition(sprint.status, SprintStatus.REVIEWED)
            changes["status"] = SprintStatus.REVIEWED
        await self.store.update_sprint(sprint_id, changes)
        return review

    async def expand_sprint(
        self,
        sprint_id: str,
        user_id: str,
        target_length_days: Optional[int] = None,
        additional_micro_tasks: Optional[int] = None,
    ) -> Sprint:
        """
        Lengthen or extend a sprint that has not been completed.

        Existing projects and micro tasks are kept verbatim; the planner
        only appends new content.
        """
        if self.planner is None:
            raise ConflictError("Planning is not configured", error_code="PLANNER_UNAVAILABLE")
        sprint, objective = await self._owned_sprint(sprint_id, user_id)
        if sprint.completed_at is not None:
            raise ConflictError("Completed sprints cannot be expanded", error_code="SPRINT_ALREADY_COMPLETED")
        plan = sprint.plan()
        if plan is None:
            raise ValidationError("Sprint has no plan to expand", error_code="SPRINT_HAS_NO_PLAN")

        request = build_planner_request(
            objective,
            mode=PlannerMode.EXPANSION,
            prefer_length=target_length_days or plan.length_days,
            context={"dayNumber": sprint.day_number},
            current_plan=plan,
            expansion_goal=ExpansionGoal(
                target_length_days=target_length_days,
                additional_micro_tasks=additional_micro_tasks,
            ),
        )
        planned = await self.planner.plan(request, day_number=sprint.day_number)

        sprint = await self.store.update_sprint(
            sprint_id,
            {
                "planner_mode": PlannerMode.EXPANSION,
                "planner_input": planned.planner_input,
                "planner_output": planned.planner_output,
                "plan_metadata": planned.metadata.to_wire(),
                "length_days": planned.plan.length_days,
                "total_estimated_hours": planned.plan.total_estimated_hours,
            },
            require_incomplete=True,
        )
        logger.info(
            f"Expanded sprint {sprint_id}: {len(plan.micro_tasks)} -> "
            f"{len(planned.plan.micro_tasks)} micro task(s), {planned.plan.length_days} day(s)"
        )
        return sprint
