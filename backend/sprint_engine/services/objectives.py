"""
Objective Service

Objective intake and the explicit completion confirmation.

New objectives get three default milestones spread over the estimate
(fundamentals at 30%, intermediate at 55%, final project at 85% of the
days). An objective becomes `completed` only through
confirm_objective_completion(); reaching the estimated days just makes
progress report `goal_reached`.
"""

import logging
import uuid
from typing import Optional, Sequence

from sprint_engine.enums import GenerationMode, ObjectiveStatus
from sprint_engine.errors import AuthorizationError, ConflictError, NotFoundError, ValidationError
from sprint_engine.models.lifecycle import LearnerProfile, Milestone, Objective
from sprint_engine.services.clock import Clock, utc_now
from sprint_engine.store.base import SprintLifecycleStore

logger = logging.getLogger(__name__)

# (title suffix, description, fraction of the estimate)
DEFAULT_MILESTONES = [
    ("Fundamentals", "Complete foundational concepts and basic exercises", 0.30),
    ("Intermediate Skills", "Build on fundamentals with more complex topics", 0.55),
    ("Final Project", "Complete portfolio-ready project demonstrating mastery", 0.85),
]


def default_milestone_days(estimated_total_days: int) -> list[int]:
    """Target days for the default milestones, strictly increasing and within the estimate."""
    days: list[int] = []
    for _, _, fraction in DEFAULT_MILESTONES:
        day = max(1, round(estimated_total_days * fraction))
        if days and day <= days[-1]:
            day = days[-1] + 1
        if day > estimated_total_days:
            break
        days.append(day)
    return days


class ObjectiveService:
    """Creates objectives and confirms their completion."""

    def __init__(self, store: SprintLifecycleStore, clock: Clock = utc_now):
        self.store = store
        self.clock = clock

    async def create_objective(
        self,
        user_id: str,
        title: str,
        description: Optional[str] = None,
        profile: Optional[LearnerProfile] = None,
        success_criteria: Sequence[str] = (),
        required_skills: Sequence[str] = (),
        allowed_resources: Optional[Sequence[str]] = None,
        priority: Optional[int] = None,
        estimated_total_days: int = 30,
        generation_mode: GenerationMode = GenerationMode.DAILY,
        auto_generate_next_sprint: bool = True,
        with_default_milestones: bool = True,
    ) -> Objective:
        """
        Create an active objective, optionally with the default milestones.

        Raises:
            ValidationError: Blank title, non-positive estimate, or a profile
                owned by another user
        """
        if not title or not title.strip():
            raise ValidationError("Objective title is required", error_code="INVALID_OBJECTIVE")
        if estimated_total_days < 1:
            raise ValidationError(
                "Estimated total days must be at least 1", error_code="INVALID_OBJECTIVE"
            )
        if profile is not None and profile.user_id != user_id:
            raise ValidationError(
                "Learner profile belongs to another user", error_code="INVALID_OBJECTIVE"
            )

        now = self.clock()
        objective = await self.store.create_objective(
            Objective(
                id=f"obj_{uuid.uuid4().hex[:16]}",
                user_id=user_id,
                profile=profile,
                title=title.strip(),
                description=description,
                success_criteria=list(success_criteria),
                required_skills=list(required_skills),
                allowed_resources=list(allowed_resources) if allowed_resources is not None else None,
                priority=priority,
                status=ObjectiveStatus.ACTIVE,
                estimated_total_days=estimated_total_days,
                sprint_generation_mode=generation_mode,
                auto_generate_next_sprint=auto_generate_next_sprint,
                created_at=now,
            )
        )

        if with_default_milestones:
            days = default_milestone_days(estimated_total_days)
            for (suffix, milestone_description, _), day in zip(DEFAULT_MILESTONES, days):
                await self.store.create_milestone(
                    Milestone(
                        id=f"ms_{uuid.uuid4().hex[:16]}",
                        objective_id=objective.id,
                        title=f"{objective.title} - {suffix}",
                        description=milestone_description,
                        target_day=day,
                    )
                )

        logger.info(
            f"Created objective {objective.id} for user {user_id}: "
            f"{estimated_total_days} day(s), mode {generation_mode.value}"
        )
        return objective

    async def confirm_objective_completion(self, objective_id: str, user_id: str) -> Objective:
        """
        Mark an objective completed at the learner's request.

        Raises:
            NotFoundError: Objective absent
            AuthorizationError: Caller does not own the objective
            ConflictError: OBJECTIVE_ALREADY_COMPLETED
        """
        objective = await self.store.get_objective(objective_id)
        if objective is None:
            raise NotFoundError("Objective not found", error_code="OBJECTIVE_NOT_FOUND")
        if objective.user_id != user_id:
            raise AuthorizationError("Objective belongs to another user")
        if objective.status == ObjectiveStatus.COMPLETED:
            raise ConflictError("Objective already completed", error_code="OBJECTIVE_ALREADY_COMPLETED")

        objective = await self.store.update_objective(
            objective_id,
            {
                "status": ObjectiveStatus.COMPLETED,
                "completed_at": self.clock(),
                "auto_generate_next_sprint": False,
            },
        )
        logger.info(
            f"Objective {objective_id} completed by learner after "
            f"{objective.completed_days}/{objective.estimated_total_days} days"
        )
        return objective
