"""
Sprint Lifecycle Store Interface

Abstract persistence boundary for objectives, sprints, artifacts,
milestones and adaptation history. Services depend only on this interface;
concrete backends are the in-memory store (tests, single process) and the
SQLAlchemy store (durable).

Contract shared by every backend:
    - Reads return detached copies; mutating a returned record never
      changes stored state.
    - Each update touches exactly one entity and is atomic.
    - update_objective also accepts a callable that receives the current
      objective and returns the changes. It runs inside the update's own
      atomic section (the row lock on SQL backends), so counters derived
      from the stored value never lose a concurrent increment.
    - create_sprint refuses a second sprint with the same
      (objective_id, day_number) with ConflictError("DUPLICATE_DAY_NUMBER").
    - update_sprint(..., require_incomplete=True) is a compare-and-set: it
      fails with ConflictError("SPRINT_ALREADY_COMPLETED") when the stored
      sprint already has completed_at set.
    - Merged records are re-validated, so an update that would break a
      record invariant (e.g. completed_at without a completed status) fails
      with ValueError before anything is written.
"""

from abc import ABC, abstractmethod
from typing import Any, Callable, Optional, Union

from sprint_engine.errors import ConflictError
from sprint_engine.models.lifecycle import (
    AdaptationHistoryEntry,
    Milestone,
    Objective,
    Sprint,
    SprintAdaptation,
    SprintArtifact,
)

DUPLICATE_DAY_NUMBER = "DUPLICATE_DAY_NUMBER"
SPRINT_ALREADY_COMPLETED = "SPRINT_ALREADY_COMPLETED"

ObjectiveChanges = Union[dict[str, Any], Callable[[Objective], dict[str, Any]]]


def duplicate_day_error(objective_id: str, day_number: int) -> ConflictError:
    return ConflictError(
        f"Objective {objective_id} already has a sprint for day {day_number}",
        error_code=DUPLICATE_DAY_NUMBER,
        details={"objective_id": objective_id, "day_number": day_number},
    )


def resolve_changes(current: Objective, changes: ObjectiveChanges) -> dict[str, Any]:
    """Changes to apply to `current`, calling `changes` when it is a callable."""
    return changes(current) if callable(changes) else changes


def already_completed_error(sprint_id: str) -> ConflictError:
    return ConflictError(
        "Sprint already completed",
        error_code=SPRINT_ALREADY_COMPLETED,
        details={"sprint_id": sprint_id},
    )


class SprintLifecycleStore(ABC):
    """Async CRUD boundary used by every engine service."""

    # ===========================================
    # Objectives
    # ===========================================

    @abstractmethod
    async def create_objective(self, objective: Objective) -> Objective: ...

    @abstractmethod
    async def get_objective(self, objective_id: str) -> Optional[Objective]: ...

    @abstractmethod
    async def update_objective(
        self, objective_id: str, changes: ObjectiveChanges
    ) -> Objective: ...

    # ===========================================
    # Sprints
    # ===========================================

    @abstractmethod
    async def create_sprint(self, sprint: Sprint) -> Sprint: ...

    @abstractmethod
    async def get_sprint(self, sprint_id: str) -> Optional[Sprint]: ...

    @abstractmethod
    async def get_sprint_by_day(
        self, objective_id: str, day_number: int
    ) -> Optional[Sprint]: ...

    @abstractmethod
    async def list_sprints(self, objective_id: str) -> list[Sprint]:
        """All sprints of an objective ordered by day_number ascending."""

    @abstractmethod
    async def update_sprint(
        self,
        sprint_id: str,
        changes: dict[str, Any],
        require_incomplete: bool = False,
    ) -> Sprint: ...

    # ===========================================
    # Artifacts
    # ===========================================

    @abstractmethod
    async def upsert_artifact(self, artifact: SprintArtifact) -> SprintArtifact: ...

    @abstractmethod
    async def list_artifacts(self, sprint_id: str) -> list[SprintArtifact]: ...

    # ===========================================
    # Milestones
    # ===========================================

    @abstractmethod
    async def create_milestone(self, milestone: Milestone) -> Milestone: ...

    @abstractmethod
    async def list_milestones(self, objective_id: str) -> list[Milestone]:
        """Milestones of an objective ordered by target_day ascending."""

    @abstractmethod
    async def update_milestone(
        self, milestone_id: str, changes: dict[str, Any]
    ) -> Milestone: ...

    # ===========================================
    # Adaptation History
    # ===========================================

    @abstractmethod
    async def add_adaptation_history(
        self, entry: AdaptationHistoryEntry
    ) -> AdaptationHistoryEntry: ...

    @abstractmethod
    async def list_adaptation_history(
        self, objective_id: str
    ) -> list[AdaptationHistoryEntry]: ...

    @abstractmethod
    async def add_sprint_adaptation(
        self, adaptation: SprintAdaptation
    ) -> SprintAdaptation: ...

    @abstractmethod
    async def list_sprint_adaptations(
        self, sprint_id: str
    ) -> list[SprintAdaptation]: ...
