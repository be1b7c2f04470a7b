"""
In-Memory Sprint Lifecycle Store

Dict-backed implementation of SprintLifecycleStore for tests and single
process use. No operation awaits between its check and its write, so each
call is atomic with respect to other coroutines on the same event loop.
"""

from typing import Any, Optional

from sprint_engine.errors import NotFoundError
from sprint_engine.models.lifecycle import (
    AdaptationHistoryEntry,
    Milestone,
    Objective,
    Sprint,
    SprintAdaptation,
    SprintArtifact,
)
from sprint_engine.store.base import (
    ObjectiveChanges,
    SprintLifecycleStore,
    already_completed_error,
    duplicate_day_error,
    resolve_changes,
)


def _merge(record, changes: dict[str, Any]):
    """Apply changes to a record and re-validate the result."""
    data = record.model_dump()
    data.update(changes)
    return type(record).model_validate(data)


class InMemorySprintStore(SprintLifecycleStore):
    """SprintLifecycleStore holding deep copies of records in dicts."""

    def __init__(self):
        self._objectives: dict[str, Objective] = {}
        self._sprints: dict[str, Sprint] = {}
        self._artifacts: dict[tuple[str, str], SprintArtifact] = {}
        self._milestones: dict[str, Milestone] = {}
        self._history: list[AdaptationHistoryEntry] = []
        self._sprint_adaptations: list[SprintAdaptation] = []

    # Objectives

    async def create_objective(self, objective: Objective) -> Objective:
        self._objectives[objective.id] = objective.model_copy(deep=True)
        return objective.model_copy(deep=True)

    async def get_objective(self, objective_id: str) -> Optional[Objective]:
        objective = self._objectives.get(objective_id)
        return objective.model_copy(deep=True) if objective else None

    async def update_objective(
        self, objective_id: str, changes: ObjectiveChanges
    ) -> Objective:
        current = self._objectives.get(objective_id)
        if current is None:
            raise NotFoundError("Objective not found", error_code="OBJECTIVE_NOT_FOUND")
        updated = _merge(current, resolve_changes(current, changes))
        self._objectives[objective_id] = updated
        return updated.model_copy(deep=True)

    # Sprints

    async def create_sprint(self, sprint: Sprint) -> Sprint:
        for existing in self._sprints.values():
            if (
                existing.objective_id == sprint.objective_id
                and existing.day_number == sprint.day_number
            ):
                raise duplicate_day_error(sprint.objective_id, sprint.day_number)
        self._sprints[sprint.id] = sprint.model_copy(deep=True)
        return sprint.model_copy(deep=True)

    async def get_sprint(self, sprint_id: str) -> Optional[Sprint]:
        sprint = self._sprints.get(sprint_id)
        return sprint.model_copy(deep=True) if sprint else None

    async def get_sprint_by_day(
        self, objective_id: str, day_number: int
    ) -> Optional[Sprint]:
        for sprint in self._sprints.values():
            if sprint.objective_id == objective_id and sprint.day_number == day_number:
                return sprint.model_copy(deep=True)
        return None

    async def list_sprints(self, objective_id: str) -> list[Sprint]:
        sprints = [s for s in self._sprints.values() if s.objective_id == objective_id]
        return [s.model_copy(deep=True) for s in sorted(sprints, key=lambda s: s.day_number)]

    async def update_sprint(
        self,
        sprint_id: str,
        changes: dict[str, Any],
        require_incomplete: bool = False,
    ) -> Sprint:
        current = self._sprints.get(sprint_id)
        if current is None:
            raise NotFoundError("Sprint not found", error_code="SPRINT_NOT_FOUND")
        if require_incomplete and current.completed_at is not None:
            raise already_completed_error(sprint_id)
        updated = _merge(current, changes)
        self._sprints[sprint_id] = updated
        return updated.model_copy(deep=True)

    # Artifacts

    async def upsert_artifact(self, artifact: SprintArtifact) -> SprintArtifact:
        key = (artifact.sprint_id, artifact.artifact_id)
        self._artifacts[key] = artifact.model_copy(deep=True)
        return artifact.model_copy(deep=True)

    async def list_artifacts(self, sprint_id: str) -> list[SprintArtifact]:
        return [
            a.model_copy(deep=True)
            for (sid, _), a in self._artifacts.items()
            if sid == sprint_id
        ]

    # Milestones

    async def create_milestone(self, milestone: Milestone) -> Milestone:
        self._milestones[milestone.id] = milestone.model_copy(deep=True)
        return milestone.model_copy(deep=True)

    async def list_milestones(self, objective_id: str) -> list[Milestone]:
        milestones = [
            m for m in self._milestones.values() if m.objective_id == objective_id
        ]
        return [
            m.model_copy(deep=True)
            for m in sorted(milestones, key=lambda m: m.target_day)
        ]

    async def update_milestone(
        self, milestone_id: str, changes: dict[str, Any]
    ) -> Milestone:
        current = self._milestones.get(milestone_id)
        if current is None:
            raise NotFoundError("Milestone not found", error_code="MILESTONE_NOT_FOUND")
        updated = _merge(current, changes)
        self._milestones[milestone_id] = updated
        return updated.model_copy(deep=True)

    # Adaptation history

    async def add_adaptation_history(
        self, entry: AdaptationHistoryEntry
    ) -> AdaptationHistoryEntry:
        self._history.append(entry.model_copy(deep=True))
        return entry.model_copy(deep=True)

    async def list_adaptation_history(
        self, objective_id: str
    ) -> list[AdaptationHistoryEntry]:
        return [
            e.model_copy(deep=True) for e in self._history if e.objective_id == objective_id
        ]

    async def add_sprint_adaptation(
        self, adaptation: SprintAdaptation
    ) -> SprintAdaptation:
        self._sprint_adaptations.append(adaptation.model_copy(deep=True))
        return adaptation.model_copy(deep=True)

    async def list_sprint_adaptations(self, sprint_id: str) -> list[SprintAdaptation]:
        return [
            a.model_copy(deep=True)
            for a in self._sprint_adaptations
            if a.sprint_id == sprint_id
        ]
