"""
SQLAlchemy Sprint Lifecycle Store

Durable SprintLifecycleStore over the async SQLAlchemy ORM tables in
sprint_engine/db/models.py. Each public method runs in its own session and
transaction, so every update is atomic for exactly one entity.

Uniqueness guarantees come from the database:
    - uq_sprints_objective_day rejects a second sprint for the same day
    - uq_sprint_artifacts_key makes artifact writes an upsert by key

Usage:
    from sprint_engine.db import create_engine_from_settings, create_session_maker
    from sprint_engine.store import SQLAlchemySprintStore

    engine = create_engine_from_settings()
    store = SQLAlchemySprintStore(create_session_maker(engine))
"""

import logging
from enum import Enum
from typing import Any, Optional

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from sprint_engine.db.models import (
    AdaptationHistoryRow,
    MilestoneRow,
    ObjectiveRow,
    SprintAdaptationRow,
    SprintArtifactRow,
    SprintRow,
)
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

logger = logging.getLogger(__name__)


def _to_columns(record) -> dict[str, Any]:
    """Flatten a record into column values, enums as their plain values."""
    return {
        key: value.value if isinstance(value, Enum) else value
        for key, value in record.model_dump().items()
    }


def _new_row_columns(record) -> dict[str, Any]:
    """Column values for an insert; unset values fall back to column defaults."""
    return {key: value for key, value in _to_columns(record).items() if value is not None}


def _apply(row, record) -> None:
    for key, value in _to_columns(record).items():
        setattr(row, key, value)


class SQLAlchemySprintStore(SprintLifecycleStore):
    """SprintLifecycleStore backed by an async SQLAlchemy session factory."""

    def __init__(self, session_maker: async_sessionmaker[AsyncSession]):
        self.session_maker = session_maker

    # ===========================================
    # Objectives
    # ===========================================

    async def create_objective(self, objective: Objective) -> Objective:
        async with self.session_maker() as session:
            async with session.begin():
                session.add(ObjectiveRow(**_new_row_columns(objective)))
        return objective.model_copy(deep=True)

    async def get_objective(self, objective_id: str) -> Optional[Objective]:
        async with self.session_maker() as session:
            row = await session.get(ObjectiveRow, objective_id)
            return Objective.model_validate(row) if row else None

    async def update_objective(
        self, objective_id: str, changes: ObjectiveChanges
    ) -> Objective:
        async with self.session_maker() as session:
            async with session.begin():
                row = await session.get(ObjectiveRow, objective_id, with_for_update=True)
                if row is None:
                    raise NotFoundError(
                        "Objective not found", error_code="OBJECTIVE_NOT_FOUND"
                    )
                current = Objective.model_validate(row)
                data = current.model_dump()
                data.update(resolve_changes(current, changes))
                updated = Objective.model_validate(data)
                _apply(row, updated)
        return updated

    # ===========================================
    # Sprints
    # ===========================================

    async def create_sprint(self, sprint: Sprint) -> Sprint:
        try:
            async with self.session_maker() as session:
                async with session.begin():
                    session.add(SprintRow(**_new_row_columns(sprint)))
        except IntegrityError as e:
            logger.warning(
                f"Rejected duplicate sprint for objective {sprint.objective_id} "
                f"day {sprint.day_number}: {e.orig}"
            )
            raise duplicate_day_error(sprint.objective_id, sprint.day_number) from e
        return sprint.model_copy(deep=True)

    async def get_sprint(self, sprint_id: str) -> Optional[Sprint]:
        async with self.session_maker() as session:
            row = await session.get(SprintRow, sprint_id)
            return Sprint.model_validate(row) if row else None

    async def get_sprint_by_day(
        self, objective_id: str, day_number: int
    ) -> Optional[Sprint]:
        async with self.session_maker() as session:
            result = await session.execute(
                select(SprintRow).where(
                    SprintRow.objective_id == objective_id,
                    SprintRow.day_number == day_number,
                )
            )
            row = result.scalar_one_or_none()
            return Sprint.model_validate(row) if row else None

    async def list_sprints(self, objective_id: str) -> list[Sprint]:
        async with self.session_maker() as session:
            result = await session.execute(
                select(SprintRow)
                .where(SprintRow.objective_id == objective_id)
                .order_by(SprintRow.day_number)
            )
            return [Sprint.model_validate(row) for row in result.scalars().all()]

    async def update_sprint(
        self,
        sprint_id: str,
        changes: dict[str, Any],
        require_incomplete: bool = False,
    ) -> Sprint:
        async with self.session_maker() as session:
            async with session.begin():
                row = await session.get(SprintRow, sprint_id, with_for_update=True)
                if row is None:
                    raise NotFoundError("Sprint not found", error_code="SPRINT_NOT_FOUND")
                if require_incomplete and row.completed_at is not None:
                    raise already_completed_error(sprint_id)
                data = Sprint.model_validate(row).model_dump()
                data.update(changes)
                updated = Sprint.model_validate(data)
                _apply(row, updated)
        return updated

    # ===========================================
    # Artifacts
    # ===========================================

    async def upsert_artifact(self, artifact: SprintArtifact) -> SprintArtifact:
        async with self.session_maker() as session:
            async with session.begin():
                result = await session.execute(
                    select(SprintArtifactRow).where(
                        SprintArtifactRow.sprint_id == artifact.sprint_id,
                        SprintArtifactRow.artifact_id == artifact.artifact_id,
                    )
                )
                row = result.scalar_one_or_none()
                if row is None:
                    session.add(SprintArtifactRow(**_new_row_columns(artifact)))
                else:
                    _apply(row, artifact)
        return artifact.model_copy(deep=True)

    async def list_artifacts(self, sprint_id: str) -> list[SprintArtifact]:
        async with self.session_maker() as session:
            result = await session.execute(
                select(SprintArtifactRow)
                .where(SprintArtifactRow.sprint_id == sprint_id)
                .order_by(SprintArtifactRow.id)
            )
            return [SprintArtifact.model_validate(row) for row in result.scalars().all()]

    # ===========================================
    # Milestones
    # ===========================================

    async def create_milestone(self, milestone: Milestone) -> Milestone:
        async with self.session_maker() as session:
            async with session.begin():
                session.add(MilestoneRow(**_new_row_columns(milestone)))
        return milestone.model_copy(deep=True)

    async def list_milestones(self, objective_id: str) -> list[Milestone]:
        async with self.session_maker() as session:
            result = await session.execute(
                select(MilestoneRow)
                .where(MilestoneRow.objective_id == objective_id)
                .order_by(MilestoneRow.target_day)
            )
            return [Milestone.model_validate(row) for row in result.scalars().all()]

    async def update_milestone(
        self, milestone_id: str, changes: dict[str, Any]
    ) -> Milestone:
        async with self.session_maker() as session:
            async with session.begin():
                row = await session.get(MilestoneRow, milestone_id, with_for_update=True)
                if row is None:
                    raise NotFoundError(
                        "Milestone not found", error_code="MILESTONE_NOT_FOUND"
                    )
                data = Milestone.model_validate(row).model_dump()
                data.update(changes)
                updated = Milestone.model_validate(data)
                _apply(row, updated)
        return updated

    # ===========================================
    # Adaptation History
    # ===========================================

    async def add_adaptation_history(
        self, entry: AdaptationHistoryEntry
    ) -> AdaptationHistoryEntry:
        async with self.session_maker() as session:
            async with session.begin():
                session.add(AdaptationHistoryRow(**_new_row_columns(entry)))
        return entry.model_copy(deep=True)

    async def list_adaptation_history(
        self, objective_id: str
    ) -> list[AdaptationHistoryEntry]:
        async with self.session_maker() as session:
            result = await session.execute(
                select(AdaptationHistoryRow)
                .where(AdaptationHistoryRow.objective_id == objective_id)
                .order_by(AdaptationHistoryRow.created_at)
            )
            return [
                AdaptationHistoryEntry.model_validate(row)
                for row in result.scalars().all()
            ]

    async def add_sprint_adaptation(
        self, adaptation: SprintAdaptation
    ) -> SprintAdaptation:
        async with self.session_maker() as session:
            async with session.begin():
                session.add(SprintAdaptationRow(**_new_row_columns(adaptation)))
        return adaptation.model_copy(deep=True)

    async def list_sprint_adaptations(self, sprint_id: str) -> list[SprintAdaptation]:
        async with self.session_maker() as session:
            result = await session.execute(
                select(SprintAdaptationRow)
                .where(SprintAdaptationRow.sprint_id == sprint_id)
                .order_by(SprintAdaptationRow.created_at)
            )
            return [SprintAdaptation.model_validate(row) for row in result.scalars().all()]
