"""
Persistence package.

SprintLifecycleStore is the abstract boundary every service depends on;
InMemorySprintStore and SQLAlchemySprintStore are the two backends.
"""

from sprint_engine.store.base import (
    DUPLICATE_DAY_NUMBER,
    SPRINT_ALREADY_COMPLETED,
    SprintLifecycleStore,
)
from sprint_engine.store.memory import InMemorySprintStore
from sprint_engine.store.sqlalchemy_store import SQLAlchemySprintStore

__all__ = [
    "DUPLICATE_DAY_NUMBER",
    "SPRINT_ALREADY_COMPLETED",
    "InMemorySprintStore",
    "SQLAlchemySprintStore",
    "SprintLifecycleStore",
]
