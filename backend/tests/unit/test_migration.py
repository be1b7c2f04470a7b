"""
Unit tests for the Alembic schema migration.

Runs the migration's upgrade/downgrade through alembic Operations on an
in-memory SQLite database and compares the result with the ORM tables.
"""

import importlib.util
from pathlib import Path

import pytest
from alembic.migration import MigrationContext
from alembic.operations import Operations
from sqlalchemy import create_engine, inspect

from sprint_engine.db import Base
from sprint_engine.db import models  # noqa: F401

MIGRATION_PATH = (
    Path(__file__).parent.parent.parent / "alembic" / "versions" / "001_sprint_engine_schema.py"
)


@pytest.fixture
def migration():
    spec = importlib.util.spec_from_file_location("sprint_engine_schema", MIGRATION_PATH)
    module = importlib.util.module_from_spec(spec)
    spec.loader.exec_module(module)
    return module


@pytest.fixture
def connection():
    engine = create_engine("sqlite://")
    with engine.begin() as conn:
        yield conn
    engine.dispose()


def _run(connection, step) -> None:
    context = MigrationContext.configure(connection)
    with Operations.context(context):
        step()


class TestSchemaMigration:
    def test_upgrade_creates_orm_tables(self, migration, connection):
        _run(connection, migration.upgrade)

        tables = set(inspect(connection).get_table_names())
        assert set(Base.metadata.tables) <= tables

    def test_unique_constraints(self, migration, connection):
        _run(connection, migration.upgrade)
        inspector = inspect(connection)

        sprint_uniques = {u["name"]: u["column_names"] for u in inspector.get_unique_constraints("sprints")}
        artifact_uniques = {
            u["name"]: u["column_names"] for u in inspector.get_unique_constraints("sprint_artifacts")
        }

        assert sprint_uniques["uq_sprints_objective_day"] == ["objective_id", "day_number"]
        assert artifact_uniques["uq_sprint_artifacts_key"] == ["sprint_id", "artifact_id"]

    def test_downgrade_drops_everything(self, migration, connection):
        _run(connection, migration.upgrade)
        _run(connection, migration.downgrade)

        assert inspect(connection).get_table_names() == []

    def test_revision_is_root(self, migration):
        assert migration.revision == "001_sprint_engine"
        assert migration.down_revision is None
