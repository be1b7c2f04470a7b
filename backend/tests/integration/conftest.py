"""
Integration Test Fixtures

Provides fixtures for integration tests that need a running PostgreSQL.
Tables are recreated once per session and truncated around each test.

IMPORTANT: All integration tests use the TEST database only (via POSTGRES_TEST_* env vars).
A safety check fixture (verify_test_database) runs at session start to fail fast if
production credentials are detected. Tests are skipped when no database is reachable.
"""

import os
from pathlib import Path
from typing import AsyncGenerator
from urllib.parse import quote_plus

import pytest
import pytest_asyncio
from dotenv import load_dotenv
from sqlalchemy import text
from sqlalchemy.exc import DBAPIError, OperationalError
from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine

from sprint_engine.db import Base, create_session_maker
from sprint_engine.store import SQLAlchemySprintStore

# Load .env file FIRST, before reading any environment variables
_project_root = Path(__file__).parent.parent.parent.parent
_env_file = _project_root / ".env"
if _env_file.exists():
    load_dotenv(_env_file)

pytestmark = pytest.mark.integration

TABLES_TO_CLEAN = [
    "sprint_adaptations",
    "objective_adaptation_history",
    "sprint_artifacts",
    "sprints",
    "milestones",
    "objectives",
]


# =============================================================================
# Safety Check - Runs before any integration tests
# =============================================================================


@pytest.fixture(scope="session", autouse=True)
def verify_test_database():
    """
    Fail fast if the configured database looks like production.

    Set ALLOW_PROD_DB_TESTS=1 to skip this check (for local development only).
    """
    if os.environ.get("ALLOW_PROD_DB_TESTS", "").lower() in ("1", "true", "yes"):
        return

    config = get_test_db_config()
    for indicator in ["prod", "production"]:
        assert indicator not in config["db"].lower(), (
            f"SAFETY CHECK FAILED: Database name '{config['db']}' looks like production! "
            "Set POSTGRES_TEST_DB environment variable or ALLOW_PROD_DB_TESTS=1."
        )
        assert indicator not in config["user"].lower(), (
            f"SAFETY CHECK FAILED: Database user '{config['user']}' looks like production! "
            "Set POSTGRES_TEST_USER environment variable or ALLOW_PROD_DB_TESTS=1."
        )


# =============================================================================
# Database Configuration
# =============================================================================


def get_test_db_config() -> dict:
    """
    Get test database configuration from environment variables.

    Priority: POSTGRES_TEST_* > POSTGRES_* > defaults
    """
    return {
        "host": os.environ.get("POSTGRES_HOST", "localhost"),
        "port": os.environ.get("POSTGRES_PORT", "5432"),
        "user": os.environ.get("POSTGRES_TEST_USER", os.environ.get("POSTGRES_USER", "testuser")),
        "password": os.environ.get(
            "POSTGRES_TEST_PASSWORD", os.environ.get("POSTGRES_PASSWORD", "testpass")
        ),
        "db": os.environ.get("POSTGRES_TEST_DB", os.environ.get("POSTGRES_DB", "testdb")),
    }


def get_test_db_url() -> str:
    """Build the asyncpg database URL from the test config."""
    config = get_test_db_config()
    # URL-encode the password to handle special characters
    encoded_password = quote_plus(config["password"])
    return (
        f"postgresql+asyncpg://{config['user']}:{encoded_password}"
        f"@{config['host']}:{config['port']}/{config['db']}"
    )


@pytest_asyncio.fixture(scope="function")
async def pg_engine() -> AsyncGenerator[AsyncEngine, None]:
    """
    Fresh engine per test with up-to-date, empty tables.

    Creates a new engine for each test's event loop.
    """
    from sprint_engine.db import models  # noqa: F401

    engine = create_async_engine(get_test_db_url(), echo=False)
    try:
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
    except (OSError, OperationalError, DBAPIError) as e:
        await engine.dispose()
        pytest.skip(f"PostgreSQL not available: {e}")

    async with engine.begin() as conn:
        await conn.execute(text(f"TRUNCATE TABLE {', '.join(TABLES_TO_CLEAN)} CASCADE"))

    yield engine

    async with engine.begin() as conn:
        await conn.execute(text(f"TRUNCATE TABLE {', '.join(TABLES_TO_CLEAN)} CASCADE"))
    await engine.dispose()


@pytest.fixture
def pg_store(pg_engine: AsyncEngine) -> SQLAlchemySprintStore:
    return SQLAlchemySprintStore(create_session_maker(pg_engine))
