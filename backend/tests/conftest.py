"""
Shared Test Fixtures and Configuration

This module provides pytest fixtures used across the unit tests: a pinned
clock, the in-memory lifecycle store, a recording event emitter, sample
objectives and canonical plans, and a fake planner gateway.
"""

import os
import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Generator
from unittest.mock import MagicMock

import pytest
import pytest_asyncio
from dotenv import load_dotenv

# Add the backend directory to the path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

# Load .env file from project root BEFORE any fixtures run
_project_root = Path(__file__).parent.parent.parent
_env_file = _project_root / ".env"
if _env_file.exists():
    load_dotenv(_env_file)
else:
    # Try backend directory
    _backend_env = Path(__file__).parent.parent / ".env"
    if _backend_env.exists():
        load_dotenv(_backend_env)

from sprint_engine.config import Settings  # noqa: E402
from sprint_engine.enums import GenerationMode, ObjectiveStatus  # noqa: E402
from sprint_engine.models.lifecycle import LearnerProfile, Objective  # noqa: E402
from sprint_engine.services.events import RecordingEventEmitter  # noqa: E402
from sprint_engine.store import InMemorySprintStore  # noqa: E402
from tests.factories import FrozenClock, make_plan, mock_gateway  # noqa: E402


# ============================================================================
# Environment Configuration
# ============================================================================


@pytest.fixture(scope="session", autouse=True)
def setup_test_environment() -> Generator[None, None, None]:
    """
    Set up test environment variables before any tests run.

    Tests never reach a real provider; keys are placeholders.
    """
    original_env = os.environ.copy()

    test_env = {
        "POSTGRES_HOST": os.environ.get("POSTGRES_HOST", "localhost"),
        "POSTGRES_PORT": os.environ.get("POSTGRES_PORT", "5432"),
        "POSTGRES_USER": os.environ.get("POSTGRES_TEST_USER", "testuser"),
        "POSTGRES_PASSWORD": os.environ.get("POSTGRES_TEST_PASSWORD", "testpass"),
        "POSTGRES_DB": os.environ.get("POSTGRES_TEST_DB", "testdb"),
        "GROQ_API_KEY": "test-api-key",
        "DEBUG": "true",
    }
    os.environ.update(test_env)

    yield

    os.environ.clear()
    os.environ.update(original_env)


@pytest.fixture
def test_settings() -> Settings:
    """Settings with the policy values the tests assume."""
    return Settings(
        GROQ_API_KEY="test-api-key",
        PLANNER_MAX_ATTEMPTS=2,
        SPRINT_BUFFER_TARGET=3,
        MAX_BATCH_SIZE=10,
        STREAK_MILESTONE_INTERVAL=7,
        COMPLETION_MIN_RATE=50.0,
        RECALIBRATE_ON_COMPLETION=True,
        RECALIBRATION_WINDOW=5,
    )


# ============================================================================
# Clock, Store and Events
# ============================================================================


@pytest.fixture
def clock() -> FrozenClock:
    return FrozenClock(datetime(2026, 3, 2, 9, 0, tzinfo=timezone.utc))


@pytest.fixture
def store() -> InMemorySprintStore:
    return InMemorySprintStore()


@pytest.fixture
def events() -> RecordingEventEmitter:
    return RecordingEventEmitter()


# ============================================================================
# Sample Domain Data
# ============================================================================


@pytest.fixture
def sample_profile() -> LearnerProfile:
    return LearnerProfile(
        id="profile_1",
        user_id="user_1",
        hours_per_week=6,
        strengths=["python basics"],
        gaps=["testing"],
        passion_tags=["games"],
        blockers=["limited evenings"],
        goals=["ship a portfolio project"],
    )


@pytest.fixture
def sample_objective(sample_profile: LearnerProfile, clock: FrozenClock) -> Objective:
    return Objective(
        id="obj_1",
        user_id="user_1",
        profile=sample_profile,
        title="Build web apps with FastAPI",
        description="Go from zero to a deployed API",
        success_criteria=["Deploy a CRUD API"],
        required_skills=["python", "http", "sql"],
        status=ObjectiveStatus.ACTIVE,
        estimated_total_days=30,
        sprint_generation_mode=GenerationMode.DAILY,
        auto_generate_next_sprint=True,
        created_at=clock(),
    )


@pytest_asyncio.fixture
async def stored_objective(store: InMemorySprintStore, sample_objective: Objective) -> Objective:
    """The sample objective saved in the in-memory store."""
    return await store.create_objective(sample_objective)


@pytest.fixture
def canonical_plan() -> dict[str, Any]:
    return make_plan()


@pytest.fixture
def planner_gateway(canonical_plan: dict[str, Any]) -> MagicMock:
    """Planner gateway that always returns the canonical plan."""
    return mock_gateway(canonical_plan)
