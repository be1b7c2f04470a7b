"""
Test Data Factories

Plain helpers shared by the unit tests: a controllable clock, canonical
plan dicts and mock provider gateways.
"""

import copy
from datetime import datetime, timedelta
from typing import Any, Optional
from unittest.mock import AsyncMock, MagicMock

from sprint_engine.services.providers.gateway import ProviderResponse
from sprint_engine.services.providers.telemetry import ProviderTelemetry


class FrozenClock:
    """Callable clock pinned to a moment; `advance()` moves it forward."""

    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, days: int = 0, hours: int = 0) -> datetime:
        self.now = self.now + timedelta(days=days, hours=hours)
        return self.now


def make_plan(
    plan_id: str = "spr_obj_1_20260302090000_d1",
    project_ids: tuple[str, ...] = ("proj_1",),
    task_count: int = 3,
    with_rubric: bool = True,
) -> dict[str, Any]:
    """Build a canonical plan dict (camelCase wire shape)."""
    projects = []
    for project_id in project_ids:
        project = {
            "id": project_id,
            "title": f"Project {project_id}",
            "brief": "Build a small REST API",
            "requirements": ["Expose two endpoints"],
            "acceptanceCriteria": ["Endpoints return JSON"],
            "deliverables": [
                {"type": "repository", "title": "Source repo", "artifactId": f"{project_id}_repo"}
            ],
            "checkpoints": [
                {"id": f"{project_id}_cp", "title": "Midpoint demo", "type": "demo", "spec": "Show it"}
            ],
        }
        if with_rubric:
            project["evidenceRubric"] = {
                "dimensions": [{"name": "Functionality", "weight": 1.0}],
                "passThreshold": 0.6,
            }
        projects.append(project)

    tasks = [
        {
            "id": f"task_{i}",
            "projectId": project_ids[0],
            "title": f"Task {i}",
            "type": "practice",
            "estimatedMinutes": 30 + i * 10,
            "instructions": "Follow the steps",
            "acceptanceTest": {"type": "checklist", "spec": ["Done"]},
        }
        for i in range(1, task_count + 1)
    ]

    return {
        "id": plan_id,
        "title": "Day 1: API basics",
        "description": "Get a first endpoint running",
        "lengthDays": 1,
        "totalEstimatedHours": 2,
        "difficulty": "beginner",
        "projects": projects,
        "microTasks": tasks,
        "portfolioCards": [{"projectId": project_ids[0], "headline": "My first API"}],
        "adaptationNotes": "Keep the scope small",
    }


def provider_response(content: dict[str, Any], provider: str = "groq") -> ProviderResponse:
    """Wrap a parsed object in a successful ProviderResponse."""
    return ProviderResponse(
        content=copy.deepcopy(content),
        telemetry=ProviderTelemetry(
            provider=provider,
            model="test-model",
            purpose="test",
            prompt_hash="a" * 64,
            latency_ms=12,
        ),
        raw_text="{}",
    )


def mock_gateway(content: Optional[dict[str, Any]] = None, side_effect=None) -> MagicMock:
    """
    Create a mock gateway whose `send` returns `content` as a ProviderResponse.

    Pass `side_effect` (an exception or a list of results) to script failures.
    """
    gateway = MagicMock()
    gateway.provider = "groq"
    gateway.model = "test-model"
    if side_effect is not None:
        gateway.send = AsyncMock(side_effect=side_effect)
    else:
        gateway.send = AsyncMock(return_value=provider_response(content or {}))
    return gateway
