"""
Unit tests for CompletionHandler.

Tests completion preconditions, objective bookkeeping, notifications and
the best-effort follow-up steps (recalibration, next-sprint generation
and buffer maintenance), which never fail a completion.
"""

import asyncio
from datetime import timedelta
from unittest.mock import AsyncMock, MagicMock

import httpx
import pytest
import pytest_asyncio
from tenacity import wait_none

from sprint_engine.enums import EventType, NotificationType, ObjectiveStatus, SprintStatus
from sprint_engine.errors import AuthorizationError, ConflictError, ProviderError, ValidationError
from sprint_engine.models.adaptation import BufferReport, GenerationDecision
from sprint_engine.models.completion import CompletionData, CompletionNotification
from sprint_engine.models.lifecycle import Milestone, Sprint
from sprint_engine.services.completion import CompletionHandler
from sprint_engine.services.planning import SprintPlanner
from sprint_engine.services.providers import LMStudioGateway
from sprint_engine.services.scheduling import AutoGenerationScheduler
from sprint_engine.store import InMemorySprintStore
from tests.factories import make_plan

FULL = CompletionData(tasks_completed=3, total_tasks=3, hours_spent=2.5, evidence_submitted=True)


class FailingEmitter:
    def emit(self, event_type, payload):
        raise RuntimeError("event bus down")


class YieldingStore(InMemorySprintStore):
    """In-memory store that lets other coroutines run before every read."""

    async def get_objective(self, objective_id):
        await asyncio.sleep(0)
        return await super().get_objective(objective_id)

    async def get_sprint(self, sprint_id):
        await asyncio.sleep(0)
        return await super().get_sprint(sprint_id)


@pytest.fixture
def handler(store, test_settings, clock, events) -> CompletionHandler:
    return CompletionHandler(store, app_settings=test_settings, clock=clock, events=events)


@pytest.fixture
def mock_scheduler() -> MagicMock:
    """Scheduler that agrees to generate and has an empty buffer report."""
    scheduler = MagicMock()
    scheduler.should_generate_next = AsyncMock(
        return_value=GenerationDecision(should_generate=True, reason="Ready to generate next sprint", next_day_number=2)
    )
    scheduler.generate_next_sprint = AsyncMock(
        return_value=Sprint(id="sprint_d2", objective_id="obj_1", day_number=2)
    )
    scheduler.maintain_sprint_buffer = AsyncMock(return_value=BufferReport(objective_id="obj_1"))
    return scheduler


@pytest_asyncio.fixture
async def day_one(store, stored_objective) -> Sprint:
    return await store.create_sprint(
        Sprint(id="sprint_d1", objective_id="obj_1", day_number=1, planner_output=make_plan())
    )


class TestCompletionPreconditions:
    """Tests for the checks that run before any mutation."""

    @pytest.mark.asyncio
    async def test_already_completed(self, handler, day_one):
        await handler.complete_sprint("sprint_d1", "user_1", FULL)

        with pytest.raises(ConflictError) as exc_info:
            await handler.complete_sprint("sprint_d1", "user_1", FULL)

        assert exc_info.value.error_code == "SPRINT_ALREADY_COMPLETED"

    @pytest.mark.asyncio
    async def test_second_completion_changes_nothing(self, handler, store, clock, day_one):
        await handler.complete_sprint("sprint_d1", "user_1", FULL)
        sprint_before = await store.get_sprint("sprint_d1")
        objective_before = await store.get_objective("obj_1")
        clock.advance(days=1)

        with pytest.raises(ConflictError):
            await handler.complete_sprint(
                "sprint_d1",
                "user_1",
                CompletionData(tasks_completed=2, total_tasks=3, hours_spent=9, evidence_submitted=True),
            )

        sprint = await store.get_sprint("sprint_d1")
        objective = await store.get_objective("obj_1")
        assert sprint.completed_at == sprint_before.completed_at
        assert sprint.hours_spent == 2.5
        assert objective.completed_days == objective_before.completed_days == 1
        assert objective.current_streak == objective_before.current_streak
        assert objective.last_completion_date == objective_before.last_completion_date

    @pytest.mark.asyncio
    async def test_other_user_rejected(self, handler, store, day_one):
        with pytest.raises(AuthorizationError):
            await handler.complete_sprint("sprint_d1", "intruder", FULL)

        assert (await store.get_sprint("sprint_d1")).completed_at is None

    @pytest.mark.asyncio
    async def test_below_minimum_rate(self, handler, store, day_one):
        data = CompletionData(tasks_completed=1, total_tasks=3, hours_spent=1)

        with pytest.raises(ValidationError) as exc_info:
            await handler.complete_sprint("sprint_d1", "user_1", data)

        assert exc_info.value.error_code == "SPRINT_COMPLETION_VALIDATION_FAILED"
        assert exc_info.value.details["missing_requirements"]
        sprint = await store.get_sprint("sprint_d1")
        assert sprint.status == SprintStatus.PLANNED
        assert (await store.get_objective("obj_1")).completed_days == 0

    @pytest.mark.asyncio
    async def test_below_minimum_rate_with_evidence(self, handler, store, day_one):
        data = CompletionData(tasks_completed=1, total_tasks=3, hours_spent=1, evidence_submitted=True)

        with pytest.raises(ValidationError) as exc_info:
            await handler.complete_sprint("sprint_d1", "user_1", data)

        assert exc_info.value.error_code == "SPRINT_COMPLETION_VALIDATION_FAILED"
        assert (await store.get_sprint("sprint_d1")).completed_at is None


class TestConcurrentCompletions:
    @pytest.mark.asyncio
    async def test_completed_days_counts_every_sprint(self, test_settings, clock, sample_objective):
        store = YieldingStore()
        await store.create_objective(sample_objective)
        for day in (1, 2, 3):
            await store.create_sprint(
                Sprint(id=f"sprint_d{day}", objective_id="obj_1", day_number=day, planner_output=make_plan())
            )
        handler = CompletionHandler(store, app_settings=test_settings, clock=clock)

        results = await asyncio.gather(
            *(handler.complete_sprint(f"sprint_d{day}", "user_1", FULL) for day in (1, 2, 3))
        )

        assert all(r.sprint_completed for r in results)
        objective = await store.get_objective("obj_1")
        assert objective.completed_days == 3
        assert objective.current_streak == 1
        assert objective.last_completion_date == clock().date()


class TestCompleteSprint:
    """Tests for the completion itself and its bookkeeping."""

    @pytest.mark.asyncio
    async def test_marks_sprint_and_objective(self, handler, store, clock, events, day_one):
        result = await handler.complete_sprint("sprint_d1", "user_1", FULL)

        assert result.status == "submitted"
        assert result.completion_rate == 100.0
        assert result.completed_at == clock()
        assert result.current_streak == 1

        sprint = await store.get_sprint("sprint_d1")
        assert sprint.status == SprintStatus.SUBMITTED
        assert sprint.hours_spent == 2.5
        assert sprint.tasks_completed == 3

        objective = await store.get_objective("obj_1")
        assert objective.completed_days == 1
        assert objective.last_completion_date == clock().date()

        assert events.of_type(EventType.SPRINT_COMPLETED)[0]["day_number"] == 1
        assert result.notifications[0].type == NotificationType.SPRINT_COMPLETED

    @pytest.mark.asyncio
    async def test_reviewed_when_score_exists(self, handler, store, day_one):
        await store.update_sprint("sprint_d1", {"score": 0.8})

        result = await handler.complete_sprint("sprint_d1", "user_1", FULL)

        assert result.status == "reviewed"

    @pytest.mark.asyncio
    async def test_reflection_is_stored(self, handler, store, day_one):
        data = FULL.model_copy(update={"reflection": "Routing clicked today"})

        await handler.complete_sprint("sprint_d1", "user_1", data)

        assert (await store.get_sprint("sprint_d1")).reflection == "Routing clicked today"

    @pytest.mark.asyncio
    async def test_streak_milestone_notification(self, handler, store, clock, day_one):
        await store.update_objective(
            "obj_1",
            {
                "current_streak": 6,
                "longest_streak": 6,
                "last_completion_date": (clock() - timedelta(days=1)).date(),
            },
        )

        result = await handler.complete_sprint("sprint_d1", "user_1", FULL)

        assert result.current_streak == 7
        streak_notes = [n for n in result.notifications if n.type == NotificationType.STREAK_MILESTONE]
        assert streak_notes[0].title == "7-Day Streak!"
        assert (await store.get_objective("obj_1")).longest_streak == 7

    @pytest.mark.asyncio
    async def test_milestone_reached(self, handler, store, events, day_one):
        await store.create_milestone(
            Milestone(id="ms_1", objective_id="obj_1", title="Fundamentals", target_day=1)
        )

        result = await handler.complete_sprint("sprint_d1", "user_1", FULL)

        assert result.milestone_reached is True
        assert (await store.list_milestones("obj_1"))[0].is_completed is True
        assert events.of_type(EventType.MILESTONE_REACHED)[0]["milestone_id"] == "ms_1"

    @pytest.mark.asyncio
    async def test_goal_reached_never_completes_objective(self, handler, store, day_one):
        await store.update_objective("obj_1", {"estimated_total_days": 1})

        result = await handler.complete_sprint("sprint_d1", "user_1", FULL)

        assert result.progress.goal_reached is True
        assert any(n.title == "Initial Goal Reached!" for n in result.notifications)
        objective = await store.get_objective("obj_1")
        assert objective.status == ObjectiveStatus.ACTIVE
        assert objective.completed_at is None

    @pytest.mark.asyncio
    async def test_final_day_of_week_long_objective(self, handler, store, clock, stored_objective):
        await store.update_objective(
            "obj_1",
            {
                "estimated_total_days": 7,
                "completed_days": 6,
                "current_streak": 6,
                "longest_streak": 6,
                "last_completion_date": (clock() - timedelta(days=1)).date(),
            },
        )
        await store.create_sprint(
            Sprint(id="sprint_d7", objective_id="obj_1", day_number=7, planner_output=make_plan())
        )

        result = await handler.complete_sprint(
            "sprint_d7",
            "user_1",
            CompletionData(tasks_completed=9, total_tasks=10, hours_spent=2, evidence_submitted=True),
        )

        assert result.sprint_completed is True
        assert result.current_streak == 7
        kinds = [n.type for n in result.notifications]
        assert NotificationType.STREAK_MILESTONE in kinds
        assert result.notifications[-1].data["suggestCompletion"] is True
        assert (await store.get_objective("obj_1")).status == ObjectiveStatus.ACTIVE

    @pytest.mark.asyncio
    async def test_event_failure_is_recorded(self, store, test_settings, clock, day_one):
        handler = CompletionHandler(store, app_settings=test_settings, clock=clock, events=FailingEmitter())

        result = await handler.complete_sprint("sprint_d1", "user_1", FULL)

        assert result.success is True
        assert result.side_effect_errors["event:sprint_completed"] == "emit failed"


class TestFollowUpSteps:
    """Tests for best-effort generation, buffer and recalibration steps."""

    @pytest.mark.asyncio
    async def test_next_sprint_generated(self, store, test_settings, clock, mock_scheduler, day_one):
        handler = CompletionHandler(store, scheduler=mock_scheduler, app_settings=test_settings, clock=clock)

        result = await handler.complete_sprint("sprint_d1", "user_1", FULL)

        assert result.next_sprint_generated is True
        assert result.next_sprint_id == "sprint_d2"
        mock_scheduler.generate_next_sprint.assert_awaited_once_with("obj_1", "user_1", current_day=1)
        mock_scheduler.maintain_sprint_buffer.assert_awaited_once_with("obj_1")

    @pytest.mark.asyncio
    async def test_generation_failure_does_not_fail_completion(
        self, store, test_settings, clock, mock_scheduler, day_one
    ):
        mock_scheduler.generate_next_sprint.side_effect = ProviderError(
            "timed out", reason=ProviderError.CLIENT_TIMEOUT
        )
        handler = CompletionHandler(store, scheduler=mock_scheduler, app_settings=test_settings, clock=clock)

        result = await handler.complete_sprint("sprint_d1", "user_1", FULL)

        assert result.sprint_completed is True
        assert result.next_sprint_generated is False
        assert result.side_effect_errors["next_sprint"].startswith("ProviderError")
        assert (await store.get_sprint("sprint_d1")).status == SprintStatus.SUBMITTED

    @pytest.mark.asyncio
    async def test_planner_timeout_does_not_fail_completion(
        self, store, test_settings, clock, events, day_one
    ):
        calls = []

        def handler_fn(request: httpx.Request) -> httpx.Response:
            calls.append(request)
            raise httpx.ReadTimeout("planner stalled", request=request)

        gateway = LMStudioGateway(
            model="qwen-test",
            base_url="http://lmstudio.test",
            timeout_seconds=5,
            transport=httpx.MockTransport(handler_fn),
        )
        planner = SprintPlanner(gateway, app_settings=test_settings, clock=clock, retry_wait=wait_none())
        scheduler = AutoGenerationScheduler(
            store, planner, app_settings=test_settings, clock=clock, events=events
        )
        handler = CompletionHandler(
            store, scheduler=scheduler, app_settings=test_settings, clock=clock, events=events
        )

        result = await handler.complete_sprint("sprint_d1", "user_1", FULL)

        assert result.success is True
        assert result.next_sprint_generated is False
        assert result.side_effect_errors["next_sprint"].startswith("ProviderError")
        assert result.side_effect_errors["buffer_maintenance"].startswith("client_timeout")
        assert calls
        assert (await store.get_sprint("sprint_d1")).status == SprintStatus.SUBMITTED
        assert (await store.get_objective("obj_1")).completed_days == 1
        assert await store.get_sprint_by_day("obj_1", 2) is None

    @pytest.mark.asyncio
    async def test_generation_skipped_when_not_ready(
        self, store, test_settings, clock, mock_scheduler, day_one
    ):
        mock_scheduler.should_generate_next.return_value = GenerationDecision(
            should_generate=False, reason="Auto-generation disabled", next_day_number=0
        )
        handler = CompletionHandler(store, scheduler=mock_scheduler, app_settings=test_settings, clock=clock)

        result = await handler.complete_sprint("sprint_d1", "user_1", FULL)

        assert result.next_sprint_generated is False
        assert "next_sprint" not in result.side_effect_errors
        mock_scheduler.generate_next_sprint.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_buffer_error_reported(self, store, test_settings, clock, mock_scheduler, day_one):
        mock_scheduler.maintain_sprint_buffer.return_value = BufferReport(
            objective_id="obj_1", error="client_timeout: planner timed out"
        )
        handler = CompletionHandler(store, scheduler=mock_scheduler, app_settings=test_settings, clock=clock)

        result = await handler.complete_sprint("sprint_d1", "user_1", FULL)

        assert result.side_effect_errors["buffer_maintenance"] == "client_timeout: planner timed out"

    @pytest.mark.asyncio
    async def test_recalibration_notifications(self, store, test_settings, clock, day_one):
        recalibrator = MagicMock()
        note = CompletionNotification(
            type=NotificationType.DIFFICULTY_INCREASED, title="Difficulty Increased", message="Harder"
        )
        recalibrator.recalibrate_after_completion = AsyncMock(
            return_value=(MagicMock(applied=True), [note])
        )
        handler = CompletionHandler(store, recalibrator=recalibrator, app_settings=test_settings, clock=clock)

        result = await handler.complete_sprint("sprint_d1", "user_1", FULL)

        assert result.recalibrated is True
        assert note in result.notifications
        recalibrator.recalibrate_after_completion.assert_awaited_once_with("obj_1", "user_1", 1)

    @pytest.mark.asyncio
    async def test_recalibration_failure_recorded(self, store, test_settings, clock, day_one):
        recalibrator = MagicMock()
        recalibrator.recalibrate_after_completion = AsyncMock(side_effect=RuntimeError("boom"))
        handler = CompletionHandler(store, recalibrator=recalibrator, app_settings=test_settings, clock=clock)

        result = await handler.complete_sprint("sprint_d1", "user_1", FULL)

        assert result.recalibrated is False
        assert result.side_effect_errors["recalibration"] == "RuntimeError: boom"


class TestCompletionStatus:
    @pytest.mark.asyncio
    async def test_counts_from_plan_and_percentage(self, handler, store, day_one):
        await store.update_sprint("sprint_d1", {"completion_percentage": 70})

        status = await handler.get_completion_status("sprint_d1", "user_1")

        assert status.total_tasks == 3
        assert status.tasks_completed == 2
        assert status.can_complete is True
        assert status.is_completed is False

    @pytest.mark.asyncio
    async def test_not_enough_progress(self, handler, day_one):
        status = await handler.get_completion_status("sprint_d1")

        assert status.can_complete is False
        assert status.missing_requirements

    @pytest.mark.asyncio
    async def test_completed_sprint(self, handler, day_one):
        await handler.complete_sprint("sprint_d1", "user_1", FULL)

        status = await handler.get_completion_status("sprint_d1")

        assert status.is_completed is True
        assert status.can_complete is False
        assert status.missing_requirements == ["Sprint already completed"]


class TestUpdateProgress:
    @pytest.mark.asyncio
    async def test_percentage_clamped(self, handler, day_one):
        update = await handler.update_progress("sprint_d1", "user_1", 150, hours_spent=1.5)

        assert update.completion_percentage == 100.0
        assert update.hours_spent == 1.5
        assert update.objective_progress_percentage == 100.0

    @pytest.mark.asyncio
    async def test_objective_average(self, handler, store, day_one):
        await store.create_sprint(Sprint(id="sprint_d2", objective_id="obj_1", day_number=2))

        update = await handler.update_progress("sprint_d1", "user_1", 50)

        assert update.objective_progress_percentage == 25.0

    @pytest.mark.asyncio
    async def test_completed_sprint_rejected(self, handler, day_one):
        await handler.complete_sprint("sprint_d1", "user_1", FULL)

        with pytest.raises(ConflictError):
            await handler.update_progress("sprint_d1", "user_1", 10)
