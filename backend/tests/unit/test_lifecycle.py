"""
Unit tests for sprint status transitions and SprintLifecycleService.
"""

import pytest
import pytest_asyncio
from tenacity import wait_none

from sprint_engine.enums import ArtifactStatus, DeliverableType, ReviewSource, SprintStatus
from sprint_engine.errors import AuthorizationError, ConflictError, ValidationError
from sprint_engine.models.lifecycle import Sprint
from sprint_engine.models.review import ReviewArtifact, SelfEvaluation
from sprint_engine.services.lifecycle import SprintLifecycleService, ensure_transition
from sprint_engine.services.planning import SprintPlanner
from sprint_engine.services.review import ReviewEngine
from tests.factories import make_plan, mock_gateway


def _repo(project_id="proj_1", status=ArtifactStatus.OK) -> ReviewArtifact:
    return ReviewArtifact(
        artifact_id=f"{project_id}_repo",
        project_id=project_id,
        type=DeliverableType.REPOSITORY,
        title="Repo",
        url="https://example.com/repo",
        status=status,
    )


@pytest_asyncio.fixture
async def planned_sprint(store, stored_objective) -> Sprint:
    return await store.create_sprint(
        Sprint(id="sprint_d1", objective_id="obj_1", day_number=1, planner_output=make_plan())
    )


@pytest.fixture
def lifecycle(store, clock) -> SprintLifecycleService:
    return SprintLifecycleService(store, review_engine=ReviewEngine(None), clock=clock)


class TestEnsureTransition:
    @pytest.mark.parametrize(
        "current,target",
        [
            pytest.param(SprintStatus.PLANNED, SprintStatus.IN_PROGRESS, id="start"),
            pytest.param(SprintStatus.PLANNED, SprintStatus.SUBMITTED, id="complete_unstarted"),
            pytest.param(SprintStatus.IN_PROGRESS, SprintStatus.REVIEWED, id="complete_reviewed"),
            pytest.param(SprintStatus.SUBMITTED, SprintStatus.REVIEWED, id="review"),
        ],
    )
    def test_allowed(self, current, target):
        ensure_transition(current, target)

    @pytest.mark.parametrize(
        "current,target",
        [
            pytest.param(SprintStatus.IN_PROGRESS, SprintStatus.PLANNED, id="backward"),
            pytest.param(SprintStatus.SUBMITTED, SprintStatus.IN_PROGRESS, id="reopen"),
            pytest.param(SprintStatus.REVIEWED, SprintStatus.SUBMITTED, id="unreview"),
        ],
    )
    def test_rejected(self, current, target):
        with pytest.raises(ValidationError) as exc_info:
            ensure_transition(current, target)

        assert exc_info.value.error_code == "INVALID_STATUS_TRANSITION"


class TestStartSprint:
    @pytest.mark.asyncio
    async def test_start(self, lifecycle, clock, planned_sprint):
        sprint = await lifecycle.start_sprint("sprint_d1", "user_1")

        assert sprint.status == SprintStatus.IN_PROGRESS
        assert sprint.started_at == clock()

    @pytest.mark.asyncio
    async def test_start_twice_rejected(self, lifecycle, planned_sprint):
        await lifecycle.start_sprint("sprint_d1", "user_1")

        with pytest.raises(ValidationError):
            await lifecycle.start_sprint("sprint_d1", "user_1")

    @pytest.mark.asyncio
    async def test_other_user(self, lifecycle, planned_sprint):
        with pytest.raises(AuthorizationError):
            await lifecycle.start_sprint("sprint_d1", "intruder")


class TestSubmitEvidence:
    """Tests for artifact upserts and self-evaluation."""

    @pytest.mark.asyncio
    async def test_upsert_and_self_evaluation(self, lifecycle, store, planned_sprint):
        await lifecycle.submit_evidence("sprint_d1", "user_1", [_repo(status=ArtifactStatus.BROKEN)])

        stored = await lifecycle.submit_evidence(
            "sprint_d1",
            "user_1",
            [_repo()],
            SelfEvaluation(confidence=8, reflection="Went well"),
        )

        assert len(stored) == 1
        assert stored[0].status == ArtifactStatus.OK
        sprint = await store.get_sprint("sprint_d1")
        assert sprint.self_evaluation_confidence == 8
        assert sprint.status == SprintStatus.PLANNED

    @pytest.mark.asyncio
    async def test_unknown_project_rejected(self, lifecycle, store, planned_sprint):
        with pytest.raises(ValidationError) as exc_info:
            await lifecycle.submit_evidence("sprint_d1", "user_1", [_repo("proj_other")])

        assert exc_info.value.error_code == "UNKNOWN_PROJECT"
        assert exc_info.value.details["project_ids"] == ["proj_other"]
        assert await store.list_artifacts("sprint_d1") == []


class TestReviewSprint:
    @pytest.mark.asyncio
    async def test_submitted_sprint_becomes_reviewed(self, lifecycle, store, clock, planned_sprint):
        await lifecycle.submit_evidence("sprint_d1", "user_1", [_repo()], SelfEvaluation(confidence=10))
        await store.update_sprint(
            "sprint_d1", {"status": SprintStatus.SUBMITTED, "completed_at": clock()}
        )

        review = await lifecycle.review_sprint("sprint_d1", "user_1")

        assert review.provider == ReviewSource.FALLBACK
        assert review.score == pytest.approx(1.0)
        sprint = await store.get_sprint("sprint_d1")
        assert sprint.status == SprintStatus.REVIEWED
        assert sprint.score == pytest.approx(1.0)
        assert sprint.reviewer_summary["provider"] == "fallback"

    @pytest.mark.asyncio
    async def test_in_progress_sprint_keeps_status(self, lifecycle, store, planned_sprint):
        await lifecycle.start_sprint("sprint_d1", "user_1")

        await lifecycle.review_sprint("sprint_d1", "user_1")

        sprint = await store.get_sprint("sprint_d1")
        assert sprint.status == SprintStatus.IN_PROGRESS
        assert sprint.score is not None

    @pytest.mark.asyncio
    async def test_without_review_engine(self, store, clock, planned_sprint):
        service = SprintLifecycleService(store, clock=clock)

        with pytest.raises(ConflictError):
            await service.review_sprint("sprint_d1", "user_1")


class TestExpandSprint:
    @pytest.mark.asyncio
    async def test_appends_without_rewriting(self, store, test_settings, clock, planned_sprint):
        reply = make_plan(plan_id="spr_other", task_count=5)
        reply["microTasks"][0]["title"] = "Rewritten"
        planner = SprintPlanner(
            mock_gateway(reply), app_settings=test_settings, clock=clock, retry_wait=wait_none()
        )
        service = SprintLifecycleService(store, planner=planner, clock=clock)

        sprint = await service.expand_sprint("sprint_d1", "user_1", target_length_days=2, additional_micro_tasks=2)

        plan = sprint.plan()
        assert plan.id == make_plan()["id"]
        assert plan.length_days == 2
        assert [t.id for t in plan.micro_tasks] == ["task_1", "task_2", "task_3", "task_4", "task_5"]
        assert plan.micro_tasks[0].title == "Task 1"
        assert sprint.planner_mode.value == "expansion"

    @pytest.mark.asyncio
    async def test_completed_sprint_rejected(self, store, test_settings, clock, planned_sprint):
        await store.update_sprint("sprint_d1", {"status": SprintStatus.SUBMITTED, "completed_at": clock()})
        planner = SprintPlanner(mock_gateway(make_plan()), app_settings=test_settings, clock=clock)
        service = SprintLifecycleService(store, planner=planner, clock=clock)

        with pytest.raises(ConflictError) as exc_info:
            await service.expand_sprint("sprint_d1", "user_1", target_length_days=2)

        assert exc_info.value.error_code == "SPRINT_ALREADY_COMPLETED"
