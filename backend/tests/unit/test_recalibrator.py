"""
Unit tests for the adaptive recalibrator.

Tests performance analysis over review scores, the rule-based fallback
decision, applying recalibrations with their history entries, and the
per-sprint difficulty and estimate adjustments.
"""

from datetime import timedelta

import pytest

from sprint_engine.enums import (
    AdjustmentType,
    EventType,
    NotificationType,
    PerformanceTrend,
    RecommendedAction,
    ReviewSource,
    SprintStatus,
)
from sprint_engine.errors import AuthorizationError, ProviderError, ValidationError
from sprint_engine.models.adaptation import PerformanceAnalysis
from sprint_engine.models.lifecycle import Sprint
from sprint_engine.services.adaptation import (
    AdaptiveRecalibrator,
    determine_trend,
    recommend_action,
    rule_based_decision,
)
from tests.factories import mock_gateway

REMOTE_DECISION = {
    "shouldAdjust": True,
    "adjustmentType": "increase",
    "newDifficulty": 65,
    "newVelocity": 1.2,
    "reasoning": "Scores are consistently high across recent sprints",
    "recommendations": ["Introduce async endpoints"],
    "estimatedDaysChange": -5,
}


async def _seed_scores(store, clock, scores, start_day=1):
    """Store one reviewed sprint per score (0-1 scale), day by day."""
    for offset, score in enumerate(scores):
        day = start_day + offset
        await store.create_sprint(
            Sprint(
                id=f"sprint_d{day}",
                objective_id="obj_1",
                day_number=day,
                status=SprintStatus.REVIEWED,
                completed_at=clock() + timedelta(days=offset),
                score=score,
            )
        )


def _analysis(high=False, low=False, scores=None) -> PerformanceAnalysis:
    scores = scores or [80.0]
    return PerformanceAnalysis(
        objective_id="obj_1",
        sprints_analyzed=len(scores),
        scores=scores,
        average_score=sum(scores) / len(scores),
        trend=PerformanceTrend.STABLE,
        consistently_high=high,
        consistently_low=low,
        recommended_action=RecommendedAction.MAINTAIN,
    )


@pytest.fixture
def recalibrator(store, test_settings, clock, events) -> AdaptiveRecalibrator:
    return AdaptiveRecalibrator(store, gateway=None, app_settings=test_settings, clock=clock, events=events)


class TestDetermineTrend:
    @pytest.mark.parametrize(
        "scores,expected",
        [
            pytest.param([], PerformanceTrend.STABLE, id="empty"),
            pytest.param([80], PerformanceTrend.STABLE, id="single"),
            pytest.param([60, 62, 80, 85], PerformanceTrend.IMPROVING, id="improving"),
            pytest.param([90, 88, 70, 65], PerformanceTrend.DECLINING, id="declining"),
            pytest.param([80, 82, 79, 81], PerformanceTrend.STABLE, id="flat"),
            pytest.param([70, 80, 90], PerformanceTrend.IMPROVING, id="odd_overlap"),
        ],
    )
    def test_trend(self, scores, expected):
        assert determine_trend(scores) == expected


class TestRecommendAction:
    @pytest.mark.parametrize(
        "high,low,struggling,expected",
        [
            pytest.param(True, False, [], RecommendedAction.SPEED_UP, id="high"),
            pytest.param(True, False, ["sql"], RecommendedAction.REVIEW, id="high_but_struggling"),
            pytest.param(False, True, [], RecommendedAction.SLOW_DOWN, id="low"),
            pytest.param(False, False, ["a", "b", "c"], RecommendedAction.SLOW_DOWN, id="many_struggles"),
            pytest.param(False, False, [], RecommendedAction.MAINTAIN, id="steady"),
        ],
    )
    def test_action(self, high, low, struggling, expected):
        assert recommend_action(high, low, struggling) == expected


class TestRuleBasedDecision:
    """Tests for the deterministic fallback decision."""

    def test_high_scores_increase(self, sample_objective):
        decision = rule_based_decision(sample_objective, _analysis(high=True, scores=[95, 92, 97]))

        assert decision.adjustment_type == AdjustmentType.INCREASE
        assert decision.new_difficulty == 70
        assert decision.new_velocity == pytest.approx(1.3)
        assert decision.estimated_days_change == -10
        assert decision.reasoning.startswith("Rule-based adaptation: increase")

    def test_difficulty_capped_at_100(self, sample_objective):
        objective = sample_objective.model_copy(update={"current_difficulty": 90, "learning_velocity": 1.8})

        decision = rule_based_decision(objective, _analysis(high=True))

        assert decision.new_difficulty == 100
        assert decision.new_velocity == 2.0

    def test_low_scores_decrease(self, sample_objective):
        objective = sample_objective.model_copy(update={"current_difficulty": 10, "learning_velocity": 0.6})

        decision = rule_based_decision(objective, _analysis(low=True, scores=[50, 40]))

        assert decision.adjustment_type == AdjustmentType.DECREASE
        assert decision.new_difficulty == 0
        assert decision.new_velocity == 0.5
        assert decision.estimated_days_change == 10

    def test_otherwise_maintain(self, sample_objective):
        decision = rule_based_decision(sample_objective, _analysis())

        assert decision.should_adjust is False
        assert decision.adjustment_type == AdjustmentType.MAINTAIN
        assert decision.estimated_days_change == 0


class TestAnalyzePerformance:
    """Tests for analyze_performance()."""

    @pytest.mark.asyncio
    async def test_consistently_high(self, recalibrator, store, clock, stored_objective):
        await _seed_scores(store, clock, [0.95, 0.92, 0.97])

        analysis = await recalibrator.analyze_performance("obj_1", "user_1")

        assert analysis.sprints_analyzed == 3
        assert analysis.scores == [95.0, 92.0, 97.0]
        assert analysis.average_score == pytest.approx(94.67)
        assert analysis.consistently_high is True
        assert analysis.consistently_low is False
        assert analysis.recommended_action == RecommendedAction.SPEED_UP

    @pytest.mark.asyncio
    async def test_no_reviewed_sprints(self, recalibrator, stored_objective):
        analysis = await recalibrator.analyze_performance("obj_1", "user_1")

        assert analysis.sprints_analyzed == 0
        assert analysis.average_score == 0.0
        assert analysis.trend == PerformanceTrend.STABLE
        assert analysis.recommended_action == RecommendedAction.MAINTAIN

    @pytest.mark.asyncio
    async def test_uses_most_recent_window(self, recalibrator, store, clock, stored_objective):
        await _seed_scores(store, clock, [0.2, 0.3, 0.95, 0.92, 0.97])

        analysis = await recalibrator.analyze_performance("obj_1", "user_1", window_size=3)

        assert analysis.scores == [95.0, 92.0, 97.0]

    @pytest.mark.asyncio
    async def test_other_user_rejected(self, recalibrator, stored_objective):
        with pytest.raises(AuthorizationError):
            await recalibrator.analyze_performance("obj_1", "intruder")


class TestRecalibrate:
    """Tests for recalibrate() decisions and their effects."""

    @pytest.mark.asyncio
    async def test_provider_failure_applies_rule_decision(
        self, store, test_settings, clock, events, stored_objective
    ):
        gateway = mock_gateway(side_effect=ProviderError("down", reason=ProviderError.CLIENT_TIMEOUT))
        recalibrator = AdaptiveRecalibrator(
            store, gateway=gateway, app_settings=test_settings, clock=clock, events=events
        )
        await _seed_scores(store, clock, [0.95, 0.92, 0.97])

        outcome = await recalibrator.recalibrate("obj_1", "user_1")

        assert outcome.source == ReviewSource.FALLBACK
        assert outcome.applied is True
        assert outcome.new_estimate == 20

        objective = await store.get_objective("obj_1")
        assert objective.current_difficulty == 70
        assert objective.learning_velocity == pytest.approx(1.3)
        assert objective.estimated_total_days == 20
        assert objective.recalibration_count == 1
        assert objective.last_recalibrated_at == clock()

        history = await store.list_adaptation_history("obj_1")
        assert len(history) == 1
        assert history[0].id == outcome.history_entry_id
        assert history[0].performance_scores == [95.0, 92.0, 97.0]
        assert history[0].adjustment_type == "increase"
        assert events.of_type(EventType.OBJECTIVE_RECALIBRATED)[0]["source"] == "fallback"

    @pytest.mark.asyncio
    async def test_remote_decision_applied(self, store, test_settings, clock, stored_objective):
        recalibrator = AdaptiveRecalibrator(
            store, gateway=mock_gateway(REMOTE_DECISION), app_settings=test_settings, clock=clock
        )
        await _seed_scores(store, clock, [0.95, 0.92, 0.97])

        outcome = await recalibrator.recalibrate("obj_1", "user_1")

        assert outcome.source == ReviewSource.REMOTE
        objective = await store.get_objective("obj_1")
        assert objective.current_difficulty == 65
        assert objective.learning_velocity == pytest.approx(1.2)
        assert objective.estimated_total_days == 25

    @pytest.mark.asyncio
    async def test_invalid_remote_decision_falls_back(self, store, test_settings, clock, stored_objective):
        bad = dict(REMOTE_DECISION, newVelocity=5.0)
        recalibrator = AdaptiveRecalibrator(
            store, gateway=mock_gateway(bad), app_settings=test_settings, clock=clock
        )
        await _seed_scores(store, clock, [0.95, 0.92, 0.97])

        outcome = await recalibrator.recalibrate("obj_1", "user_1")

        assert outcome.source == ReviewSource.FALLBACK
        assert outcome.decision.new_difficulty == 70

    @pytest.mark.asyncio
    async def test_maintain_changes_nothing(self, recalibrator, store, clock, stored_objective):
        await _seed_scores(store, clock, [0.8, 0.82])

        outcome = await recalibrator.recalibrate("obj_1", "user_1")

        assert outcome.applied is False
        assert outcome.history_entry_id is None
        assert await store.list_adaptation_history("obj_1") == []
        assert (await store.get_objective("obj_1")).recalibration_count == 0

    @pytest.mark.asyncio
    async def test_estimate_never_below_completed_days(self, recalibrator, store, clock, stored_objective):
        await store.update_objective("obj_1", {"completed_days": 25})
        await _seed_scores(store, clock, [0.95, 0.92, 0.97])

        outcome = await recalibrator.recalibrate("obj_1", "user_1")

        assert outcome.new_estimate == 25


class TestAdjustments:
    """Tests for per-sprint difficulty and estimate adjustments."""

    @pytest.mark.asyncio
    async def test_next_sprint_difficulty_increased(self, recalibrator, store, stored_objective):
        await store.create_sprint(Sprint(id="sprint_next", objective_id="obj_1", day_number=4))

        adjustment = await recalibrator.adjust_next_sprint_difficulty(
            "obj_1", "sprint_next", _analysis(high=True)
        )

        assert adjustment.adjusted is True
        assert (adjustment.previous_difficulty, adjustment.new_difficulty) == (50, 70)
        sprint = await store.get_sprint("sprint_next")
        assert sprint.difficulty_score == 70
        assert sprint.adaptive_metadata["adaptedFrom"] == "increased"
        records = await store.list_sprint_adaptations("sprint_next")
        assert records[0].new_difficulty == 70

    @pytest.mark.asyncio
    async def test_completed_sprint_untouched(self, recalibrator, store, clock, stored_objective):
        await _seed_scores(store, clock, [0.9])

        adjustment = await recalibrator.adjust_next_sprint_difficulty(
            "obj_1", "sprint_d1", _analysis(low=True)
        )

        assert adjustment.adjusted is False
        assert await store.list_sprint_adaptations("sprint_d1") == []

    @pytest.mark.asyncio
    async def test_estimated_days_faster_learner(self, recalibrator, store, stored_objective):
        result = await recalibrator.adjust_estimated_days(
            "obj_1", current_velocity=1.25, completed_days=10, remaining_days=20
        )

        assert result.adjusted_remaining_days == 16
        assert result.new_estimate == 26
        assert "25% faster" in result.reasoning
        assert (await store.get_objective("obj_1")).estimated_total_days == 26

    @pytest.mark.asyncio
    async def test_estimated_days_rejects_zero_velocity(self, recalibrator, stored_objective):
        with pytest.raises(ValidationError) as exc_info:
            await recalibrator.adjust_estimated_days("obj_1", 0, 10, 20)

        assert exc_info.value.error_code == "INVALID_VELOCITY"


class TestRecalibrateAfterCompletion:
    @pytest.mark.asyncio
    async def test_adjusts_following_sprint_and_notifies(self, recalibrator, store, clock, stored_objective):
        await _seed_scores(store, clock, [0.95, 0.92, 0.97])
        await store.create_sprint(Sprint(id="sprint_d4", objective_id="obj_1", day_number=4))

        outcome, notifications = await recalibrator.recalibrate_after_completion("obj_1", "user_1", 3)

        assert outcome.applied is True
        assert (await store.get_sprint("sprint_d4")).difficulty_score == 70
        assert [n.type for n in notifications] == [NotificationType.DIFFICULTY_INCREASED]

    @pytest.mark.asyncio
    async def test_skipped_when_maintaining(self, recalibrator, store, clock, stored_objective):
        await _seed_scores(store, clock, [0.8])

        outcome, notifications = await recalibrator.recalibrate_after_completion("obj_1", "user_1", 1)

        assert outcome is None
        assert notifications == []
