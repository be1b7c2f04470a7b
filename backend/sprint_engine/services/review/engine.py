"""
Review Engine

Turns a sprint's submitted evidence into a normalized review. Each project
is reviewed remote-first; any provider failure (provider_error,
client_timeout, invalid_json) or schema mismatch falls back to the
deterministic review in fallback.py, so a review is always produced.

Aggregation:
    - score: arithmetic mean of project scores
    - passed: every project passed
    - achieved / missing / recommendations: de-duplicated unions with
      empty entries dropped
    - provider: "remote" if every project was reviewed remotely,
      "fallback" if none were, otherwise "mixed"

Usage:
    engine = ReviewEngine(gateway=create_gateway(ProviderPurpose.REVIEWER))
    review = await engine.review_sprint(plan.projects, artifacts, self_evaluation)
"""

import asyncio
import logging
from typing import Iterable, Optional, Sequence

from pydantic import ValidationError as PydanticValidationError

from sprint_engine.config import Settings, settings as default_settings, yaml_config
from sprint_engine.enums import ProviderPurpose, ReviewSource
from sprint_engine.errors import ProviderError, SchemaValidationError
from sprint_engine.models.base import strict_json_schema
from sprint_engine.models.plan import SprintProject
from sprint_engine.models.review import (
    ProjectReview,
    ReviewArtifact,
    ReviewOutput,
    ReviewRequest,
    SelfEvaluation,
    SprintReview,
)
from sprint_engine.services.providers.gateway import ProviderGateway, ProviderRequest
from sprint_engine.services.review.fallback import (
    DEFAULT_PASS_THRESHOLD,
    GENERIC_RECOMMENDATION,
    build_fallback_review,
)
from sprint_engine.services.review.prompts import REVIEWER_SYSTEM_MESSAGE

logger = logging.getLogger(__name__)

NO_PROJECTS_MISSING = "No projects were reviewed."
NO_PROJECTS_RECOMMENDATION = "Submit sprint evidence to receive feedback."
DEFAULT_AGGREGATE_RECOMMENDATION = "Plan the next sprint to extend your portfolio."


def dedupe(values: Iterable[str]) -> list[str]:
    """Order-preserving de-duplication that drops blank strings."""
    seen: list[str] = []
    for value in values:
        if isinstance(value, str) and value.strip() and value not in seen:
            seen.append(value)
    return seen


def resolve_provider_label(sources: Sequence[ReviewSource]) -> ReviewSource:
    if all(s == ReviewSource.REMOTE for s in sources):
        return ReviewSource.REMOTE
    if all(s == ReviewSource.FALLBACK for s in sources):
        return ReviewSource.FALLBACK
    return ReviewSource.MIXED


class ReviewEngine:
    """
    Remote-first, fallback-guaranteed sprint reviewer.

    Attributes:
        REVIEW_SCHEMA: Strict JSON schema of ReviewOutput sent to providers
    """

    REVIEW_SCHEMA = strict_json_schema(ReviewOutput)
    SCHEMA_NAME = "review_output"

    def __init__(
        self,
        gateway: Optional[ProviderGateway],
        app_settings: Optional[Settings] = None,
        pass_threshold: Optional[float] = None,
    ):
        """
        Initialize the engine.

        Args:
            gateway: Reviewer gateway. None reviews everything with the fallback.
            app_settings: Settings (defaults to global)
            pass_threshold: Fallback pass threshold (default: config review.pass_threshold)
        """
        self.gateway = gateway
        self.settings = app_settings or default_settings
        self.pass_threshold = (
            pass_threshold
            if pass_threshold is not None
            else yaml_config.get("review", {}).get("pass_threshold", DEFAULT_PASS_THRESHOLD)
        )

    async def review_sprint(
        self,
        projects: Sequence[SprintProject],
        artifacts: Sequence[ReviewArtifact],
        self_evaluation: Optional[SelfEvaluation] = None,
    ) -> SprintReview:
        """
        Review every project of a sprint and aggregate the results.

        Args:
            projects: Project definitions from the sprint plan
            artifacts: All artifacts submitted for the sprint
            self_evaluation: Optional learner self-evaluation

        Returns:
            SprintReview (never raises for provider failures)
        """
        project_reviews = await asyncio.gather(
            *[
                self.review_project(
                    project,
                    [a for a in artifacts if a.project_id == project.id],
                    self_evaluation,
                )
                for project in projects
            ]
        )
        review = self.aggregate(list(project_reviews))
        logger.info(
            f"Reviewed {len(project_reviews)} project(s): score={review.score:.2f} "
            f"passed={review.passed} provider={review.provider.value}"
        )
        return review

    async def review_project(
        self,
        project: SprintProject,
        artifacts: Sequence[ReviewArtifact],
        self_evaluation: Optional[SelfEvaluation] = None,
    ) -> ProjectReview:
        """
        Review one project, falling back to the deterministic review on failure.

        Args:
            project: Project definition
            artifacts: Artifacts submitted for this project
            self_evaluation: Optional learner self-evaluation

        Returns:
            ProjectReview tagged with its source
        """
        if self.gateway is None:
            return self._fallback(project, artifacts, self_evaluation, reason="no_gateway")

        request = ReviewRequest(
            project=project,
            artifacts=list(artifacts),
            self_evaluation=self_evaluation,
        )
        try:
            response = await self.gateway.send(
                ProviderRequest(
                    system_message=REVIEWER_SYSTEM_MESSAGE,
                    user_prompt=request.to_wire(),
                    json_schema=self.REVIEW_SCHEMA,
                    schema_name=self.SCHEMA_NAME,
                    temperature=self.settings.REVIEWER_TEMPERATURE,
                    max_tokens=self.settings.REVIEWER_MAX_TOKENS,
                    purpose=ProviderPurpose.REVIEWER.value,
                )
            )
            review = self._validate(response.content)
        except ProviderError as e:
            logger.warning(
                f"Reviewer unavailable for project {project.id} ({e.reason}); "
                f"using fallback review",
                extra={"telemetry": e.telemetry.to_dict() if e.telemetry else None},
            )
            return self._fallback(project, artifacts, self_evaluation, reason=e.reason)
        except SchemaValidationError as e:
            e.telemetry = response.telemetry
            logger.warning(
                f"Reviewer output for project {project.id} failed validation; "
                f"using fallback review: {e.errors[:3]}",
                extra={"telemetry": response.telemetry.to_dict()},
            )
            return self._fallback(project, artifacts, self_evaluation, reason=e.error_code)

        return ProjectReview(project_id=project.id, review=review, source=ReviewSource.REMOTE)

    def aggregate(self, project_reviews: list[ProjectReview]) -> SprintReview:
        """Combine project reviews into the sprint-level review."""
        if not project_reviews:
            return SprintReview(
                score=0.0,
                passed=False,
                achieved=[],
                missing=[NO_PROJECTS_MISSING],
                recommendations=[NO_PROJECTS_RECOMMENDATION],
                provider=ReviewSource.FALLBACK,
                projects=[],
                summary="No projects were reviewed.",
            )

        reviews = [pr.review for pr in project_reviews]
        score = max(0.0, min(1.0, sum(r.score for r in reviews) / len(reviews)))
        passed = all(r.pass_ for r in reviews)
        recommendations = dedupe(rec for r in reviews for rec in r.next_recommendations)
        provider = resolve_provider_label([pr.source for pr in project_reviews])

        return SprintReview(
            score=score,
            passed=passed,
            achieved=dedupe(item for r in reviews for item in r.achieved),
            missing=dedupe(item for r in reviews for item in r.missing),
            recommendations=recommendations or [DEFAULT_AGGREGATE_RECOMMENDATION],
            provider=provider,
            projects=project_reviews,
            summary=(
                f"{len(reviews)} project(s) reviewed ({provider.value}): "
                f"score {score:.2f}, {'passed' if passed else 'not passed'}"
            ),
        )

    # =========================================================================
    # Helpers
    # =========================================================================

    @staticmethod
    def _validate(content: dict) -> ReviewOutput:
        try:
            review = ReviewOutput.model_validate(content)
        except PydanticValidationError as e:
            raise SchemaValidationError(
                f"Review output failed schema validation: {e.error_count()} error(s)",
                errors=[
                    {"loc": list(err["loc"]), "msg": err["msg"], "type": err["type"]}
                    for err in e.errors(include_url=False, include_context=False)
                ],
            ) from e

        recommendations = dedupe(review.next_recommendations) or [GENERIC_RECOMMENDATION]
        return review.model_copy(update={"next_recommendations": recommendations})

    def _fallback(
        self,
        project: SprintProject,
        artifacts: Sequence[ReviewArtifact],
        self_evaluation: Optional[SelfEvaluation],
        reason: str,
    ) -> ProjectReview:
        return ProjectReview(
            project_id=project.id,
            review=build_fallback_review(
                project, artifacts, self_evaluation, pass_threshold=self.pass_threshold
            ),
            source=ReviewSource.FALLBACK,
            error_reason=reason,
        )
