"""
Sprint Planner Service

Produces canonical, schema-valid sprint plans through a provider gateway.

Two modes:
    - skeleton: 1 day, 1 project, exactly 3 micro tasks, no extras. Used
      for the first sprint of an objective and for daily auto-generation.
    - expansion: extends an existing plan. Existing project and micro task
      ids and content are preserved verbatim; only new content is appended.

Flow:
    PlannerRequest → ProviderGateway.send() → sanitize_plan() → validate_plan()
                  → PlannedSprint(plan, metadata, planner_input, planner_output)

Failure policy:
    There is no safe fallback content for a whole sprint plan, so planner
    failures propagate. A malformed reply (invalid_json or a schema
    mismatch) is retried up to PLANNER_MAX_ATTEMPTS; timeouts and provider
    errors are never retried here.

Usage:
    planner = SprintPlanner(gateway=create_gateway(ProviderPurpose.PLANNER))
    planned = await planner.plan(build_planner_request(objective))
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Optional

from tenacity import (
    AsyncRetrying,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential,
)

from sprint_engine.config import Settings, settings as default_settings
from sprint_engine.enums import PlannerMode, ProviderPurpose
from sprint_engine.errors import ProviderError, SchemaValidationError
from sprint_engine.models.base import strict_json_schema
from sprint_engine.models.lifecycle import Objective
from sprint_engine.models.plan import (
    CanonicalSprintPlan,
    ExpansionGoal,
    PlanMetadata,
    PlannerLearnerProfile,
    PlannerObjective,
    PlannerRequest,
)
from sprint_engine.services.clock import Clock, utc_now
from sprint_engine.services.planning.prompts import planner_system_message
from sprint_engine.services.planning.sanitizer import sanitize_plan, validate_plan
from sprint_engine.services.providers.gateway import ProviderGateway, ProviderRequest

logger = logging.getLogger(__name__)


def build_plan_id(objective_id: str, requested_at: datetime, day_number: Optional[int] = None) -> str:
    """
    Build a plan id of the form spr_<objective>_<YYYYMMDDHHMMSS>[_d<day>].

    The day suffix keeps ids distinct when several sprints of one objective
    are planned within the same second.
    """
    plan_id = f"spr_{objective_id}_{requested_at.strftime('%Y%m%d%H%M%S')}"
    if day_number is not None:
        plan_id += f"_d{day_number}"
    return plan_id


def build_planner_request(
    objective: Objective,
    mode: PlannerMode = PlannerMode.SKELETON,
    prefer_length: Optional[int] = None,
    context: Optional[dict[str, Any]] = None,
    current_plan: Optional[CanonicalSprintPlan] = None,
    expansion_goal: Optional[ExpansionGoal] = None,
) -> PlannerRequest:
    """
    Build a provider-agnostic planner request from an objective.

    Args:
        objective: Objective being planned
        mode: skeleton or expansion
        prefer_length: Preferred sprint length in days
        context: Free-form context (previous sprint, performance, instructions)
        current_plan: Plan to expand (expansion mode)
        expansion_goal: Requested expansion (expansion mode)

    Returns:
        Validated PlannerRequest
    """
    profile = objective.profile
    return PlannerRequest(
        objective=PlannerObjective(
            id=objective.id,
            title=objective.title,
            description=objective.description,
            success_criteria=list(objective.success_criteria),
            required_skills=list(objective.required_skills),
            priority=objective.priority,
            status=objective.status.value,
        ),
        learner_profile=(
            PlannerLearnerProfile(
                id=profile.id,
                hours_per_week=profile.hours_per_week,
                strengths=list(profile.strengths),
                gaps=list(profile.gaps),
                passion_tags=list(profile.passion_tags),
                blockers=list(profile.blockers),
                goals=list(profile.goals),
            )
            if profile
            else None
        ),
        prefer_length=prefer_length,
        allowed_resources=objective.allowed_resources,
        context=context or {},
        mode=mode,
        current_plan=current_plan,
        expansion_goal=expansion_goal,
    )


@dataclass
class PlannedSprint:
    """
    A validated plan and its provenance.

    Attributes:
        plan: The canonical plan
        metadata: Provenance (version, provider, model, prompt hash, latency)
        planner_input: Snapshot of the request sent to the provider
        planner_output: The canonical plan as camelCase JSON
    """

    plan: CanonicalSprintPlan
    metadata: PlanMetadata
    planner_input: dict[str, Any]
    planner_output: dict[str, Any]


def _is_malformed_reply(exc: BaseException) -> bool:
    if isinstance(exc, SchemaValidationError):
        return True
    return isinstance(exc, ProviderError) and exc.reason == ProviderError.INVALID_JSON


class SprintPlanner:
    """
    Plans sprints through a provider gateway.

    Attributes:
        PLAN_SCHEMA: Strict JSON schema of the canonical plan sent to providers
    """

    PLAN_SCHEMA = strict_json_schema(CanonicalSprintPlan)
    SCHEMA_NAME = "sprint_plan"

    def __init__(
        self,
        gateway: ProviderGateway,
        app_settings: Optional[Settings] = None,
        clock: Clock = utc_now,
        max_attempts: Optional[int] = None,
        retry_wait=None,
    ):
        """
        Initialize the planner.

        Args:
            gateway: Provider gateway configured for planning
            app_settings: Settings (defaults to global)
            clock: Source of the current time
            max_attempts: Attempts for malformed replies (default: PLANNER_MAX_ATTEMPTS)
            retry_wait: tenacity wait strategy between attempts
        """
        self.gateway = gateway
        self.settings = app_settings or default_settings
        self.clock = clock
        self.max_attempts = max(1, max_attempts or self.settings.PLANNER_MAX_ATTEMPTS)
        self.retry_wait = retry_wait or wait_exponential(multiplier=0.5, max=4)

    async def plan(
        self,
        request: PlannerRequest,
        day_number: Optional[int] = None,
        planner_version: Optional[str] = None,
    ) -> PlannedSprint:
        """
        Produce a canonical sprint plan.

        Args:
            request: Planner request (skeleton or expansion)
            day_number: Day the plan is for; makes the plan id unique per day
            planner_version: Override PLANNER_VERSION for this request

        Returns:
            PlannedSprint

        Raises:
            ProviderError: client_timeout / provider_error, or invalid_json
                after the last attempt
            SchemaValidationError: plan still invalid after sanitization on
                the last attempt
        """
        requested_at = self.clock()
        version = planner_version or self.settings.PLANNER_VERSION
        plan_id = build_plan_id(request.objective.id, requested_at, day_number)

        context = dict(request.context)
        context.update(
            {
                "plannerVersion": version,
                "requestedAt": requested_at.isoformat(),
                "planId": plan_id,
            }
        )
        request = request.model_copy(update={"context": context})
        payload = request.to_wire()

        provider_request = ProviderRequest(
            system_message=planner_system_message(request.mode),
            user_prompt=payload,
            json_schema=self.PLAN_SCHEMA,
            schema_name=self.SCHEMA_NAME,
            temperature=self.settings.PLANNER_TEMPERATURE,
            max_tokens=self.settings.PLANNER_MAX_TOKENS,
            purpose=ProviderPurpose.PLANNER.value,
        )

        try:
            async for attempt in AsyncRetrying(
                retry=retry_if_exception(_is_malformed_reply),
                stop=stop_after_attempt(self.max_attempts),
                wait=self.retry_wait,
                reraise=True,
            ):
                with attempt:
                    plan, telemetry = await self._attempt(provider_request, request, plan_id)
        except (ProviderError, SchemaValidationError) as e:
            logger.error(
                f"Planner failed for objective {request.objective.id} "
                f"({request.mode.value}): {e.error_code}: {e.message}"
            )
            raise

        metadata = PlanMetadata(
            planner_version=version,
            requested_at=requested_at,
            provider=telemetry.provider,
            model=telemetry.model,
            mode=request.mode,
            objective_id=request.objective.id,
            learner_profile_id=request.learner_profile.id if request.learner_profile else None,
            prefer_length=request.prefer_length,
            prompt_hash=telemetry.prompt_hash,
            latency_ms=telemetry.latency_ms,
        )

        logger.info(
            f"Planned {request.mode.value} sprint {plan.id} for objective "
            f"{request.objective.id}: {len(plan.projects)} project(s), "
            f"{len(plan.micro_tasks)} micro task(s)"
        )

        return PlannedSprint(
            plan=plan,
            metadata=metadata,
            planner_input=payload,
            planner_output=plan.to_wire(),
        )

    async def _attempt(self, provider_request: ProviderRequest, request: PlannerRequest, plan_id: str):
        response = await self.gateway.send(provider_request)
        sanitized = sanitize_plan(
            response.content,
            mode=request.mode,
            plan_id=plan_id,
            current_plan=request.current_plan,
            expansion_goal=request.expansion_goal,
        )
        try:
            plan = validate_plan(sanitized)
        except SchemaValidationError as e:
            e.telemetry = response.telemetry
            logger.warning(
                f"Planner reply for {plan_id} failed validation "
                f"(provider={response.telemetry.provider}, "
                f"prompt={response.telemetry.prompt_hash[:8]}): {e.errors[:3]}"
            )
            raise
        return plan, response.telemetry
