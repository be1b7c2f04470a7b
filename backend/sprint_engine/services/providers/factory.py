"""
Gateway Factory

Selects and constructs the configured ProviderGateway for a purpose
(planner, reviewer, adaptation) once, at construction time.
"""

import logging
from typing import Optional

from sprint_engine.config import Settings, settings as default_settings
from sprint_engine.enums import ProviderName, ProviderPurpose
from sprint_engine.services.providers.gateway import ProviderGateway
from sprint_engine.services.providers.groq import GroqGateway
from sprint_engine.services.providers.lmstudio import LMStudioGateway
from sprint_engine.services.providers.telemetry import TelemetrySink

logger = logging.getLogger(__name__)


def _provider_for(purpose: ProviderPurpose, app_settings: Settings) -> ProviderName:
    configured = {
        ProviderPurpose.PLANNER: app_settings.PLANNER_PROVIDER,
        ProviderPurpose.REVIEWER: app_settings.REVIEWER_PROVIDER,
        ProviderPurpose.ADAPTATION: app_settings.ADAPTATION_PROVIDER,
    }[purpose]
    try:
        return ProviderName(configured.lower())
    except ValueError:
        raise ValueError(
            f"Unknown provider '{configured}' for {purpose.value}; "
            f"expected one of {[p.value for p in ProviderName]}"
        )


def create_gateway(
    purpose: ProviderPurpose,
    app_settings: Optional[Settings] = None,
    telemetry_sink: Optional[TelemetrySink] = None,
) -> ProviderGateway:
    """
    Create the gateway configured for a purpose.

    Args:
        purpose: What the gateway will be used for
        app_settings: Settings to read provider config from (defaults to global)
        telemetry_sink: Optional telemetry receiver

    Returns:
        A GroqGateway or LMStudioGateway

    Raises:
        ValueError: If the configured provider name is unknown
    """
    app_settings = app_settings or default_settings
    provider = _provider_for(purpose, app_settings)

    if provider == ProviderName.GROQ:
        model = {
            ProviderPurpose.PLANNER: app_settings.GROQ_MODEL,
            ProviderPurpose.REVIEWER: app_settings.REVIEWER_GROQ_MODEL,
            ProviderPurpose.ADAPTATION: app_settings.ADAPTATION_GROQ_MODEL,
        }[purpose]
        gateway: ProviderGateway = GroqGateway(
            model=model,
            api_key=app_settings.GROQ_API_KEY,
            timeout_seconds=app_settings.GROQ_TIMEOUT_SECONDS,
            telemetry_sink=telemetry_sink,
        )
    else:
        model = {
            ProviderPurpose.PLANNER: app_settings.LMSTUDIO_MODEL,
            ProviderPurpose.REVIEWER: app_settings.REVIEWER_LMSTUDIO_MODEL,
            ProviderPurpose.ADAPTATION: app_settings.ADAPTATION_LMSTUDIO_MODEL,
        }[purpose]
        gateway = LMStudioGateway(
            model=model,
            base_url=app_settings.LMSTUDIO_BASE_URL,
            timeout_seconds=app_settings.LMSTUDIO_TIMEOUT_SECONDS,
            api_key=app_settings.LMSTUDIO_API_KEY,
            telemetry_sink=telemetry_sink,
        )

    logger.info(f"Using {provider.value}/{model} for {purpose.value}")
    return gateway
