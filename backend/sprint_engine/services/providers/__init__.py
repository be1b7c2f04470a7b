"""
Provider gateways.

Usage:
    from sprint_engine.enums import ProviderPurpose
    from sprint_engine.services.providers import ProviderRequest, create_gateway

    gateway = create_gateway(ProviderPurpose.PLANNER)
    response = await gateway.send(ProviderRequest(system_message=..., user_prompt={...}))
"""

from sprint_engine.services.providers.factory import create_gateway
from sprint_engine.services.providers.gateway import (
    ProviderGateway,
    ProviderRequest,
    ProviderResponse,
    build_messages,
    strip_code_fence,
)
from sprint_engine.services.providers.groq import GroqGateway
from sprint_engine.services.providers.lmstudio import LMStudioGateway
from sprint_engine.services.providers.telemetry import ProviderTelemetry, hash_prompt

__all__ = [
    "GroqGateway",
    "LMStudioGateway",
    "ProviderGateway",
    "ProviderRequest",
    "ProviderResponse",
    "ProviderTelemetry",
    "build_messages",
    "create_gateway",
    "hash_prompt",
    "strip_code_fence",
]
