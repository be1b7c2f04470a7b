"""
Provider Call Telemetry

Defines the ProviderTelemetry dataclass recorded for every gateway call,
successful or not. Telemetry is for observability only; no business
decision reads it.

Usage:
    from sprint_engine.services.providers.telemetry import ProviderTelemetry, hash_prompt

    telemetry = ProviderTelemetry(
        provider="groq",
        model="llama-3.3-70b-versatile",
        purpose="planner",
        prompt_hash=hash_prompt(system_message + user_prompt),
        latency_ms=812,
    )
"""

import hashlib
import logging
import uuid
from dataclasses import asdict, dataclass, field
from typing import Any, Callable, Optional

logger = logging.getLogger(__name__)


@dataclass
class ProviderTelemetry:
    """
    Structured record of one provider call.

    Attributes:
        request_id: Unique identifier for this call (auto-generated UUID)
        provider: Provider id ("groq", "lmstudio")
        model: Model id sent to the provider
        purpose: What the call was for ("planner", "reviewer", "adaptation")
        prompt_hash: SHA-256 hex digest of system message + user prompt
        latency_ms: Wall-clock latency of the call in milliseconds
        success: Whether the call produced parseable JSON
        error_reason: provider_error / client_timeout / invalid_json on failure
        error_message: Error detail on failure
    """

    request_id: str = field(default_factory=lambda: str(uuid.uuid4()))
    provider: str = ""
    model: str = ""
    purpose: str = ""
    prompt_hash: str = ""
    latency_ms: Optional[int] = None
    success: bool = True
    error_reason: Optional[str] = None
    error_message: Optional[str] = None

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


TelemetrySink = Callable[[ProviderTelemetry], None]


def hash_prompt(content: str) -> str:
    """
    Calculate the SHA-256 hash of a prompt.

    Args:
        content: Prompt text (system message and user prompt concatenated)

    Returns:
        Hex string of the hash
    """
    hasher = hashlib.sha256()
    hasher.update(content.encode("utf-8"))
    return hasher.hexdigest()


def log_telemetry(telemetry: ProviderTelemetry) -> None:
    """Default sink: log every call at DEBUG, failures at WARNING."""
    if telemetry.success:
        logger.debug(
            f"Provider call ok: {telemetry.provider}/{telemetry.model} "
            f"purpose={telemetry.purpose} latency={telemetry.latency_ms}ms",
            extra={"telemetry": telemetry.to_dict()},
        )
    else:
        logger.warning(
            f"Provider call failed ({telemetry.error_reason}): "
            f"{telemetry.provider}/{telemetry.model} purpose={telemetry.purpose} "
            f"prompt={telemetry.prompt_hash[:8]} latency={telemetry.latency_ms}ms",
            extra={"telemetry": telemetry.to_dict()},
        )
