"""
Provider Gateway

Single-attempt, fail-fast primitive for sending a structured request to a
reasoning provider and getting back a parsed JSON object.

The gateway:
    1. Builds chat messages from a system message and a user prompt
       (dicts are serialized to JSON)
    2. Issues exactly one call under a hard client-side timeout
    3. Strips a Markdown code fence from the reply and parses JSON
    4. Records ProviderTelemetry for every call, success or failure

Failures are always ProviderError with one of three reasons:
    - client_timeout: the hard timeout or the transport's own timeout elapsed
    - provider_error: transport error, non-2xx status or empty content
    - invalid_json: the reply is not a JSON object

There is no retry here. Callers (planner, reviewer, recalibrator) own
their retry and fallback policy.

Concrete gateways implement `_complete()` only:
    - GroqGateway: hosted, via LiteLLM
    - LMStudioGateway: local OpenAI-compatible server, via httpx
"""

import asyncio
import json
import logging
import re
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Optional, Union

import httpx
from litellm.exceptions import Timeout as LiteLLMTimeout

from sprint_engine.errors import ProviderError
from sprint_engine.services.providers.telemetry import (
    ProviderTelemetry,
    TelemetrySink,
    hash_prompt,
    log_telemetry,
)

logger = logging.getLogger(__name__)

# Timeouts raised by the transports themselves (httpx, LiteLLM)
TRANSPORT_TIMEOUTS = (httpx.TimeoutException, LiteLLMTimeout)

_CODE_FENCE = re.compile(r"^\s*```[a-zA-Z0-9_-]*\s*\n?(.*?)\n?\s*```\s*$", re.DOTALL)


def strip_code_fence(text: str) -> str:
    """
    Remove a surrounding Markdown code fence, if present.

    Args:
        text: Raw model output, e.g. "```json\\n{...}\\n```"

    Returns:
        The fenced body, or the stripped input when there is no fence
    """
    match = _CODE_FENCE.match(text)
    if match:
        return match.group(1).strip()
    return text.strip()


def build_messages(system_message: str, user_prompt: str) -> list[dict[str, str]]:
    """
    Build the chat message list for a provider call.

    Args:
        system_message: System instructions
        user_prompt: Serialized user payload

    Returns:
        List of message dicts for an OpenAI-style chat API
    """
    return [
        {"role": "system", "content": system_message},
        {"role": "user", "content": user_prompt},
    ]


@dataclass
class ProviderRequest:
    """
    A provider call description.

    Attributes:
        system_message: System instructions
        user_prompt: User payload; dicts are sent as JSON
        json_schema: Optional strict JSON schema the reply must follow
        schema_name: Name for the schema in the response format
        temperature: Sampling temperature
        max_tokens: Completion token cap
        purpose: planner / reviewer / adaptation (telemetry only)
    """

    system_message: str
    user_prompt: Union[str, dict[str, Any]]
    json_schema: Optional[dict[str, Any]] = None
    schema_name: str = "response"
    temperature: float = 0.2
    max_tokens: int = 2048
    purpose: str = ""

    @property
    def prompt_text(self) -> str:
        if isinstance(self.user_prompt, str):
            return self.user_prompt
        return json.dumps(self.user_prompt, ensure_ascii=False)

    def response_format(self) -> dict[str, Any]:
        if self.json_schema is None:
            return {"type": "json_object"}
        return {
            "type": "json_schema",
            "json_schema": {
                "name": self.schema_name,
                "strict": True,
                "schema": self.json_schema,
            },
        }


@dataclass
class ProviderResponse:
    """Parsed JSON object plus telemetry of the call that produced it."""

    content: dict[str, Any]
    telemetry: ProviderTelemetry
    raw_text: str = field(default="", repr=False)


class ProviderGateway(ABC):
    """
    Base class for provider gateways.

    Subclasses set `provider` and implement `_complete()`, which performs
    the network call and returns the raw text content of the reply.
    """

    provider: str = ""

    def __init__(
        self,
        model: str,
        timeout_seconds: float,
        telemetry_sink: Optional[TelemetrySink] = None,
    ):
        """
        Initialize the gateway.

        Args:
            model: Model id sent to the provider
            timeout_seconds: Hard client-side timeout per call
            telemetry_sink: Receives every telemetry record (default: logs it)
        """
        self.model = model
        self.timeout_seconds = timeout_seconds
        self.telemetry_sink = telemetry_sink or log_telemetry

    @abstractmethod
    async def _complete(
        self, messages: list[dict[str, str]], request: ProviderRequest
    ) -> Optional[str]:
        """Perform the network call and return the reply's text content."""

    async def send(self, request: ProviderRequest) -> ProviderResponse:
        """
        Send one request to the provider.

        Args:
            request: What to send

        Returns:
            ProviderResponse with the parsed JSON object

        Raises:
            ProviderError: client_timeout, provider_error or invalid_json
        """
        prompt_text = request.prompt_text
        telemetry = ProviderTelemetry(
            provider=self.provider,
            model=self.model,
            purpose=request.purpose,
            prompt_hash=hash_prompt(request.system_message + prompt_text),
        )
        messages = build_messages(request.system_message, prompt_text)
        start = time.perf_counter()

        try:
            raw = await asyncio.wait_for(
                self._complete(messages, request), timeout=self.timeout_seconds
            )
        except asyncio.TimeoutError:
            raise self._fail(
                telemetry,
                start,
                ProviderError.CLIENT_TIMEOUT,
                f"{self.provider} did not respond within {self.timeout_seconds}s",
            )
        except TRANSPORT_TIMEOUTS as e:
            raise self._fail(
                telemetry,
                start,
                ProviderError.CLIENT_TIMEOUT,
                f"{self.provider} timed out: {type(e).__name__}: {e}",
            ) from e
        except ProviderError as e:
            raise self._fail(telemetry, start, e.reason, e.message)
        except Exception as e:
            raise self._fail(
                telemetry, start, ProviderError.PROVIDER_ERROR, f"{type(e).__name__}: {e}"
            ) from e

        if not raw or not raw.strip():
            raise self._fail(
                telemetry, start, ProviderError.PROVIDER_ERROR, "Provider returned empty content"
            )

        try:
            content = json.loads(strip_code_fence(raw))
        except json.JSONDecodeError as e:
            raise self._fail(
                telemetry, start, ProviderError.INVALID_JSON, f"Reply is not JSON: {e}"
            ) from e

        if not isinstance(content, dict):
            raise self._fail(
                telemetry,
                start,
                ProviderError.INVALID_JSON,
                f"Reply is JSON {type(content).__name__}, expected an object",
            )

        telemetry.latency_ms = self._elapsed_ms(start)
        self._emit(telemetry)
        return ProviderResponse(content=content, telemetry=telemetry, raw_text=raw)

    # =========================================================================
    # Helpers
    # =========================================================================

    @staticmethod
    def _elapsed_ms(start: float) -> int:
        return int((time.perf_counter() - start) * 1000)

    def _fail(
        self, telemetry: ProviderTelemetry, start: float, reason: str, message: str
    ) -> ProviderError:
        telemetry.latency_ms = self._elapsed_ms(start)
        telemetry.success = False
        telemetry.error_reason = reason
        telemetry.error_message = message
        self._emit(telemetry)
        return ProviderError(message, reason=reason, telemetry=telemetry)

    def _emit(self, telemetry: ProviderTelemetry) -> None:
        try:
            self.telemetry_sink(telemetry)
        except Exception as e:
            logger.error(f"Telemetry sink failed: {e}")
