"""
LM Studio Gateway (locally hosted provider)

Posts to the OpenAI-compatible endpoint `{base_url}/v1/chat/completions`
of a local LM Studio server with httpx.

LM Studio only understands `json_schema` structured output, so requests
without a schema are sent without a response_format and rely on the
system message asking for JSON.
"""

import logging
from typing import Any, Optional

import httpx

from sprint_engine.enums import ProviderName
from sprint_engine.errors import ProviderError
from sprint_engine.services.providers.gateway import ProviderGateway, ProviderRequest
from sprint_engine.services.providers.telemetry import TelemetrySink

logger = logging.getLogger(__name__)


class LMStudioGateway(ProviderGateway):
    """Locally hosted, OpenAI-compatible provider."""

    provider = ProviderName.LMSTUDIO.value
    COMPLETIONS_PATH = "/v1/chat/completions"

    def __init__(
        self,
        model: str,
        base_url: str,
        timeout_seconds: float,
        api_key: str = "",
        telemetry_sink: Optional[TelemetrySink] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """
        Initialize the gateway.

        Args:
            model: Model id loaded in LM Studio
            base_url: Server root, e.g. "http://localhost:1234"
            timeout_seconds: Hard client-side timeout per call
            api_key: Optional bearer token
            telemetry_sink: Receives every telemetry record
            transport: Optional httpx transport (tests use httpx.MockTransport)
        """
        super().__init__(model, timeout_seconds, telemetry_sink)
        self.base_url = base_url.rstrip("/")
        self.api_key = api_key
        self.transport = transport

    @property
    def endpoint(self) -> str:
        return f"{self.base_url}{self.COMPLETIONS_PATH}"

    def _build_body(
        self, messages: list[dict[str, str]], request: ProviderRequest
    ) -> dict[str, Any]:
        body: dict[str, Any] = {
            "model": self.model,
            "messages": messages,
            "temperature": request.temperature,
            "max_tokens": request.max_tokens,
            "stream": False,
        }
        if request.json_schema is not None:
            body["response_format"] = request.response_format()
        return body

    async def _complete(
        self, messages: list[dict[str, str]], request: ProviderRequest
    ) -> Optional[str]:
        headers = {"Content-Type": "application/json"}
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"

        async with httpx.AsyncClient(
            timeout=self.timeout_seconds, transport=self.transport
        ) as client:
            response = await client.post(
                self.endpoint, json=self._build_body(messages, request), headers=headers
            )

        if not response.is_success:
            raise ProviderError(
                f"LM Studio returned HTTP {response.status_code}: {response.text[:200]}",
                reason=ProviderError.PROVIDER_ERROR,
            )

        try:
            data = response.json()
        except ValueError as e:
            raise ProviderError(
                f"LM Studio returned a non-JSON envelope: {e}",
                reason=ProviderError.PROVIDER_ERROR,
            ) from e

        choices = data.get("choices") or []
        if not choices:
            return None
        return (choices[0].get("message") or {}).get("content")
