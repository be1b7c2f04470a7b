"""
Groq Gateway (hosted provider)

Sends chat completions to Groq through LiteLLM using the
"groq/<model-name>" model format. LiteLLM's own retries are disabled;
the gateway is single-attempt by contract.

See: https://docs.litellm.ai/docs/providers/groq
"""

import logging
from typing import Optional

import litellm
from litellm import acompletion

from sprint_engine.enums import ProviderName
from sprint_engine.errors import ProviderError
from sprint_engine.services.providers.gateway import ProviderGateway, ProviderRequest
from sprint_engine.services.providers.telemetry import TelemetrySink

logger = logging.getLogger(__name__)

# Drop unsupported params instead of erroring
litellm.drop_params = True


class GroqGateway(ProviderGateway):
    """Hosted, low-latency provider."""

    provider = ProviderName.GROQ.value

    def __init__(
        self,
        model: str,
        api_key: str,
        timeout_seconds: float,
        telemetry_sink: Optional[TelemetrySink] = None,
    ):
        super().__init__(model, timeout_seconds, telemetry_sink)
        self.api_key = api_key

    @property
    def litellm_model(self) -> str:
        if self.model.startswith("groq/"):
            return self.model
        return f"groq/{self.model}"

    async def _complete(
        self, messages: list[dict[str, str]], request: ProviderRequest
    ) -> Optional[str]:
        if not self.api_key:
            raise ProviderError(
                "GROQ_API_KEY is not configured", reason=ProviderError.PROVIDER_ERROR
            )

        response = await acompletion(
            model=self.litellm_model,
            messages=messages,
            temperature=request.temperature,
            max_tokens=request.max_tokens,
            response_format=request.response_format(),
            api_key=self.api_key,
            timeout=self.timeout_seconds,
            num_retries=0,
        )

        if not response.choices:
            return None
        return response.choices[0].message.content
