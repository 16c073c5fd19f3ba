"""
OpenAI gateway adapter for Aeyez.

Talks to the OpenAI Chat Completions and Embeddings endpoints directly
over httpx.AsyncClient, with retry, cost estimation and latency tracking
inherited from HTTPGateway.

Key features:
- Chat Completions: POST {base_url}/chat/completions
- Embeddings: POST {base_url}/embeddings (text-embedding-3-small by default)
- Token usage from usage.prompt_tokens / usage.completion_tokens
- Security: NEVER logs API keys

Example:
    >>> gateway = OpenAIGateway(settings, api_key="sk-...")
    >>> response = await gateway.query(ProviderRequest.from_prompt("What does example.com sell?"))
    >>> response.cost_usd
    0.000135
"""

import logging
from typing import Any

from aeyez.exceptions import ProviderResponseError
from aeyez.gateway.base import HTTPGateway
from aeyez.gateway.models import ProviderId, ProviderRequest

logger = logging.getLogger(__name__)


class OpenAIGateway(HTTPGateway):
    """
    OpenAI Chat Completions / Embeddings adapter.

    Request defaults (used when the request leaves them unset) come from
    ProviderSettings: temperature 0.7, max_tokens 4096.
    """

    provider_id = ProviderId.OPENAI
    display_name = "OpenAI"

    def _headers(self) -> dict[str, str]:
        return {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
        }

    def _chat_url(self) -> str:
        return f"{self.settings.base_url}/chat/completions"

    def _embedding_url(self) -> str:
        return f"{self.settings.base_url}/embeddings"

    def _chat_payload(self, request: ProviderRequest) -> dict[str, Any]:
        temperature = request.temperature
        if temperature is None:
            temperature = self.settings.temperature

        max_tokens = request.max_tokens
        if max_tokens is None:
            max_tokens = self.settings.max_tokens

        return {
            "model": self.model_name,
            "messages": [
                {"role": m.role, "content": m.content} for m in request.messages
            ],
            "temperature": temperature,
            "max_tokens": max_tokens,
        }

    def _embedding_payload(self, text: str) -> dict[str, Any]:
        return {"model": self.settings.embedding_model, "input": text}

    def _extract_content(self, data: dict[str, Any]) -> str:
        try:
            choices = data["choices"]
            if not choices:
                raise ProviderResponseError("OpenAI response has empty 'choices'")
            content = choices[0]["message"].get("content")
        except (KeyError, IndexError, TypeError, AttributeError) as e:
            raise ProviderResponseError(
                f"Invalid OpenAI response structure: {e}"
            ) from e

        return str(content) if content is not None else ""

    def _extract_usage(self, data: dict[str, Any]) -> tuple[int, int] | None:
        usage = data.get("usage")
        if not usage or not isinstance(usage, dict):
            logger.warning(
                f"OpenAI response missing 'usage' data for model={self.model_name}. "
                "Falling back to character-based token estimate."
            )
            return None

        return (
            int(usage.get("prompt_tokens") or 0),
            int(usage.get("completion_tokens") or 0),
        )

    def _extract_embedding(self, data: dict[str, Any]) -> list[float]:
        try:
            return data["data"][0]["embedding"]
        except (KeyError, IndexError, TypeError) as e:
            raise ProviderResponseError(
                f"Invalid OpenAI embedding response structure: {e}"
            ) from e
