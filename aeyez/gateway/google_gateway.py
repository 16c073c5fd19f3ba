"""
Google Gemini gateway adapter for Aeyez.

Calls the Generative Language API (generateContent / embedContent)
directly over httpx.AsyncClient, with retry, cost estimation and latency
tracking inherited from HTTPGateway.

Message mapping:
- system messages are joined into systemInstruction
- assistant messages become role "model", user messages stay "user"

Token usage is read from usageMetadata when present; otherwise it is
approximated as ceil(character_length / 4).

Security:
    The API key travels in the x-goog-api-key header, not the URL, so it
    never appears in logged request URLs.
"""

import logging
from typing import Any

from aeyez.exceptions import ProviderResponseError
from aeyez.gateway.base import HTTPGateway
from aeyez.gateway.models import ProviderId, ProviderRequest

logger = logging.getLogger(__name__)


class GoogleGateway(HTTPGateway):
    """
    Gemini generateContent / embedContent adapter.

    Request defaults (used when the request leaves them unset) come from
    ProviderSettings: temperature 0.7, maxOutputTokens 8192.
    """

    provider_id = ProviderId.GOOGLE
    display_name = "Google"

    def _headers(self) -> dict[str, str]:
        return {
            "x-goog-api-key": str(self.api_key),
            "Content-Type": "application/json",
        }

    def _chat_url(self) -> str:
        return f"{self.settings.base_url}/models/{self.model_name}:generateContent"

    def _embedding_url(self) -> str:
        return (
            f"{self.settings.base_url}/models/"
            f"{self.settings.embedding_model}:embedContent"
        )

    def _chat_payload(self, request: ProviderRequest) -> dict[str, Any]:
        system_parts = [m.content for m in request.messages if m.role == "system"]
        contents = [
            {
                "role": "model" if m.role == "assistant" else "user",
                "parts": [{"text": m.content}],
            }
            for m in request.messages
            if m.role != "system"
        ]

        if not contents:
            raise ValueError("Google requests need at least one user or assistant message")

        temperature = request.temperature
        if temperature is None:
            temperature = self.settings.temperature

        max_tokens = request.max_tokens
        if max_tokens is None:
            max_tokens = self.settings.max_tokens

        payload: dict[str, Any] = {
            "contents": contents,
            "generationConfig": {
                "temperature": temperature,
                "maxOutputTokens": max_tokens,
            },
        }

        if system_parts:
            payload["systemInstruction"] = {
                "parts": [{"text": "\n\n".join(system_parts)}]
            }

        return payload

    def _embedding_payload(self, text: str) -> dict[str, Any]:
        return {
            "model": f"models/{self.settings.embedding_model}",
            "content": {"parts": [{"text": text}]},
        }

    def _extract_content(self, data: dict[str, Any]) -> str:
        candidates = data.get("candidates")
        if not candidates or not isinstance(candidates, list):
            block_reason = (data.get("promptFeedback") or {}).get("blockReason")
            if block_reason:
                raise ProviderResponseError(
                    f"Google blocked the prompt: reason={block_reason}, "
                    f"model={self.model_name}"
                )
            raise ProviderResponseError("Google response missing 'candidates' array")

        try:
            parts = candidates[0].get("content", {}).get("parts", [])
            texts = [p["text"] for p in parts if isinstance(p, dict) and "text" in p]
        except (AttributeError, TypeError) as e:
            raise ProviderResponseError(
                f"Invalid Google response structure: {e}"
            ) from e

        if not texts:
            finish_reason = candidates[0].get("finishReason", "UNKNOWN")
            logger.warning(
                f"Google candidate has no text parts: model={self.model_name}, "
                f"finish_reason={finish_reason}"
            )

        return "".join(texts)

    def _extract_usage(self, data: dict[str, Any]) -> tuple[int, int] | None:
        usage = data.get("usageMetadata")
        if not usage or not isinstance(usage, dict):
            logger.debug(
                f"Google response has no usageMetadata for model={self.model_name}; "
                "using character-based estimate"
            )
            return None

        return (
            int(usage.get("promptTokenCount") or 0),
            int(usage.get("candidatesTokenCount") or 0),
        )

    def _extract_embedding(self, data: dict[str, Any]) -> list[float]:
        try:
            return data["embedding"]["values"]
        except (KeyError, TypeError) as e:
            raise ProviderResponseError(
                f"Invalid Google embedding response structure: {e}"
            ) from e
