"""
Shared HTTP plumbing for provider gateway adapters.

HTTPGateway implements the parts of the ProviderGateway protocol that do not
depend on the backend wire format:
- availability (credential present and non-blank)
- request validation (non-empty, bounded prompt length)
- the retried POST with status-code classification and error logging
- latency measurement, token fallback estimation and cost estimation

Subclasses supply URLs, headers, payload builders and response extractors.

Security:
    API keys are only placed in request headers. They are never logged,
    included in error messages or put in URLs.
"""

import logging
import time
from typing import Any

import httpx

from aeyez.config.constants import MAX_PROMPT_LENGTH
from aeyez.config.schema import ProviderSettings
from aeyez.exceptions import (
    ProviderAuthenticationError,
    ProviderResponseError,
    ProviderUnavailableError,
)
from aeyez.gateway.models import ProviderId, ProviderRequest, ProviderResponse
from aeyez.gateway.retry_config import (
    AUTH_STATUS_CODES,
    RETRY_STATUS_CODES,
    create_retry_decorator,
)
from aeyez.utils.cost import estimate_cost
from aeyez.utils.text import count_tokens
from aeyez.utils.time import utc_now

# Suppress HTTPX request logging
httpx_logger = logging.getLogger("httpx")
httpx_logger.setLevel(logging.WARNING)

logger = logging.getLogger(__name__)


class HTTPGateway:
    """
    Base class for httpx-backed gateway adapters.

    Attributes:
        provider_id: Backend identifier, set by subclasses
        settings: Endpoint, model names, defaults and timeout
        api_key: Credential or None (NEVER logged)
    """

    provider_id: ProviderId
    display_name: str = "Provider"

    def __init__(self, settings: ProviderSettings, api_key: str | None = None):
        self.settings = settings
        self.api_key = api_key
        self.model_name = settings.model_name

        logger.info(
            f"Initialized {self.display_name} gateway for model: {self.model_name} "
            f"(available={self.is_available()})"
        )

    def is_available(self) -> bool:
        return bool(self.api_key and not self.api_key.isspace())

    async def query(self, request: ProviderRequest) -> ProviderResponse:
        """
        Send a chat request and return an immutable ProviderResponse.

        Latency covers the whole retried call. Token counts come from the
        backend's usage block when present, otherwise ceil(chars / 4) over
        the input messages and the output text.

        Raises:
            ProviderUnavailableError: If no credential is configured
            ValueError: If the request content is empty or too long
            ProviderAuthenticationError: On 401/403
            ProviderResponseError: On other non-retryable errors
            httpx.HTTPError: Transient failure after retries are exhausted
        """
        self._ensure_available()
        self._validate_request(request)

        logger.debug(
            f"Sending request to {self.display_name}: model={self.model_name}, "
            f"messages={len(request.messages)}"
        )

        start = time.perf_counter()
        data = await self._post(
            self._chat_url(), self._chat_payload(request), self._headers()
        )
        latency_ms = int((time.perf_counter() - start) * 1000)

        content = self._extract_content(data)
        usage = self._extract_usage(data)
        if usage is None:
            input_tokens = count_tokens("".join(m.content for m in request.messages))
            output_tokens = count_tokens(content)
        else:
            input_tokens, output_tokens = usage

        cost_usd = estimate_cost(
            self.provider_id.value, self.model_name, input_tokens, output_tokens
        )

        logger.info(
            f"{self.display_name} query completed: model={self.model_name}, "
            f"input_tokens={input_tokens}, output_tokens={output_tokens}, "
            f"latency_ms={latency_ms}"
        )

        return ProviderResponse(
            content=content,
            provider=self.provider_id,
            model=self.model_name,
            input_tokens=input_tokens,
            output_tokens=output_tokens,
            cost_usd=cost_usd,
            latency_ms=latency_ms,
            responded_at=utc_now(),
        )

    async def embed(self, text: str) -> list[float]:
        """
        Return the embedding vector for text.

        Raises:
            ProviderUnavailableError: If no credential is configured
            ValueError: If text is empty
            ProviderResponseError: If the response has no vector
        """
        self._ensure_available()

        if not text or text.isspace():
            raise ValueError("Embedding text cannot be empty")

        data = await self._post(
            self._embedding_url(), self._embedding_payload(text), self._headers()
        )
        vector = self._extract_embedding(data)

        if not vector:
            raise ProviderResponseError(
                f"{self.display_name} returned an empty embedding "
                f"for model={self.settings.embedding_model}"
            )

        return [float(v) for v in vector]

    @create_retry_decorator()
    async def _post(
        self, url: str, payload: dict[str, Any], headers: dict[str, str]
    ) -> dict[str, Any]:
        """
        POST a JSON payload with retry on transient failures.

        Non-retryable statuses raise ProviderError subclasses immediately;
        429/5xx go through raise_for_status() so the retry decorator sees them.
        """
        try:
            async with httpx.AsyncClient(
                timeout=self.settings.timeout_seconds
            ) as client:
                response = await client.post(url, json=payload, headers=headers)

                if response.status_code in AUTH_STATUS_CODES:
                    raise ProviderAuthenticationError(
                        f"{self.display_name} rejected credentials: "
                        f"status={response.status_code}, model={self.model_name}"
                    )

                if (
                    response.status_code >= 400
                    and response.status_code not in RETRY_STATUS_CODES
                ):
                    error_detail = self._extract_error_detail(response)
                    raise ProviderResponseError(
                        f"{self.display_name} API error (non-retryable): "
                        f"status={response.status_code}, "
                        f"model={self.model_name}, "
                        f"detail={error_detail}"
                    )

                response.raise_for_status()

        except httpx.HTTPStatusError as e:
            error_detail = self._extract_error_detail(e.response)
            logger.error(
                f"{self.display_name} API HTTP error: "
                f"status={e.response.status_code}, "
                f"model={self.model_name}, "
                f"detail={error_detail}"
            )
            raise

        except httpx.ConnectError as e:
            logger.error(
                f"{self.display_name} API connection error: "
                f"model={self.model_name}, error={e}"
            )
            raise

        except httpx.TimeoutException as e:
            logger.error(
                f"{self.display_name} API timeout: model={self.model_name}, error={e}"
            )
            raise

        try:
            data = response.json()
        except ValueError as e:
            raise ProviderResponseError(
                f"Failed to parse {self.display_name} response JSON: {e}"
            ) from e

        if not isinstance(data, dict):
            raise ProviderResponseError(
                f"{self.display_name} response is not a JSON object"
            )

        return data

    def _ensure_available(self) -> None:
        if not self.is_available():
            raise ProviderUnavailableError(
                f"Provider '{self.provider_id.value}' has no API key configured "
                f"(set {self.settings.env_api_key})"
            )

    def _validate_request(self, request: ProviderRequest) -> None:
        if all(not m.content or m.content.isspace() for m in request.messages):
            raise ValueError("Request messages cannot all be empty")

        if request.total_length > MAX_PROMPT_LENGTH:
            raise ValueError(
                f"Prompt exceeds maximum length of {MAX_PROMPT_LENGTH:,} characters "
                f"(received {request.total_length:,} characters)"
            )

    def _extract_error_detail(self, response: httpx.Response) -> str:
        """Return the API's error message, or the status code if unparseable."""
        try:
            error = response.json().get("error", {})
            if isinstance(error, dict):
                return str(error.get("message", "Unknown error"))
            return str(error)
        except (ValueError, AttributeError):
            return f"HTTP {response.status_code}"

    # Backend-specific hooks

    def _headers(self) -> dict[str, str]:
        raise NotImplementedError

    def _chat_url(self) -> str:
        raise NotImplementedError

    def _chat_payload(self, request: ProviderRequest) -> dict[str, Any]:
        raise NotImplementedError

    def _extract_content(self, data: dict[str, Any]) -> str:
        raise NotImplementedError

    def _extract_usage(self, data: dict[str, Any]) -> tuple[int, int] | None:
        raise NotImplementedError

    def _embedding_url(self) -> str:
        raise NotImplementedError

    def _embedding_payload(self, text: str) -> dict[str, Any]:
        raise NotImplementedError

    def _extract_embedding(self, data: dict[str, Any]) -> list[float]:
        raise NotImplementedError
