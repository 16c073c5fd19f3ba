"""
Tests for gateway.openai_gateway module.

Tests cover:
- Availability from the configured credential
- Successful chat calls with usage parsing, cost and timestamps
- Payload shape and request/settings defaults
- Retry logic on transient failures (429, 5xx)
- Immediate failure on non-retryable errors (401, 403, 400, 404)
- Response parsing edge cases and token fallback estimate
- Embeddings endpoint
- API keys never logged
"""

import json
import logging
from datetime import UTC, datetime

import httpx
import pytest
from freezegun import freeze_time

from aeyez.config.schema import default_provider_settings
from aeyez.exceptions import (
    ProviderAuthenticationError,
    ProviderResponseError,
    ProviderUnavailableError,
)
from aeyez.gateway.models import Message, ProviderId, ProviderRequest, ProviderResponse
from aeyez.gateway.openai_gateway import OpenAIGateway

CHAT_URL = "https://api.openai.com/v1/chat/completions"
EMBEDDINGS_URL = "https://api.openai.com/v1/embeddings"


def chat_body(content="Example answer", prompt_tokens=100, completion_tokens=50):
    return {
        "choices": [{"message": {"role": "assistant", "content": content}}],
        "usage": {
            "prompt_tokens": prompt_tokens,
            "completion_tokens": completion_tokens,
            "total_tokens": prompt_tokens + completion_tokens,
        },
        "model": "gpt-4o-mini",
    }


@pytest.fixture
def settings():
    return default_provider_settings()["openai"]


@pytest.fixture
def gateway(settings):
    return OpenAIGateway(settings, "sk-test123")


class TestOpenAIGatewayInit:
    """Test suite for OpenAIGateway initialization."""

    def test_available_with_key(self, gateway):
        assert gateway.is_available()
        assert gateway.model_name == "gpt-4o-mini"
        assert gateway.provider_id is ProviderId.OPENAI

    @pytest.mark.parametrize("api_key", [None, "", "   "])
    def test_unavailable_without_key(self, settings, api_key):
        assert not OpenAIGateway(settings, api_key).is_available()

    def test_init_logs_model_not_api_key(self, settings, caplog):
        caplog.set_level(logging.INFO)

        OpenAIGateway(settings, "sk-secret123")

        assert "gpt-4o-mini" in caplog.text
        assert "sk-secret123" not in caplog.text


class TestQuerySuccess:
    """Test suite for successful chat calls."""

    @pytest.mark.asyncio
    async def test_query_success(self, gateway, httpx_mock):
        httpx_mock.add_response(method="POST", url=CHAT_URL, json=chat_body())

        with freeze_time("2025-11-02T08:30:45Z", real_asyncio=True):
            response = await gateway.query(ProviderRequest.from_prompt("What is Acme?"))

        assert isinstance(response, ProviderResponse)
        assert response.content == "Example answer"
        assert response.provider is ProviderId.OPENAI
        assert response.model == "gpt-4o-mini"
        assert response.input_tokens == 100
        assert response.output_tokens == 50
        assert response.total_tokens == 150
        assert response.cost_usd == pytest.approx(4.5e-05)
        assert response.latency_ms >= 0
        assert response.responded_at == datetime(2025, 11, 2, 8, 30, 45, tzinfo=UTC)

    @pytest.mark.asyncio
    async def test_request_payload_and_headers(self, gateway, httpx_mock):
        httpx_mock.add_response(method="POST", url=CHAT_URL, json=chat_body())

        await gateway.query(
            ProviderRequest(
                messages=[
                    Message(role="system", content="Be brief."),
                    Message(role="user", content="What is Acme?"),
                ],
                temperature=0.2,
                max_tokens=256,
            )
        )

        request = httpx_mock.get_request()
        assert request.headers["Authorization"] == "Bearer sk-test123"
        payload = json.loads(request.content)
        assert payload == {
            "model": "gpt-4o-mini",
            "messages": [
                {"role": "system", "content": "Be brief."},
                {"role": "user", "content": "What is Acme?"},
            ],
            "temperature": 0.2,
            "max_tokens": 256,
        }

    @pytest.mark.asyncio
    async def test_settings_defaults_fill_unset_request_fields(self, gateway, httpx_mock):
        httpx_mock.add_response(method="POST", url=CHAT_URL, json=chat_body())

        await gateway.query(ProviderRequest.from_prompt("Hello"))

        payload = json.loads(httpx_mock.get_request().content)
        assert payload["temperature"] == 0.7
        assert payload["max_tokens"] == 4096

    @pytest.mark.asyncio
    async def test_missing_usage_falls_back_to_estimate(self, gateway, httpx_mock, caplog):
        caplog.set_level(logging.WARNING)
        httpx_mock.add_response(
            method="POST",
            url=CHAT_URL,
            json={"choices": [{"message": {"content": "x" * 40}}]},
        )

        response = await gateway.query(ProviderRequest.from_prompt("y" * 10))

        assert response.input_tokens == 3
        assert response.output_tokens == 10
        assert "missing 'usage'" in caplog.text

    @pytest.mark.asyncio
    async def test_null_content_becomes_empty_string(self, gateway, httpx_mock):
        httpx_mock.add_response(
            method="POST",
            url=CHAT_URL,
            json={"choices": [{"message": {"content": None}}], "usage": {}},
        )

        response = await gateway.query(ProviderRequest.from_prompt("Hello"))

        assert response.content == ""

    @pytest.mark.asyncio
    async def test_query_never_logs_api_key(self, gateway, httpx_mock, caplog):
        caplog.set_level(logging.DEBUG)
        httpx_mock.add_response(method="POST", url=CHAT_URL, json=chat_body())

        await gateway.query(ProviderRequest.from_prompt("Hello"))

        assert "sk-test123" not in caplog.text


class TestQueryValidation:
    """Test suite for pre-flight checks."""

    @pytest.mark.asyncio
    async def test_unavailable_raises_without_http(self, settings):
        gateway = OpenAIGateway(settings, None)

        with pytest.raises(ProviderUnavailableError, match="OPENAI_API_KEY"):
            await gateway.query(ProviderRequest.from_prompt("Hello"))

    @pytest.mark.asyncio
    async def test_empty_prompt_rejected(self, gateway):
        with pytest.raises(ValueError, match="cannot all be empty"):
            await gateway.query(ProviderRequest.from_prompt("   "))

    @pytest.mark.asyncio
    async def test_overlong_prompt_rejected(self, gateway):
        with pytest.raises(ValueError, match="exceeds maximum length"):
            await gateway.query(ProviderRequest.from_prompt("x" * 100_001))


class TestQueryNonRetryableErrors:
    """Test suite for non-retryable errors (401, 403, 400, 404)."""

    @pytest.mark.asyncio
    @pytest.mark.parametrize("status_code", [401, 403])
    async def test_auth_errors(self, gateway, httpx_mock, status_code):
        httpx_mock.add_response(
            method="POST",
            url=CHAT_URL,
            status_code=status_code,
            json={"error": {"message": "Invalid API key"}},
        )

        with pytest.raises(ProviderAuthenticationError, match="rejected credentials"):
            await gateway.query(ProviderRequest.from_prompt("Test"))

        assert len(httpx_mock.get_requests()) == 1

    @pytest.mark.asyncio
    @pytest.mark.parametrize("status_code", [400, 404])
    async def test_client_errors(self, gateway, httpx_mock, status_code):
        httpx_mock.add_response(
            method="POST",
            url=CHAT_URL,
            status_code=status_code,
            json={"error": {"message": "Invalid request format"}},
        )

        with pytest.raises(ProviderResponseError, match="non-retryable") as exc_info:
            await gateway.query(ProviderRequest.from_prompt("Test"))

        assert "Invalid request format" in str(exc_info.value)
        assert len(httpx_mock.get_requests()) == 1


class TestQueryRetryableErrors:
    """Test suite for retryable errors (429, 5xx) with retry logic."""

    @pytest.mark.asyncio
    async def test_429_then_success(self, gateway, httpx_mock):
        httpx_mock.add_response(
            method="POST",
            url=CHAT_URL,
            status_code=429,
            json={"error": {"message": "Rate limit exceeded"}},
        )
        httpx_mock.add_response(
            method="POST", url=CHAT_URL, json=chat_body("Success after retry")
        )

        response = await gateway.query(ProviderRequest.from_prompt("Test"))

        assert response.content == "Success after retry"
        assert len(httpx_mock.get_requests()) == 2

    @pytest.mark.asyncio
    async def test_502_exhausts_retries(self, gateway, httpx_mock):
        for _ in range(3):
            httpx_mock.add_response(
                method="POST",
                url=CHAT_URL,
                status_code=502,
                json={"error": {"message": "Bad gateway"}},
            )

        with pytest.raises(httpx.HTTPStatusError):
            await gateway.query(ProviderRequest.from_prompt("Test"))

        assert len(httpx_mock.get_requests()) == 3


class TestQueryResponseParsing:
    """Test suite for response parsing edge cases."""

    @pytest.mark.asyncio
    async def test_missing_choices(self, gateway, httpx_mock):
        httpx_mock.add_response(method="POST", url=CHAT_URL, json={"usage": {}})

        with pytest.raises(ProviderResponseError, match="Invalid OpenAI response"):
            await gateway.query(ProviderRequest.from_prompt("Test"))

    @pytest.mark.asyncio
    async def test_empty_choices(self, gateway, httpx_mock):
        httpx_mock.add_response(method="POST", url=CHAT_URL, json={"choices": []})

        with pytest.raises(ProviderResponseError, match="empty 'choices'"):
            await gateway.query(ProviderRequest.from_prompt("Test"))

    @pytest.mark.asyncio
    async def test_invalid_json(self, gateway, httpx_mock):
        httpx_mock.add_response(method="POST", url=CHAT_URL, text="not json")

        with pytest.raises(ProviderResponseError, match="Failed to parse"):
            await gateway.query(ProviderRequest.from_prompt("Test"))

    @pytest.mark.asyncio
    async def test_non_object_json(self, gateway, httpx_mock):
        httpx_mock.add_response(method="POST", url=CHAT_URL, json=[1, 2, 3])

        with pytest.raises(ProviderResponseError, match="not a JSON object"):
            await gateway.query(ProviderRequest.from_prompt("Test"))


class TestEmbed:
    """Test suite for the embeddings endpoint."""

    @pytest.mark.asyncio
    async def test_embed_success(self, gateway, httpx_mock):
        httpx_mock.add_response(
            method="POST",
            url=EMBEDDINGS_URL,
            json={"data": [{"embedding": [0.1, 0.2, 0.3]}], "usage": {"prompt_tokens": 3}},
        )

        vector = await gateway.embed("Acme was founded in 2020")

        assert vector == [0.1, 0.2, 0.3]
        payload = json.loads(httpx_mock.get_request().content)
        assert payload == {
            "model": "text-embedding-3-small",
            "input": "Acme was founded in 2020",
        }

    @pytest.mark.asyncio
    async def test_embed_empty_text(self, gateway):
        with pytest.raises(ValueError, match="cannot be empty"):
            await gateway.embed("  ")

    @pytest.mark.asyncio
    async def test_embed_empty_vector(self, gateway, httpx_mock):
        httpx_mock.add_response(
            method="POST", url=EMBEDDINGS_URL, json={"data": [{"embedding": []}]}
        )

        with pytest.raises(ProviderResponseError, match="empty embedding"):
            await gateway.embed("text")

    @pytest.mark.asyncio
    async def test_embed_bad_structure(self, gateway, httpx_mock):
        httpx_mock.add_response(method="POST", url=EMBEDDINGS_URL, json={"data": []})

        with pytest.raises(ProviderResponseError, match="Invalid OpenAI embedding"):
            await gateway.embed("text")

    @pytest.mark.asyncio
    async def test_embed_unavailable(self, settings):
        with pytest.raises(ProviderUnavailableError):
            await OpenAIGateway(settings, "").embed("text")
