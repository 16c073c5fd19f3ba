"""
Mock provider gateway for testing and offline runs.

MockGateway implements the ProviderGateway protocol without HTTP. Answers
come from a prompt -> answer mapping, embeddings from an explicit mapping
or a deterministic hashed bag-of-words vector, so texts sharing words have
positive cosine similarity.

Example:
    >>> gateway = MockGateway(
    ...     responses={"When was Acme founded?": "Acme was founded in 2020."}
    ... )
    >>> response = await gateway.query(ProviderRequest.from_prompt("When was Acme founded?"))
    >>> response.content
    'Acme was founded in 2020.'
"""

import logging
import re
import zlib
from dataclasses import dataclass, field

from aeyez.exceptions import ProviderUnavailableError
from aeyez.gateway.models import ProviderId, ProviderRequest, ProviderResponse
from aeyez.utils.text import count_tokens
from aeyez.utils.time import utc_now

logger = logging.getLogger(__name__)

WORD_PATTERN = re.compile(r"\w+")


def hashed_embedding(text: str, dimensions: int = 64) -> list[float]:
    """Deterministic bag-of-words vector: one crc32 bucket per lowercased word."""
    vector = [0.0] * dimensions
    for word in WORD_PATTERN.findall(text.lower()):
        vector[zlib.crc32(word.encode("utf-8")) % dimensions] += 1.0
    return vector


@dataclass
class MockGateway:
    """
    Deterministic gateway implementing the ProviderGateway protocol.

    Attributes:
        provider_id: Provider this mock stands in for
        model_name: Model identifier reported in responses
        available: Value returned by is_available()
        responses: Last user message -> answer text
        default_response: Answer when the prompt is not in responses
        embeddings: Text -> vector overrides
        query_error: Exception raised by every query() call, if set
        embed_error: Exception raised by every embed() call, if set
        cost_per_response: Cost reported for each query
        queries: Requests received, in order
        embedded: Texts embedded, in order
    """

    provider_id: ProviderId = ProviderId.OPENAI
    model_name: str = "mock-model"
    available: bool = True
    responses: dict[str, str] = field(default_factory=dict)
    default_response: str = "Mock provider response."
    embeddings: dict[str, list[float]] = field(default_factory=dict)
    query_error: Exception | None = None
    embed_error: Exception | None = None
    cost_per_response: float = 0.0
    queries: list[ProviderRequest] = field(default_factory=list)
    embedded: list[str] = field(default_factory=list)

    def is_available(self) -> bool:
        return self.available

    async def query(self, request: ProviderRequest) -> ProviderResponse:
        if not self.available:
            raise ProviderUnavailableError(
                f"Mock provider '{self.provider_id.value}' is unavailable"
            )

        self.queries.append(request)

        if self.query_error is not None:
            raise self.query_error

        prompt = request.messages[-1].content
        content = self.responses.get(prompt, self.default_response)

        logger.debug(f"Mock gateway answered prompt of {len(prompt)} chars")

        return ProviderResponse(
            content=content,
            provider=self.provider_id,
            model=self.model_name,
            input_tokens=count_tokens("".join(m.content for m in request.messages)),
            output_tokens=count_tokens(content),
            cost_usd=self.cost_per_response,
            latency_ms=0,
            responded_at=utc_now(),
        )

    async def embed(self, text: str) -> list[float]:
        if not self.available:
            raise ProviderUnavailableError(
                f"Mock provider '{self.provider_id.value}' is unavailable"
            )

        self.embedded.append(text)

        if self.embed_error is not None:
            raise self.embed_error

        if text in self.embeddings:
            return list(self.embeddings[text])
        return hashed_embedding(text)
