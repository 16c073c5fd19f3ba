"""
Extraction tiers used by ClaimExtractor.

Each tier turns a text chunk into claims and reports success or failure as
a TierOutcome. ClaimExtractor tries tiers in order and keeps the first
success.

Tiers:
    LLMTier: Asks a chat model for a JSON array of verifiable facts. Tries
        each configured provider in order, skipping unavailable ones and
        moving on when a provider call fails. Unparseable output fails the
        tier without trying further providers.
    RuleBasedTier: Splits text into sentences. Always succeeds.
"""

import json
import logging
from collections.abc import Sequence
from typing import Any, Protocol

from aeyez.exceptions import ClaimParseError
from aeyez.extractor.models import (
    DEFAULT_LLM_CONFIDENCE,
    RULE_BASED_CONFIDENCE,
    ExtractedClaim,
    TierOutcome,
)
from aeyez.gateway.models import (
    GatewayFactory,
    Message,
    ProviderId,
    ProviderRequest,
)
from aeyez.utils.text import split_sentences, strip_code_fences

logger = logging.getLogger(__name__)

SYSTEM_PROMPT = (
    "You extract verifiable facts from website content. "
    "You respond with a JSON array only, no prose."
)

EXTRACTION_PROMPT = """Extract the verifiable factual claims from the following content published by {domain}.

Rules:
- Only include facts that can be checked: dates, numbers, names, locations, prices, product capabilities.
- Exclude opinions, marketing language and subjective statements ("best", "leading", "amazing").
- Each claim must stand on its own without the surrounding text.

Respond with a JSON array only. Each element must have this shape:
{{"statement": "...", "subject": "...", "predicate": "...", "object": "...", "type": "fact|date|number|location|pricing|capability", "confidence": 0.0-1.0}}

Content:
{content}"""


class ExtractionTier(Protocol):
    name: str

    async def extract(self, text: str, domain: str) -> TierOutcome: ...


def _optional_str(value: Any) -> str | None:
    if isinstance(value, str) and value.strip():
        return value.strip()
    return None


def _confidence(value: Any) -> float:
    # bool is an int subclass; treat it as non-numeric
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return DEFAULT_LLM_CONFIDENCE
    return min(max(float(value), 0.0), 1.0)


def parse_llm_claims(response_text: str) -> list[ExtractedClaim]:
    """
    Parse a model response into LLM-sourced claims.

    Code fences around the JSON are removed first. Elements without a
    non-empty "statement" are skipped.

    Raises:
        ClaimParseError: If the text is not JSON or not a JSON array

    Example:
        >>> parse_llm_claims('```json\\n[{"statement": "Acme was founded in 2020"}]\\n```')[0].confidence
        0.8
    """
    cleaned = strip_code_fences(response_text)

    try:
        data = json.loads(cleaned)
    except json.JSONDecodeError as e:
        raise ClaimParseError(f"Claim response is not valid JSON: {e}") from e

    if not isinstance(data, list):
        raise ClaimParseError(
            f"Claim response must be a JSON array, got {type(data).__name__}"
        )

    claims: list[ExtractedClaim] = []
    for item in data:
        if not isinstance(item, dict):
            logger.debug(f"Skipping non-object claim item: {item!r}")
            continue

        statement = _optional_str(item.get("statement"))
        if statement is None:
            logger.debug("Skipping claim item without statement")
            continue

        claims.append(
            ExtractedClaim(
                statement=statement,
                confidence=_confidence(item.get("confidence")),
                source="llm",
                claim_type=_optional_str(item.get("type") or item.get("claimType"))
                or "fact",
                subject=_optional_str(item.get("subject")),
                predicate=_optional_str(item.get("predicate")),
                object=_optional_str(item.get("object")),
            )
        )

    return claims


class LLMTier:
    """
    Model-backed extraction tier.

    Args:
        gateway_factory: Resolves provider ids to gateways
        providers: Providers to try, in order
        temperature: Temperature for the extraction request
        max_tokens: Output token ceiling for the extraction request
    """

    name = "llm"

    def __init__(
        self,
        gateway_factory: GatewayFactory,
        providers: Sequence[ProviderId | str] = (ProviderId.OPENAI, ProviderId.GOOGLE),
        temperature: float = 0.3,
        max_tokens: int = 2048,
    ):
        self.gateway_factory = gateway_factory
        self.providers = [ProviderId.coerce(p) for p in providers]
        self.temperature = temperature
        self.max_tokens = max_tokens

    def build_request(self, text: str, domain: str) -> ProviderRequest:
        return ProviderRequest(
            messages=(
                Message(role="system", content=SYSTEM_PROMPT),
                Message(
                    role="user",
                    content=EXTRACTION_PROMPT.format(domain=domain, content=text),
                ),
            ),
            temperature=self.temperature,
            max_tokens=self.max_tokens,
        )

    async def extract(self, text: str, domain: str) -> TierOutcome:
        request = self.build_request(text, domain)

        for provider_id in self.providers:
            gateway = self.gateway_factory.get(provider_id)
            if not gateway.is_available():
                logger.debug(f"Extraction provider {provider_id.value} unavailable")
                continue

            try:
                response = await gateway.query(request)
            except Exception as e:
                logger.warning(
                    f"Claim extraction via {provider_id.value} failed: {e}"
                )
                continue

            try:
                claims = parse_llm_claims(response.content)
            except ClaimParseError as e:
                logger.warning(
                    f"Could not parse claims from {provider_id.value}: {e}"
                )
                return TierOutcome.failure(self.name, str(e))

            logger.debug(
                f"Extracted {len(claims)} claims via {provider_id.value}"
            )
            return TierOutcome.success(self.name, claims, provider=provider_id.value)

        return TierOutcome.failure(self.name, "no extraction provider succeeded")


class RuleBasedTier:
    """
    Sentence-splitting fallback tier.

    Every sentence of at least min_sentence_chars characters becomes a
    claim with confidence 0.5 and source "nlp".
    """

    name = "rule_based"

    def __init__(self, min_sentence_chars: int = 20):
        self.min_sentence_chars = min_sentence_chars

    def extract_sentences(self, text: str) -> list[ExtractedClaim]:
        return [
            ExtractedClaim(
                statement=sentence,
                confidence=RULE_BASED_CONFIDENCE,
                source="nlp",
                claim_type="fact",
            )
            for sentence in split_sentences(text, min_length=self.min_sentence_chars)
        ]

    async def extract(self, text: str, domain: str) -> TierOutcome:
        return TierOutcome.success(self.name, self.extract_sentences(text))
