"""
Claim extractor: turns site content into ExtractedClaim lists.

Text chunks go through size guards and then an ordered list of tiers
(LLM first, rule-based last); the first tier that succeeds wins.
Structured page metadata goes through extract_claims_from_structured_data,
which never calls a provider.

Example:
    >>> extractor = ClaimExtractor(GatewayFactory(runtime_config_from_env()))
    >>> claims = await extractor.extract_claims(chunk_text, "acme.com")
    >>> claims[0].source
    'llm'
"""

import logging
from collections.abc import Mapping, Sequence
from typing import Any

from aeyez.config.schema import ExtractionSettings
from aeyez.extractor.models import ExtractedClaim
from aeyez.extractor.structured import extract_structured_claims
from aeyez.extractor.tiers import ExtractionTier, LLMTier, RuleBasedTier
from aeyez.gateway.models import GatewayFactory
from aeyez.utils.text import count_tokens, split_paragraphs

logger = logging.getLogger(__name__)


class ClaimExtractor:
    """
    Extracts claims from text chunks with tiered fallback.

    Args:
        gateway_factory: Resolves provider ids to gateways for the LLM tier
        settings: Thresholds and provider order (defaults to ExtractionSettings())
        tiers: Explicit tier list, overriding the default LLM -> rule-based order
    """

    def __init__(
        self,
        gateway_factory: GatewayFactory,
        settings: ExtractionSettings | None = None,
        tiers: Sequence[ExtractionTier] | None = None,
    ):
        self.gateway_factory = gateway_factory
        self.settings = settings or ExtractionSettings()

        if tiers is None:
            tiers = [
                LLMTier(
                    gateway_factory,
                    providers=self.settings.providers,
                    temperature=self.settings.temperature,
                    max_tokens=self.settings.max_tokens,
                ),
                RuleBasedTier(min_sentence_chars=self.settings.min_sentence_chars),
            ]
        if not tiers:
            raise ValueError("ClaimExtractor needs at least one tier")
        self.tiers = list(tiers)

    async def extract_claims(self, chunk_text: str, domain: str) -> list[ExtractedClaim]:
        """
        Extract claims from a text chunk.

        Oversized chunks (estimated tokens above max_chunk_tokens) are split
        on blank lines and each segment is extracted in order. Chunks shorter
        than min_chunk_chars after trimming yield no claims.

        Args:
            chunk_text: Plain text content
            domain: Domain of the site the text belongs to

        Returns:
            Claims in source order
        """
        if count_tokens(chunk_text) > self.settings.max_chunk_tokens:
            segments = split_paragraphs(chunk_text)
            if len(segments) > 1:
                logger.debug(
                    f"Splitting oversized chunk ({count_tokens(chunk_text)} tokens) "
                    f"into {len(segments)} segments"
                )
                claims: list[ExtractedClaim] = []
                for segment in segments:
                    claims.extend(await self.extract_claims(segment, domain))
                return claims

        text = chunk_text.strip()
        if len(text) < self.settings.min_chunk_chars:
            return []

        for tier in self.tiers:
            outcome = await tier.extract(text, domain)
            if outcome.succeeded:
                logger.debug(
                    f"Tier '{outcome.tier}' produced {len(outcome.claims)} claims "
                    f"for {domain}"
                )
                return list(outcome.claims)

            logger.info(
                f"Extraction tier '{outcome.tier}' failed for {domain} "
                f"({outcome.reason}); falling back"
            )

        logger.warning(f"All extraction tiers failed for {domain}")
        return []

    def extract_claims_from_structured_data(
        self, metadata: Mapping[str, Any], domain: str
    ) -> list[ExtractedClaim]:
        """Deterministic claims from page metadata. See extract_structured_claims."""
        return extract_structured_claims(metadata, domain)
