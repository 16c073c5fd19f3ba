"""
Scoring engine: grades an AI answer against an expected answer.

analyze_response() returns three independent 0-100 scores:

- Accuracy (semantic): cosine similarity between the answer embedding and
  each key-claim embedding. A claim is accurate above 0.70.
  score = round(100 * (0.7 * accurate/total + 0.3 * mean_similarity)).
  No key claims means score 100.
- Completeness (hybrid): a claim is found if its similarity exceeds 0.75
  or more than 60% of its significant words (longer than 3 characters)
  appear in the lowercased answer. Keywords count by case-insensitive
  substring. score = round(100 * (0.7 * claim_ratio + 0.3 * keyword_ratio)),
  each ratio 1 when its denominator is 0.
- Attribution (lexical): +60 for a direct URL (https://, http:// or www.
  followed by the domain), otherwise +30 for the bare domain; +10 when the
  brand (first domain label, longer than 3 characters) appears. Capped at 100.

Embeddings come from the first available provider in embedding_providers,
requested concurrently in an asyncio.TaskGroup. When one call raises, the
provider's pending calls are cancelled and the next available provider is
tried.
"""

import asyncio
import logging
from collections.abc import Sequence

from aeyez.exceptions import ProviderUnavailableError
from aeyez.gateway.models import GatewayFactory, ProviderId
from aeyez.scoring.models import (
    AccuracyDetails,
    AccuracyScore,
    AttributionDetails,
    AttributionEvidence,
    AttributionScore,
    CompletenessDetails,
    CompletenessScore,
    ExpectedAnswer,
    ScoreBreakdown,
)
from aeyez.scoring.similarity import cosine_similarity, round_half_up, round_score
from aeyez.utils.text import normalize_domain

logger = logging.getLogger(__name__)

ACCURACY_THRESHOLD = 0.70
COMPLETENESS_THRESHOLD = 0.75
LEXICAL_MATCH_RATIO = 0.6
SIGNIFICANT_WORD_LENGTH = 3
CLAIM_WEIGHT = 0.7
SECONDARY_WEIGHT = 0.3
MAX_MISSING_CLAIMS = 5
MIN_BRAND_LENGTH = 3

URL_POINTS = 60
DOMAIN_POINTS = 30
BRAND_POINTS = 10

DEFAULT_EMBEDDING_PROVIDERS = (ProviderId.OPENAI, ProviderId.GOOGLE)


class ScoringEngine:
    """
    Computes ScoreBreakdown values for answers.

    The engine holds no per-answer state; one instance can score any
    number of answers.

    Args:
        gateway_factory: Resolves provider ids to gateways
        embedding_providers: Providers tried for embeddings, in order

    Example:
        >>> engine = ScoringEngine(factory)
        >>> breakdown = await engine.analyze_response(
        ...     "When was Acme founded?",
        ...     ExpectedAnswer(key_claims=["Founded in 2020"], keywords=["2020"]),
        ...     "Acme was founded in 2020, see https://acme.com/about",
        ...     "acme.com",
        ... )
        >>> breakdown.attribution.score
        70
    """

    def __init__(
        self,
        gateway_factory: GatewayFactory,
        embedding_providers: Sequence[ProviderId | str] = DEFAULT_EMBEDDING_PROVIDERS,
    ):
        if not embedding_providers:
            raise ValueError("embedding_providers cannot be empty")

        self.gateway_factory = gateway_factory
        self.embedding_providers = [ProviderId.coerce(p) for p in embedding_providers]

    async def analyze_response(
        self,
        query_text: str,
        expected_answer: ExpectedAnswer,
        answer: str,
        site_domain: str,
    ) -> ScoreBreakdown:
        """
        Score one answer.

        Args:
            query_text: The question that was asked (used for logging only)
            expected_answer: Reference claims and keywords
            answer: Answer text to grade
            site_domain: Domain of the analyzed site

        Returns:
            ScoreBreakdown with accuracy, completeness and attribution

        Raises:
            ProviderUnavailableError: If key claims exist but no embedding
                provider is available
            Exception: The last provider error when every available
                embedding provider failed
        """
        claims = list(expected_answer.key_claims)

        similarities: list[float] = []
        if claims and not answer.strip():
            # Empty answers have no embedding; treat as zero vectors
            similarities = [0.0] * len(claims)
        elif claims:
            answer_vector, claim_vectors = await self._embed_all(answer, claims)
            similarities = [cosine_similarity(answer_vector, v) for v in claim_vectors]

        accuracy = self.score_accuracy(similarities)
        completeness = self.score_completeness(
            answer, claims, list(expected_answer.keywords), similarities
        )
        attribution = self.score_attribution(answer, site_domain)

        logger.debug(
            f"Scored answer for query '{query_text[:60]}': "
            f"accuracy={accuracy.score}, completeness={completeness.score}, "
            f"attribution={attribution.score}"
        )

        return ScoreBreakdown(
            accuracy=accuracy, completeness=completeness, attribution=attribution
        )

    @staticmethod
    def score_accuracy(similarities: Sequence[float]) -> AccuracyScore:
        """Accuracy from per-claim similarities. Empty input scores 100."""
        if not similarities:
            return AccuracyScore(
                score=100,
                details=AccuracyDetails(
                    accurate_claims=0, total_claims=0, avg_similarity=1.0
                ),
            )

        total = len(similarities)
        accurate = sum(1 for s in similarities if s > ACCURACY_THRESHOLD)
        avg_similarity = sum(similarities) / total

        score = 100 * (
            CLAIM_WEIGHT * accurate / total + SECONDARY_WEIGHT * avg_similarity
        )

        return AccuracyScore(
            score=round_score(score),
            details=AccuracyDetails(
                accurate_claims=accurate,
                total_claims=total,
                avg_similarity=round_half_up(avg_similarity, 2),
            ),
        )

    @staticmethod
    def score_completeness(
        answer: str,
        claims: Sequence[str],
        keywords: Sequence[str],
        similarities: Sequence[float],
    ) -> CompletenessScore:
        """
        Completeness from claim coverage and keyword coverage.

        similarities[i] belongs to claims[i]; missing entries count as no
        semantic match.
        """
        answer_lower = answer.lower()

        found = 0
        missing: list[str] = []
        for i, claim in enumerate(claims):
            semantic = i < len(similarities) and similarities[i] > COMPLETENESS_THRESHOLD
            if semantic or is_claim_mentioned(claim, answer_lower):
                found += 1
            else:
                missing.append(claim)

        mentioned_keywords = sum(1 for k in keywords if k.lower() in answer_lower)

        claim_ratio = found / len(claims) if claims else 1.0
        keyword_ratio = mentioned_keywords / len(keywords) if keywords else 1.0

        score = 100 * (CLAIM_WEIGHT * claim_ratio + SECONDARY_WEIGHT * keyword_ratio)

        return CompletenessScore(
            score=round_score(score),
            details=CompletenessDetails(
                mentioned_claims=found,
                required_claims=len(claims),
                missing_claims=tuple(missing[:MAX_MISSING_CLAIMS]),
            ),
        )

    @staticmethod
    def score_attribution(answer: str, site_domain: str) -> AttributionScore:
        """Attribution from URL, domain and brand mentions."""
        answer_lower = answer.lower()
        domain = normalize_domain(site_domain)

        if not domain:
            return AttributionScore(
                score=0,
                details=AttributionDetails(
                    has_direct_url=False,
                    has_domain_mention=False,
                    has_brand_mention=False,
                ),
            )

        score = 0
        evidence: list[AttributionEvidence] = []

        has_direct_url = any(
            f"{prefix}{domain}" in answer_lower
            for prefix in ("https://", "http://", "www.")
        )
        if has_direct_url:
            score += URL_POINTS
            evidence.append(
                AttributionEvidence(
                    type="url", value=domain, context="Direct URL found in response"
                )
            )

        has_domain_mention = domain in answer_lower
        if has_domain_mention and not has_direct_url:
            score += DOMAIN_POINTS
            evidence.append(
                AttributionEvidence(
                    type="domain", value=domain, context="Domain name mentioned"
                )
            )

        brand = domain.split(".")[0]
        has_brand_mention = len(brand) > MIN_BRAND_LENGTH and brand in answer_lower
        if has_brand_mention:
            score += BRAND_POINTS
            evidence.append(
                AttributionEvidence(
                    type="brand", value=brand, context="Brand name mentioned"
                )
            )

        return AttributionScore(
            score=min(score, 100),
            details=AttributionDetails(
                has_direct_url=has_direct_url,
                has_domain_mention=has_domain_mention,
                has_brand_mention=has_brand_mention,
                evidence=tuple(evidence),
            ),
        )

    async def _embed_all(
        self, answer: str, claims: list[str]
    ) -> tuple[list[float], list[list[float]]]:
        """Embed answer and claims with one provider, falling back on error."""
        last_error: Exception | None = None
        attempted = False

        for provider_id in self.embedding_providers:
            gateway = self.gateway_factory.get(provider_id)
            if not gateway.is_available():
                logger.debug(f"Embedding provider {provider_id.value} unavailable")
                continue

            attempted = True
            try:
                # The first failed call cancels the others on this provider
                async with asyncio.TaskGroup() as group:
                    tasks = [
                        group.create_task(gateway.embed(text))
                        for text in (answer, *claims)
                    ]
            except ExceptionGroup as group_error:
                error = group_error.exceptions[0]
                logger.warning(
                    f"Embeddings via {provider_id.value} failed ({error}), "
                    "trying next provider"
                )
                last_error = error
                continue

            vectors = [task.result() for task in tasks]
            return vectors[0], vectors[1:]

        if not attempted:
            raise ProviderUnavailableError(
                "No embedding provider available: "
                + ", ".join(p.value for p in self.embedding_providers)
            )

        raise last_error


def is_claim_mentioned(claim: str, answer_lower: str) -> bool:
    """
    Lexical claim check against an already-lowercased answer.

    True when more than 60% of the claim's words longer than 3 characters
    appear as substrings of the answer. A claim without such words never
    matches.

    Examples:
        >>> is_claim_mentioned("Founded in 2020", "the company was founded in 2020")
        True
        >>> is_claim_mentioned("An ox", "an ox")
        False
    """
    words = [w for w in claim.lower().split() if len(w) > SIGNIFICANT_WORD_LENGTH]
    if not words:
        return False

    matched = sum(1 for w in words if w in answer_lower)
    return matched / len(words) > LEXICAL_MATCH_RATIO
