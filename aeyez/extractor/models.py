"""
Data models for claim extraction.
"""

from dataclasses import dataclass
from typing import Literal

ClaimSource = Literal["llm", "nlp", "schema"]

# Confidence assigned by the rule-based tier
RULE_BASED_CONFIDENCE = 0.5

# Confidence for LLM claims whose confidence is missing or not numeric
DEFAULT_LLM_CONFIDENCE = 0.8


@dataclass(frozen=True)
class ExtractedClaim:
    """
    A factual statement extracted from site content.

    Attributes:
        statement: The claim text
        subject: Optional subject of the subject/predicate/object triple
        predicate: Optional predicate
        object: Optional object
        claim_type: Category (fact, date, number, location, pricing, ...)
        confidence: Extraction confidence in [0, 1]
        source: Which tier produced the claim (llm, nlp or schema)
    """

    statement: str
    confidence: float
    source: ClaimSource
    claim_type: str = "fact"
    subject: str | None = None
    predicate: str | None = None
    object: str | None = None

    def __post_init__(self):
        if not self.statement or self.statement.isspace():
            raise ValueError("statement cannot be empty")
        if not 0.0 <= self.confidence <= 1.0:
            raise ValueError(f"confidence must be in [0, 1], got: {self.confidence}")


@dataclass(frozen=True)
class TierOutcome:
    """
    Result of one extraction tier.

    A failed outcome makes the coordinator move on to the next tier.
    An empty claim list with succeeded=True is a valid answer.
    """

    tier: str
    succeeded: bool
    claims: tuple[ExtractedClaim, ...] = ()
    reason: str | None = None
    provider: str | None = None

    @classmethod
    def success(
        cls, tier: str, claims: list[ExtractedClaim], provider: str | None = None
    ) -> "TierOutcome":
        return cls(tier=tier, succeeded=True, claims=tuple(claims), provider=provider)

    @classmethod
    def failure(cls, tier: str, reason: str) -> "TierOutcome":
        return cls(tier=tier, succeeded=False, reason=reason)
