"""
Data models for answer scoring.

ExpectedAnswer is produced upstream by query generation and validated with
Pydantic (it arrives as JSON, often with camelCase keys). Score results are
frozen dataclasses: computed once per (run, query, provider) cell and never
mutated.
"""

from dataclasses import asdict, dataclass
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel


class ExpectedAnswer(BaseModel):
    """
    Reference answer for a query.

    Attributes:
        key_claims: Facts a correct answer should state
        keywords: Terms a complete answer should mention
        must_include: Facts the answer is required to include
        should_include: Nice-to-have facts
        context: Free-text note from query generation

    Example:
        >>> ExpectedAnswer.model_validate(
        ...     {"keyClaims": ["Founded in 2020"], "keywords": ["2020"]}
        ... ).key_claims
        ('Founded in 2020',)
    """

    model_config = ConfigDict(
        frozen=True, alias_generator=to_camel, populate_by_name=True
    )

    key_claims: tuple[str, ...] = Field(default_factory=tuple)
    keywords: tuple[str, ...] = Field(default_factory=tuple)
    must_include: tuple[str, ...] = Field(default_factory=tuple)
    should_include: tuple[str, ...] | None = None
    context: str | None = None

    @field_validator("key_claims", "keywords", "must_include", "should_include")
    @classmethod
    def drop_blank_entries(cls, v: tuple[str, ...] | None) -> tuple[str, ...] | None:
        """
        Drop empty and whitespace-only entries.

        A blank claim cannot be embedded and a blank keyword matches every
        answer.
        """
        if v is None:
            return None
        return tuple(item for item in v if item.strip())


@dataclass(frozen=True)
class AccuracyDetails:
    accurate_claims: int
    total_claims: int
    avg_similarity: float


@dataclass(frozen=True)
class CompletenessDetails:
    mentioned_claims: int
    required_claims: int
    missing_claims: tuple[str, ...] = ()


@dataclass(frozen=True)
class AttributionEvidence:
    """One attribution signal found in an answer."""

    type: Literal["url", "domain", "brand"]
    value: str
    context: str


@dataclass(frozen=True)
class AttributionDetails:
    has_direct_url: bool
    has_domain_mention: bool
    has_brand_mention: bool
    evidence: tuple[AttributionEvidence, ...] = ()


@dataclass(frozen=True)
class AccuracyScore:
    score: int
    details: AccuracyDetails


@dataclass(frozen=True)
class CompletenessScore:
    score: int
    details: CompletenessDetails


@dataclass(frozen=True)
class AttributionScore:
    score: int
    details: AttributionDetails


@dataclass(frozen=True)
class ScoreBreakdown:
    """
    Three independent 0-100 scores for one answer, with diagnostics.

    Attributes:
        accuracy: How well the answer agrees with the expected key claims
        completeness: How many key claims and keywords the answer covers
        attribution: Whether the answer credits the site (URL, domain, brand)
    """

    accuracy: AccuracyScore
    completeness: CompletenessScore
    attribution: AttributionScore

    def to_feedback(self) -> dict[str, Any]:
        """
        Render the details as a JSON-serialisable dict for persistence.

        Returns:
            dict with "accuracy", "completeness" and "attribution" entries,
            each holding the score and its details.
        """
        feedback = {
            "accuracy": {"score": self.accuracy.score, **asdict(self.accuracy.details)},
            "completeness": {
                "score": self.completeness.score,
                **asdict(self.completeness.details),
            },
            "attribution": {
                "score": self.attribution.score,
                **asdict(self.attribution.details),
            },
        }
        # asdict keeps tuples; JSON wants lists
        feedback["completeness"]["missing_claims"] = list(
            self.completeness.details.missing_claims
        )
        feedback["attribution"]["evidence"] = [
            asdict(e) for e in self.attribution.details.evidence
        ]
        return feedback
