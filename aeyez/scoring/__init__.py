"""
Answer scoring for Aeyez: accuracy, completeness and attribution.
"""

from .engine import ScoringEngine, is_claim_mentioned
from .models import (
    AccuracyDetails,
    AttributionDetails,
    AttributionEvidence,
    CompletenessDetails,
    ExpectedAnswer,
    ScoreBreakdown,
)

__all__ = [
    "AccuracyDetails",
    "AttributionDetails",
    "AttributionEvidence",
    "CompletenessDetails",
    "ExpectedAnswer",
    "ScoreBreakdown",
    "ScoringEngine",
    "is_claim_mentioned",
]
