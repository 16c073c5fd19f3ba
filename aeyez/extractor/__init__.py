"""
Claim extraction for Aeyez ground truth.

Text chunks go through an LLM tier with a rule-based fallback. Structured
page metadata goes through a deterministic schema tier.
"""

from .claims import ClaimExtractor
from .models import ExtractedClaim, TierOutcome
from .structured import extract_structured_claims
from .tiers import LLMTier, RuleBasedTier, parse_llm_claims

__all__ = [
    "ClaimExtractor",
    "ExtractedClaim",
    "LLMTier",
    "RuleBasedTier",
    "TierOutcome",
    "extract_structured_claims",
    "parse_llm_claims",
]
