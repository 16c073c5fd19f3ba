"""
Tests for utils.cost module.

Tests cover:
- Cost calculation for known OpenAI and Google models
- Rounding to 6 decimal places
- Unknown provider/model returns 0.0 with a warning
- Zero tokens cost nothing
"""

import logging

import pytest

from aeyez.utils.cost import PRICING, estimate_cost


class TestEstimateCost:
    """Test estimate_cost()."""

    def test_openai_gpt4o_mini(self):
        """1M input + 1M output tokens of gpt-4o-mini costs $0.75."""
        assert estimate_cost("openai", "gpt-4o-mini", 1_000_000, 1_000_000) == pytest.approx(
            0.75
        )

    def test_google_gemini_flash(self):
        """1M input + 1M output tokens of gemini-1.5-flash costs $0.375."""
        assert estimate_cost(
            "google", "gemini-1.5-flash", 1_000_000, 1_000_000
        ) == pytest.approx(0.375)

    def test_small_call(self):
        assert estimate_cost("openai", "gpt-4o-mini", 100, 50) == pytest.approx(4.5e-05)

    def test_zero_tokens(self):
        assert estimate_cost("openai", "gpt-4o", 0, 0) == 0.0

    def test_result_is_rounded_to_six_decimals(self):
        cost = estimate_cost("openai", "gpt-4o-mini", 1, 1)
        assert cost == round(cost, 6)

    def test_unknown_model_returns_zero_and_warns(self, caplog):
        caplog.set_level(logging.WARNING)

        assert estimate_cost("openai", "unknown-model", 100, 50) == 0.0
        assert "Pricing unavailable" in caplog.text
        assert "unknown-model" in caplog.text

    def test_unknown_provider_returns_zero(self):
        assert estimate_cost("anthropic", "claude", 100, 50) == 0.0


class TestPricingTable:
    """Test the static pricing table."""

    def test_default_models_are_priced(self):
        """The default chat and embedding models of both providers have entries."""
        assert "gpt-4o-mini" in PRICING["openai"]
        assert "text-embedding-3-small" in PRICING["openai"]
        assert "gemini-1.5-flash" in PRICING["google"]
        assert "text-embedding-004" in PRICING["google"]

    def test_prices_are_non_negative(self):
        for models in PRICING.values():
            for prices in models.values():
                assert prices["input"] >= 0
                assert prices["output"] >= 0
