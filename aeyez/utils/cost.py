"""
Cost estimation utilities for Aeyez.

Estimates USD costs from token usage using a static per-provider,
per-model pricing table. Prices are per token (price per million / 1,000,000).

Important:
    Cost estimates are approximate and based on public pricing. Always check
    the provider's billing dashboard for actual charges.

Example:
    >>> from aeyez.utils.cost import estimate_cost
    >>> estimate_cost("openai", "gpt-4o-mini", input_tokens=100, output_tokens=50)
    4.5e-05
"""

import logging

logger = logging.getLogger(__name__)

PRICING = {
    "openai": {
        "gpt-4o-mini": {
            "input": 0.150 / 1_000_000,  # $0.15 per 1M input tokens
            "output": 0.600 / 1_000_000,  # $0.60 per 1M output tokens
        },
        "gpt-4o": {
            "input": 2.50 / 1_000_000,
            "output": 10.00 / 1_000_000,
        },
        "gpt-4-turbo": {
            "input": 10.00 / 1_000_000,
            "output": 30.00 / 1_000_000,
        },
        "gpt-3.5-turbo": {
            "input": 0.50 / 1_000_000,
            "output": 1.50 / 1_000_000,
        },
        # Embeddings have no output tokens
        "text-embedding-3-small": {
            "input": 0.02 / 1_000_000,
            "output": 0.0,
        },
    },
    "google": {
        "gemini-1.5-flash": {
            "input": 0.075 / 1_000_000,  # $0.075 per 1M input tokens
            "output": 0.30 / 1_000_000,  # $0.30 per 1M output tokens
        },
        "gemini-1.5-flash-8b": {
            "input": 0.0375 / 1_000_000,
            "output": 0.15 / 1_000_000,
        },
        "gemini-1.5-pro": {
            "input": 1.25 / 1_000_000,
            "output": 5.00 / 1_000_000,
        },
        "gemini-2.0-flash": {
            "input": 0.10 / 1_000_000,
            "output": 0.40 / 1_000_000,
        },
        "text-embedding-004": {
            "input": 0.0,
            "output": 0.0,
        },
    },
}


def estimate_cost(
    provider: str, model: str, input_tokens: int, output_tokens: int
) -> float:
    """
    Estimate cost in USD for one provider call.

    Pure function of its inputs: no I/O besides a warning when the
    provider/model pair has no pricing entry.

    Args:
        provider: Provider identifier ("openai", "google")
        model: Model identifier (e.g., "gpt-4o-mini")
        input_tokens: Prompt token count
        output_tokens: Completion token count

    Returns:
        float: Estimated cost rounded to 6 decimal places, 0.0 when pricing
            is unavailable.

    Examples:
        >>> estimate_cost("openai", "gpt-4o-mini", 1_000_000, 1_000_000)
        0.75
        >>> estimate_cost("google", "gemini-1.5-flash", 1_000_000, 1_000_000)
        0.375
        >>> estimate_cost("openai", "unknown-model", 100, 50)
        0.0
    """
    pricing = PRICING.get(provider, {}).get(model)

    if not pricing:
        logger.warning(
            f"Pricing unavailable for provider='{provider}', model='{model}'. "
            f"Returning $0.00 cost estimate. Available providers: {list(PRICING)}"
        )
        return 0.0

    cost = (input_tokens * pricing["input"]) + (output_tokens * pricing["output"])
    return round(cost, 6)
