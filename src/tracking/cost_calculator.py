# src/tracking/cost_calculator.py — v2
"""Cost estimation from token usage.

Prices are matched by model-id prefix, first match wins, so more
specific prefixes must come first.
"""

from __future__ import annotations

from portfolio_ai.llm.models import AiUsage
from portfolio_ai.tracking.models import ModelPricing

# Per 1M tokens
DEFAULT_PRICING: list[ModelPricing] = [
    ModelPricing(prefix="gpt-5-mini", input_price_per_1m=2.5, output_price_per_1m=10.0),
    ModelPricing(prefix="gpt-5", input_price_per_1m=10.0, output_price_per_1m=40.0),
    ModelPricing(prefix="claude-sonnet-4", input_price_per_1m=3.0, output_price_per_1m=15.0),
    ModelPricing(prefix="grok-4-fast", input_price_per_1m=0.2, output_price_per_1m=0.5),
    ModelPricing(prefix="grok-4", input_price_per_1m=3.0, output_price_per_1m=15.0),
]

FALLBACK_PRICING = ModelPricing(prefix="", input_price_per_1m=2.0, output_price_per_1m=6.0)


def pricing_for(model: str, pricing: list[ModelPricing] | None = None) -> ModelPricing:
    """Pricing tier for a model id (case-insensitive prefix match)."""
    model = model.lower()
    for tier in pricing or DEFAULT_PRICING:
        if model.startswith(tier.prefix.lower()):
            return tier
    return FALLBACK_PRICING


def estimate_cost_usd(
    model: str,
    usage: AiUsage | None,
    pricing: list[ModelPricing] | None = None,
) -> float:
    """Estimated USD cost of one call, rounded to 6 decimals."""
    if usage is None:
        return 0.0
    tier = pricing_for(model, pricing)
    cost = (
        (usage.prompt_tokens or 0) * tier.input_price_per_1m / 1_000_000
        + (usage.completion_tokens or 0) * tier.output_price_per_1m / 1_000_000
    )
    return round(cost, 6)
