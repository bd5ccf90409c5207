"""
Token cost accounting with prompt-cache pricing.

Cache writes are billed at 125% of the input rate and cache reads at
10%. The savings figure is what the cache reads would have cost at the
full input rate, minus what they actually cost.
"""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict

from doclens.app.schemas.usage import ModelPricing, RawUsage, TokenUsage


CACHE_WRITE_MULTIPLIER = 1.25
CACHE_READ_MULTIPLIER = 0.10

_PER_MILLION = 1_000_000


class CostBreakdown(BaseModel):
    input_cost: float
    output_cost: float
    cache_write_cost: float
    cache_read_cost: float
    cache_savings: float

    model_config = ConfigDict(
        frozen=True,
        extra="forbid",
    )

    @property
    def total(self) -> float:
        return (
            self.input_cost
            + self.output_cost
            + self.cache_write_cost
            + self.cache_read_cost
        )


def cost_breakdown(usage: RawUsage, pricing: ModelPricing) -> CostBreakdown:
    input_price = pricing.input_per_million

    cache_read_cost = (
        usage.cache_read_tokens / _PER_MILLION * input_price * CACHE_READ_MULTIPLIER
    )

    return CostBreakdown(
        input_cost=usage.input_tokens / _PER_MILLION * input_price,
        output_cost=(
            usage.output_tokens / _PER_MILLION * pricing.output_per_million
        ),
        cache_write_cost=(
            usage.cache_write_tokens / _PER_MILLION * input_price
            * CACHE_WRITE_MULTIPLIER
        ),
        cache_read_cost=cache_read_cost,
        cache_savings=(
            usage.cache_read_tokens / _PER_MILLION * input_price
            - cache_read_cost
        ),
    )


def compute_cost(usage: RawUsage, pricing: ModelPricing) -> TokenUsage:
    """
    Price one generator call.
    """
    breakdown = cost_breakdown(usage, pricing)
    return TokenUsage(
        input=usage.billed_input_tokens,
        output=usage.output_tokens,
        cost=breakdown.total,
        cache_savings=breakdown.cache_savings,
    )
