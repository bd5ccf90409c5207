import pytest

from doclens.app.generation.cost import compute_cost, cost_breakdown
from doclens.app.schemas.usage import ModelPricing, RawUsage, TokenUsage


PRICING = ModelPricing(input_per_million=3.0, output_per_million=15.0)


def test_cache_pricing_example():
    usage = RawUsage(
        input_tokens=1000,
        output_tokens=500,
        cache_write_tokens=2000,
        cache_read_tokens=10000,
    )

    breakdown = cost_breakdown(usage, PRICING)

    assert breakdown.input_cost == pytest.approx(0.003)
    assert breakdown.output_cost == pytest.approx(0.0075)
    assert breakdown.cache_write_cost == pytest.approx(0.0075)
    assert breakdown.cache_read_cost == pytest.approx(0.003)
    assert breakdown.cache_savings == pytest.approx(0.027)

    priced = compute_cost(usage, PRICING)
    assert priced.input == 13000
    assert priced.output == 500
    assert priced.cost == pytest.approx(0.021)
    assert priced.cache_savings == pytest.approx(0.027)


def test_no_cache_means_no_savings():
    priced = compute_cost(
        RawUsage(input_tokens=2_000_000, output_tokens=1_000_000),
        PRICING,
    )

    assert priced.cost == pytest.approx(6.0 + 15.0)
    assert priced.cache_savings == 0.0


def test_usage_addition_is_pointwise():
    a = TokenUsage(input=10, output=5, cost=0.5, cache_savings=0.1)
    b = TokenUsage(input=1, output=2, cost=0.25, cache_savings=0.0)

    total = TokenUsage.total([a, b, TokenUsage.zero()])

    assert total.input == 11
    assert total.output == 7
    assert total.cost == pytest.approx(0.75)
    assert total.cache_savings == pytest.approx(0.1)


def test_raw_usage_rejects_negative_counts():
    with pytest.raises(ValueError):
        RawUsage(input_tokens=-1)
