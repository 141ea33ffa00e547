"""Tests for price-gap and slippage analysis (amm_arb/analysis.py)."""

from decimal import Decimal

import pytest

from amm_arb.adapters.v2 import ReserveQuoteSource
from amm_arb.analysis import PriceGap, price_gap, slippage_profile
from amm_arb.evaluator import CycleEvaluator
from amm_arb.exceptions import InvalidAmount, QuoteUnavailable
from amm_arb.types import Path


class TestPriceGap:
    @pytest.mark.asyncio
    async def test_fees_open_a_gap(self, tokens, make_pool):
        a, b = tokens["A"], tokens["B"]
        source = ReserveQuoteSource([make_pool(a, b, 1000, 2000)])

        gap = await price_gap(source, a, b, "1")

        assert Decimal("1.98") < gap.forward_rate < Decimal("2")
        assert Decimal("0.49") < gap.reverse_rate < Decimal("0.5")
        # Paying the fee twice: the reverse leg returns less than 1/forward
        assert gap.reverse_rate < gap.theoretical_reverse_rate
        assert gap.gap_pct < 0
        assert "gap" in gap.format()

    @pytest.mark.asyncio
    async def test_no_gap_without_fees(self, tokens, make_pool):
        a, b = tokens["A"], tokens["B"]
        source = ReserveQuoteSource([make_pool(a, b, 1_000_000, 2_000_000)], zero_fee=True)

        gap = await price_gap(source, a, b, "0.001")

        assert abs(gap.gap_pct) < Decimal("0.001")

    @pytest.mark.asyncio
    async def test_zero_probe_rejected(self, tokens, make_pool):
        a, b = tokens["A"], tokens["B"]
        source = ReserveQuoteSource([make_pool(a, b, 1000, 2000)])

        with pytest.raises(InvalidAmount):
            await price_gap(source, a, b, 0)

    @pytest.mark.asyncio
    async def test_missing_pool(self, tokens, make_pool):
        source = ReserveQuoteSource([make_pool(tokens["A"], tokens["B"], 1000, 2000)])

        with pytest.raises(QuoteUnavailable):
            await price_gap(source, tokens["A"], tokens["C"])

    def test_zero_forward_rate(self, tokens):
        gap = PriceGap(tokens["A"], tokens["B"], Decimal(1), Decimal(0), Decimal(0))
        assert gap.theoretical_reverse_rate == 0
        assert gap.gap_pct == 0


class TestSlippageProfile:
    @pytest.mark.asyncio
    async def test_roi_falls_with_size(self, tokens, skewed_pools):
        a, b, c = tokens["A"], tokens["B"], tokens["C"]
        evaluator = CycleEvaluator(ReserveQuoteSource(skewed_pools))

        rows = await slippage_profile(evaluator, Path((a, b, c, a)), ["100", "10000", "100000"])

        assert [size for size, _ in rows] == [Decimal("100"), Decimal("10000"), Decimal("100000")]
        rois = [opp.roi for _, opp in rows]
        assert rois == sorted(rois, reverse=True)
        assert rows[0][1].is_profitable
        assert not rows[-1][1].is_profitable

    @pytest.mark.asyncio
    async def test_failed_sizes_are_skipped(self, tokens, skewed_pools):
        a, d = tokens["A"], tokens["D"]
        evaluator = CycleEvaluator(ReserveQuoteSource(skewed_pools))

        assert await slippage_profile(evaluator, Path((a, d, a)), ["1", "10"]) == []
