"""
Single source of truth for profit and ROI calculations.

Profit is an integer in base units of the cycle's start token. ROI is
always profit / input amount, never profit over a fixed reference size.
"""

from decimal import Decimal, getcontext
from typing import Tuple

from .types import Opportunity
from .utils import format_profit

getcontext().prec = 50


def bps_to_fraction(bps) -> Decimal:
    """Convert basis points to a fee fraction. 30 bps -> 0.003"""
    return Decimal(str(bps)) / Decimal("10000")


def compute_profit(amount_in: int, amount_out: int) -> Tuple[int, Decimal]:
    """
    Compute signed profit and ROI for a cycle.

    Args:
        amount_in: Input amount in base units
        amount_out: Output amount in base units of the same token

    Returns:
        Tuple of (profit, roi) where roi is a fraction (0.01 == 1%)
    """
    profit = amount_out - amount_in
    if amount_in == 0:
        return profit, Decimal(0)
    return profit, Decimal(profit) / Decimal(amount_in)


def passes_threshold(opportunity: Opportunity, min_profit_pct: Decimal) -> bool:
    """
    Decide whether an opportunity is worth reporting.

    Profit must be strictly positive; with a non-zero min_profit_pct the ROI
    percentage must also exceed it.
    """
    if not opportunity.is_profitable:
        return False
    if min_profit_pct <= 0:
        return True
    return opportunity.roi_pct > min_profit_pct


def format_opportunity(opportunity: Opportunity) -> str:
    """Format an opportunity for consistent logging in human units."""
    token = opportunity.path.start
    amount_in = token.from_base_units(opportunity.amount_in)
    amount_out = opportunity.path.end.from_base_units(opportunity.amount_out)

    line = f"{opportunity.path.label}: {amount_in:f} -> {amount_out:f}"
    if opportunity.profit is None:
        return f"{line} {opportunity.path.end.symbol} (one-way)"

    profit = token.from_base_units(opportunity.profit)
    return f"{line} {token.symbol} | profit {profit:f} {token.symbol} ({format_profit(opportunity.roi)})"
