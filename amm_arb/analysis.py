"""
Price-gap and slippage analysis over a quote source.

price_gap() compares the quoted rate A -> B against the inverse of the
quoted rate B -> A for the same probe size. slippage_profile() evaluates a
cycle at increasing sizes to show how price impact erodes ROI.
"""

from dataclasses import dataclass
from decimal import Decimal
from typing import List, Sequence, Tuple

from .evaluator import CycleEvaluator, QuoteSource
from .exceptions import InvalidAmount, InvalidPoolState, QuoteUnavailable
from .types import HumanAmount, Opportunity, Path, Token, to_decimal_amount
from .utils import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class PriceGap:
    """
    Forward and reverse rates for one token pair at one probe size.

    Rates are in human units: forward_rate is B received per A spent,
    reverse_rate is A received per B spent.
    """

    token_a: Token
    token_b: Token
    probe_amount: Decimal
    forward_rate: Decimal
    reverse_rate: Decimal

    @property
    def theoretical_reverse_rate(self) -> Decimal:
        """Reverse rate implied by the forward rate (1 / forward_rate)."""
        if self.forward_rate == 0:
            return Decimal(0)
        return Decimal(1) / self.forward_rate

    @property
    def gap_pct(self) -> Decimal:
        """Percentage by which the actual reverse rate deviates from the implied one."""
        theoretical = self.theoretical_reverse_rate
        if theoretical == 0:
            return Decimal(0)
        return (self.reverse_rate - theoretical) / theoretical * Decimal(100)

    def format(self) -> str:
        a, b = self.token_a.symbol, self.token_b.symbol
        return (
            f"{a} -> {b}: 1 {a} = {self.forward_rate:.6f} {b} | "
            f"{b} -> {a}: 1 {b} = {self.reverse_rate:.6f} {a} | "
            f"implied {self.theoretical_reverse_rate:.6f} {a} | "
            f"gap {self.gap_pct:.2f}%"
        )


async def price_gap(
    quote_source: QuoteSource,
    token_a: Token,
    token_b: Token,
    probe_amount: HumanAmount = Decimal("1"),
) -> PriceGap:
    """
    Quote A -> B and B -> A with the same probe size.

    Raises:
        InvalidAmount: If the probe amount is zero, negative or non-finite
        QuoteUnavailable: If either direction cannot be quoted
    """
    probe = to_decimal_amount(probe_amount)
    if probe == 0:
        raise InvalidAmount("Probe amount must be positive", amount=probe_amount)

    evaluator = CycleEvaluator(quote_source)
    forward = await evaluator.evaluate(
        Path((token_a, token_b)), token_a.to_base_units(probe)
    )
    reverse = await evaluator.evaluate(
        Path((token_b, token_a)), token_b.to_base_units(probe)
    )

    return PriceGap(
        token_a=token_a,
        token_b=token_b,
        probe_amount=probe,
        forward_rate=token_b.from_base_units(forward.amount_out) / probe,
        reverse_rate=token_a.from_base_units(reverse.amount_out) / probe,
    )


async def slippage_profile(
    evaluator: CycleEvaluator, path: Path, amounts: Sequence[HumanAmount]
) -> List[Tuple[Decimal, Opportunity]]:
    """
    Evaluate a path at each probe size, sequentially and in the given order.

    Sizes whose quote fails are logged and left out of the result.
    """
    rows: List[Tuple[Decimal, Opportunity]] = []
    for amount in amounts:
        human = to_decimal_amount(amount)
        try:
            opportunity = await evaluator.evaluate(path, path.start.to_base_units(human))
        except (QuoteUnavailable, InvalidPoolState) as e:
            logger.warning(f"{path.label} @ {human}: {e}")
            continue
        rows.append((human, opportunity))
    return rows
