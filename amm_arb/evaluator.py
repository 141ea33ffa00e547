"""
Cycle evaluator: composes per-hop quotes into a full-path quote.

The evaluator is a pure decision function apart from its calls into the
quote source. It never retries; a failed hop aborts the whole evaluation.
"""

from typing import Protocol, runtime_checkable

from .adapters.v2 import check_amount
from .exceptions import InvalidAmount, InvalidPoolState, QuoteUnavailable
from .opportunity_math import compute_profit
from .types import Opportunity, Path, Quote, Token
from .utils import get_logger

logger = get_logger(__name__)


@runtime_checkable
class QuoteSource(Protocol):
    """Anything that can quote a single hop."""

    async def quote(self, token_in: Token, token_out: Token, amount_in: int) -> int:
        """Return the output amount (base units) for swapping amount_in."""
        ...


class CycleEvaluator:
    """Evaluates paths against a single quote source."""

    def __init__(self, quote_source: QuoteSource):
        self.quote_source = quote_source

    async def evaluate(self, path: Path, amount_in: int) -> Opportunity:
        """
        Quote every hop of a path in order and compute profit for cycles.

        Hop i+1 is always fed with hop i's output; no hop is skipped or
        reordered.

        Args:
            path: Path to evaluate
            amount_in: Input amount in base units of path.start

        Returns:
            Opportunity; profit and roi are None when path is not a cycle

        Raises:
            InvalidAmount: If amount_in is not a non-negative integer
            InvalidPoolState: If a simulated pool has invalid reserves or fee
            QuoteUnavailable: If any hop could not be quoted (hop_index is set)
        """
        check_amount(amount_in)

        amounts = [amount_in]
        amount = amount_in
        for i, (token_in, token_out) in enumerate(path.hops):
            amount = await self._quote_hop(i, token_in, token_out, amount)
            logger.debug(f"{path.label} hop {i}: {token_in} -> {token_out} = {amount}")
            amounts.append(amount)

        quote = Quote(path=path, amount_in=amount_in, hop_amounts=tuple(amounts))
        if not path.is_cycle:
            return Opportunity(quote=quote)

        profit, roi = compute_profit(amount_in, quote.amount_out)
        return Opportunity(quote=quote, profit=profit, roi=roi)

    async def _quote_hop(
        self, index: int, token_in: Token, token_out: Token, amount: int
    ) -> int:
        try:
            amount_out = await self.quote_source.quote(token_in, token_out, amount)
        except (InvalidPoolState, InvalidAmount):
            raise
        except QuoteUnavailable as e:
            raise QuoteUnavailable(
                f"Hop {index} ({token_in} -> {token_out}) unavailable: {e}",
                hop_index=index,
                token_in=token_in.symbol,
                token_out=token_out.symbol,
                details=e.details,
                retriable=e.retriable,
            ) from e
        except Exception as e:
            raise QuoteUnavailable(
                f"Hop {index} ({token_in} -> {token_out}) failed: {e}",
                hop_index=index,
                token_in=token_in.symbol,
                token_out=token_out.symbol,
            ) from e

        if isinstance(amount_out, bool) or not isinstance(amount_out, int) or amount_out < 0:
            raise QuoteUnavailable(
                f"Hop {index} ({token_in} -> {token_out}) returned invalid amount {amount_out!r}",
                hop_index=index,
                token_in=token_in.symbol,
                token_out=token_out.symbol,
            )
        return amount_out


async def evaluate(path: Path, amount_in: int, quote_source: QuoteSource) -> Opportunity:
    """Convenience wrapper: evaluate one path against a quote source."""
    return await CycleEvaluator(quote_source).evaluate(path, amount_in)
