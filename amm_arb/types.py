"""
Core data types for AMM cycle evaluation.

Tokens, pools and paths are static configuration loaded once at startup.
Quotes and opportunities are immutable value objects created fresh for each
evaluation and discarded afterwards.
"""

from dataclasses import dataclass, field
from decimal import ROUND_DOWN, Decimal, InvalidOperation
from typing import Any, Dict, FrozenSet, Iterator, Optional, Tuple, Union

from .exceptions import ConfigurationError, InvalidAmount
from .utils import timestamp_to_iso

HumanAmount = Union[Decimal, int, str]


@dataclass(frozen=True)
class Token:
    """
    An ERC-20 token known to the engine.

    Attributes:
        symbol: Ticker used in configuration and reports (e.g., "WETH")
        address: Checksum address of the token contract
        decimals: Number of decimals of the token's base unit
    """

    symbol: str
    address: str
    decimals: int = 18

    def to_base_units(self, amount: HumanAmount) -> int:
        """Convert a human amount (e.g., "1.5") to integer base units, rounding down."""
        value = to_decimal_amount(amount)
        scaled = value.scaleb(self.decimals)
        return int(scaled.to_integral_value(rounding=ROUND_DOWN))

    def from_base_units(self, amount: int) -> Decimal:
        """Convert integer base units back to a human amount."""
        return Decimal(amount).scaleb(-self.decimals)

    def __str__(self) -> str:
        return self.symbol


def to_decimal_amount(amount: HumanAmount) -> Decimal:
    """
    Parse a probe amount, rejecting negative and non-finite values.

    Raises:
        InvalidAmount: If the amount is negative, NaN, infinite or unparseable
    """
    if isinstance(amount, bool):
        raise InvalidAmount(f"Amount must be numeric: {amount!r}", amount=amount)
    try:
        value = amount if isinstance(amount, Decimal) else Decimal(str(amount))
    except (InvalidOperation, ValueError) as e:
        raise InvalidAmount(f"Amount is not a number: {amount!r}", amount=amount) from e
    if not value.is_finite():
        raise InvalidAmount(f"Amount must be finite: {amount}", amount=amount)
    if value < 0:
        raise InvalidAmount(f"Amount must be non-negative: {amount}", amount=amount)
    return value


@dataclass(frozen=True)
class Pool:
    """
    Snapshot of a constant-product liquidity pool.

    Reserves belong to the chain; a Pool only holds the last values read.
    Use with_reserves() to obtain a fresh snapshot instead of mutating.

    Attributes:
        name: Human-readable pool name (e.g., "WETH/DAI")
        address: Pair contract address
        token0: First token of the pair (pair contract order)
        token1: Second token of the pair
        reserve0: Reserve of token0 in base units
        reserve1: Reserve of token1 in base units
        fee: Fee as decimal fraction (e.g., 0.003 for 30 bps)
    """

    name: str
    address: str
    token0: Token
    token1: Token
    reserve0: int = 0
    reserve1: int = 0
    fee: Decimal = Decimal("0.003")

    @property
    def key(self) -> FrozenSet[str]:
        """Unordered pair of token addresses identifying the market."""
        return pool_key(self.token0, self.token1)

    def reserves_for(self, token_in: Token, token_out: Token) -> Tuple[int, int]:
        """
        Orient reserves for a swap of token_in into token_out.

        Returns:
            Tuple of (reserve_in, reserve_out)

        Raises:
            KeyError: If the pool does not trade this pair
        """
        if (token_in.address, token_out.address) == (
            self.token0.address,
            self.token1.address,
        ):
            return self.reserve0, self.reserve1
        if (token_in.address, token_out.address) == (
            self.token1.address,
            self.token0.address,
        ):
            return self.reserve1, self.reserve0
        raise KeyError(f"Pool {self.name} does not trade {token_in} -> {token_out}")

    def with_reserves(self, reserve0: int, reserve1: int) -> "Pool":
        return Pool(
            name=self.name,
            address=self.address,
            token0=self.token0,
            token1=self.token1,
            reserve0=reserve0,
            reserve1=reserve1,
            fee=self.fee,
        )

    def after_swap(self, token_in: Token, amount_in: int, amount_out: int) -> "Pool":
        """
        Snapshot after a swap executed against this pool.

        The whole input (fee included) stays in the pool, as on a V2 pair.
        """
        if token_in.address == self.token0.address:
            return self.with_reserves(self.reserve0 + amount_in, self.reserve1 - amount_out)
        if token_in.address == self.token1.address:
            return self.with_reserves(self.reserve0 - amount_out, self.reserve1 + amount_in)
        raise KeyError(f"Pool {self.name} does not trade {token_in}")


def pool_key(token_a: Token, token_b: Token) -> FrozenSet[str]:
    return frozenset((token_a.address, token_b.address))


@dataclass(frozen=True)
class Path:
    """
    Ordered sequence of tokens describing hops token[i] -> token[i+1].

    A path is a cycle when its first and last token are identical.
    """

    tokens: Tuple[Token, ...]

    def __post_init__(self):
        # Accept any sequence but store a tuple so the path stays hashable
        object.__setattr__(self, "tokens", tuple(self.tokens))
        if len(self.tokens) < 2:
            raise ConfigurationError(
                f"Path needs at least 2 tokens, got {len(self.tokens)}",
                {"tokens": [t.symbol for t in self.tokens]},
            )
        for a, b in zip(self.tokens, self.tokens[1:]):
            if a.address == b.address:
                raise ConfigurationError(
                    f"Path hop swaps {a.symbol} into itself",
                    {"tokens": [t.symbol for t in self.tokens]},
                )

    @property
    def start(self) -> Token:
        return self.tokens[0]

    @property
    def end(self) -> Token:
        return self.tokens[-1]

    @property
    def is_cycle(self) -> bool:
        return self.start.address == self.end.address

    @property
    def hops(self) -> Iterator[Tuple[Token, Token]]:
        return zip(self.tokens, self.tokens[1:])

    @property
    def label(self) -> str:
        return " -> ".join(t.symbol for t in self.tokens)

    def reversed(self) -> "Path":
        return Path(tuple(reversed(self.tokens)))

    def __str__(self) -> str:
        return self.label


@dataclass(frozen=True)
class Quote:
    """
    Result of quoting a path for one input amount.

    Attributes:
        path: Path that was quoted
        amount_in: Input amount in base units of path.start
        hop_amounts: Input followed by each hop's output, like getAmountsOut
    """

    path: Path
    amount_in: int
    hop_amounts: Tuple[int, ...]

    @property
    def amount_out(self) -> int:
        return self.hop_amounts[-1]


@dataclass(frozen=True)
class Opportunity:
    """
    Evaluation of a path: the raw quote plus profit and ROI when defined.

    profit and roi are None for one-way paths, where input and output are
    denominated in different tokens.
    """

    quote: Quote
    profit: Optional[int] = None
    roi: Optional[Decimal] = None

    @property
    def path(self) -> Path:
        return self.quote.path

    @property
    def amount_in(self) -> int:
        return self.quote.amount_in

    @property
    def amount_out(self) -> int:
        return self.quote.amount_out

    @property
    def is_cycle(self) -> bool:
        return self.profit is not None

    @property
    def is_profitable(self) -> bool:
        """Strictly positive profit; ROI never gates profitability."""
        return self.profit is not None and self.profit > 0

    @property
    def roi_pct(self) -> Optional[Decimal]:
        return None if self.roi is None else self.roi * Decimal("100")


@dataclass(frozen=True)
class OpportunityRecord:
    """Structured record emitted to reporting sinks."""

    opportunity: Opportunity
    timestamp: float
    tick: int = 0
    extra: Dict[str, Any] = field(default_factory=dict, compare=False)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        opp = self.opportunity
        token = opp.path.start
        return {
            "path": [t.symbol for t in opp.path.tokens],
            "input_token": token.symbol,
            "input_amount": str(opp.amount_in),
            "output_amount": str(opp.amount_out),
            "profit": None if opp.profit is None else str(opp.profit),
            "roi": None if opp.roi is None else float(opp.roi),
            "roi_pct": None if opp.roi_pct is None else float(opp.roi_pct),
            "hop_amounts": [str(a) for a in opp.quote.hop_amounts],
            "tick": self.tick,
            "timestamp": timestamp_to_iso(self.timestamp),
            **self.extra,
        }
