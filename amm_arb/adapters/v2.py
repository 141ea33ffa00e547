"""
Uniswap V2 style adapter for constant-product AMM pools.

Implements local swap simulation using the x*y=k formula with the fee
embedded in the input amount, and reserve fetching from pair contracts.
All swap math runs on integer base units so results match the router's
own integer arithmetic instead of drifting through floating point.
"""

import asyncio
import time
from decimal import Decimal, InvalidOperation
from typing import Dict, FrozenSet, Iterable, List, Optional, Set, Tuple

from web3 import Web3
from web3.exceptions import Web3Exception

from ..abi import UNISWAP_V2_PAIR_ABI
from ..exceptions import ConfigurationError, InvalidAmount, InvalidPoolState, QuoteUnavailable
from ..types import Pool, Token, pool_key
from ..utils import get_logger

logger = get_logger(__name__)

# Fees are applied in parts-per-million so 0.30% becomes 997000/1000000,
# numerically identical to the router's 997/1000.
FEE_DENOMINATOR = 1_000_000

DEFAULT_FEE = Decimal("0.003")


def fee_to_ppm(fee_rate) -> int:
    """
    Convert a fee fraction (e.g., 0.003) to integer parts-per-million.

    Raises:
        InvalidPoolState: If the fee is outside [0, 1) or finer than 1 ppm
    """
    try:
        fee = fee_rate if isinstance(fee_rate, Decimal) else Decimal(str(fee_rate))
    except (InvalidOperation, ValueError) as e:
        raise InvalidPoolState(f"Fee is not a number: {fee_rate!r}") from e

    if not fee.is_finite() or fee < 0 or fee >= 1:
        raise InvalidPoolState(f"Fee must be in [0, 1): {fee_rate}")

    scaled = fee * FEE_DENOMINATOR
    if scaled != scaled.to_integral_value():
        raise InvalidPoolState(f"Fee {fee_rate} is not a whole number of ppm")
    return int(scaled)


def _check_reserves(reserve_in: int, reserve_out: int) -> None:
    for value in (reserve_in, reserve_out):
        if isinstance(value, bool) or not isinstance(value, int):
            raise InvalidPoolState(f"Reserves must be integers: {value!r}")
    if reserve_in <= 0 or reserve_out <= 0:
        raise InvalidPoolState(
            f"Reserves must be positive: in={reserve_in}, out={reserve_out}"
        )


def check_amount(amount: int) -> None:
    """Reject amounts that are not non-negative integers of base units."""
    if isinstance(amount, bool) or not isinstance(amount, int):
        raise InvalidAmount(f"Amount must be an integer of base units: {amount!r}", amount=amount)
    if amount < 0:
        raise InvalidAmount(f"Amount must be non-negative: {amount}", amount=amount)


def quote_out(
    reserve_in: int, reserve_out: int, amount_in: int, fee_rate=DEFAULT_FEE
) -> int:
    """
    Calculate output amount for a V2 swap using constant-product formula.

    Formula (with fee embedded):
        amountInWithFee = amountIn * (1 - fee)
        amountOut = (amountInWithFee * reserveOut) / (reserveIn + amountInWithFee)

    Both sides are scaled by FEE_DENOMINATOR and the division floors, as the
    router does.

    Args:
        reserve_in: Reserve of input token (base units)
        reserve_out: Reserve of output token (base units)
        amount_in: Input token amount (base units)
        fee_rate: Fee as fraction (e.g., 0.003 for 30 bps); 0 models a fee-free swap

    Returns:
        Output token amount (base units), always strictly below reserve_out

    Raises:
        InvalidPoolState: If reserves are not positive or the fee is invalid
        InvalidAmount: If amount_in is negative or not an integer
    """
    _check_reserves(reserve_in, reserve_out)
    check_amount(amount_in)
    fee_ppm = fee_to_ppm(fee_rate)

    if amount_in == 0:
        return 0

    amount_in_with_fee = amount_in * (FEE_DENOMINATOR - fee_ppm)
    numerator = amount_in_with_fee * reserve_out
    denominator = reserve_in * FEE_DENOMINATOR + amount_in_with_fee
    return numerator // denominator


def quote_in(
    reserve_in: int, reserve_out: int, amount_out: int, fee_rate=DEFAULT_FEE
) -> int:
    """
    Calculate the input required to receive amount_out (router getAmountIn).

    Rounds up so that quote_out(quote_in(x)) >= x.

    Raises:
        InvalidPoolState: If reserves are not positive or the fee is invalid
        InvalidAmount: If amount_out is negative or would drain the pool
    """
    _check_reserves(reserve_in, reserve_out)
    check_amount(amount_out)
    fee_ppm = fee_to_ppm(fee_rate)

    if amount_out == 0:
        return 0
    if amount_out >= reserve_out:
        raise InvalidAmount(
            f"Requested {amount_out} exceeds available reserve {reserve_out}",
            amount=amount_out,
        )

    numerator = reserve_in * amount_out * FEE_DENOMINATOR
    denominator = (reserve_out - amount_out) * (FEE_DENOMINATOR - fee_ppm)
    return numerator // denominator + 1


def price_impact(reserve_in: int, reserve_out: int, amount_in: int) -> Decimal:
    """
    Fraction of the spot rate lost to slippage alone (fee excluded).

    Returns:
        Decimal in [0, 1); 0 for an empty trade
    """
    executed = quote_out(reserve_in, reserve_out, amount_in, fee_rate=0)
    if amount_in == 0:
        return Decimal(0)
    spot = Decimal(reserve_out) / Decimal(reserve_in)
    rate = Decimal(executed) / Decimal(amount_in)
    return Decimal(1) - rate / spot


class ReserveQuoteSource:
    """
    Quote source that simulates swaps over supplied pool reserves.

    With zero_fee=True every hop is priced with fee 0 through the same
    quote_out call, modelling a fee-free execution path.
    """

    def __init__(self, pools: Iterable[Pool], zero_fee: bool = False):
        self.zero_fee = zero_fee
        self._pools: Dict[FrozenSet[str], Pool] = {}
        for pool in pools:
            if pool.key in self._pools:
                raise ConfigurationError(
                    f"Duplicate pool for pair {pool.token0}/{pool.token1}: "
                    f"{self._pools[pool.key].name} and {pool.name}"
                )
            self._pools[pool.key] = pool

    @property
    def pools(self) -> List[Pool]:
        return list(self._pools.values())

    def pool_for(self, token_in: Token, token_out: Token) -> Pool:
        pool = self._pools.get(pool_key(token_in, token_out))
        if pool is None:
            raise QuoteUnavailable(
                f"No pool configured for {token_in} -> {token_out}",
                token_in=token_in.symbol,
                token_out=token_out.symbol,
                retriable=False,
            )
        return pool

    def update_pool(self, pool: Pool) -> None:
        """Replace the snapshot for a pool's pair with fresh reserves."""
        self._pools[pool.key] = pool

    def validate(self) -> None:
        """
        Check every pool snapshot before monitoring starts.

        Raises:
            InvalidPoolState: If a pool has non-positive reserves or a bad fee
        """
        for pool in self._pools.values():
            try:
                _check_reserves(pool.reserve0, pool.reserve1)
                fee_to_ppm(pool.fee)
            except InvalidPoolState as e:
                raise InvalidPoolState(f"Pool {pool.name}: {e}", pool=pool.name) from e

    def quote_sync(self, token_in: Token, token_out: Token, amount_in: int) -> int:
        pool = self.pool_for(token_in, token_out)
        reserve_in, reserve_out = pool.reserves_for(token_in, token_out)
        fee = Decimal(0) if self.zero_fee else pool.fee
        try:
            return quote_out(reserve_in, reserve_out, amount_in, fee)
        except InvalidPoolState as e:
            raise InvalidPoolState(f"Pool {pool.name}: {e}", pool=pool.name) from e

    async def quote(self, token_in: Token, token_out: Token, amount_in: int) -> int:
        return self.quote_sync(token_in, token_out, amount_in)


def fetch_pool(
    web3: Web3, pair_addr: str, max_retries: int = 3
) -> Tuple[str, str, int, int]:
    """
    Fetch token addresses and reserves from a Uniswap V2 style pair.

    Args:
        web3: Web3 instance connected to the chain
        pair_addr: Checksummed address of the pair contract
        max_retries: Maximum number of attempts on rate-limit errors (default: 3)

    Returns:
        Tuple of (token0_addr, token1_addr, reserve0, reserve1)

    Raises:
        Web3Exception: If RPC calls fail after all retries
        ValueError: If pair address is invalid
    """
    if not Web3.is_checksum_address(pair_addr):
        raise ValueError(f"Invalid pair address: {pair_addr}")

    pair = web3.eth.contract(address=pair_addr, abi=UNISWAP_V2_PAIR_ABI)

    last_error = None
    for attempt in range(max_retries):
        try:
            token0 = pair.functions.token0().call()
            token1 = pair.functions.token1().call()
            reserves = pair.functions.getReserves().call()

            return (
                Web3.to_checksum_address(token0),
                Web3.to_checksum_address(token1),
                int(reserves[0]),
                int(reserves[1]),
            )
        except Exception as e:
            last_error = e
            if _is_rate_limit(e) and attempt < max_retries - 1:
                # Exponential backoff: 1s, 2s, 4s
                time.sleep(2**attempt)
                continue
            raise Web3Exception(f"Failed to fetch pool {pair_addr}: {e}") from e

    raise Web3Exception(
        f"Failed to fetch pool {pair_addr} after {max_retries} retries: {last_error}"
    ) from last_error


async def fetch_pool_async(
    web3: Web3, pair_addr: str, max_retries: int = 3
) -> Tuple[str, str, int, int]:
    """
    Async version of fetch_pool.

    Runs the synchronous RPC calls in the default thread pool so the event
    loop keeps serving other evaluations while the request is in flight.
    """
    loop = asyncio.get_running_loop()
    return await loop.run_in_executor(None, fetch_pool, web3, pair_addr, max_retries)


def _is_rate_limit(error: Exception) -> bool:
    error_msg = str(error)
    return (
        "429" in error_msg
        or "Too Many Requests" in error_msg
        or "-32005" in error_msg
        or "limit exceeded" in error_msg.lower()
    )


class PairReserveQuoteSource(ReserveQuoteSource):
    """
    Simulator quote source whose reserves are re-read from the pair
    contracts at the start of every monitoring tick.

    A pair that fails to refresh is marked stale and any hop through it
    raises QuoteUnavailable until the next successful refresh.
    """

    def __init__(
        self,
        web3: Web3,
        pools: Iterable[Pool],
        zero_fee: bool = False,
        max_concurrency: int = 5,
    ):
        super().__init__(pools, zero_fee=zero_fee)
        self.web3 = web3
        self.max_concurrency = max_concurrency
        self._stale: Set[FrozenSet[str]] = set(self._pools)

    def validate(self) -> None:
        """Reserves are unknown until the first refresh; only fees are checked."""
        for pool in self._pools.values():
            try:
                fee_to_ppm(pool.fee)
            except InvalidPoolState as e:
                raise InvalidPoolState(f"Pool {pool.name}: {e}", pool=pool.name) from e

    def pool_for(self, token_in: Token, token_out: Token) -> Pool:
        pool = super().pool_for(token_in, token_out)
        if pool.key in self._stale:
            raise QuoteUnavailable(
                f"Reserves for {pool.name} are stale (last refresh failed)",
                token_in=token_in.symbol,
                token_out=token_out.symbol,
                retriable=False,
            )
        return pool

    async def refresh(self) -> int:
        """
        Re-read reserves of every pair concurrently.

        Returns:
            Number of pools refreshed successfully

        Raises:
            InvalidPoolState: If a pair contract trades other tokens than the
                pool configured at its address
        """
        semaphore = asyncio.Semaphore(self.max_concurrency)

        async def fetch_one(pool: Pool) -> Optional[Tuple[str, str, int, int]]:
            async with semaphore:
                try:
                    return await fetch_pool_async(self.web3, pool.address)
                except (Web3Exception, ValueError) as e:
                    logger.warning(f"Failed to refresh {pool.name}: {e}")
                    return None

        pools = list(self._pools.values())
        results = await asyncio.gather(*[fetch_one(pool) for pool in pools])

        for pool, fetched in zip(pools, results):
            if fetched is not None and frozenset(fetched[:2]) != pool.key:
                raise InvalidPoolState(
                    f"Pair {pool.address} configured as {pool.name} trades "
                    f"{fetched[0]}/{fetched[1]}",
                    pool=pool.name,
                )

        refreshed = 0
        for pool, fetched in zip(pools, results):
            if fetched is None:
                self._stale.add(pool.key)
                continue
            token0, _, r0, r1 = fetched
            # Pair contracts order tokens by address, which may differ from config
            if token0 == pool.token0.address:
                self.update_pool(pool.with_reserves(r0, r1))
            else:
                self.update_pool(pool.with_reserves(r1, r0))
            self._stale.discard(pool.key)
            refreshed += 1

        if refreshed < len(pools):
            logger.debug(f"Refreshed {refreshed}/{len(pools)} pools")
        return refreshed
