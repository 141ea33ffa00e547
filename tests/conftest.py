"""Shared fixtures for the cycle evaluation tests."""

from decimal import Decimal

import pytest

from amm_arb.types import Pool, Token

E18 = 10**18


def address(n: int) -> str:
    """Deterministic digits-only address (valid checksum form)."""
    return "0x" + str(n).rjust(40, "0")


@pytest.fixture
def tokens():
    return {
        "A": Token("A", address(1), 18),
        "B": Token("B", address(2), 18),
        "C": Token("C", address(3), 18),
        "D": Token("D", address(4), 18),
    }


@pytest.fixture
def make_pool():
    """Factory for pools with reserves given in whole tokens (18 decimals)."""

    def _make(token0, token1, reserve0, reserve1, fee="0.003", name=None):
        return Pool(
            name=name or f"{token0.symbol}/{token1.symbol}",
            address=address(100 + int(token0.address, 16) * 10 + int(token1.address, 16)),
            token0=token0,
            token1=token1,
            reserve0=int(Decimal(reserve0) * E18),
            reserve1=int(Decimal(reserve1) * E18),
            fee=Decimal(fee),
        )

    return _make


@pytest.fixture
def skewed_pools(tokens, make_pool):
    """A -> B -> C -> A where C/A is priced 3% above parity."""
    a, b, c = tokens["A"], tokens["B"], tokens["C"]
    return [
        make_pool(a, b, 1_000_000, 1_000_000),
        make_pool(b, c, 1_000_000, 1_000_000),
        make_pool(c, a, 1_000_000, 1_030_000),
    ]
