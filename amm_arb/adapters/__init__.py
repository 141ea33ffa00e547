"""
Quote sources for different AMM backends.
"""

from .router import RouterQuoteSource, connect, fetch_token
from .v2 import (
    PairReserveQuoteSource,
    ReserveQuoteSource,
    fetch_pool,
    price_impact,
    quote_in,
    quote_out,
)

__all__ = [
    "PairReserveQuoteSource",
    "ReserveQuoteSource",
    "RouterQuoteSource",
    "connect",
    "fetch_pool",
    "fetch_token",
    "price_impact",
    "quote_in",
    "quote_out",
]
