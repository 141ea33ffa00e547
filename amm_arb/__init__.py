"""
AMM Cycle Arbitrage Engine.

Evaluates multi-hop trade cycles across constant-product liquidity pools,
composes per-hop quotes into a full-cycle quote and reports cycles that are
profitable net of trading fees and price impact.
"""

PROJECT_NAME = "amm-cycle-arbitrage"

from amm_arb.evaluator import CycleEvaluator, QuoteSource, evaluate
from amm_arb.exceptions import (
    AmmArbitrageError,
    ConfigurationError,
    IncompleteCycle,
    InvalidAmount,
    InvalidPoolState,
    QuoteUnavailable,
)
from amm_arb.monitor import OpportunityMonitor, TickSummary
from amm_arb.types import Opportunity, OpportunityRecord, Path, Pool, Quote, Token
from amm_arb.version import __version__

__all__ = [
    "PROJECT_NAME",
    "__version__",
    "AmmArbitrageError",
    "ConfigurationError",
    "CycleEvaluator",
    "IncompleteCycle",
    "InvalidAmount",
    "InvalidPoolState",
    "Opportunity",
    "OpportunityMonitor",
    "OpportunityRecord",
    "Path",
    "Pool",
    "Quote",
    "QuoteSource",
    "QuoteUnavailable",
    "TickSummary",
    "Token",
    "evaluate",
]
