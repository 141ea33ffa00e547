"""
Exception hierarchy for the AMM cycle arbitrage engine.

Provides specific exception types for the failure categories the evaluator
and monitor distinguish between: bad pool data, bad amounts, unavailable
quotes and malformed configuration.
"""

from typing import Any, Dict, Optional


class AmmArbitrageError(Exception):
    """Base exception for all AMM arbitrage related errors."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.details = details or {}


class ConfigurationError(AmmArbitrageError):
    """Raised when there are configuration-related issues."""

    pass


class InvalidPoolState(AmmArbitrageError):
    """Raised when a pool has zero/negative reserves or an invalid fee.

    Non-retriable: the caller must refresh pool data.
    """

    def __init__(
        self,
        message: str,
        pool: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message, details)
        self.pool = pool


class InvalidAmount(AmmArbitrageError):
    """Raised for negative or non-finite input amounts."""

    def __init__(
        self,
        message: str,
        amount: Optional[Any] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message, details)
        self.amount = amount


class QuoteUnavailable(AmmArbitrageError):
    """Raised when a quote could not be obtained for a hop.

    Retriable at the monitor layer, never inside a single evaluation.
    retriable is False when the cause cannot clear before the next tick
    (no pool for the pair, reserves left stale by a failed refresh).
    """

    def __init__(
        self,
        message: str,
        hop_index: Optional[int] = None,
        token_in: Optional[str] = None,
        token_out: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
        retriable: bool = True,
    ):
        super().__init__(message, details)
        self.hop_index = hop_index
        self.token_in = token_in
        self.token_out = token_out
        self.retriable = retriable


class IncompleteCycle(AmmArbitrageError):
    """Raised where a cycle is required but the path starts and ends on different tokens."""

    def __init__(
        self,
        message: str,
        path: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message, details)
        self.path = path
