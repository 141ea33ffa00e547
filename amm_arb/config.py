"""
Configuration loading and validation for the cycle monitor.
"""

import os
from decimal import Decimal, InvalidOperation
from typing import Any, Callable, Dict, List, Optional

import yaml
from web3 import Web3

from .exceptions import ConfigurationError, InvalidAmount
from .opportunity_math import bps_to_fraction
from .types import Path, Pool, Token, to_decimal_amount

QUOTE_MODES = ("router", "reserves", "static")

TokenFetcher = Callable[[str, str], Token]


class ConfigError(ConfigurationError):
    """Raised when config is invalid or missing required fields."""

    pass


class ArbConfig:
    """
    Parsed and validated configuration for the cycle monitor.

    Attributes:
        rpc_url: HTTP(S) RPC endpoint (falls back to $RPC_URL)
        fallback_rpcs: Extra endpoints tried in order if rpc_url fails
        router_address: Router used for getAmountsOut in "router" mode
        quote_mode: "router" (live router quotes), "reserves" (live pair
            reserves + local simulation) or "static" (configured reserves)
        zero_fee: Price every hop with fee 0 (simulation modes only)
        poll_sec: Seconds between ticks
        once: If True, run a single tick and exit
        min_profit_pct: Minimum ROI percent to report (0 = any profit)
        amounts: Probe sizes in human units of each cycle's start token
        max_concurrency: Evaluations in flight per tick
        quote_retries: Retries per probe after QuoteUnavailable
        retry_backoff_sec: First retry delay (doubles per attempt)
        include_reverse: Also monitor every cycle in reverse direction
        default_fee_bps: Pool fee when a pool omits fee_bps (30 = 0.30%)
        tokens: Dict of {symbol -> {address, decimals}}
        pools: List of pool dicts
        cycles: List of token symbol lists
    """

    def __init__(self, config_dict: Dict[str, Any]):
        """
        Parse and validate config from dictionary.

        Args:
            config_dict: Loaded YAML config

        Raises:
            ConfigError: If required fields missing or invalid
        """
        self.quote_mode: str = config_dict.get("quote_mode", "router")
        if self.quote_mode not in QUOTE_MODES:
            raise ConfigError(
                f"quote_mode '{self.quote_mode}' must be one of {', '.join(QUOTE_MODES)}"
            )

        # RPC settings
        self.rpc_url: Optional[str] = config_dict.get("rpc_url") or os.getenv("RPC_URL")
        if self.quote_mode != "static" and not self.rpc_url:
            raise ConfigError(
                "Missing required config field: rpc_url (or RPC_URL environment variable)"
            )
        self.fallback_rpcs: List[str] = list(config_dict.get("fallback_rpcs", []))

        self.router_address: Optional[str] = config_dict.get("router_address")
        if self.quote_mode == "router":
            if not self.router_address:
                raise ConfigError("router_address is required when quote_mode is 'router'")
            self.router_address = self._checksum(self.router_address, "router_address")

        self.zero_fee: bool = bool(config_dict.get("zero_fee", False))
        if self.zero_fee and self.quote_mode == "router":
            raise ConfigError("zero_fee requires quote_mode 'reserves' or 'static'")

        # Loop settings
        self.poll_sec: float = self._get_number(config_dict, "poll_sec", 5)
        self.once: bool = bool(config_dict.get("once", False))
        self.max_concurrency: int = int(self._get_number(config_dict, "max_concurrency", 8))
        if self.max_concurrency < 1:
            raise ConfigError("max_concurrency must be at least 1")
        self.quote_retries: int = int(self._get_number(config_dict, "quote_retries", 2))
        self.retry_backoff_sec: float = self._get_number(
            config_dict, "retry_backoff_sec", 0.5
        )

        # Profitability
        self.min_profit_pct: Decimal = Decimal(
            str(self._get_number(config_dict, "min_profit_pct", 0))
        )
        self.amounts: List[Decimal] = self._parse_amounts(config_dict.get("amounts"))
        self.include_reverse: bool = bool(config_dict.get("include_reverse", False))

        # Pools and paths
        self.default_fee_bps: int = int(self._get_number(config_dict, "default_fee_bps", 30))
        self.tokens: Dict[str, Dict[str, Any]] = self._parse_tokens(
            config_dict.get("tokens", {}), require_decimals=self.quote_mode == "static"
        )
        self.pools: List[Dict[str, Any]] = self._parse_pools(
            config_dict.get("pools", []),
            self.tokens,
            self.default_fee_bps,
            require_reserves=self.quote_mode == "static",
        )
        if self.quote_mode != "router" and not self.pools:
            raise ConfigError(f"quote_mode '{self.quote_mode}' needs at least one pool")

        self.cycles: List[List[str]] = self._parse_cycles(
            config_dict.get("cycles", []),
            self.tokens,
            self.pools if self.quote_mode != "router" else None,
        )

    @staticmethod
    def _checksum(address: Any, field: str) -> str:
        if not isinstance(address, str) or not Web3.is_address(address):
            raise ConfigError(f"Config field '{field}' is not a valid address: {address}")
        return Web3.to_checksum_address(address)

    @staticmethod
    def _get_number(d: Dict, key: str, default: float) -> float:
        """Get optional non-negative numeric field."""
        val = d.get(key, default)
        if isinstance(val, bool) or not isinstance(val, (int, float)):
            raise ConfigError(
                f"Config field '{key}' must be a number, got {type(val).__name__}"
            )
        if val < 0:
            raise ConfigError(f"Config field '{key}' must be >= 0, got {val}")
        return val

    @staticmethod
    def _parse_amounts(amounts_raw: Any) -> List[Decimal]:
        """Parse probe amounts, keeping their configured order."""
        if not amounts_raw:
            raise ConfigError("Missing required config field: amounts")
        if not isinstance(amounts_raw, list):
            raise ConfigError("Config field 'amounts' must be a list")

        amounts = []
        for raw in amounts_raw:
            try:
                amounts.append(to_decimal_amount(raw))
            except InvalidAmount as e:
                raise ConfigError(f"Invalid probe amount {raw!r}: {e}") from e
        return amounts

    @classmethod
    def _parse_tokens(
        cls, tokens_raw: Dict[str, Any], require_decimals: bool
    ) -> Dict[str, Dict[str, Any]]:
        """Parse and validate tokens config."""
        if not isinstance(tokens_raw, dict) or not tokens_raw:
            raise ConfigError("Config field 'tokens' must be a non-empty mapping")

        tokens = {}
        for symbol, info in tokens_raw.items():
            if not isinstance(info, dict):
                raise ConfigError(f"Token '{symbol}' config must be a dict")
            if "address" not in info:
                raise ConfigError(f"Token '{symbol}' missing 'address'")

            decimals = info.get("decimals")
            if decimals is None and require_decimals:
                raise ConfigError(
                    f"Token '{symbol}' missing 'decimals' (required without RPC access)"
                )
            if decimals is not None and (
                isinstance(decimals, bool)
                or not isinstance(decimals, int)
                or not 0 <= decimals <= 77
            ):
                raise ConfigError(f"Token '{symbol}' has invalid decimals {decimals}")

            tokens[symbol] = {
                "address": cls._checksum(info["address"], f"tokens.{symbol}.address"),
                "decimals": None if decimals is None else int(decimals),
            }
        return tokens

    @classmethod
    def _parse_pools(
        cls,
        pools_raw: List[Any],
        tokens: Dict[str, Dict[str, Any]],
        default_fee_bps: int,
        require_reserves: bool,
    ) -> List[Dict[str, Any]]:
        """Parse and validate pools config."""
        if not isinstance(pools_raw, list):
            raise ConfigError("Config field 'pools' must be a list")

        pools = []
        for i, pool in enumerate(pools_raw):
            if not isinstance(pool, dict):
                raise ConfigError(f"Pool config {i} must be a dict")

            token0 = pool.get("token0")
            token1 = pool.get("token1")
            address = pool.get("address")
            if not all([token0, token1, address]):
                raise ConfigError(
                    f"Pool config {i} missing required fields (address, token0, token1)"
                )
            for symbol in (token0, token1):
                if symbol not in tokens:
                    raise ConfigError(f"Pool config {i} references unknown token '{symbol}'")

            fee_bps = pool.get("fee_bps", default_fee_bps)
            if isinstance(fee_bps, bool) or not isinstance(fee_bps, (int, float)):
                raise ConfigError(f"Pool config {i} 'fee_bps' must be a number")
            if not 0 <= fee_bps < 10000:
                raise ConfigError(f"Pool config {i} 'fee_bps' must be in [0, 10000)")

            parsed = {
                "name": pool.get("name", f"{token0}/{token1}"),
                "address": cls._checksum(address, f"pools[{i}].address"),
                "token0": token0,
                "token1": token1,
                "fee": bps_to_fraction(fee_bps),
            }

            if require_reserves:
                if "reserve0" not in pool or "reserve1" not in pool:
                    raise ConfigError(
                        f"Pool config {i} needs reserve0/reserve1 when quote_mode is 'static'"
                    )
                try:
                    parsed["reserve0"] = Decimal(str(pool["reserve0"]))
                    parsed["reserve1"] = Decimal(str(pool["reserve1"]))
                except InvalidOperation as e:
                    raise ConfigError(f"Pool config {i} has non-numeric reserves") from e
                for key in ("reserve0", "reserve1"):
                    if not parsed[key].is_finite() or parsed[key] <= 0:
                        raise ConfigError(
                            f"Pool config {i} '{key}' must be a positive number, "
                            f"got {pool[key]}"
                        )

            pools.append(parsed)
        return pools

    @staticmethod
    def _parse_cycles(
        cycles_raw: List[Any],
        tokens: Dict[str, Dict[str, Any]],
        pools: Optional[List[Dict[str, Any]]] = None,
    ) -> List[List[str]]:
        """
        Parse and validate candidate cycles (lists of token symbols).

        When pools are given, every hop must be served by one of them.
        """
        if not isinstance(cycles_raw, list) or not cycles_raw:
            raise ConfigError("Config field 'cycles' must be a non-empty list")

        pairs = None
        if pools is not None:
            pairs = {frozenset((p["token0"], p["token1"])) for p in pools}

        cycles = []
        for i, cycle in enumerate(cycles_raw):
            if not isinstance(cycle, list) or len(cycle) < 2:
                raise ConfigError(f"Cycle {i} must be a list of at least 2 token symbols")
            for symbol in cycle:
                if symbol not in tokens:
                    raise ConfigError(f"Cycle {i} references unknown token '{symbol}'")
            if cycle[0] != cycle[-1]:
                raise ConfigError(
                    f"Cycle {i} must start and end on the same token: {' -> '.join(cycle)}"
                )
            if pairs is not None:
                for a, b in zip(cycle, cycle[1:]):
                    if frozenset((a, b)) not in pairs:
                        raise ConfigError(f"Cycle {i} hop {a} -> {b} has no configured pool")
            cycles.append(list(cycle))
        return cycles

    def build_tokens(self, fetch: Optional[TokenFetcher] = None) -> Dict[str, Token]:
        """
        Build Token objects, fetching missing decimals through `fetch`.

        Args:
            fetch: Callable (address, symbol) -> Token used for tokens
                configured without decimals

        Raises:
            ConfigError: If decimals are missing and no fetcher is given, or
                the fetcher cannot read the token
        """
        tokens = {}
        for symbol, info in self.tokens.items():
            if info["decimals"] is not None:
                tokens[symbol] = Token(symbol, info["address"], info["decimals"])
            elif fetch is not None:
                try:
                    tokens[symbol] = fetch(info["address"], symbol)
                except Exception as e:
                    raise ConfigError(
                        f"Could not read token '{symbol}' at {info['address']}: {e}"
                    ) from e
            else:
                raise ConfigError(f"Token '{symbol}' has no decimals and no RPC to read them")
        return tokens

    def build_pools(self, tokens: Dict[str, Token]) -> List[Pool]:
        """Build Pool snapshots; static reserves are converted to base units."""
        pools = []
        for cfg in self.pools:
            token0 = tokens[cfg["token0"]]
            token1 = tokens[cfg["token1"]]
            reserve0 = reserve1 = 0
            if "reserve0" in cfg:
                reserve0 = int(cfg["reserve0"].scaleb(token0.decimals))
                reserve1 = int(cfg["reserve1"].scaleb(token1.decimals))
                if reserve0 <= 0 or reserve1 <= 0:
                    raise ConfigError(f"Pool {cfg['name']} reserves round to zero base units")
            pools.append(
                Pool(
                    name=cfg["name"],
                    address=cfg["address"],
                    token0=token0,
                    token1=token1,
                    reserve0=reserve0,
                    reserve1=reserve1,
                    fee=cfg["fee"],
                )
            )
        return pools

    def build_paths(self, tokens: Dict[str, Token]) -> List[Path]:
        """Build configured paths, adding reverse directions when enabled."""
        paths: List[Path] = []
        for symbols in self.cycles:
            path = Path(tuple(tokens[s] for s in symbols))
            candidates = [path, path.reversed()] if self.include_reverse else [path]
            for candidate in candidates:
                if candidate not in paths:
                    paths.append(candidate)
        return paths


def load_config(config_path: str) -> ArbConfig:
    """
    Load and validate config from YAML file.

    Args:
        config_path: Path to config YAML file

    Returns:
        Validated ArbConfig instance

    Raises:
        ConfigError: If config invalid or file not found
    """
    if not os.path.exists(config_path):
        raise ConfigError(f"Config file not found: {config_path}")

    try:
        with open(config_path, "r") as f:
            config_dict = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ConfigError(f"Failed to parse YAML: {e}") from e

    if not isinstance(config_dict, dict):
        raise ConfigError("Config file must contain a YAML dictionary")

    return ArbConfig(config_dict)
