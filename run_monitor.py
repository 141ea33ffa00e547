#!/usr/bin/env python3
"""
AMM cycle arbitrage monitor CLI.

Polls configured cycles at every probe amount and reports the profitable
ones, or prints a one-off price-gap and slippage analysis.

Usage:
    python3 run_monitor.py --config configs/mainnet_router.yaml
    python3 run_monitor.py --config configs/static_reserves.yaml --once
    python3 run_monitor.py --config configs/mainnet_router.yaml --analyze
"""

import argparse
import asyncio
import sys
from typing import Dict, List, Optional

from dotenv import load_dotenv

import logging_config
from amm_arb.adapters import (
    PairReserveQuoteSource,
    ReserveQuoteSource,
    RouterQuoteSource,
    connect,
    fetch_token,
)
from amm_arb.analysis import price_gap, slippage_profile
from amm_arb.config import ArbConfig, ConfigError, load_config
from amm_arb.evaluator import CycleEvaluator, QuoteSource
from amm_arb.exceptions import AmmArbitrageError
from amm_arb.monitor import OpportunityMonitor
from amm_arb.opportunity_math import format_opportunity
from amm_arb.sinks import JsonlSink, LogSink, MultiSink, Sink
from amm_arb.types import Path, Token
from amm_arb.version import get_version


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(
        description="AMM cycle arbitrage monitor",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Monitor with live router quotes
  python3 run_monitor.py --config configs/mainnet_router.yaml

  # Single tick against configured reserves (no RPC needed)
  python3 run_monitor.py --config configs/static_reserves.yaml --once

  # Price gaps and slippage profile, then exit
  python3 run_monitor.py --config configs/mainnet_router.yaml --analyze
        """,
    )

    parser.add_argument(
        "--config",
        default="configs/mainnet_router.yaml",
        help="Path to config YAML file (default: configs/mainnet_router.yaml)",
    )
    parser.add_argument(
        "--once",
        action="store_true",
        help="Run a single tick and exit (overrides config setting)",
    )
    parser.add_argument(
        "--analyze",
        action="store_true",
        help="Print price gaps and slippage profiles instead of monitoring",
    )
    parser.add_argument(
        "--jsonl",
        metavar="FILE",
        help="Also append every reported opportunity to FILE as JSON lines",
    )
    parser.add_argument(
        "--zero-fee",
        action="store_true",
        help="Price hops without fees (simulation quote modes only)",
    )
    parser.add_argument("--verbose", action="store_true", help="Enable debug logging")
    parser.add_argument("--version", action="version", version=f"%(prog)s {get_version()}")

    return parser.parse_args(argv)


def build_quote_source(config: ArbConfig, web3, tokens: Dict[str, Token]) -> QuoteSource:
    """Create the quote source selected by config.quote_mode."""
    if config.quote_mode == "router":
        return RouterQuoteSource(web3, config.router_address)

    pools = config.build_pools(tokens)
    if config.quote_mode == "reserves":
        return PairReserveQuoteSource(web3, pools, zero_fee=config.zero_fee)
    return ReserveQuoteSource(pools, zero_fee=config.zero_fee)


def build_sink(jsonl_path: Optional[str]) -> Sink:
    sinks: List[Sink] = [LogSink()]
    if jsonl_path:
        sinks.append(JsonlSink(jsonl_path))
    return MultiSink(sinks)


async def run_analysis(
    config: ArbConfig, quote_source: QuoteSource, paths: List[Path]
) -> None:
    """Print price gaps for every hop pair and a slippage profile per cycle."""
    refresh = getattr(quote_source, "refresh", None)
    if refresh is not None:
        await refresh()

    print("\n📈 Price Differences:")
    seen = set()
    for path in paths:
        for token_a, token_b in path.hops:
            pair = frozenset((token_a.address, token_b.address))
            if pair in seen:
                continue
            seen.add(pair)
            try:
                gap = await price_gap(quote_source, token_a, token_b, config.amounts[0])
            except AmmArbitrageError as e:
                print(f"  ❌ {token_a} ↔ {token_b}: {e}")
                continue
            print(f"  {gap.format()}")

    print("\n🔄 Slippage Profile:")
    evaluator = CycleEvaluator(quote_source)
    for path in paths:
        print(f"  {path.label}")
        for _, opportunity in await slippage_profile(evaluator, path, config.amounts):
            marker = "✅" if opportunity.is_profitable else "❌"
            print(f"    {marker} {format_opportunity(opportunity)}")


async def run(config: ArbConfig, args: argparse.Namespace) -> None:
    web3 = None
    if config.quote_mode == "static":
        tokens = config.build_tokens()
    else:
        web3 = connect(config.rpc_url, config.fallback_rpcs)
        tokens = config.build_tokens(fetch=lambda addr, sym: fetch_token(web3, addr, sym))

    paths = config.build_paths(tokens)
    quote_source = build_quote_source(config, web3, tokens)

    if args.analyze:
        await run_analysis(config, quote_source, paths)
        return

    monitor = OpportunityMonitor(
        quote_source,
        build_sink(args.jsonl),
        interval=config.poll_sec,
        min_profit_pct=config.min_profit_pct,
        max_concurrency=config.max_concurrency,
        quote_retries=config.quote_retries,
        retry_backoff_sec=config.retry_backoff_sec,
    )
    await monitor.run(paths, config.amounts, max_ticks=1 if config.once else None)


def main(argv: Optional[List[str]] = None) -> int:
    """
    Main entry point.

    Returns:
        Exit code (0 for success, 1 for error)
    """
    args = parse_args(argv)
    load_dotenv()

    if args.verbose:
        logging_config.setup_debug()
    else:
        logging_config.setup()

    try:
        config = load_config(args.config)
    except ConfigError as e:
        print(f"❌ Config error: {e}", file=sys.stderr)
        return 1

    if args.once:
        config.once = True
    if args.zero_fee:
        if config.quote_mode == "router":
            print("❌ Config error: --zero-fee needs quote_mode 'reserves' or 'static'", file=sys.stderr)
            return 1
        config.zero_fee = True

    try:
        asyncio.run(run(config, args))
    except KeyboardInterrupt:
        print("\n\n⏸ Stopped by user")
        return 0
    except AmmArbitrageError as e:
        print(f"❌ {type(e).__name__}: {e}", file=sys.stderr)
        return 1
    except ConnectionError as e:
        print(f"❌ {e}", file=sys.stderr)
        return 1

    return 0


if __name__ == "__main__":
    sys.exit(main())
