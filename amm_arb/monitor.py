"""
Opportunity monitor: polls the cycle evaluator over configured paths and
probe amounts and reports qualifying cycles to a sink.

Ticks run strictly one after another so every tick sees one coherent
price snapshot. Within a tick, (path, amount) evaluations are independent
and run concurrently under a semaphore; results are emitted in
path-then-amount order regardless of completion order.
"""

import asyncio
from dataclasses import dataclass
from decimal import Decimal
from typing import List, Optional, Sequence, Tuple

from .evaluator import CycleEvaluator, QuoteSource
from .exceptions import ConfigurationError, IncompleteCycle, InvalidPoolState, QuoteUnavailable
from .opportunity_math import passes_threshold
from .sinks import Sink
from .types import HumanAmount, Opportunity, OpportunityRecord, Path, to_decimal_amount
from .utils import format_duration, get_current_timestamp, get_logger

logger = get_logger(__name__)

# (path, human amount, base-unit amount)
Probe = Tuple[Path, Decimal, int]


@dataclass
class TickSummary:
    """Counters for one monitoring tick."""

    tick: int
    evaluated: int
    failed: int
    reported: int
    elapsed_sec: float
    best_roi: Optional[Decimal] = None


class OpportunityMonitor:
    """
    Scheduling loop around a CycleEvaluator.

    State machine: Idle -> Polling -> (Reporting | Idling) -> Polling ...
    until stop() is called or the task running run() is cancelled.
    """

    def __init__(
        self,
        quote_source: QuoteSource,
        sink: Sink,
        interval: float = 5.0,
        min_profit_pct=Decimal("0"),
        max_concurrency: int = 8,
        quote_retries: int = 2,
        retry_backoff_sec: float = 0.5,
    ):
        """
        Args:
            quote_source: Live or simulated quote source shared by all evaluations
            sink: Receives one OpportunityRecord per qualifying cycle
            interval: Seconds between tick starts
            min_profit_pct: Minimum ROI percent to report; 0 reports any profit
            max_concurrency: Maximum evaluations in flight within a tick
            quote_retries: Extra attempts for a probe after a retriable QuoteUnavailable
            retry_backoff_sec: First retry delay, doubled on each further attempt

        Raises:
            ConfigurationError: If any scheduling parameter is out of range
        """
        min_profit_pct = Decimal(str(min_profit_pct))
        if interval < 0:
            raise ConfigurationError(f"interval must be >= 0: {interval}")
        if not min_profit_pct.is_finite() or min_profit_pct < 0:
            raise ConfigurationError(f"min_profit_pct must be >= 0: {min_profit_pct}")
        if max_concurrency < 1:
            raise ConfigurationError(f"max_concurrency must be >= 1: {max_concurrency}")
        if quote_retries < 0:
            raise ConfigurationError(f"quote_retries must be >= 0: {quote_retries}")

        self.quote_source = quote_source
        self.evaluator = CycleEvaluator(quote_source)
        self.sink = sink
        self.interval = interval
        self.min_profit_pct = min_profit_pct
        self.max_concurrency = max_concurrency
        self.quote_retries = quote_retries
        self.retry_backoff_sec = retry_backoff_sec

        self.tick_count = 0
        self._stop_requested = False
        self._wakeup: Optional[asyncio.Event] = None

    def prepare(
        self, paths: Sequence[Path], amounts: Sequence[HumanAmount]
    ) -> List[Probe]:
        """
        Validate static configuration and expand it into probes.

        Runs before any network call so malformed configuration fails fast.

        Raises:
            ConfigurationError: If no paths or no amounts are given
            IncompleteCycle: If a path does not start and end on the same token
            InvalidAmount: If an amount is negative or non-finite
            InvalidPoolState: If the quote source holds an invalid pool
        """
        if not paths:
            raise ConfigurationError("No paths to monitor")
        if not amounts:
            raise ConfigurationError("No probe amounts configured")

        for path in paths:
            if not path.is_cycle:
                raise IncompleteCycle(
                    f"Monitored path must be a cycle: {path.label}", path=path.label
                )

        parsed = [to_decimal_amount(a) for a in amounts]

        validate = getattr(self.quote_source, "validate", None)
        if validate is not None:
            validate()

        return [
            (path, amount, path.start.to_base_units(amount))
            for path in paths
            for amount in parsed
        ]

    async def run(
        self,
        paths: Sequence[Path],
        amounts: Sequence[HumanAmount],
        max_ticks: Optional[int] = None,
    ) -> None:
        """
        Poll until stop() is called, the task is cancelled or max_ticks ran.

        Tick cadence is measured from tick start; a tick that overruns the
        interval is followed immediately by the next one, never overlapped.
        A stop() issued before run() makes it return after validation
        without running a tick; the request is cleared when run() returns.

        Raises:
            InvalidPoolState: If refreshing finds a pool address that trades
                other tokens than configured
        """
        probes = self.prepare(paths, amounts)
        self._wakeup = asyncio.Event()
        loop = asyncio.get_running_loop()

        logger.info(
            f"Monitoring {len(paths)} cycle(s) x {len(amounts)} amount(s) "
            f"every {self.interval}s (min profit {self.min_profit_pct}%)"
        )

        ticks_run = 0
        while not self._stop_requested:
            started = loop.time()
            try:
                await self.tick(probes)
            except InvalidPoolState:
                # Raised only by refresh(); evaluation failures are handled per probe
                self._stop_requested = False
                raise
            except Exception as e:
                logger.error(f"Tick {self.tick_count} failed: {e}", exc_info=True)

            ticks_run += 1
            if max_ticks is not None and ticks_run >= max_ticks:
                break
            if self._stop_requested:
                break

            remaining = self.interval - (loop.time() - started)
            if remaining > 0:
                try:
                    await asyncio.wait_for(self._wakeup.wait(), timeout=remaining)
                except asyncio.TimeoutError:
                    pass

        self._stop_requested = False
        logger.info(f"Monitor stopped after {ticks_run} tick(s)")

    def stop(self) -> None:
        """Request the loop to exit at the next tick boundary."""
        self._stop_requested = True
        if self._wakeup is not None:
            self._wakeup.set()

    async def tick(self, probes: Sequence[Probe]) -> TickSummary:
        """Refresh state, evaluate every probe and report qualifying cycles."""
        self.tick_count += 1
        tick = self.tick_count
        started = get_current_timestamp()

        refresh = getattr(self.quote_source, "refresh", None)
        if refresh is not None:
            await refresh()

        semaphore = asyncio.Semaphore(self.max_concurrency)

        async def run_one(path: Path, amount: int) -> Optional[Opportunity]:
            async with semaphore:
                return await self._evaluate_with_retry(path, amount)

        # gather() keeps submission order, which is path-then-amount
        results = await asyncio.gather(
            *[run_one(path, base_amount) for path, _, base_amount in probes]
        )

        timestamp = get_current_timestamp()
        reported = 0
        failed = 0
        best_roi: Optional[Decimal] = None
        for opportunity in results:
            if opportunity is None:
                failed += 1
                continue
            if opportunity.roi is not None and (best_roi is None or opportunity.roi > best_roi):
                best_roi = opportunity.roi
            if passes_threshold(opportunity, self.min_profit_pct):
                self.sink.emit(
                    OpportunityRecord(opportunity=opportunity, timestamp=timestamp, tick=tick)
                )
                reported += 1

        summary = TickSummary(
            tick=tick,
            evaluated=len(probes) - failed,
            failed=failed,
            reported=reported,
            elapsed_sec=get_current_timestamp() - started,
            best_roi=best_roi,
        )
        best = "n/a" if best_roi is None else f"{best_roi * 100:.4f}%"
        logger.info(
            f"Tick {tick}: {summary.evaluated}/{len(probes)} evaluated, "
            f"{failed} failed, {reported} reported, best ROI {best} "
            f"in {format_duration(summary.elapsed_sec)}"
        )
        return summary

    async def _evaluate_with_retry(self, path: Path, amount: int) -> Optional[Opportunity]:
        attempt = 0
        while True:
            try:
                return await self.evaluator.evaluate(path, amount)
            except QuoteUnavailable as e:
                if not e.retriable or attempt >= self.quote_retries:
                    logger.warning(f"Skipping {path.label} @ {amount} this tick: {e}")
                    return None
                delay = self.retry_backoff_sec * (2**attempt)
                attempt += 1
                logger.debug(
                    f"Retrying {path.label} @ {amount} in {delay:.2f}s "
                    f"(attempt {attempt}/{self.quote_retries}): {e}"
                )
                await asyncio.sleep(delay)
            except InvalidPoolState as e:
                logger.warning(f"Skipping {path.label} @ {amount} this tick: {e}")
                return None
            except Exception as e:
                logger.error(f"Evaluation of {path.label} @ {amount} failed: {e}", exc_info=True)
                return None
