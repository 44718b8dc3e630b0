"""Bulk Cup-with-Handle scan over many symbols."""

from __future__ import annotations

import asyncio
import logging
import math
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Dict, Iterable, List, Mapping, Sequence

import pandas as pd

from ..backtest.engine import BacktestConfig, run_backtest
from ..backtest.metrics import BacktestStats
from ..backtest.strategy import StrategyId
from ..data.providers.base import PriceHistoryProvider
from ..data.schemas import Bar
from ..errors import FetchError, ScanAbortedError
from ..patterns.cwh import CwhConfig, CwhPattern, CwhStage, detect_cwh
from .scheduler import FetchScheduler

logger = logging.getLogger(__name__)

STAGE_ORDER: Dict[CwhStage | None, int] = {
    CwhStage.BREAKOUT: 0,
    CwhStage.READY: 1,
    CwhStage.FORMING: 2,
    None: 3,
}


class FailureKind(str, Enum):
    FETCH = "fetch"
    TIMEOUT = "timeout"
    ERROR = "error"


@dataclass(slots=True)
class ScanConfig:
    batch_size: int = 10
    symbol_timeout_seconds: float = 30.0
    batch_timeout_seconds: float = 300.0
    min_bars: int = 50
    cwh: CwhConfig = field(default_factory=CwhConfig)
    backtest: BacktestConfig = field(default_factory=BacktestConfig)

    def validate(self) -> None:
        if self.batch_size <= 0:
            raise ValueError("batch_size must be positive")
        if self.symbol_timeout_seconds <= 0 or self.batch_timeout_seconds <= 0:
            raise ValueError("timeouts must be positive")
        if self.min_bars < 0:
            raise ValueError("min_bars cannot be negative")
        self.cwh.validate()
        self.backtest.validate()


@dataclass(slots=True, frozen=True)
class ScanFailure:
    symbol: str
    kind: FailureKind
    message: str


@dataclass(slots=True)
class ScanRow:
    symbol: str
    bars: int
    pattern: CwhPattern | None = None
    backtest: BacktestStats | None = None
    metrics: Dict[str, object] = field(default_factory=dict)

    @property
    def stage(self) -> CwhStage | None:
        return self.pattern.stage if self.pattern else None

    def sort_key(self) -> tuple:
        distance = self.pattern.distance_to_breakout_pct if self.pattern else math.inf
        return (STAGE_ORDER[self.stage], distance, self.symbol)

    def to_row(self) -> Dict[str, object]:
        row: Dict[str, object] = {"symbol": self.symbol, "bars": self.bars}
        if self.pattern is not None:
            row.update(self.pattern.to_row())
        else:
            row["stage"] = None
        if self.backtest is not None:
            row.update({f"bt_{key}": value for key, value in self.backtest.to_dict().items()})
        row.update(self.metrics)
        return row


@dataclass(slots=True)
class ScanReport:
    rows: List[ScanRow] = field(default_factory=list)
    failures: List[ScanFailure] = field(default_factory=list)
    symbols_requested: int = 0

    def ranked(self) -> List[ScanRow]:
        return sorted(self.rows, key=ScanRow.sort_key)

    def filter(
        self,
        *,
        stages: Iterable[CwhStage | str] | None = None,
        max_distance_pct: float | None = None,
    ) -> "ScanReport":
        """Keep rows with a pattern in ``stages`` within ``max_distance_pct`` of breakout."""

        wanted = {CwhStage(stage) for stage in stages} if stages is not None else None
        kept: List[ScanRow] = []
        for row in self.rows:
            if wanted is not None and row.stage not in wanted:
                continue
            if max_distance_pct is not None:
                if row.pattern is None or row.pattern.distance_to_breakout_pct > max_distance_pct:
                    continue
            kept.append(row)
        return ScanReport(rows=kept, failures=list(self.failures), symbols_requested=self.symbols_requested)

    def join_metrics(self, metrics: Mapping[str, Mapping[str, object]]) -> "ScanReport":
        rows = [
            replace(row, metrics={**row.metrics, **dict(metrics.get(row.symbol, {}))})
            for row in self.rows
        ]
        return ScanReport(rows=rows, failures=list(self.failures), symbols_requested=self.symbols_requested)

    def failures_frame(self) -> pd.DataFrame:
        return pd.DataFrame(
            [{"symbol": f.symbol, "kind": f.kind.value, "message": f.message} for f in self.failures],
            columns=["symbol", "kind", "message"],
        )

    def to_frame(self) -> pd.DataFrame:
        ranked = self.ranked()
        if not ranked:
            return pd.DataFrame(columns=["symbol", "bars", "stage"])
        return pd.DataFrame([row.to_row() for row in ranked])


def analyze_symbol(
    symbol: str,
    bars: Sequence[Bar],
    config: ScanConfig,
    *,
    strategy: StrategyId | str | None = None,
    strategy_params: Mapping[str, float] | None = None,
) -> ScanRow:
    """Detect the current pattern and optionally backtest one symbol's bars."""

    if len(bars) < config.min_bars:
        logger.debug("%s: %d bars, below minimum %d", symbol, len(bars), config.min_bars)
        return ScanRow(symbol=symbol, bars=len(bars))
    pattern = detect_cwh(bars, config.cwh, symbol=symbol)
    stats = None
    if strategy is not None:
        stats = run_backtest(
            bars, strategy, strategy_params, symbol=symbol, config=config.backtest
        ).stats
    return ScanRow(symbol=symbol, bars=len(bars), pattern=pattern, backtest=stats)


async def _scan_one(
    symbol: str,
    provider: PriceHistoryProvider,
    scheduler: FetchScheduler,
    config: ScanConfig,
    strategy: StrategyId | str | None,
    strategy_params: Mapping[str, float] | None,
) -> ScanRow | ScanFailure:
    try:
        bars = await scheduler.fetch(provider, symbol, timeout=config.symbol_timeout_seconds)
        return analyze_symbol(
            symbol, bars, config, strategy=strategy, strategy_params=strategy_params
        )
    except asyncio.TimeoutError:
        logger.warning("%s: no data within %.1fs", symbol, config.symbol_timeout_seconds)
        return ScanFailure(symbol, FailureKind.TIMEOUT, f"timed out after {config.symbol_timeout_seconds}s")
    except FetchError as exc:
        logger.warning("%s: fetch failed: %s", symbol, exc)
        return ScanFailure(symbol, FailureKind.FETCH, str(exc))
    except Exception as exc:
        logger.warning("%s: scan failed", symbol, exc_info=True)
        return ScanFailure(symbol, FailureKind.ERROR, f"{type(exc).__name__}: {exc}")


def _unique(symbols: Iterable[str]) -> List[str]:
    seen: Dict[str, None] = {}
    for symbol in symbols:
        seen.setdefault(symbol, None)
    return list(seen)


async def run_bulk_scan(
    symbols: Iterable[str],
    provider: PriceHistoryProvider,
    config: ScanConfig | None = None,
    scheduler: FetchScheduler | None = None,
    *,
    strategy: StrategyId | str | None = None,
    strategy_params: Mapping[str, float] | None = None,
    metrics: Mapping[str, Mapping[str, object]] | None = None,
) -> ScanReport:
    """Scan ``symbols`` batch by batch and collect a ranked report.

    Failures are isolated per symbol. Raises :class:`ScanAbortedError` when
    symbols were requested and every one of them failed.
    """

    config = config or ScanConfig()
    config.validate()
    scheduler = scheduler or FetchScheduler(max_concurrency=config.batch_size)
    universe = _unique(symbols)
    report = ScanReport(symbols_requested=len(universe))

    batches = [universe[i : i + config.batch_size] for i in range(0, len(universe), config.batch_size)]
    for number, batch in enumerate(batches, start=1):
        logger.info("Scanning batch %d/%d (%d symbols)", number, len(batches), len(batch))
        tasks = {
            asyncio.create_task(
                _scan_one(symbol, provider, scheduler, config, strategy, strategy_params)
            ): symbol
            for symbol in batch
        }
        done, pending = await asyncio.wait(tasks, timeout=config.batch_timeout_seconds)
        for task in pending:
            task.cancel()
        for task in pending:
            try:
                await task
            except asyncio.CancelledError:
                pass
        for task, symbol in tasks.items():
            if task in pending:
                logger.warning("%s: cancelled at batch timeout", symbol)
                report.failures.append(
                    ScanFailure(symbol, FailureKind.TIMEOUT, f"batch timed out after {config.batch_timeout_seconds}s")
                )
                continue
            outcome = task.result()
            if isinstance(outcome, ScanFailure):
                report.failures.append(outcome)
            else:
                report.rows.append(outcome)

    if universe and not report.rows:
        raise ScanAbortedError(f"all {len(universe)} symbols failed to scan", report.failures)
    logger.info(
        "Scan complete: %d rows, %d failures, %d patterns",
        len(report.rows),
        len(report.failures),
        sum(1 for row in report.rows if row.pattern is not None),
    )
    if metrics:
        report = report.join_metrics(metrics)
    return report


__all__ = [
    "FailureKind",
    "STAGE_ORDER",
    "ScanConfig",
    "ScanFailure",
    "ScanReport",
    "ScanRow",
    "analyze_symbol",
    "run_bulk_scan",
]
