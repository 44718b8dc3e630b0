"""Walk-forward optimization and parameter stability scoring.

For every (train, test) window the grid search sees only train bars. The
winning parameters are then run once, unchanged, on bars sliced to the test
range, so test statistics never depend on data outside that range.
"""

from __future__ import annotations

import logging
import statistics
from concurrent.futures import Executor
from dataclasses import dataclass, field
from datetime import date
from typing import Dict, List, Mapping, Sequence

import pandas as pd

from ..backtest.data import slice_bars
from ..backtest.engine import BacktestConfig
from ..backtest.strategy import StrategyId
from ..data.schemas import Bar
from .grid import (
    AggregateStats,
    GridSearchResult,
    ParameterCombination,
    ParameterGrid,
    ParameterSpec,
    ScoreWeights,
    evaluate_combinations,
    generate_parameter_grid,
    normalize,
    run_grid_search,
)

logger = logging.getLogger(__name__)


@dataclass(slots=True, frozen=True)
class DateRange:
    start: date
    end: date

    def label(self) -> str:
        if self.start.year == self.end.year:
            return str(self.start.year)
        return f"{self.start.year}-{self.end.year}"


@dataclass(slots=True, frozen=True)
class WalkForwardWindow:
    window_id: int
    train: DateRange
    test: DateRange


def generate_windows(
    start: date,
    end: date,
    *,
    train_years: int = 3,
    test_years: int = 1,
    step_years: int = 1,
) -> List[WalkForwardWindow]:
    """Sequential (train, test) windows anchored at ``start`` that end on or before ``end``."""

    for name, value in (("train_years", train_years), ("test_years", test_years), ("step_years", step_years)):
        if value <= 0:
            raise ValueError(f"{name} must be positive")
    if start > end:
        raise ValueError("start must be on or before end")

    windows: List[WalkForwardWindow] = []
    anchor = pd.Timestamp(start)
    limit = pd.Timestamp(end)
    while True:
        train_end = anchor + pd.DateOffset(years=train_years) - pd.Timedelta(days=1)
        test_start = train_end + pd.Timedelta(days=1)
        test_end = test_start + pd.DateOffset(years=test_years) - pd.Timedelta(days=1)
        if test_end > limit:
            break
        windows.append(
            WalkForwardWindow(
                window_id=len(windows) + 1,
                train=DateRange(anchor.date(), train_end.date()),
                test=DateRange(test_start.date(), test_end.date()),
            )
        )
        anchor = anchor + pd.DateOffset(years=step_years)
    return windows


@dataclass(slots=True)
class WalkForwardConfig:
    train_years: int = 3
    test_years: int = 1
    step_years: int = 1
    min_train_bars: int = 30
    min_test_bars: int = 20
    evaluate_all: bool = False
    overfit_threshold_pct: float = 20.0

    def validate(self) -> None:
        for name in ("train_years", "test_years", "step_years"):
            if getattr(self, name) <= 0:
                raise ValueError(f"{name} must be positive")
        if self.min_train_bars < 1 or self.min_test_bars < 1:
            raise ValueError("minimum bar counts must be at least 1")
        if self.overfit_threshold_pct < 0:
            raise ValueError("overfit_threshold_pct cannot be negative")


@dataclass(slots=True)
class WindowResult:
    window_id: int
    train_range: DateRange
    test_range: DateRange
    best_params: ParameterCombination
    train_stats: AggregateStats
    test_stats: AggregateStats

    def to_row(self) -> Dict[str, object]:
        row: Dict[str, object] = {
            "window_id": self.window_id,
            "train": self.train_range.label(),
            "test": self.test_range.label(),
            "best_params": self.best_params.label(),
        }
        for prefix, stats in (("train", self.train_stats), ("test", self.test_stats)):
            row[f"{prefix}_trades"] = stats.total_trades
            row[f"{prefix}_win_rate"] = stats.win_rate
            row[f"{prefix}_total_return_pct"] = stats.total_return_pct
            row[f"{prefix}_median_return_pct"] = stats.median_return_pct
        return row


@dataclass(slots=True, frozen=True)
class StabilityRecord:
    """One combination's median per-symbol returns in one window."""

    window_id: int
    combination: ParameterCombination
    train_return_pct: float
    test_return_pct: float
    train_trades: int
    test_trades: int


@dataclass(slots=True)
class StabilityScore:
    combination: ParameterCombination
    test_return_median: float
    test_return_min: float
    test_return_std: float
    train_return_median: float
    overfit_degree: float
    composite_score: float = 0.0
    overfit: bool = False
    window_returns: Dict[int, float] = field(default_factory=dict)

    def to_row(self) -> Dict[str, object]:
        return {
            "params": self.combination.label(),
            "test_return_median": self.test_return_median,
            "test_return_min": self.test_return_min,
            "test_return_std": self.test_return_std,
            "train_return_median": self.train_return_median,
            "overfit_degree": self.overfit_degree,
            "composite_score": self.composite_score,
            "overfit": self.overfit,
        }


@dataclass(slots=True)
class StabilityReport:
    scores: List[StabilityScore]
    no_trade: List[ParameterCombination] = field(default_factory=list)

    def best(self) -> StabilityScore | None:
        return self.scores[0] if self.scores else None

    def to_frame(self) -> pd.DataFrame:
        return pd.DataFrame([score.to_row() for score in self.scores])


def evaluate_stability(
    records: Sequence[StabilityRecord],
    *,
    overfit_threshold_pct: float = 20.0,
) -> StabilityReport:
    """Score each combination's robustness across windows.

    ``0.4 * median + 0.3 * min + 0.2 * (inverse std) + 0.1 * (inverse overfit)``
    on min-max normalized values. Combinations that never traded in any window
    are listed under ``no_trade`` and left unscored.
    """

    grouped: Dict[ParameterCombination, List[StabilityRecord]] = {}
    for record in records:
        grouped.setdefault(record.combination, []).append(record)

    scores: List[StabilityScore] = []
    no_trade: List[ParameterCombination] = []
    for combination, group in grouped.items():
        if all(record.train_trades == 0 and record.test_trades == 0 for record in group):
            no_trade.append(combination)
            continue
        test_returns = [record.test_return_pct for record in group]
        train_median = float(statistics.median(record.train_return_pct for record in group))
        test_median = float(statistics.median(test_returns))
        overfit_degree = train_median - test_median
        scores.append(
            StabilityScore(
                combination=combination,
                test_return_median=test_median,
                test_return_min=min(test_returns),
                test_return_std=statistics.stdev(test_returns) if len(test_returns) > 1 else 0.0,
                train_return_median=train_median,
                overfit_degree=overfit_degree,
                overfit=overfit_degree > overfit_threshold_pct,
                window_returns={record.window_id: record.test_return_pct for record in group},
            )
        )

    medians = normalize([score.test_return_median for score in scores])
    minimums = normalize([score.test_return_min for score in scores])
    spreads = normalize([score.test_return_std for score in scores], higher_is_better=False)
    overfits = normalize([score.overfit_degree for score in scores], higher_is_better=False)
    for idx, score in enumerate(scores):
        score.composite_score = 0.4 * medians[idx] + 0.3 * minimums[idx] + 0.2 * spreads[idx] + 0.1 * overfits[idx]

    scores.sort(key=lambda score: score.composite_score, reverse=True)
    return StabilityReport(scores=scores, no_trade=no_trade)


@dataclass(slots=True)
class WalkForwardResult:
    strategy_id: StrategyId
    windows: List[WindowResult]
    records: List[StabilityRecord] = field(default_factory=list)
    stability: StabilityReport | None = None
    skipped_windows: List[tuple[int, str]] = field(default_factory=list)
    train_searches: Dict[int, GridSearchResult] = field(default_factory=dict)

    def to_frame(self) -> pd.DataFrame:
        frame = pd.DataFrame([window.to_row() for window in self.windows])
        if not frame.empty:
            frame.insert(0, "strategy", self.strategy_id.value)
        return frame


def _slice_series(
    series: Mapping[str, Sequence[Bar]],
    span: DateRange,
    min_bars: int,
) -> Dict[str, List[Bar]]:
    sliced: Dict[str, List[Bar]] = {}
    for symbol, bars in series.items():
        window_bars = slice_bars(bars, span.start, span.end)
        if len(window_bars) >= min_bars:
            sliced[symbol] = window_bars
    return sliced


def run_walk_forward(
    strategy_id: StrategyId | str,
    series: Mapping[str, Sequence[Bar]],
    windows: Sequence[WalkForwardWindow],
    *,
    grid: ParameterGrid | Sequence[ParameterCombination] | None = None,
    spec: ParameterSpec | None = None,
    config: WalkForwardConfig | None = None,
    backtest_config: BacktestConfig | None = None,
    executor: Executor | None = None,
    weights: ScoreWeights | None = None,
) -> WalkForwardResult:
    """Optimize on each train slice and evaluate the winner on the matching test slice.

    Windows without enough bars are recorded in ``skipped_windows``. Raises
    ``ValueError`` when every window had to be skipped.
    """

    strategy = StrategyId(strategy_id)
    config = config or WalkForwardConfig()
    config.validate()
    if grid is None:
        grid = generate_parameter_grid(strategy, spec)
    elif spec is not None:
        raise ValueError("Specify either grid or spec, not both.")
    combinations = list(grid)
    if not combinations:
        raise ValueError("Parameter grid must contain at least one combination.")
    if not windows:
        raise ValueError("At least one walk-forward window is required.")

    result = WalkForwardResult(strategy_id=strategy, windows=[])
    for window in windows:
        train_series = _slice_series(series, window.train, config.min_train_bars)
        test_series = _slice_series(series, window.test, config.min_test_bars)
        if not train_series:
            reason = f"no symbol has {config.min_train_bars} train bars"
            logger.warning("window %d skipped: %s", window.window_id, reason)
            result.skipped_windows.append((window.window_id, reason))
            continue
        if not test_series:
            reason = f"no symbol has {config.min_test_bars} test bars"
            logger.warning("window %d skipped: %s", window.window_id, reason)
            result.skipped_windows.append((window.window_id, reason))
            continue

        logger.info(
            "%s window %d: train %s, test %s, %d combinations",
            strategy.value, window.window_id, window.train.label(), window.test.label(), len(combinations),
        )
        search = run_grid_search(
            strategy, train_series, grid=combinations, config=backtest_config,
            executor=executor, weights=weights,
        )
        result.train_searches[window.window_id] = search
        best = search.best()

        if config.evaluate_all:
            test_aggregates = evaluate_combinations(
                strategy, test_series, combinations, config=backtest_config, executor=executor)
            for row in search.rows:
                test_stats = test_aggregates[row.combination]
                result.records.append(
                    StabilityRecord(
                        window_id=window.window_id,
                        combination=row.combination,
                        train_return_pct=row.stats.median_all_return_pct,
                        test_return_pct=test_stats.median_all_return_pct,
                        train_trades=row.stats.total_trades,
                        test_trades=test_stats.total_trades,
                    )
                )
            test_stats = test_aggregates[best.combination]
        else:
            test_stats = evaluate_combinations(
                strategy, test_series, [best.combination], config=backtest_config, executor=executor,
            )[best.combination]

        result.windows.append(
            WindowResult(
                window_id=window.window_id,
                train_range=window.train,
                test_range=window.test,
                best_params=best.combination,
                train_stats=best.stats,
                test_stats=test_stats,
            )
        )

    if not result.windows:
        reasons = "; ".join(f"window {window_id}: {reason}" for window_id, reason in result.skipped_windows)
        raise ValueError(f"No walk-forward window could be evaluated ({reasons}).")
    if config.evaluate_all:
        result.stability = evaluate_stability(
            result.records, overfit_threshold_pct=config.overfit_threshold_pct)
    return result


def default_windows(series: Mapping[str, Sequence[Bar]], config: WalkForwardConfig | None = None) -> List[WalkForwardWindow]:
    """Calendar-year windows covering the full span of ``series``."""

    config = config or WalkForwardConfig()
    firsts = [bars[0].date for bars in series.values() if bars]
    lasts = [bars[-1].date for bars in series.values() if bars]
    if not firsts:
        return []
    start = date(min(firsts).year, 1, 1)
    end = date(max(lasts).year, 12, 31)
    return generate_windows(
        start, end,
        train_years=config.train_years,
        test_years=config.test_years,
        step_years=config.step_years,
    )


__all__ = [
    "DateRange",
    "StabilityRecord",
    "StabilityReport",
    "StabilityScore",
    "WalkForwardConfig",
    "WalkForwardResult",
    "WalkForwardWindow",
    "WindowResult",
    "default_windows",
    "evaluate_stability",
    "generate_windows",
    "run_walk_forward",
]
