"""Grid search over strategy parameters across one or more symbols."""

from __future__ import annotations

import itertools
import logging
import statistics
from concurrent.futures import Executor
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Mapping, Sequence

import pandas as pd

from ..backtest.engine import BacktestConfig, run_backtest
from ..backtest.metrics import BacktestStats
from ..backtest.strategy import StrategyId
from ..data.schemas import Bar
from ..errors import InvalidParameterError
from ..strategies.registry import get_strategy

logger = logging.getLogger(__name__)

MAX_PARAMETER_COMBINATIONS = 10_000

CURATED_GRIDS: Dict[StrategyId, Dict[str, List[float]]] = {
    StrategyId.MA_CROSS: {
        "short_period": [3, 5, 10, 15, 20],
        "long_period": [20, 25, 50, 75],
    },
    StrategyId.RSI_REVERSAL: {
        "period": [7, 10, 14],
        "oversold": [20, 30, 40],
        "overbought": [65, 70, 80],
        "atr_multiple": [1.5, 2.0, 3.0],
        "stop_loss_pct": [8.0, 10.0, 15.0],
    },
    StrategyId.MACD_SIGNAL: {
        "short_period": [8, 10, 12],
        "long_period": [20, 26, 30],
        "signal_period": [5, 9, 12],
    },
    StrategyId.MACD_TRAIL: {
        "short_period": [10, 12, 15],
        "long_period": [20, 26, 30],
        "signal_period": [7, 9, 12],
        "trail_pct": [8.0, 12.0, 15.0],
        "stop_loss_pct": [3.0, 5.0, 7.0],
    },
    StrategyId.DIP_BUY: {
        "dip_pct": [3.0, 5.0, 10.0, 15.0],
        "recovery_pct": [5.0, 10.0, 15.0, 30.0],
        "stop_loss_pct": [10.0, 15.0, 20.0],
    },
    StrategyId.CWH_BREAKOUT: {
        "take_profit_pct": [5.0, 10.0, 15.0, 20.0, 30.0],
        "stop_loss_pct": [5.0, 7.0, 10.0, 15.0],
    },
    StrategyId.CWH_TRAIL: {
        "trail_pct": [8.0, 10.0, 12.0, 15.0, 20.0],
        "stop_loss_pct": [5.0, 7.0, 10.0, 12.0],
    },
}


@dataclass(slots=True)
class ParameterRange:
    """Inclusive integer range definition with step."""

    minimum: int
    maximum: int
    step: int = 1

    def values(self) -> List[int]:
        if self.step <= 0:
            raise ValueError("Range step must be positive")
        if self.maximum < self.minimum:
            raise ValueError("Range maximum must be >= minimum")
        count = ((self.maximum - self.minimum) // self.step) + 1
        return [self.minimum + idx * self.step for idx in range(count)]


@dataclass(slots=True)
class FloatRange:
    """Inclusive float range definition with step."""

    minimum: float
    maximum: float
    step: float

    def values(self) -> List[float]:
        if self.step <= 0:
            raise ValueError("Range step must be positive")
        if self.maximum < self.minimum:
            raise ValueError("Range maximum must be >= minimum")
        values: List[float] = []
        current = self.minimum
        epsilon = self.step / 10
        while current <= self.maximum + epsilon:
            values.append(round(current, 6))
            current += self.step
        return values


def max_values_per_param(param_count: int) -> int:
    if param_count <= 2:
        return 8
    if param_count <= 4:
        return 5
    return 4


def subsample(values: Sequence[float], limit: int, default: float | None = None) -> List[float]:
    """Reduce ``values`` to about ``limit`` evenly spaced entries.

    The minimum, maximum and ``default`` (when inside the range) are always kept.
    """

    ordered = sorted(set(values))
    if limit < 2 or len(ordered) <= limit:
        return ordered
    chosen = {ordered[0], ordered[-1]}
    if default is not None and ordered[0] <= default <= ordered[-1]:
        chosen.add(default)
    for step in range(1, limit - 1):
        chosen.add(ordered[round(step * (len(ordered) - 1) / (limit - 1))])
    return sorted(chosen)


@dataclass(slots=True)
class ParameterSpec:
    """Ordered candidate values per parameter name."""

    values: Dict[str, List[float]]

    @classmethod
    def from_ranges(cls, ranges: Mapping[str, ParameterRange | FloatRange | Sequence[float]]) -> "ParameterSpec":
        resolved: Dict[str, List[float]] = {}
        for name, candidate in ranges.items():
            if isinstance(candidate, (ParameterRange, FloatRange)):
                resolved[name] = list(candidate.values())
            else:
                resolved[name] = list(candidate)
        return cls(resolved)

    @classmethod
    def from_strategy(cls, strategy_id: StrategyId | str, max_values: int | None = None) -> "ParameterSpec":
        """Sweep every declared parameter from its minimum to maximum by its step."""

        definition = get_strategy(strategy_id)
        limit = max_values or max_values_per_param(len(definition.parameters))
        resolved: Dict[str, List[float]] = {}
        for parameter in definition.parameters:
            if parameter.integer:
                candidates = ParameterRange(
                    int(parameter.minimum), int(parameter.maximum), max(int(parameter.step), 1)).values()
            else:
                candidates = FloatRange(parameter.minimum, parameter.maximum, parameter.step).values()
            resolved[parameter.key] = subsample(candidates, limit, parameter.default)
        return cls(resolved)

    def cardinality(self) -> int:
        total = 1
        for candidates in self.values.values():
            total *= len(candidates)
        return total


def default_parameter_spec(strategy_id: StrategyId | str) -> ParameterSpec:
    """Curated candidate values for ``strategy_id``."""

    curated = CURATED_GRIDS[StrategyId(strategy_id)]
    return ParameterSpec({name: list(values) for name, values in curated.items()})


def _format_value(value: float) -> str:
    if float(value).is_integer():
        return str(int(value))
    return f"{value:g}"


@dataclass(slots=True, frozen=True)
class ParameterCombination:
    """Immutable named tuple of parameter values."""

    items: tuple[tuple[str, float], ...]

    @classmethod
    def from_mapping(cls, params: Mapping[str, float]) -> "ParameterCombination":
        return cls(tuple((name, params[name]) for name in params))

    def as_dict(self) -> Dict[str, float]:
        return dict(self.items)

    def label(self) -> str:
        return "|".join(f"{name}={_format_value(value)}" for name, value in self.items)


@dataclass(slots=True, frozen=True)
class RejectedCombination:
    params: Dict[str, float]
    reason: str


@dataclass(slots=True)
class ParameterGrid:
    strategy_id: StrategyId
    combinations: List[ParameterCombination]
    rejected: List[RejectedCombination] = field(default_factory=list)

    def __len__(self) -> int:
        return len(self.combinations)

    def __iter__(self):
        return iter(self.combinations)


def generate_parameter_grid(strategy_id: StrategyId | str, spec: ParameterSpec | None = None) -> ParameterGrid:
    """Cartesian product of ``spec`` with invalid combinations rejected up front.

    Each kept combination carries the fully resolved parameters, defaults
    included. Raises ``ValueError`` for an oversized grid or when nothing
    valid remains.
    """

    definition = get_strategy(strategy_id)
    spec = spec or default_parameter_spec(definition.strategy_id)
    known = {parameter.key for parameter in definition.parameters}
    unknown = sorted(set(spec.values) - known)
    if unknown:
        raise ValueError(f"Unknown parameters for {definition.strategy_id.value}: {unknown}")
    combinations = spec.cardinality()
    if combinations > MAX_PARAMETER_COMBINATIONS:
        raise ValueError(
            f"Parameter grid too large ({combinations} combinations). Please narrow your ranges."
        )

    names = list(spec.values)
    grid = ParameterGrid(strategy_id=definition.strategy_id, combinations=[])
    seen: set[ParameterCombination] = set()
    for candidate in itertools.product(*(spec.values[name] for name in names)):
        params = dict(zip(names, candidate))
        try:
            resolved = definition.resolve(params)
        except InvalidParameterError as exc:
            grid.rejected.append(RejectedCombination(params=params, reason=str(exc)))
            continue
        combination = ParameterCombination.from_mapping(resolved)
        if combination in seen:
            continue
        seen.add(combination)
        grid.combinations.append(combination)

    if grid.rejected:
        logger.debug("%s: rejected %d of %d combinations", definition.strategy_id.value,
                     len(grid.rejected), combinations)
    if not grid.combinations:
        raise ValueError(
            "No valid parameter combinations produced. Check your ranges.")
    return grid


# ----------------------------------------------------------------------
# Evaluation
# ----------------------------------------------------------------------


@dataclass(slots=True, frozen=True)
class EvaluationUnit:
    """One symbol backtested with one combination; the unit of parallel dispatch."""

    strategy_id: StrategyId
    symbol: str
    combination: ParameterCombination
    bars: tuple[Bar, ...]
    config: BacktestConfig


@dataclass(slots=True, frozen=True)
class UnitResult:
    symbol: str
    combination: ParameterCombination
    stats: BacktestStats


def evaluate_unit(unit: EvaluationUnit) -> UnitResult:
    result = run_backtest(
        unit.bars,
        unit.strategy_id,
        unit.combination.as_dict(),
        symbol=unit.symbol,
        config=unit.config,
    )
    return UnitResult(symbol=unit.symbol, combination=unit.combination, stats=result.stats)


@dataclass(slots=True)
class AggregateStats:
    """Per-symbol statistics reduced across symbols.

    Counts and return aggregates only consider symbols that traded;
    ``median_all_return_pct`` covers every evaluated symbol.
    """

    symbols: int = 0
    symbols_traded: int = 0
    total_trades: int = 0
    total_wins: int = 0
    total_losses: int = 0
    win_rate: float = 0.0
    total_return_pct: float = 0.0
    mean_return_pct: float = 0.0
    median_return_pct: float = 0.0
    positive_symbol_pct: float = 0.0
    median_all_return_pct: float = 0.0
    per_symbol: Dict[str, BacktestStats] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, float]:
        return {
            "symbols": self.symbols,
            "symbols_traded": self.symbols_traded,
            "total_trades": self.total_trades,
            "total_wins": self.total_wins,
            "total_losses": self.total_losses,
            "win_rate": self.win_rate,
            "total_return_pct": self.total_return_pct,
            "mean_return_pct": self.mean_return_pct,
            "median_return_pct": self.median_return_pct,
            "positive_symbol_pct": self.positive_symbol_pct,
            "median_all_return_pct": self.median_all_return_pct,
        }


def aggregate_stats(per_symbol: Mapping[str, BacktestStats]) -> AggregateStats:
    if not per_symbol:
        return AggregateStats()
    traded = [stats for stats in per_symbol.values() if stats.num_trades > 0]
    all_returns = [stats.total_return_pct for stats in per_symbol.values()]
    aggregate = AggregateStats(
        symbols=len(per_symbol),
        symbols_traded=len(traded),
        median_all_return_pct=float(statistics.median(all_returns)),
        per_symbol=dict(per_symbol),
    )
    if not traded:
        return aggregate
    returns = [stats.total_return_pct for stats in traded]
    aggregate.total_trades = sum(stats.num_trades for stats in traded)
    aggregate.total_wins = sum(stats.num_wins for stats in traded)
    aggregate.total_losses = sum(stats.num_losses for stats in traded)
    aggregate.win_rate = aggregate.total_wins / aggregate.total_trades * 100
    aggregate.total_return_pct = sum(returns)
    aggregate.mean_return_pct = statistics.fmean(returns)
    aggregate.median_return_pct = float(statistics.median(returns))
    aggregate.positive_symbol_pct = sum(1 for value in returns if value > 0) / len(returns) * 100
    return aggregate


@dataclass(slots=True, frozen=True)
class ScoreWeights:
    win_rate: float = 0.3
    total_return: float = 0.3
    median_return: float = 0.2
    positive_symbols: float = 0.2

    def validate(self) -> None:
        weights = (self.win_rate, self.total_return, self.median_return, self.positive_symbols)
        if any(weight < 0 for weight in weights):
            raise ValueError("Score weights cannot be negative")
        if sum(weights) <= 0:
            raise ValueError("At least one score weight must be positive")


def normalize(values: Sequence[float], higher_is_better: bool = True) -> List[float]:
    """Min-max normalize to [0, 1]; a degenerate range maps every value to 0.5."""

    if not values:
        return []
    low = min(values)
    high = max(values)
    if high == low:
        return [0.5] * len(values)
    span = high - low
    if higher_is_better:
        return [(value - low) / span for value in values]
    return [(high - value) / span for value in values]


@dataclass(slots=True)
class GridRow:
    combination: ParameterCombination
    stats: AggregateStats
    score: float = 0.0

    def to_row(self) -> Dict[str, object]:
        row: Dict[str, object] = {"params": self.combination.label()}
        row.update(self.stats.to_dict())
        row["score"] = self.score
        return row


@dataclass(slots=True)
class GridSearchResult:
    strategy_id: StrategyId
    rows: List[GridRow]
    rejected: List[RejectedCombination] = field(default_factory=list)
    skipped_symbols: List[str] = field(default_factory=list)

    def ranked(self) -> List[GridRow]:
        """Rows ordered by score, combinations that traded first; ties keep grid order."""

        return sorted(self.rows, key=lambda row: (row.stats.total_trades > 0, row.score), reverse=True)

    def best(self) -> GridRow:
        if not self.rows:
            raise ValueError("Grid search produced no rows; no parameters evaluated.")
        return self.ranked()[0]

    def row_for(self, combination: ParameterCombination) -> GridRow:
        for row in self.rows:
            if row.combination == combination:
                return row
        raise KeyError(combination.label())

    def to_frame(self) -> pd.DataFrame:
        frame = pd.DataFrame([row.to_row() for row in self.rows])
        if frame.empty:
            return frame
        frame.insert(0, "strategy", self.strategy_id.value)
        return frame.sort_values("score", ascending=False, kind="stable").reset_index(drop=True)


def score_rows(rows: Sequence[GridRow], weights: ScoreWeights | None = None) -> None:
    """Set each row's composite score from min-max normalized metrics."""

    weights = weights or ScoreWeights()
    weights.validate()
    win_rate = normalize([row.stats.win_rate for row in rows])
    total = normalize([row.stats.total_return_pct for row in rows])
    median = normalize([row.stats.median_return_pct for row in rows])
    positive = normalize([row.stats.positive_symbol_pct for row in rows])
    for idx, row in enumerate(rows):
        row.score = (
            weights.win_rate * win_rate[idx]
            + weights.total_return * total[idx]
            + weights.median_return * median[idx]
            + weights.positive_symbols * positive[idx]
        )


def _dispatch(units: Sequence[EvaluationUnit], executor: Executor | None) -> List[UnitResult]:
    if executor is None:
        return [evaluate_unit(unit) for unit in units]
    return list(executor.map(evaluate_unit, units))


def evaluate_combinations(
    strategy_id: StrategyId | str,
    series: Mapping[str, Sequence[Bar]],
    combinations: Iterable[ParameterCombination],
    *,
    config: BacktestConfig | None = None,
    executor: Executor | None = None,
) -> Dict[ParameterCombination, AggregateStats]:
    """Backtest every (symbol, combination) unit, then reduce per combination.

    Units run independently, optionally through ``executor``; the reduction
    happens only after every unit has completed.
    """

    strategy = StrategyId(strategy_id)
    config = config or BacktestConfig()
    ordered = list(dict.fromkeys(combinations))
    frozen = {symbol: tuple(bars) for symbol, bars in series.items()}
    units = [
        EvaluationUnit(strategy, symbol, combination, bars, config)
        for combination in ordered
        for symbol, bars in frozen.items()
    ]
    results = _dispatch(units, executor)

    per_combination: Dict[ParameterCombination, Dict[str, BacktestStats]] = {
        combination: {} for combination in ordered
    }
    for result in results:
        per_combination[result.combination][result.symbol] = result.stats
    return {combination: aggregate_stats(per_symbol) for combination, per_symbol in per_combination.items()}


def run_grid_search(
    strategy_id: StrategyId | str,
    series: Mapping[str, Sequence[Bar]],
    *,
    grid: ParameterGrid | Sequence[ParameterCombination] | None = None,
    spec: ParameterSpec | None = None,
    config: BacktestConfig | None = None,
    executor: Executor | None = None,
    weights: ScoreWeights | None = None,
    min_bars: int = 0,
) -> GridSearchResult:
    """Evaluate a parameter grid over ``series`` and score every combination.

    Symbols shorter than ``min_bars`` are listed in ``skipped_symbols``; a
    ``ValueError`` is raised when no symbol is left to evaluate.
    """

    if grid is not None and spec is not None:
        raise ValueError("Specify either grid or spec, not both.")
    strategy = StrategyId(strategy_id)
    if grid is None:
        grid = generate_parameter_grid(strategy, spec)
    rejected = list(grid.rejected) if isinstance(grid, ParameterGrid) else []
    combinations = list(grid)
    if not combinations:
        raise ValueError("Parameter grid must contain at least one combination.")

    usable = {symbol: bars for symbol, bars in series.items() if len(bars) >= max(min_bars, 1)}
    skipped = sorted(set(series) - set(usable))
    if not usable:
        raise ValueError(
            f"No symbol has at least {max(min_bars, 1)} bars; {len(series)} symbols supplied, none usable."
        )
    if skipped:
        logger.info("%s: skipping %d symbols with fewer than %d bars", strategy.value, len(skipped), min_bars)
    logger.info("%s: evaluating %d combinations x %d symbols", strategy.value, len(combinations), len(usable))

    aggregates = evaluate_combinations(strategy, usable, combinations, config=config, executor=executor)
    rows = [GridRow(combination=combination, stats=stats) for combination, stats in aggregates.items()]
    score_rows(rows, weights)
    return GridSearchResult(strategy_id=strategy, rows=rows, rejected=rejected, skipped_symbols=skipped)


__all__ = [
    "AggregateStats",
    "CURATED_GRIDS",
    "EvaluationUnit",
    "FloatRange",
    "GridRow",
    "GridSearchResult",
    "MAX_PARAMETER_COMBINATIONS",
    "ParameterCombination",
    "ParameterGrid",
    "ParameterRange",
    "ParameterSpec",
    "RejectedCombination",
    "ScoreWeights",
    "UnitResult",
    "aggregate_stats",
    "default_parameter_spec",
    "evaluate_combinations",
    "evaluate_unit",
    "generate_parameter_grid",
    "max_values_per_param",
    "normalize",
    "run_grid_search",
    "score_rows",
    "subsample",
]
