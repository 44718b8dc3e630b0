"""Backtest engine orchestration."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, List, Mapping, Sequence

from ..data.schemas import Bar
from ..strategies.registry import get_strategy
from .metrics import ANNUALIZATION_PERIODS, BacktestStats, compute_trade_stats
from .portfolio import Position, Trade
from .strategy import Action, StrategyId


@dataclass(slots=True)
class BacktestConfig:
    initial_capital: float = 1_000_000.0
    timeframe: str = "daily"

    def validate(self) -> None:
        if self.initial_capital <= 0:
            raise ValueError("initial_capital must be positive")
        if self.timeframe not in ANNUALIZATION_PERIODS:
            raise ValueError(f"Unsupported timeframe '{self.timeframe}'")


@dataclass(slots=True)
class BacktestResult:
    symbol: str
    strategy_id: StrategyId
    params: Dict[str, float]
    actions: List[Action]
    trades: List[Trade]
    open_position: Position | None
    stats: BacktestStats = field(default_factory=BacktestStats)

    def to_row(self) -> Dict[str, object]:
        row: Dict[str, object] = {"symbol": self.symbol, "strategy": self.strategy_id.value}
        row.update(self.stats.to_dict())
        row["open_position"] = self.open_position is not None
        return row


def run_backtest(
    bars: Sequence[Bar],
    strategy_id: StrategyId | str,
    params: Mapping[str, float] | None = None,
    *,
    symbol: str = "",
    config: BacktestConfig | None = None,
) -> BacktestResult:
    """Run one strategy over one symbol's bars.

    Raises :class:`tradelab.errors.InvalidParameterError` for parameters outside
    the strategy's domain. A position still open on the last bar is reported as
    ``open_position`` and left out of the statistics.
    """

    config = config or BacktestConfig()
    config.validate()
    definition = get_strategy(strategy_id)
    resolved = definition.resolve(params)
    fold = definition.simulate(bars, resolved, symbol)
    stats = compute_trade_stats(
        fold.trades,
        initial_capital=config.initial_capital,
        timeframe=config.timeframe,
    )
    return BacktestResult(
        symbol=symbol,
        strategy_id=definition.strategy_id,
        params=resolved,
        actions=fold.actions,
        trades=fold.trades,
        open_position=fold.open_position,
        stats=stats,
    )


__all__ = ["BacktestConfig", "BacktestResult", "run_backtest"]
