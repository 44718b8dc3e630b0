"""Backtest primitives: actions, the position state machine and bar helpers.

The engine lives in :mod:`tradelab.backtest.engine` and is imported from there.
"""

from .data import TIMEFRAMES, bars_for_timeframe, resample_weekly, slice_bars
from .metrics import ANNUALIZATION_PERIODS, BacktestStats, compute_trade_stats
from .portfolio import (
    ExitReason,
    ExitRules,
    FoldResult,
    Position,
    PositionState,
    Trade,
    fold_actions,
    step_position,
)
from .strategy import Action, ParameterDefinition, StrategyDefinition, StrategyId

__all__ = [
    "ANNUALIZATION_PERIODS",
    "Action",
    "BacktestStats",
    "ExitReason",
    "ExitRules",
    "FoldResult",
    "ParameterDefinition",
    "Position",
    "PositionState",
    "StrategyDefinition",
    "StrategyId",
    "TIMEFRAMES",
    "Trade",
    "bars_for_timeframe",
    "compute_trade_stats",
    "fold_actions",
    "resample_weekly",
    "slice_bars",
    "step_position",
]
