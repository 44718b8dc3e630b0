"""Strategies entering on Cup-with-Handle breakouts."""

from __future__ import annotations

from typing import List, Sequence

from ..backtest.portfolio import ExitRules, FoldResult, fold_actions
from ..backtest.strategy import Action, ParameterDefinition, Params
from ..data.schemas import Bar
from ..patterns.cwh import CwhConfig, find_cwh_breakouts

BREAKOUT_PARAMETERS = (
    ParameterDefinition("take_profit_pct", 20.0, 1.0, 100.0, integer=False),
    ParameterDefinition("stop_loss_pct", 8.0, 1.0, 50.0, integer=False),
)

TRAIL_PARAMETERS = (
    ParameterDefinition("trail_pct", 8.0, 1.0, 50.0, integer=False),
    ParameterDefinition("stop_loss_pct", 6.0, 1.0, 50.0, integer=False),
)


def breakout_entries(bars: Sequence[Bar], config: CwhConfig | None = None) -> List[Action]:
    signals = [Action.HOLD] * len(bars)
    for pattern in find_cwh_breakouts(bars, config):
        if bars[pattern.as_of_index].close > 0:
            signals[pattern.as_of_index] = Action.BUY
    return signals


def simulate_cwh_breakout(bars: Sequence[Bar], params: Params, symbol: str = "") -> FoldResult:
    rules = ExitRules(take_profit_pct=params["take_profit_pct"], stop_loss_pct=params["stop_loss_pct"])
    return fold_actions(bars, breakout_entries(bars), rules, symbol=symbol)


def simulate_cwh_trail(bars: Sequence[Bar], params: Params, symbol: str = "") -> FoldResult:
    rules = ExitRules(stop_loss_pct=params["stop_loss_pct"], trailing_stop_pct=params["trail_pct"])
    return fold_actions(bars, breakout_entries(bars), rules, symbol=symbol)


__all__ = [
    "BREAKOUT_PARAMETERS",
    "TRAIL_PARAMETERS",
    "breakout_entries",
    "simulate_cwh_breakout",
    "simulate_cwh_trail",
]
