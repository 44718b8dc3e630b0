"""MACD signal-line strategies."""

from __future__ import annotations

from typing import List, Sequence

from ..backtest.portfolio import ExitRules, FoldResult, fold_actions
from ..backtest.strategy import Action, ParameterDefinition, Params
from ..data.schemas import Bar
from ..indicators import macd
from .crossover import crossover_signals

SIGNAL_PARAMETERS = (
    ParameterDefinition("short_period", 12, 2, 50),
    ParameterDefinition("long_period", 26, 5, 100),
    ParameterDefinition("signal_period", 9, 2, 30),
)

TRAIL_PARAMETERS = SIGNAL_PARAMETERS + (
    ParameterDefinition("trail_pct", 12.0, 1.0, 50.0, integer=False),
    ParameterDefinition("stop_loss_pct", 5.0, 1.0, 50.0, integer=False),
)


def _macd_crosses(bars: Sequence[Bar], params: Params) -> List[Action]:
    line, signal = macd(
        [bar.close for bar in bars],
        int(params["short_period"]),
        int(params["long_period"]),
        int(params["signal_period"]),
    )
    return crossover_signals(bars, line, signal)


def simulate_macd_signal(bars: Sequence[Bar], params: Params, symbol: str = "") -> FoldResult:
    """Buy when MACD crosses above its signal line, sell when it crosses below."""

    return fold_actions(bars, _macd_crosses(bars, params), symbol=symbol)


def simulate_macd_trail(bars: Sequence[Bar], params: Params, symbol: str = "") -> FoldResult:
    """Enter on the MACD golden cross; exit only via fixed stop-loss or trailing stop."""

    entries = [action if action is Action.BUY else Action.HOLD for action in _macd_crosses(bars, params)]
    rules = ExitRules(stop_loss_pct=params["stop_loss_pct"], trailing_stop_pct=params["trail_pct"])
    return fold_actions(bars, entries, rules, symbol=symbol)


__all__ = [
    "SIGNAL_PARAMETERS",
    "TRAIL_PARAMETERS",
    "simulate_macd_signal",
    "simulate_macd_trail",
]
