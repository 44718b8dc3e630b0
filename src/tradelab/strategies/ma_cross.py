"""Moving-average crossover strategy."""

from __future__ import annotations

from typing import Sequence

from ..backtest.portfolio import FoldResult, fold_actions
from ..backtest.strategy import ParameterDefinition, Params
from ..data.schemas import Bar
from ..indicators import sma
from .crossover import crossover_signals

PARAMETERS = (
    ParameterDefinition("short_period", 5, 2, 50),
    ParameterDefinition("long_period", 25, 5, 200),
)


def simulate_ma_cross(bars: Sequence[Bar], params: Params, symbol: str = "") -> FoldResult:
    """Buy on a golden cross of the short SMA over the long SMA, sell on the dead cross."""

    closes = [bar.close for bar in bars]
    short = sma(closes, int(params["short_period"]))
    long = sma(closes, int(params["long_period"]))
    return fold_actions(bars, crossover_signals(bars, short, long), symbol=symbol)


__all__ = ["PARAMETERS", "simulate_ma_cross"]
