"""RSI oversold reversal with an ATR based protective stop."""

from __future__ import annotations

from typing import List, Sequence

from ..backtest.portfolio import FoldResult, fold_actions
from ..backtest.strategy import Action, ParameterDefinition, Params
from ..data.schemas import Bar
from ..indicators import atr, is_valid, rsi

PARAMETERS = (
    ParameterDefinition("period", 14, 2, 50),
    ParameterDefinition("oversold", 30, 5, 50),
    ParameterDefinition("overbought", 70, 50, 95),
    ParameterDefinition("atr_period", 14, 2, 50),
    ParameterDefinition("atr_multiple", 2.0, 0.5, 10.0, step=0.5, integer=False),
    ParameterDefinition("stop_loss_pct", 10.0, 1.0, 50.0, integer=False),
)


def entry_stop(close: float, atr_value: float, atr_multiple: float, stop_loss_pct: float) -> float:
    """Stop fixed at entry: the tighter of the ATR stop and the percentage floor."""

    floor = close * (1 - stop_loss_pct / 100)
    if not is_valid(atr_value):
        return floor
    return max(close - atr_value * atr_multiple, floor)


def simulate_rsi_reversal(bars: Sequence[Bar], params: Params, symbol: str = "") -> FoldResult:
    closes = [bar.close for bar in bars]
    rsi_values = rsi(closes, int(params["period"]))
    atr_values = atr(
        [bar.high for bar in bars],
        [bar.low for bar in bars],
        closes,
        int(params["atr_period"]),
    )

    signals = [Action.HOLD] * len(bars)
    stops: List[float | None] = [None] * len(bars)
    for idx, bar in enumerate(bars):
        value = rsi_values[idx]
        if bar.close <= 0 or not is_valid(value):
            continue
        if value < params["oversold"]:
            signals[idx] = Action.BUY
            stops[idx] = entry_stop(
                bar.close, atr_values[idx], params["atr_multiple"], params["stop_loss_pct"])
        elif value > params["overbought"]:
            signals[idx] = Action.SELL
    return fold_actions(bars, signals, symbol=symbol, entry_stops=stops)


__all__ = ["PARAMETERS", "simulate_rsi_reversal", "entry_stop"]
