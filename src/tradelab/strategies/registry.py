"""Closed registry of the supported strategies."""

from __future__ import annotations

from typing import Dict, List, Sequence

from ..backtest.strategy import (
    Action,
    Params,
    StrategyDefinition,
    StrategyId,
    require_less_than,
)
from ..data.schemas import Bar
from . import cwh, dip_buy, ma_cross, macd, rsi_reversal

STRATEGIES: Dict[StrategyId, StrategyDefinition] = {
    StrategyId.MA_CROSS: StrategyDefinition(
        strategy_id=StrategyId.MA_CROSS,
        name="Moving average cross",
        parameters=ma_cross.PARAMETERS,
        simulate=ma_cross.simulate_ma_cross,
        constraints=(require_less_than("short_period", "long_period"),),
    ),
    StrategyId.RSI_REVERSAL: StrategyDefinition(
        strategy_id=StrategyId.RSI_REVERSAL,
        name="RSI reversal",
        parameters=rsi_reversal.PARAMETERS,
        simulate=rsi_reversal.simulate_rsi_reversal,
        constraints=(require_less_than("oversold", "overbought"),),
    ),
    StrategyId.MACD_SIGNAL: StrategyDefinition(
        strategy_id=StrategyId.MACD_SIGNAL,
        name="MACD signal cross",
        parameters=macd.SIGNAL_PARAMETERS,
        simulate=macd.simulate_macd_signal,
        constraints=(require_less_than("short_period", "long_period"),),
    ),
    StrategyId.MACD_TRAIL: StrategyDefinition(
        strategy_id=StrategyId.MACD_TRAIL,
        name="MACD with trailing stop",
        parameters=macd.TRAIL_PARAMETERS,
        simulate=macd.simulate_macd_trail,
        constraints=(require_less_than("short_period", "long_period"),),
    ),
    StrategyId.DIP_BUY: StrategyDefinition(
        strategy_id=StrategyId.DIP_BUY,
        name="Dip buy",
        parameters=dip_buy.PARAMETERS,
        simulate=dip_buy.simulate_dip_buy,
    ),
    StrategyId.CWH_BREAKOUT: StrategyDefinition(
        strategy_id=StrategyId.CWH_BREAKOUT,
        name="Cup-with-handle breakout",
        parameters=cwh.BREAKOUT_PARAMETERS,
        simulate=cwh.simulate_cwh_breakout,
    ),
    StrategyId.CWH_TRAIL: StrategyDefinition(
        strategy_id=StrategyId.CWH_TRAIL,
        name="Cup-with-handle with trailing stop",
        parameters=cwh.TRAIL_PARAMETERS,
        simulate=cwh.simulate_cwh_trail,
    ),
}


def get_strategy(strategy_id: StrategyId | str) -> StrategyDefinition:
    try:
        return STRATEGIES[StrategyId(strategy_id)]
    except ValueError as exc:
        raise ValueError(f"Unknown strategy '{strategy_id}'") from exc


def compute_signals(strategy_id: StrategyId | str, bars: Sequence[Bar], params: Params | None = None) -> List[Action]:
    """Validate ``params`` against the strategy and return one action per bar."""

    return get_strategy(strategy_id).compute(bars, params)


__all__ = ["STRATEGIES", "compute_signals", "get_strategy"]
