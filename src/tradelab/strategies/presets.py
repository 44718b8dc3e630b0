"""Optimized parameter presets per strategy and timeframe.

Daily presets come from walk-forward stability rankings (3 year train, 1 year
test); weekly presets from in-sample grid searches.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Dict, Mapping

from ..backtest.strategy import StrategyId
from .registry import get_strategy


class PresetType(str, Enum):
    DEFAULT = "default"
    OPTIMIZED = "optimized"


@dataclass(slots=True, frozen=True)
class OptimizedPreset:
    params: Mapping[str, float]
    win_rate: float
    total_return_pct: float
    trades: int


OPTIMIZED_PRESETS: Dict[StrategyId, Dict[str, OptimizedPreset]] = {
    StrategyId.MA_CROSS: {
        "daily": OptimizedPreset({"short_period": 2, "long_period": 5}, 0.0, 6.9, 0),
        "weekly": OptimizedPreset({"short_period": 10, "long_period": 20}, 66.7, 183.5, 18),
    },
    StrategyId.RSI_REVERSAL: {
        "daily": OptimizedPreset(
            {"period": 5, "oversold": 37, "overbought": 70, "atr_period": 14,
             "atr_multiple": 2.0, "stop_loss_pct": 5.0},
            0.0, 16.6, 0,
        ),
        "weekly": OptimizedPreset(
            {"period": 10, "oversold": 40, "overbought": 75, "atr_period": 14,
             "atr_multiple": 2.0, "stop_loss_pct": 10.0},
            100.0, 376.0, 10,
        ),
    },
    StrategyId.MACD_SIGNAL: {
        "daily": OptimizedPreset({"short_period": 5, "long_period": 10, "signal_period": 12}, 0.0, 13.5, 0),
        "weekly": OptimizedPreset({"short_period": 10, "long_period": 30, "signal_period": 12}, 47.2, 253.4, 36),
    },
    StrategyId.MACD_TRAIL: {
        "daily": OptimizedPreset(
            {"short_period": 5, "long_period": 23, "signal_period": 3, "trail_pct": 12.0, "stop_loss_pct": 15.0},
            0.0, 18.9, 0,
        ),
        "weekly": OptimizedPreset(
            {"short_period": 12, "long_period": 26, "signal_period": 9, "trail_pct": 12.0, "stop_loss_pct": 5.0},
            0.0, 0.0, 0,
        ),
    },
    StrategyId.DIP_BUY: {
        "daily": OptimizedPreset({"dip_pct": 3.0, "recovery_pct": 39.0, "stop_loss_pct": 5.0}, 0.0, 17.4, 0),
        "weekly": OptimizedPreset({"dip_pct": 3.0, "recovery_pct": 30.0, "stop_loss_pct": 15.0}, 100.0, 1206.6, 35),
    },
    StrategyId.CWH_BREAKOUT: {
        "daily": OptimizedPreset({"take_profit_pct": 20.0, "stop_loss_pct": 8.0}, 43.8, 19.8, 1241),
        "weekly": OptimizedPreset({"take_profit_pct": 20.0, "stop_loss_pct": 8.0}, 75.0, 57.4, 4),
    },
    StrategyId.CWH_TRAIL: {
        "daily": OptimizedPreset({"trail_pct": 8.0, "stop_loss_pct": 6.0}, 28.8, 0.0, 243),
        # few weekly signals; defaults kept
        "weekly": OptimizedPreset({"trail_pct": 12.0, "stop_loss_pct": 5.0}, 0.0, 0.0, 0),
    },
}


def resolve_params(
    strategy_id: StrategyId | str,
    preset: PresetType | str = PresetType.DEFAULT,
    timeframe: str = "daily",
) -> Dict[str, float]:
    """Return validated parameters for ``strategy_id`` under the given preset."""

    definition = get_strategy(strategy_id)
    if PresetType(preset) is PresetType.DEFAULT:
        return definition.resolve()
    presets = OPTIMIZED_PRESETS.get(definition.strategy_id, {})
    entry = presets.get(timeframe)
    if entry is None:
        return definition.resolve()
    return definition.resolve(entry.params)


def preset_info(strategy_id: StrategyId | str, timeframe: str) -> OptimizedPreset | None:
    return OPTIMIZED_PRESETS.get(StrategyId(strategy_id), {}).get(timeframe)


__all__ = [
    "OPTIMIZED_PRESETS",
    "OptimizedPreset",
    "PresetType",
    "preset_info",
    "resolve_params",
]
