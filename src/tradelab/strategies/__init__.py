"""Signal generators available for the trade-lab stack."""

from .cwh import simulate_cwh_breakout, simulate_cwh_trail
from .dip_buy import simulate_dip_buy
from .ma_cross import simulate_ma_cross
from .macd import simulate_macd_signal, simulate_macd_trail
from .presets import OPTIMIZED_PRESETS, PresetType, preset_info, resolve_params
from .registry import STRATEGIES, compute_signals, get_strategy
from .rsi_reversal import simulate_rsi_reversal

__all__ = [
    "OPTIMIZED_PRESETS",
    "PresetType",
    "STRATEGIES",
    "compute_signals",
    "get_strategy",
    "preset_info",
    "resolve_params",
    "simulate_cwh_breakout",
    "simulate_cwh_trail",
    "simulate_dip_buy",
    "simulate_ma_cross",
    "simulate_macd_signal",
    "simulate_macd_trail",
    "simulate_rsi_reversal",
]
