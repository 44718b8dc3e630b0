"""Causal technical indicators.

Every function returns a list aligned with its input where the value at ``i``
depends only on inputs ``<= i``. Positions without enough lookback are
``nan``.
"""

from __future__ import annotations

import math
from typing import List, Sequence, Tuple

import numpy as np
import pandas as pd

NAN = float("nan")


def _validate_period(name: str, value: int) -> None:
    if value <= 0:
        raise ValueError(f"{name} must be positive")


def _as_list(series: pd.Series) -> List[float]:
    return [float(value) for value in series.to_numpy(dtype=float)]


def sma(values: Sequence[float], period: int) -> List[float]:
    """Simple moving average over ``period`` values."""

    _validate_period("period", period)
    series = pd.Series(values, dtype=float)
    return _as_list(series.rolling(window=period, min_periods=period).mean())


def ema(values: Sequence[float], period: int) -> List[float]:
    """Exponential moving average seeded with the first value (``alpha = 2 / (period + 1)``)."""

    _validate_period("period", period)
    series = pd.Series(values, dtype=float)
    return _as_list(series.ewm(span=period, adjust=False, min_periods=period).mean())


def macd(
    values: Sequence[float],
    fast_period: int = 12,
    slow_period: int = 26,
    signal_period: int = 9,
) -> Tuple[List[float], List[float]]:
    """Return the MACD line and its signal line.

    The MACD line is valid from ``slow_period - 1``; the signal line needs a
    further ``signal_period - 1`` bars.
    """

    _validate_period("fast_period", fast_period)
    _validate_period("slow_period", slow_period)
    _validate_period("signal_period", signal_period)
    series = pd.Series(values, dtype=float)
    fast = series.ewm(span=fast_period, adjust=False).mean()
    slow = series.ewm(span=slow_period, adjust=False).mean()
    line = fast - slow
    line.iloc[: max(slow_period, fast_period) - 1] = np.nan
    signal = line.ewm(span=signal_period, adjust=False, min_periods=signal_period).mean()
    return _as_list(line), _as_list(signal)


def rsi(values: Sequence[float], period: int = 14) -> List[float]:
    """Relative Strength Index with Wilder smoothing."""

    _validate_period("period", period)
    result = [NAN] * len(values)
    if len(values) <= period:
        return result

    gains = 0.0
    losses = 0.0
    for idx in range(1, period + 1):
        change = values[idx] - values[idx - 1]
        gains += max(change, 0.0)
        losses += max(-change, 0.0)
    avg_gain = gains / period
    avg_loss = losses / period
    result[period] = _rsi_value(avg_gain, avg_loss)

    for idx in range(period + 1, len(values)):
        change = values[idx] - values[idx - 1]
        avg_gain = (avg_gain * (period - 1) + max(change, 0.0)) / period
        avg_loss = (avg_loss * (period - 1) + max(-change, 0.0)) / period
        result[idx] = _rsi_value(avg_gain, avg_loss)
    return result


def _rsi_value(avg_gain: float, avg_loss: float) -> float:
    if avg_loss == 0:
        return 100.0 if avg_gain > 0 else 50.0
    rs = avg_gain / avg_loss
    return 100.0 - 100.0 / (1.0 + rs)


def atr(
    highs: Sequence[float],
    lows: Sequence[float],
    closes: Sequence[float],
    period: int = 14,
) -> List[float]:
    """Average True Range with Wilder smoothing, seeded by the mean of the first ``period`` ranges."""

    _validate_period("period", period)
    count = len(closes)
    result = [NAN] * count
    if count < period:
        return result

    true_ranges: List[float] = []
    for idx in range(count):
        span = highs[idx] - lows[idx]
        if idx == 0:
            true_ranges.append(span)
            continue
        previous = closes[idx - 1]
        true_ranges.append(max(span, abs(highs[idx] - previous), abs(lows[idx] - previous)))

    current = sum(true_ranges[:period]) / period
    result[period - 1] = current
    for idx in range(period, count):
        current = (current * (period - 1) + true_ranges[idx]) / period
        result[idx] = current
    return result


def is_valid(*values: float) -> bool:
    """True when every value is a finite number."""

    return all(not math.isnan(value) and not math.isinf(value) for value in values)


__all__ = ["atr", "ema", "is_valid", "macd", "rsi", "sma"]
