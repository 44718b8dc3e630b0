"""Shared helpers for line-crossing strategies."""

from __future__ import annotations

from typing import List, Sequence

from ..backtest.strategy import Action
from ..data.schemas import Bar
from ..indicators import is_valid


def crossover_signals(bars: Sequence[Bar], fast: Sequence[float], slow: Sequence[float]) -> List[Action]:
    """``buy`` where ``fast`` crosses above ``slow``, ``sell`` where it crosses below.

    Bars lacking either value on the current or previous index hold, as do
    bars with a non-positive close.
    """

    signals = [Action.HOLD] * len(bars)
    for idx in range(1, len(bars)):
        if bars[idx].close <= 0:
            continue
        prev_fast, prev_slow = fast[idx - 1], slow[idx - 1]
        cur_fast, cur_slow = fast[idx], slow[idx]
        if not is_valid(prev_fast, prev_slow, cur_fast, cur_slow):
            continue
        if prev_fast <= prev_slow and cur_fast > cur_slow:
            signals[idx] = Action.BUY
        elif prev_fast >= prev_slow and cur_fast < cur_slow:
            signals[idx] = Action.SELL
    return signals


__all__ = ["crossover_signals"]
