"""Bar series helpers used by the backtest and optimizer."""

from __future__ import annotations

from bisect import bisect_left, bisect_right
from datetime import date
from typing import List, Sequence

import pandas as pd

from ..data.schemas import Bar, BarDataFrame

TIMEFRAMES: tuple[str, ...] = ("daily", "weekly")


def slice_bars(bars: Sequence[Bar], start: date | None = None, end: date | None = None) -> List[Bar]:
    """Return the bars dated within ``[start, end]``.

    ``bars`` must already be ascending by date.
    """

    dates = [bar.date for bar in bars]
    lo = 0 if start is None else bisect_left(dates, start)
    hi = len(bars) if end is None else bisect_right(dates, end)
    return list(bars[lo:hi])


def resample_weekly(bars: Sequence[Bar]) -> List[Bar]:
    """Aggregate daily bars into weeks ending Friday.

    Each weekly bar is dated on the last session actually present in that week.
    """

    if not bars:
        return []
    frame = BarDataFrame.from_bars(bars)
    frame["date"] = pd.to_datetime(frame["date"])
    frame["session"] = frame["date"]
    weekly = frame.set_index("date").resample("W-FRI").agg(
        {
            "open": "first",
            "high": "max",
            "low": "min",
            "close": "last",
            "volume": "sum",
            "session": "last",
        }
    )
    weekly = weekly.dropna(subset=["close", "session"])
    weekly = weekly.reset_index(drop=True).rename(columns={"session": "date"})
    return BarDataFrame.to_bars(weekly)


def bars_for_timeframe(bars: Sequence[Bar], timeframe: str) -> List[Bar]:
    if timeframe not in TIMEFRAMES:
        raise ValueError(f"Unsupported timeframe '{timeframe}'")
    if timeframe == "weekly":
        return resample_weekly(bars)
    return list(bars)


__all__ = ["TIMEFRAMES", "bars_for_timeframe", "resample_weekly", "slice_bars"]
