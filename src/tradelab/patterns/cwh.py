"""Cup-with-Handle (CWH) pattern detection.

A cup is a pair of confirmed local peaks (left and right rim) at similar
prices with a rounded trough between them; the handle is the shallow pullback
that follows the right rim. A pattern moves through ``forming`` and ``ready``
while the handle matures and reaches ``breakout`` on the first close above
the right-rim price.

Peaks are only confirmed once ``peak_window`` later bars exist, so detection
as of bar ``i`` never looks past ``i``.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from enum import Enum
from typing import Dict, Iterator, List, Sequence

from ..data.schemas import Bar


class CwhStage(str, Enum):
    FORMING = "forming"
    READY = "ready"
    BREAKOUT = "breakout"


@dataclass(slots=True, frozen=True)
class CwhConfig:
    """Geometry bounds for the detector. Percentages are expressed as 0-100."""

    peak_window: int = 5
    cup_min_bars: int = 15
    cup_max_bars: int = 120
    cup_min_depth_pct: float = 8.0
    cup_max_depth_pct: float = 50.0
    rim_tolerance_pct: float = 6.0
    bottom_position_min: float = 0.15
    bottom_position_max: float = 0.85
    handle_min_pullback_pct: float = 1.0
    handle_max_pullback_pct: float = 12.0
    handle_min_bars: int = 3
    handle_max_bars: int = 25
    ready_threshold_pct: float = 5.0
    breakout_max_age: int = 0
    dedupe_bars: int = 3
    require_uptrend: bool = True
    trend_fast_period: int = 50
    trend_slow_period: int = 200
    require_bullish_breakout: bool = False
    breakout_volume_ratio: float | None = None
    volume_lookback: int = 20
    require_52w_high: bool = False
    high_lookback: int = 252

    def validate(self) -> None:
        for name in ("peak_window", "cup_min_bars", "cup_max_bars", "handle_max_bars",
                     "trend_fast_period", "trend_slow_period", "volume_lookback", "high_lookback"):
            if getattr(self, name) <= 0:
                raise ValueError(f"{name} must be positive")
        if self.cup_min_bars > self.cup_max_bars:
            raise ValueError("cup_min_bars must be <= cup_max_bars")
        if not 0 <= self.cup_min_depth_pct < self.cup_max_depth_pct <= 100:
            raise ValueError("cup depth bounds must satisfy 0 <= min < max <= 100")
        if not 0 <= self.handle_min_pullback_pct < self.handle_max_pullback_pct <= 100:
            raise ValueError("handle pullback bounds must satisfy 0 <= min < max <= 100")
        if not 0 <= self.bottom_position_min < self.bottom_position_max <= 1:
            raise ValueError("bottom position bounds must lie within [0, 1]")
        if self.handle_min_bars < 0 or self.handle_min_bars > self.handle_max_bars:
            raise ValueError("handle_min_bars must be within [0, handle_max_bars]")
        if self.rim_tolerance_pct < 0 or self.ready_threshold_pct < 0:
            raise ValueError("tolerances cannot be negative")
        if self.breakout_max_age < 0 or self.dedupe_bars < 0:
            raise ValueError("breakout_max_age and dedupe_bars cannot be negative")
        if self.breakout_volume_ratio is not None and self.breakout_volume_ratio <= 0:
            raise ValueError("breakout_volume_ratio must be positive when provided")


@dataclass(slots=True, frozen=True)
class RimPoint:
    index: int
    date: date
    price: float


@dataclass(slots=True, frozen=True)
class CwhPattern:
    symbol: str
    left_rim: RimPoint
    bottom: RimPoint
    right_rim: RimPoint
    cup_depth_pct: float
    cup_duration_days: int
    handle_low: float
    handle_pullback_pct: float
    handle_duration_days: int
    breakout_price: float
    current_price: float
    distance_to_breakout_pct: float
    stage: CwhStage
    as_of_index: int
    as_of_date: date

    def to_row(self) -> dict[str, object]:
        return {
            "symbol": self.symbol,
            "stage": self.stage.value,
            "left_rim_date": self.left_rim.date,
            "left_rim_price": self.left_rim.price,
            "bottom_date": self.bottom.date,
            "bottom_price": self.bottom.price,
            "right_rim_date": self.right_rim.date,
            "right_rim_price": self.right_rim.price,
            "cup_depth_pct": self.cup_depth_pct,
            "cup_duration_days": self.cup_duration_days,
            "handle_pullback_pct": self.handle_pullback_pct,
            "handle_duration_days": self.handle_duration_days,
            "breakout_price": self.breakout_price,
            "current_price": self.current_price,
            "distance_to_breakout_pct": self.distance_to_breakout_pct,
            "as_of_date": self.as_of_date,
        }


@dataclass(slots=True, frozen=True)
class _Cup:
    left: int
    bottom: int
    right: int
    bottom_low: float
    depth_pct: float
    breakout_price: float


@dataclass(slots=True, frozen=True)
class _Handle:
    low: float
    bars: int
    breakout_index: int | None


@dataclass(slots=True)
class _Series:
    bars: Sequence[Bar]
    highs: List[float]
    lows: List[float]
    closes: List[float]

    @classmethod
    def of(cls, bars: Sequence[Bar]) -> "_Series":
        return cls(
            bars=bars,
            highs=[bar.high for bar in bars],
            lows=[bar.low for bar in bars],
            closes=[bar.close for bar in bars],
        )


def find_peaks(bars: Sequence[Bar], window: int = 5) -> List[int]:
    """Indices whose high is not exceeded by any high within ``window`` bars either side.

    A peak needs ``window`` bars on both sides, so the last ``window`` bars of
    a series are never peaks yet.
    """

    if window <= 0:
        raise ValueError("window must be positive")
    highs = [bar.high for bar in bars]
    peaks: List[int] = []
    for idx in range(window, len(highs) - window):
        value = highs[idx]
        if value <= 0:
            continue
        neighbourhood = highs[idx - window: idx + window + 1]
        if max(neighbourhood) <= value:
            peaks.append(idx)
    return peaks


def _in_uptrend(series: _Series, left: int, config: CwhConfig) -> bool:
    if not config.require_uptrend or left < config.trend_slow_period:
        return True
    fast = sum(series.closes[left - config.trend_fast_period: left]) / config.trend_fast_period
    slow = sum(series.closes[left - config.trend_slow_period: left]) / config.trend_slow_period
    return series.highs[left] >= fast and fast > slow


def _build_cup(series: _Series, left: int, right: int, config: CwhConfig) -> _Cup | None:
    duration = right - left
    if duration < config.cup_min_bars or duration > config.cup_max_bars or duration < 2:
        return None
    left_high = series.highs[left]
    right_high = series.highs[right]
    rim = max(left_high, right_high)
    if rim <= 0:
        return None
    if abs(left_high - right_high) / rim * 100 > config.rim_tolerance_pct:
        return None

    interior_lows = series.lows[left + 1: right]
    bottom_low = min(interior_lows)
    # latest occurrence of the lowest low
    bottom = right - 1 - interior_lows[::-1].index(bottom_low)
    depth_pct = (rim - bottom_low) / rim * 100
    if depth_pct < config.cup_min_depth_pct or depth_pct > config.cup_max_depth_pct:
        return None
    position = (bottom - left) / duration
    if position < config.bottom_position_min or position > config.bottom_position_max:
        return None
    if not _in_uptrend(series, left, config):
        return None
    return _Cup(
        left=left,
        bottom=bottom,
        right=right,
        bottom_low=bottom_low,
        depth_pct=depth_pct,
        breakout_price=right_high,
    )


def _pullback_pct(cup: _Cup, handle_low: float) -> float:
    return (cup.breakout_price - handle_low) / cup.breakout_price * 100


def _scan_handle(series: _Series, cup: _Cup, end: int, config: CwhConfig) -> _Handle | None:
    """Follow the handle after the right rim up to ``end`` inclusive.

    A breakout close must come within ``handle_max_bars`` of the right rim.
    Returns ``None`` once the handle outlasts that bound or breaks a price
    bound: a close below the cup bottom or a pullback deeper than allowed.
    """

    handle_low = float("inf")
    for idx in range(cup.right + 1, end + 1):
        if idx - cup.right > config.handle_max_bars:
            return None
        close = series.closes[idx]
        if close > cup.breakout_price:
            return _Handle(low=handle_low, bars=idx - cup.right - 1, breakout_index=idx)
        if close < cup.bottom_low:
            return None
        handle_low = min(handle_low, series.lows[idx])
        if _pullback_pct(cup, handle_low) > config.handle_max_pullback_pct:
            return None
    return _Handle(low=handle_low, bars=end - cup.right, breakout_index=None)


def _breakout_confirmed(series: _Series, cup: _Cup, handle: _Handle, config: CwhConfig) -> bool:
    index = handle.breakout_index
    if index is None or handle.bars < max(config.handle_min_bars, 1):
        return False
    if _pullback_pct(cup, handle.low) < config.handle_min_pullback_pct:
        return False
    bar = series.bars[index]
    if config.require_bullish_breakout and bar.close <= bar.open:
        return False
    if config.breakout_volume_ratio is not None:
        if index < config.volume_lookback:
            return False
        volumes = [b.volume for b in series.bars[index - config.volume_lookback: index]]
        average = sum(volumes) / len(volumes)
        if average <= 0 or bar.volume < average * config.breakout_volume_ratio:
            return False
    if config.require_52w_high:
        prior = series.highs[max(0, index - config.high_lookback): index]
        if not prior or bar.close < max(prior):
            return False
    return True


def _make_pattern(
    series: _Series,
    cup: _Cup,
    handle: _Handle,
    as_of: int,
    stage: CwhStage,
    symbol: str,
) -> CwhPattern:
    bars = series.bars
    current = series.closes[as_of]
    distance = (cup.breakout_price - current) / cup.breakout_price * 100
    return CwhPattern(
        symbol=symbol,
        left_rim=RimPoint(cup.left, bars[cup.left].date, series.highs[cup.left]),
        bottom=RimPoint(cup.bottom, bars[cup.bottom].date, cup.bottom_low),
        right_rim=RimPoint(cup.right, bars[cup.right].date, series.highs[cup.right]),
        cup_depth_pct=cup.depth_pct,
        cup_duration_days=cup.right - cup.left,
        handle_low=handle.low,
        handle_pullback_pct=_pullback_pct(cup, handle.low),
        handle_duration_days=handle.bars,
        breakout_price=cup.breakout_price,
        current_price=current,
        distance_to_breakout_pct=distance,
        stage=stage,
        as_of_index=as_of,
        as_of_date=bars[as_of].date,
    )


def _cups_for_right_rim(series: _Series, peaks: Sequence[int], right: int, config: CwhConfig) -> Iterator[_Cup]:
    """Valid cups ending at ``right``, highest left rim first, then most recent."""

    lefts = [
        peak for peak in peaks
        if config.cup_min_bars <= right - peak <= config.cup_max_bars
    ]
    lefts.sort(key=lambda idx: (series.highs[idx], idx), reverse=True)
    for left in lefts:
        cup = _build_cup(series, left, right, config)
        if cup is not None:
            yield cup


def _evaluate(series: _Series, cup: _Cup, as_of: int, config: CwhConfig, symbol: str) -> CwhPattern | None:
    handle = _scan_handle(series, cup, as_of, config)
    if handle is None:
        return None
    if handle.breakout_index is not None:
        if as_of - handle.breakout_index > config.breakout_max_age:
            return None
        if not _breakout_confirmed(series, cup, handle, config):
            return None
        return _make_pattern(series, cup, handle, as_of, CwhStage.BREAKOUT, symbol)

    if handle.bars == 0 or _pullback_pct(cup, handle.low) < config.handle_min_pullback_pct:
        return None
    current = series.closes[as_of]
    distance = (cup.breakout_price - current) / cup.breakout_price * 100
    if distance <= config.ready_threshold_pct and current > handle.low:
        stage = CwhStage.READY
    else:
        stage = CwhStage.FORMING
    return _make_pattern(series, cup, handle, as_of, stage, symbol)


def detect_cwh(bars: Sequence[Bar], config: CwhConfig | None = None, symbol: str = "") -> CwhPattern | None:
    """Return the latest non-stale pattern as of the last bar, if any.

    Candidates are tried from the latest right rim backwards; for each right
    rim the highest left rim wins, then the most recent one.
    """

    config = config or CwhConfig()
    minimum = config.cup_min_bars + config.peak_window + 1
    if len(bars) < minimum:
        return None
    series = _Series.of(bars)
    as_of = len(bars) - 1
    peaks = find_peaks(bars, config.peak_window)
    horizon = config.handle_max_bars + config.breakout_max_age
    for right in reversed(peaks):
        if as_of - right > horizon:
            break
        for cup in _cups_for_right_rim(series, peaks, right, config):
            pattern = _evaluate(series, cup, as_of, config, symbol)
            if pattern is not None:
                return pattern
    return None


def find_cwh_breakouts(bars: Sequence[Bar], config: CwhConfig | None = None, symbol: str = "") -> List[CwhPattern]:
    """Historical breakout events, each reported as of its breakout bar.

    Every event depends only on bars up to its own index, so the list for a
    prefix of ``bars`` is a prefix of this list. Events within
    ``dedupe_bars`` of the previous kept event are dropped.
    """

    config = config or CwhConfig()
    if len(bars) < config.cup_min_bars + config.peak_window + 1:
        return []
    series = _Series.of(bars)
    end = len(bars) - 1
    peaks = find_peaks(bars, config.peak_window)

    events: Dict[int, CwhPattern] = {}
    for right in peaks:
        for cup in _cups_for_right_rim(series, peaks, right, config):
            handle = _scan_handle(series, cup, end, config)
            if handle is None or handle.breakout_index is None:
                continue
            if not _breakout_confirmed(series, cup, handle, config):
                continue
            index = handle.breakout_index
            events[index] = _make_pattern(series, cup, handle, index, CwhStage.BREAKOUT, symbol)
            break

    kept: List[CwhPattern] = []
    for index in sorted(events):
        if kept and index - kept[-1].as_of_index <= config.dedupe_bars:
            continue
        kept.append(events[index])
    return kept


__all__ = [
    "CwhConfig",
    "CwhPattern",
    "CwhStage",
    "RimPoint",
    "detect_cwh",
    "find_cwh_breakouts",
    "find_peaks",
]
