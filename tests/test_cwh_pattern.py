from datetime import date, timedelta
from typing import List, Sequence

import pytest

from tradelab.backtest.strategy import Action
from tradelab.data.schemas import Bar
from tradelab.patterns.cwh import CwhConfig, CwhStage, detect_cwh, find_cwh_breakouts, find_peaks
from tradelab.strategies.cwh import breakout_entries

RISE = [100.0 + idx for idx in range(21)]  # bars 0..20, rim at 120
DECLINE = [120.0 - idx for idx in range(1, 25)]  # bars 21..44, bottom at 96
RECOVERY = [100.0, 104.0, 108.0, 112.0, 116.0, 119.0]  # bars 45..50, right rim at 119
HANDLE = [118.0, 117.0, 116.0, 114.0, 113.0]  # bars 51..55


def _build_bars(closes: Sequence[float]) -> List[Bar]:
    start = date(2023, 1, 2)
    return [
        Bar(date=start + timedelta(days=idx), open=close, high=close, low=close, close=close, volume=1_000)
        for idx, close in enumerate(closes)
    ]


def _cup_closes() -> List[float]:
    return RISE + DECLINE + RECOVERY + HANDLE


def test_find_peaks_needs_confirmation_window() -> None:
    bars = _build_bars(_cup_closes())

    assert find_peaks(bars, 5) == [20, 50]
    assert find_peaks(bars[:55], 5) == [20]


def test_forming_pattern_geometry() -> None:
    pattern = detect_cwh(_build_bars(_cup_closes()), symbol="CUP")

    assert pattern is not None
    assert pattern.stage is CwhStage.FORMING
    assert pattern.symbol == "CUP"
    assert (pattern.left_rim.index, pattern.bottom.index, pattern.right_rim.index) == (20, 44, 50)
    assert pattern.cup_depth_pct == pytest.approx(20.0)
    assert pattern.cup_duration_days == 30
    assert pattern.breakout_price == 119.0
    assert pattern.handle_low == 113.0
    assert pattern.handle_duration_days == 5
    assert pattern.distance_to_breakout_pct == pytest.approx(6 / 119 * 100)


def test_stage_progresses_to_ready_then_breakout() -> None:
    ready = detect_cwh(_build_bars(_cup_closes() + [115.0]))
    breakout = detect_cwh(_build_bars(_cup_closes() + [115.0, 120.0]))

    assert ready is not None and ready.stage is CwhStage.READY
    assert ready.distance_to_breakout_pct == pytest.approx(4 / 119 * 100)
    assert breakout is not None and breakout.stage is CwhStage.BREAKOUT
    assert breakout.handle_duration_days == 6
    assert breakout.handle_pullback_pct == pytest.approx(6 / 119 * 100)
    assert breakout.as_of_index == 57


def test_stale_breakout_is_not_reported() -> None:
    closes = _cup_closes() + [115.0, 120.0, 121.0]

    assert detect_cwh(_build_bars(closes)) is None
    assert detect_cwh(_build_bars(closes), CwhConfig(breakout_max_age=1)).stage is CwhStage.BREAKOUT


def test_close_below_cup_bottom_invalidates() -> None:
    assert detect_cwh(_build_bars(_cup_closes() + [95.0])) is None


def test_deep_handle_invalidates() -> None:
    # 104 is a 12.6% pullback from 119
    assert detect_cwh(_build_bars(_cup_closes() + [104.0])) is None


def test_breakout_must_land_within_handle_limit() -> None:
    closes = _cup_closes() + [115.0, 120.0]  # breakout 7 bars after the right rim

    assert detect_cwh(_build_bars(closes), CwhConfig(handle_max_bars=6)) is None
    assert find_cwh_breakouts(_build_bars(closes), CwhConfig(handle_max_bars=6)) == []
    accepted = detect_cwh(_build_bars(closes), CwhConfig(handle_max_bars=7))
    assert accepted is not None and accepted.stage is CwhStage.BREAKOUT
    forming = detect_cwh(_build_bars(_cup_closes()), CwhConfig(handle_max_bars=5))
    assert forming is not None and forming.handle_duration_days == 5


def test_interior_spike_does_not_reject_cup() -> None:
    bars = _build_bars(_cup_closes())
    bars[30] = bars[30].model_copy(update={"high": 135.0})

    pattern = detect_cwh(bars)

    assert pattern is not None
    assert (pattern.left_rim.index, pattern.right_rim.index) == (20, 50)
    assert pattern.cup_depth_pct == pytest.approx(20.0)


def test_breakout_events_and_entries() -> None:
    bars = _build_bars(_cup_closes() + [115.0, 120.0, 121.0, 118.0])

    events = find_cwh_breakouts(bars, symbol="CUP")
    entries = breakout_entries(bars)

    assert [event.as_of_index for event in events] == [57]
    assert events[0].stage is CwhStage.BREAKOUT
    assert entries.count(Action.BUY) == 1
    assert entries[57] is Action.BUY


def test_short_series_has_no_pattern() -> None:
    assert detect_cwh(_build_bars(RISE)) is None
    assert find_cwh_breakouts(_build_bars(RISE)) == []


def test_config_validation() -> None:
    with pytest.raises(ValueError):
        CwhConfig(cup_min_bars=50, cup_max_bars=10).validate()
    with pytest.raises(ValueError):
        CwhConfig(handle_min_pullback_pct=15, handle_max_pullback_pct=10).validate()
