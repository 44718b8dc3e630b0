import math
from datetime import date
from typing import Dict, List

import pandas as pd
import pytest

from tradelab.backtest.data import slice_bars
from tradelab.backtest.engine import run_backtest
from tradelab.data.schemas import Bar
from tradelab.experiments.grid import ParameterCombination, ParameterSpec, aggregate_stats
from tradelab.experiments.walkforward import (
    StabilityRecord,
    WalkForwardConfig,
    default_windows,
    evaluate_stability,
    generate_windows,
    run_walk_forward,
)

SPEC = ParameterSpec({"short_period": [3, 5], "long_period": [10, 20]})


def _build_series(start: str = "2015-01-01", end: str = "2019-12-31", phase: float = 0.0) -> List[Bar]:
    bars = []
    for idx, stamp in enumerate(pd.bdate_range(start, end)):
        close = 80 + 10 * math.sin(idx / 11 + phase) + 4 * math.sin(idx / 3 + phase) + idx * 0.01
        bars.append(Bar(date=stamp.date(), open=close, high=close * 1.01, low=close * 0.99, close=close))
    return bars


def _universe() -> Dict[str, List[Bar]]:
    return {"AAA": _build_series(), "BBB": _build_series(phase=2.0)}


def test_generate_windows_steps_by_year() -> None:
    windows = generate_windows(date(2015, 1, 1), date(2020, 12, 31))

    assert len(windows) == 3
    first = windows[0]
    assert (first.train.start, first.train.end) == (date(2015, 1, 1), date(2017, 12, 31))
    assert (first.test.start, first.test.end) == (date(2018, 1, 1), date(2018, 12, 31))
    assert windows[-1].test.end == date(2020, 12, 31)
    assert first.train.label() == "2015-2017"
    assert first.test.label() == "2018"
    assert generate_windows(date(2015, 1, 1), date(2017, 6, 30)) == []
    with pytest.raises(ValueError):
        generate_windows(date(2015, 1, 1), date(2020, 1, 1), train_years=0)


def test_default_windows_cover_calendar_years() -> None:
    windows = default_windows(_universe(), WalkForwardConfig())

    assert [window.test.label() for window in windows] == ["2018", "2019"]


def test_best_params_reproduce_test_statistics() -> None:
    series = _universe()
    windows = default_windows(series)

    result = run_walk_forward("ma_cross", series, windows, spec=SPEC)

    assert len(result.windows) == 2
    for window in result.windows:
        per_symbol = {
            symbol: run_backtest(
                slice_bars(bars, window.test_range.start, window.test_range.end),
                "ma_cross",
                window.best_params.as_dict(),
                symbol=symbol,
            ).stats
            for symbol, bars in series.items()
        }
        assert aggregate_stats(per_symbol).to_dict() == window.test_stats.to_dict()
        search = result.train_searches[window.window_id]
        assert search.best().combination == window.best_params
    frame = result.to_frame()
    assert list(frame["window_id"]) == [1, 2]


def test_window_ignores_data_outside_its_ranges() -> None:
    series = _universe()
    windows = default_windows(series)
    baseline = run_walk_forward("ma_cross", series, windows, spec=SPEC)

    perturbed = {
        symbol: [
            bar.model_copy(update={"close": bar.close * 1.5, "high": bar.high * 1.5}) if bar.date.year == 2019 else bar
            for bar in bars
        ]
        for symbol, bars in series.items()
    }
    rerun = run_walk_forward("ma_cross", perturbed, windows, spec=SPEC)

    assert rerun.windows[0].to_row() == baseline.windows[0].to_row()


def test_short_windows_are_skipped() -> None:
    series = {"AAA": _build_series("2017-06-01", "2019-12-31")}
    windows = generate_windows(date(2015, 1, 1), date(2019, 12, 31))

    result = run_walk_forward("ma_cross", series, windows, spec=SPEC, config=WalkForwardConfig(min_train_bars=300))

    assert [window_id for window_id, _ in result.skipped_windows] == [1]
    assert [window.window_id for window in result.windows] == [2]


def test_all_windows_skipped_raises() -> None:
    series = {"AAA": _build_series("2017-06-01", "2019-12-31")}
    windows = generate_windows(date(2015, 1, 1), date(2019, 12, 31))

    with pytest.raises(ValueError, match="window 1"):
        run_walk_forward("ma_cross", series, windows, spec=SPEC, config=WalkForwardConfig(min_train_bars=5_000))


def test_evaluate_all_builds_stability_report() -> None:
    series = _universe()
    windows = default_windows(series)

    result = run_walk_forward("ma_cross", series, windows, spec=SPEC, config=WalkForwardConfig(evaluate_all=True))

    assert len(result.records) == 2 * 4
    assert result.stability is not None
    scored = len(result.stability.scores) + len(result.stability.no_trade)
    assert scored == 4
    composite = [score.composite_score for score in result.stability.scores]
    assert composite == sorted(composite, reverse=True)


def test_stability_scoring() -> None:
    steady = ParameterCombination.from_mapping({"short_period": 3, "long_period": 10})
    greedy = ParameterCombination.from_mapping({"short_period": 5, "long_period": 20})
    idle = ParameterCombination.from_mapping({"short_period": 3, "long_period": 20})
    records = [
        StabilityRecord(1, steady, 15.0, 10.0, 4, 2),
        StabilityRecord(2, steady, 15.0, 12.0, 5, 3),
        StabilityRecord(1, greedy, 50.0, -5.0, 6, 2),
        StabilityRecord(2, greedy, 50.0, 30.0, 6, 2),
        StabilityRecord(1, idle, 0.0, 0.0, 0, 0),
        StabilityRecord(2, idle, 0.0, 0.0, 0, 0),
    ]

    report = evaluate_stability(records)

    assert report.no_trade == [idle]
    best = report.best()
    assert best is not None and best.combination == steady
    assert best.composite_score == pytest.approx(0.6)
    assert not best.overfit
    worst = report.scores[-1]
    assert worst.combination == greedy
    assert worst.overfit
    assert worst.overfit_degree == pytest.approx(37.5)
    assert worst.test_return_min == -5.0
    assert len(report.to_frame()) == 2
