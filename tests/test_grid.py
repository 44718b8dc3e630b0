import math
from concurrent.futures import ThreadPoolExecutor
from datetime import date, timedelta
from typing import List

import pytest

from tradelab.backtest.metrics import BacktestStats
from tradelab.data.schemas import Bar
from tradelab.experiments.grid import (
    MAX_PARAMETER_COMBINATIONS,
    ParameterCombination,
    ParameterRange,
    ParameterSpec,
    aggregate_stats,
    default_parameter_spec,
    generate_parameter_grid,
    max_values_per_param,
    normalize,
    run_grid_search,
)


def _build_bars(count: int, phase: float = 0.0) -> List[Bar]:
    start = date(2020, 1, 1)
    bars = []
    for idx in range(count):
        close = 50 + 8 * math.sin(idx / 6 + phase) + 3 * math.sin(idx / 2 + phase) + idx * 0.02
        bars.append(
            Bar(date=start + timedelta(days=idx), open=close, high=close * 1.01, low=close * 0.99, close=close)
        )
    return bars


SMALL_SPEC = ParameterSpec({"short_period": [3, 5], "long_period": [10, 20]})


def test_normalize_handles_degenerate_range() -> None:
    assert normalize([3.0, 3.0]) == [0.5, 0.5]
    assert normalize([]) == []
    assert normalize([0.0, 5.0, 10.0]) == [0.0, 0.5, 1.0]
    assert normalize([0.0, 10.0], higher_is_better=False) == [1.0, 0.0]


def test_invalid_combinations_are_rejected() -> None:
    grid = generate_parameter_grid("ma_cross", ParameterSpec({"short_period": [5, 20], "long_period": [10, 20]}))

    assert [combo.as_dict() for combo in grid] == [
        {"short_period": 5, "long_period": 10},
        {"short_period": 5, "long_period": 20},
    ]
    assert len(grid.rejected) == 2
    assert all("less than" in rejected.reason for rejected in grid.rejected)


def test_partial_spec_fills_defaults() -> None:
    grid = generate_parameter_grid("rsi_reversal", ParameterSpec({"period": [7, 14]}))

    assert len(grid) == 2
    assert grid.combinations[0].as_dict()["atr_multiple"] == 2.0
    assert grid.combinations[0].label().startswith("period=7|oversold=30")


def test_empty_and_oversized_grids_raise() -> None:
    with pytest.raises(ValueError, match="No valid parameter combinations"):
        generate_parameter_grid("ma_cross", ParameterSpec({"short_period": [30], "long_period": [20]}))
    huge = ParameterSpec.from_ranges({"short_period": ParameterRange(1, 200), "long_period": ParameterRange(1, 200)})
    assert huge.cardinality() > MAX_PARAMETER_COMBINATIONS
    with pytest.raises(ValueError, match="too large"):
        generate_parameter_grid("ma_cross", huge)
    with pytest.raises(ValueError, match="Unknown parameters"):
        generate_parameter_grid("ma_cross", ParameterSpec({"window": [1]}))


def test_sweep_keeps_bounds_and_default() -> None:
    spec = ParameterSpec.from_strategy("ma_cross")

    shorts = spec.values["short_period"]
    assert max_values_per_param(2) == 8
    assert shorts[0] == 2 and shorts[-1] == 50
    assert 5 in shorts
    assert len(shorts) <= 9
    assert default_parameter_spec("cwh_trail").cardinality() == 20


def test_aggregate_counts_only_traded_symbols() -> None:
    per_symbol = {
        "AAA": BacktestStats(num_trades=2, num_wins=1, num_losses=1, total_return_pct=10.0),
        "BBB": BacktestStats(num_trades=1, num_wins=0, num_losses=1, total_return_pct=-4.0),
        "CCC": BacktestStats(),
    }

    aggregate = aggregate_stats(per_symbol)

    assert aggregate.symbols == 3
    assert aggregate.symbols_traded == 2
    assert aggregate.total_trades == 3
    assert aggregate.win_rate == pytest.approx(100 / 3)
    assert aggregate.total_return_pct == pytest.approx(6.0)
    assert aggregate.median_return_pct == pytest.approx(3.0)
    assert aggregate.positive_symbol_pct == pytest.approx(50.0)
    assert aggregate.median_all_return_pct == pytest.approx(0.0)


def test_grid_search_ranks_and_skips_short_series() -> None:
    series = {"AAA": _build_bars(300), "BBB": _build_bars(300, phase=1.3), "TINY": _build_bars(10)}

    result = run_grid_search("ma_cross", series, spec=SMALL_SPEC, min_bars=50)

    assert len(result.rows) == 4
    assert result.skipped_symbols == ["TINY"]
    assert all(0.0 <= row.score <= 1.0 for row in result.rows)
    ranked = result.ranked()
    assert result.best() is ranked[0]
    traded = [row.stats.total_trades > 0 for row in ranked]
    assert traded == sorted(traded, reverse=True)
    frame = result.to_frame()
    assert list(frame["score"]) == sorted(frame["score"], reverse=True)
    assert set(frame["params"]) == {row.combination.label() for row in result.rows}


def test_grid_search_without_usable_symbols_raises() -> None:
    series = {"TINY": _build_bars(10), "SHORT": _build_bars(30)}

    with pytest.raises(ValueError, match="none usable"):
        run_grid_search("ma_cross", series, spec=SMALL_SPEC, min_bars=50)
    with pytest.raises(ValueError):
        run_grid_search("ma_cross", {}, spec=SMALL_SPEC)


def test_parallel_evaluation_matches_sequential() -> None:
    series = {"AAA": _build_bars(250), "BBB": _build_bars(250, phase=0.7)}

    sequential = run_grid_search("ma_cross", series, spec=SMALL_SPEC)
    with ThreadPoolExecutor(max_workers=4) as executor:
        parallel = run_grid_search("ma_cross", series, spec=SMALL_SPEC, executor=executor)

    for row in sequential.rows:
        other = parallel.row_for(row.combination)
        assert other.stats.to_dict() == row.stats.to_dict()
        assert other.score == row.score


def test_grid_and_spec_are_exclusive() -> None:
    grid = generate_parameter_grid("ma_cross", SMALL_SPEC)

    with pytest.raises(ValueError):
        run_grid_search("ma_cross", {"AAA": _build_bars(60)}, grid=grid, spec=SMALL_SPEC)
    assert ParameterCombination.from_mapping({"a": 1.5, "b": 2}).label() == "a=1.5|b=2"
