from datetime import date, datetime

import pandas as pd
import pytest
from pydantic import ValidationError

from tradelab.backtest.data import resample_weekly, slice_bars
from tradelab.data.schemas import BAR_COLUMNS, Bar, BarDataFrame
from tradelab.data.stores.local import ParquetBarStore, load_csv_directory


def _bar(day: date, close: float, volume: float = 1_000.0) -> Bar:
    return Bar(date=day, open=close, high=close + 1, low=close - 1, close=close, volume=volume)


def test_bar_to_dataframe_roundtrip() -> None:
    bar = Bar(date=datetime(2024, 1, 2, 15, 30), open=100.0, high=101.0, low=99.5, close=100.5, volume=1_000)

    df = BarDataFrame.from_bars([bar])
    assert list(df.columns) == list(BAR_COLUMNS)
    assert len(df) == 1
    loaded = BarDataFrame.ensure_schema(df)
    assert isinstance(loaded, pd.DataFrame)
    assert loaded.iloc[0]["close"] == 100.5
    assert BarDataFrame.to_bars(df) == [bar]
    assert bar.date == date(2024, 1, 2)


def test_bar_rejects_negative_volume_but_tolerates_zero_price() -> None:
    with pytest.raises(ValidationError):
        Bar(date=date(2024, 1, 2), open=1, high=1, low=1, close=1, volume=-5)
    assert Bar(date=date(2024, 1, 2), open=0, high=0, low=0, close=0).close == 0


def test_to_bars_sorts_and_keeps_last_duplicate() -> None:
    frame = pd.DataFrame(
        {
            "Date": ["2024-01-03", "2024-01-02", "2024-01-03"],
            "Open": [2.0, 1.0, 3.0],
            "High": [2.0, 1.0, 3.0],
            "Low": [2.0, 1.0, 3.0],
            "Close": [2.0, 1.0, 3.0],
        }
    )

    bars = BarDataFrame.to_bars(frame)

    assert [bar.date for bar in bars] == [date(2024, 1, 2), date(2024, 1, 3)]
    assert bars[-1].close == 3.0
    assert all(bar.volume == 0.0 for bar in bars)


def test_ensure_schema_reports_missing_columns() -> None:
    with pytest.raises(ValueError, match="close"):
        BarDataFrame.ensure_schema(pd.DataFrame({"date": [], "open": [], "high": [], "low": []}))


def test_slice_bars_is_inclusive() -> None:
    bars = [_bar(date(2024, 1, day), float(day)) for day in range(1, 11)]

    sliced = slice_bars(bars, date(2024, 1, 3), date(2024, 1, 5))

    assert [bar.date.day for bar in sliced] == [3, 4, 5]
    assert slice_bars(bars, date(2025, 1, 1)) == []


def test_resample_weekly_dates_each_week_by_last_session() -> None:
    # Mon 2024-01-01 .. Thu 2024-01-11
    days = [date(2024, 1, d) for d in (1, 2, 3, 4, 5, 8, 9, 10, 11)]
    bars = [_bar(day, float(idx + 10)) for idx, day in enumerate(days)]

    weekly = resample_weekly(bars)

    assert [bar.date for bar in weekly] == [date(2024, 1, 5), date(2024, 1, 11)]
    assert weekly[0].open == 10.0
    assert weekly[0].close == 14.0
    assert weekly[0].high == 15.0
    assert weekly[0].low == 9.0
    assert weekly[0].volume == 5_000.0
    assert weekly[1].close == 18.0


def test_parquet_store_roundtrip_and_csv_directory(tmp_path) -> None:
    bars = [_bar(date(2024, 1, day), float(day)) for day in range(2, 6)]
    store = ParquetBarStore(tmp_path / "store")

    store.save("abc", "daily", BarDataFrame.from_bars(bars))

    assert store.path_for("abc", "daily").name == "ABC_daily.parquet"
    assert store.list_symbols("daily") == ["ABC"]
    assert store.load_bars("ABC", "daily") == bars

    csv_dir = tmp_path / "csv"
    csv_dir.mkdir()
    BarDataFrame.from_bars(bars).to_csv(csv_dir / "xyz.csv", index=False)
    BarDataFrame.from_bars(bars).to_csv(csv_dir / "skip.csv", index=False)

    series = load_csv_directory(csv_dir, ["XYZ"])

    assert list(series) == ["XYZ"]
    assert series["XYZ"] == bars
