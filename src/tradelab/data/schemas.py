"""Data schemas for OHLCV price bars."""

from __future__ import annotations

from dataclasses import dataclass
import datetime as dt
from typing import ClassVar, Iterable, List

import pandas as pd
from pydantic import BaseModel, ConfigDict, Field, field_validator

BAR_COLUMNS: tuple[str, ...] = (
    "date",
    "open",
    "high",
    "low",
    "close",
    "volume",
)


class Bar(BaseModel):
    """One OHLCV observation for a fixed interval (day or week).

    Prices are not range checked: zero or negative values are tolerated here and
    treated as ``hold`` by the strategies rather than rejected at load time.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    date: dt.date = Field(..., description="Session date the bar closes on.")
    open: float
    high: float
    low: float
    close: float
    volume: float = Field(default=0.0, ge=0)

    @field_validator("date", mode="before")
    @classmethod
    def _coerce_date(cls, value: object) -> object:
        if isinstance(value, dt.datetime):
            return value.date()
        return value

    def to_row(self) -> dict[str, float | dt.date]:
        """Return the bar as a dictionary matching :data:`BAR_COLUMNS`."""

        return {
            "date": self.date,
            "open": self.open,
            "high": self.high,
            "low": self.low,
            "close": self.close,
            "volume": self.volume,
        }


@dataclass(slots=True)
class BarDataFrame:
    """Helper to move between :class:`Bar` sequences and :class:`pandas.DataFrame` objects."""

    columns: ClassVar[tuple[str, ...]] = BAR_COLUMNS

    @classmethod
    def from_bars(cls, bars: Iterable[Bar]) -> pd.DataFrame:
        """Convert an iterable of bars to a DataFrame sorted by date."""

        df = pd.DataFrame([bar.to_row() for bar in bars], columns=cls.columns)
        if df.empty:
            return df
        df.sort_values("date", inplace=True)
        df.reset_index(drop=True, inplace=True)
        return df

    @classmethod
    def ensure_schema(cls, df: pd.DataFrame) -> pd.DataFrame:
        """Ensure the DataFrame contains the expected columns in correct order."""

        frame = df.rename(columns={column: str(column).lower() for column in df.columns})
        if "date" not in frame.columns and "timestamp" in frame.columns:
            frame = frame.rename(columns={"timestamp": "date"})
        if "volume" not in frame.columns:
            frame = frame.assign(volume=0.0)
        missing = set(cls.columns) - set(frame.columns)
        if missing:
            raise ValueError(
                f"DataFrame missing required columns: {sorted(missing)}")
        return frame.loc[:, cls.columns].copy()

    @classmethod
    def to_bars(cls, df: pd.DataFrame) -> List[Bar]:
        """Validate a frame and return bars strictly ascending by date.

        Rows are sorted once and duplicate dates keep their last occurrence.
        """

        frame = cls.ensure_schema(df)
        if frame.empty:
            return []
        frame["date"] = pd.to_datetime(frame["date"]).dt.date
        frame = frame.dropna(subset=["open", "high", "low", "close"])
        frame = frame.drop_duplicates(subset="date", keep="last")
        frame = frame.sort_values("date")
        frame["volume"] = frame["volume"].fillna(0.0)
        return [Bar(**row) for row in frame.to_dict(orient="records")]


__all__ = ["BAR_COLUMNS", "Bar", "BarDataFrame"]
