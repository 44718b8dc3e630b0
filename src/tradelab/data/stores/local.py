"""Local persistence helpers for historical bar data."""

from __future__ import annotations

from pathlib import Path
from typing import Dict, Iterable, List

import pandas as pd

from ..schemas import Bar, BarDataFrame


class ParquetBarStore:
    """Read/write helper that persists bars as one Parquet file per symbol and timeframe."""

    def __init__(self, root: Path):
        self.root = root
        self.root.mkdir(parents=True, exist_ok=True)

    def path_for(self, symbol: str, timeframe: str) -> Path:
        filename = f"{symbol.upper()}_{timeframe.replace(' ', '').lower()}.parquet"
        return self.root / filename

    def save(self, symbol: str, timeframe: str, df: pd.DataFrame) -> Path:
        validated = BarDataFrame.ensure_schema(df)
        path = self.path_for(symbol, timeframe)
        validated.to_parquet(path, engine="pyarrow")
        return path

    def load(self, symbol: str, timeframe: str) -> pd.DataFrame:
        path = self.path_for(symbol, timeframe)
        if not path.exists():
            raise FileNotFoundError(path)
        df = pd.read_parquet(path, engine="pyarrow")
        return BarDataFrame.ensure_schema(df)

    def load_bars(self, symbol: str, timeframe: str) -> List[Bar]:
        return BarDataFrame.to_bars(self.load(symbol, timeframe))

    def import_csv(self, symbol: str, timeframe: str, csv_path: Path) -> Path:
        """Copy a ``date,open,high,low,close,volume`` CSV export into the store."""

        frame = pd.read_csv(csv_path)
        return self.save(symbol, timeframe, frame)

    def list_symbols(self, timeframe: str = "daily") -> List[str]:
        """Return symbols with cached bars for the given timeframe."""

        suffix = timeframe.replace(" ", "").lower()
        marker = f"_{suffix}"
        symbols: set[str] = set()
        for path in self.root.glob(f"*{marker}.parquet"):
            stem = path.stem
            if not stem.endswith(marker):
                continue
            symbol = stem[: -len(marker)]
            if symbol:
                symbols.add(symbol.upper())
        return sorted(symbols)


def read_csv_bars(csv_path: Path) -> List[Bar]:
    """Load one ``date,open,high,low,close,volume`` CSV file as bars."""

    return BarDataFrame.to_bars(pd.read_csv(csv_path))


def load_csv_directory(directory: Path, symbols: Iterable[str] | None = None) -> Dict[str, List[Bar]]:
    """Load ``SYMBOL.csv`` files from ``directory`` keyed by upper-case symbol."""

    wanted = {symbol.upper() for symbol in symbols} if symbols is not None else None
    series: Dict[str, List[Bar]] = {}
    for path in sorted(directory.glob("*.csv")):
        symbol = path.stem.upper()
        if wanted is not None and symbol not in wanted:
            continue
        series[symbol] = read_csv_bars(path)
    return series


__all__ = ["ParquetBarStore", "load_csv_directory", "read_csv_bars"]
