"""Data layer exports for the trade-lab project."""

from .providers import LocalStoreProvider, PriceHistoryProvider
from .schemas import BAR_COLUMNS, Bar, BarDataFrame
from .stores import ParquetBarStore, load_csv_directory, read_csv_bars

__all__ = [
    "BAR_COLUMNS",
    "Bar",
    "BarDataFrame",
    "LocalStoreProvider",
    "ParquetBarStore",
    "PriceHistoryProvider",
    "load_csv_directory",
    "read_csv_bars",
]
