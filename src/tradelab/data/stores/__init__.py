"""Local bar storage."""

from .local import ParquetBarStore, load_csv_directory, read_csv_bars

__all__ = ["ParquetBarStore", "load_csv_directory", "read_csv_bars"]
