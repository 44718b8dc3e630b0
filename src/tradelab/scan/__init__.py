"""Concurrent multi-symbol pattern scanning."""

from .orchestrator import (
    FailureKind,
    ScanConfig,
    ScanFailure,
    ScanReport,
    ScanRow,
    analyze_symbol,
    run_bulk_scan,
)
from .scheduler import FetchScheduler

__all__ = [
    "FailureKind",
    "FetchScheduler",
    "ScanConfig",
    "ScanFailure",
    "ScanReport",
    "ScanRow",
    "analyze_symbol",
    "run_bulk_scan",
]
