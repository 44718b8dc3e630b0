"""Exception types raised across the trade-lab package."""

from __future__ import annotations

from typing import Sequence


class TradelabError(Exception):
    """Base class for package specific errors."""


class InvalidParameterError(TradelabError, ValueError):
    """A parameter combination falls outside a strategy's valid domain."""


class FetchError(TradelabError, RuntimeError):
    """Price history for a symbol could not be obtained."""

    def __init__(self, symbol: str, message: str) -> None:
        super().__init__(f"{symbol}: {message}")
        self.symbol = symbol


class ScanAbortedError(TradelabError, RuntimeError):
    """Every symbol in a scan failed, leaving nothing to report.

    ``failures`` holds the per-symbol failures collected before aborting.
    """

    def __init__(self, message: str, failures: Sequence[object] = ()) -> None:
        super().__init__(message)
        self.failures = list(failures)


__all__ = [
    "FetchError",
    "InvalidParameterError",
    "ScanAbortedError",
    "TradelabError",
]
