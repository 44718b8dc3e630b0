"""Price history provider implementations."""

from .base import PriceHistoryProvider
from .local import LocalStoreProvider

__all__ = [
    "LocalStoreProvider",
    "PriceHistoryProvider",
]
