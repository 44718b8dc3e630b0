"""Interfaces for price history providers."""

from __future__ import annotations

from typing import Protocol, Sequence

from ..schemas import Bar


class PriceHistoryProvider(Protocol):
    """Asynchronous source of ordered bars for one symbol.

    Implementations raise :class:`tradelab.errors.FetchError` when a symbol's
    history cannot be obtained.
    """

    async def fetch_bars(self, symbol: str) -> Sequence[Bar]:
        """Return bars for ``symbol`` ascending by date."""

        raise NotImplementedError
