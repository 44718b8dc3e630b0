"""Provider that serves price history from the local Parquet store."""

from __future__ import annotations

import asyncio
from typing import List

from ...errors import FetchError
from ..schemas import Bar
from ..stores.local import ParquetBarStore


class LocalStoreProvider:
    """Adapt :class:`ParquetBarStore` to the async provider interface."""

    def __init__(self, store: ParquetBarStore, timeframe: str = "daily") -> None:
        self.store = store
        self.timeframe = timeframe

    async def fetch_bars(self, symbol: str) -> List[Bar]:
        try:
            return await asyncio.to_thread(self.store.load_bars, symbol, self.timeframe)
        except FileNotFoundError as exc:
            raise FetchError(symbol, f"no cached {self.timeframe} bars") from exc
        except ValueError as exc:
            raise FetchError(symbol, str(exc)) from exc
