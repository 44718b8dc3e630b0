"""Bounded-concurrency scheduling for price history fetches."""

from __future__ import annotations

import asyncio
from typing import Awaitable, Callable, Sequence

from ..data.providers.base import PriceHistoryProvider
from ..data.schemas import Bar


class FetchScheduler:
    """Limit in-flight fetches and space out requests.

    At most ``max_concurrency`` fetches run at once; each slot stays occupied
    for ``delay_seconds`` after its fetch returns before the next request may
    use it. A ``timeout`` passed to :meth:`fetch` bounds the provider call
    alone, not the wait for a slot or the spacing delay.
    """

    def __init__(
        self,
        max_concurrency: int = 10,
        delay_seconds: float = 0.0,
        *,
        sleeper: Callable[[float], Awaitable[None]] | None = None,
    ) -> None:
        if max_concurrency <= 0:
            raise ValueError("max_concurrency must be positive")
        if delay_seconds < 0:
            raise ValueError("delay_seconds cannot be negative")
        self.max_concurrency = max_concurrency
        self.delay_seconds = delay_seconds
        self._sleep = sleeper or asyncio.sleep
        self._semaphore: asyncio.Semaphore | None = None
        self.requests = 0
        self.in_flight = 0
        self.peak_in_flight = 0

    def _slots(self) -> asyncio.Semaphore:
        # created lazily so the semaphore binds to the running loop
        if self._semaphore is None:
            self._semaphore = asyncio.Semaphore(self.max_concurrency)
        return self._semaphore

    async def fetch(
        self,
        provider: PriceHistoryProvider,
        symbol: str,
        timeout: float | None = None,
    ) -> Sequence[Bar]:
        async with self._slots():
            self.requests += 1
            self.in_flight += 1
            self.peak_in_flight = max(self.peak_in_flight, self.in_flight)
            try:
                return await asyncio.wait_for(provider.fetch_bars(symbol), timeout=timeout)
            finally:
                self.in_flight -= 1
                if self.delay_seconds > 0:
                    await self._sleep(self.delay_seconds)


__all__ = ["FetchScheduler"]
