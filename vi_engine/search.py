"""
FieldWatch VI - Place Search
============================
Debounced free-text place search. The backend search endpoint is tried
first; Nominatim is the fallback source.
"""

import asyncio
import logging
from typing import Awaitable, Callable, List, Optional, TypeVar

from .errors import TransportFailure
from .gateway import RemoteDataGateway
from .generation import GenerationCounter
from .models import PlaceResult

logger = logging.getLogger(__name__)

T = TypeVar("T")


class Debouncer:
    """Runs a submission only after input has been quiet for ``quiet_period``."""

    def __init__(self, quiet_period: float,
                 sleep: Callable[[float], Awaitable[None]] = asyncio.sleep):
        self.quiet_period = quiet_period
        self._sleep = sleep
        self._generations = GenerationCounter("debounce")

    async def submit(self, work: Callable[[], Awaitable[T]]) -> Optional[T]:
        """
        Wait for the quiet period, then run ``work`` if nothing newer arrived.

        Returns:
            The result of ``work``, or None when superseded (before or after
            running)
        """
        generation = self._generations.issue()
        await self._sleep(self.quiet_period)
        if not self._generations.is_current(generation):
            return None
        result = await work()
        if not self._generations.is_current(generation):
            return None
        return result

    def cancel(self) -> None:
        self._generations.invalidate()


class PlaceSearch:
    """Place lookup for recentering the map."""

    def __init__(self, gateway: RemoteDataGateway, quiet_period: Optional[float] = None,
                 sleep: Callable[[float], Awaitable[None]] = asyncio.sleep):
        self.gateway = gateway
        period = gateway.settings.search_quiet_period if quiet_period is None else quiet_period
        self.debouncer = Debouncer(period, sleep=sleep)
        self.results: List[PlaceResult] = []

    async def search(self, query: str) -> List[PlaceResult]:
        """Search immediately; blank queries return no results."""
        query = query.strip()
        if not query:
            return []
        try:
            return await self.gateway.search_places(query)
        except TransportFailure as exc:
            logger.error("Search API failed, trying Nominatim: %s", exc.describe())
        try:
            return await self.gateway.search_nominatim(query)
        except TransportFailure as exc:
            logger.error("Fallback search failed: %s", exc.describe())
            return []

    async def on_input(self, query: str) -> Optional[List[PlaceResult]]:
        """
        Handle a keystroke-level input change.

        Returns:
            Results of the search that ran, or None when this input was
            superseded by a later one
        """
        if not query.strip():
            self.debouncer.cancel()
            self.results = []
            return self.results
        results = await self.debouncer.submit(lambda: self.search(query))
        if results is not None:
            self.results = results
        return results
