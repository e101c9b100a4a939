"""
FieldWatch VI - Tile Overlay Synchronizer
=========================================
Maps the current (field, index, reference date) to a raster tile layer and
its legend. Only the most recently issued refresh may touch the map: every
response is checked against the generation counter on arrival.
"""

import logging
from datetime import date
from enum import Enum
from typing import List, Optional

from .config import Settings
from .errors import NoDataAvailable, StaleResponseDiscarded, TransportFailure
from .events import LEGEND_CHANGED, NOTICE, TILES_CHANGED, EventBus
from .gateway import RemoteDataGateway
from .generation import GenerationCounter
from .map_overlay import MapOverlayManager
from .models import Field, LegendEntry, Notice, TileDescriptor, tile_window

logger = logging.getLogger(__name__)


class RefreshOutcome(str, Enum):
    APPLIED = "applied"
    UNAVAILABLE = "unavailable"
    FAILED = "failed"
    STALE = "stale"


class TileOverlaySynchronizer:
    """Keeps the raster overlay and legend in step with the selection."""

    def __init__(self, gateway: RemoteDataGateway, overlay: MapOverlayManager,
                 bus: EventBus, settings: Settings):
        self.gateway = gateway
        self.overlay = overlay
        self.bus = bus
        self.settings = settings
        self._generations = GenerationCounter("tiles")

        self.descriptor: Optional[TileDescriptor] = None
        self.legend: List[LegendEntry] = []
        self.window: Optional[tuple] = None
        self.last_notice: Optional[Notice] = None

    @property
    def generations(self) -> GenerationCounter:
        return self._generations

    async def refresh(self, field: Field, index_type: str,
                      reference_date: Optional[date] = None) -> RefreshOutcome:
        """
        Fetch the tile descriptor for the trailing window and apply it.

        Args:
            field: Active field; its boundary is sent as the AOI
            index_type: Active index code
            reference_date: Snapshot date, or None for today

        Returns:
            RefreshOutcome; STALE when a later refresh superseded this one
        """
        generation = self._generations.issue(field.id, index_type)
        start, end = tile_window(reference_date, self.settings.tile_window_days)
        logger.debug("Tile refresh %s for %s %s..%s", generation.number, index_type, start, end)

        try:
            descriptor = await self.gateway.get_tile_descriptor(
                index_type, start, end,
                aoi=field.aoi_feature_collection(),
                mode=self.settings.tile_mode,
            )
            self._generations.check(generation)
        except StaleResponseDiscarded as exc:
            logger.debug("Discarding %s", exc)
            return RefreshOutcome.STALE
        except TransportFailure as exc:
            if not self._generations.is_current(generation):
                return RefreshOutcome.STALE
            logger.error("Failed to fetch VI tiles: %s", exc.describe())
            self.last_notice = Notice("error", f"Could not load map tiles. {exc.describe()}")
            await self.bus.publish(NOTICE, self.last_notice)
            return RefreshOutcome.FAILED

        self.descriptor = descriptor
        self.window = (start, end)

        try:
            url_template = descriptor.require_tiles()
        except NoDataAvailable as exc:
            logger.warning("VI tiles unavailable: %s", exc.reason)
            self.overlay.clear_raster_overlay()
            self.legend = []
            await self.bus.publish(TILES_CHANGED, descriptor)
            await self.bus.publish(LEGEND_CHANGED, [])
            return RefreshOutcome.UNAVAILABLE

        self.overlay.show_raster_overlay(url_template, self.settings.raster_opacity)
        self.legend = descriptor.legend_entries()
        await self.bus.publish(TILES_CHANGED, descriptor)
        await self.bus.publish(LEGEND_CHANGED, list(self.legend))
        return RefreshOutcome.APPLIED

    def reset(self) -> None:
        """Drop in-flight refreshes, the raster layer and the legend."""
        self._generations.invalidate()
        self.overlay.clear_raster_overlay()
        self.descriptor = None
        self.legend = []
        self.window = None
        self.last_notice = None
