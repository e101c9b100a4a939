"""
FieldWatch VI - Snapshot Store
==============================
Ordered snapshots for the active field and index, plus the selected
snapshot. Loads follow the latest-request-wins rule; failures are reported as
notices and never raised to the caller.
"""

import logging
from enum import Enum
from typing import List, Optional

from .config import Settings
from .errors import InvalidSelection, TransportFailure
from .events import NOTICE, SNAPSHOT_SELECTED, SNAPSHOTS_LOADED, EventBus
from .gateway import RemoteDataGateway
from .generation import GenerationCounter
from .models import HistoricalAnalysisResult, Notice, VISnapshot

logger = logging.getLogger(__name__)


class LoadOutcome(str, Enum):
    LOADED = "loaded"
    EMPTY = "empty"
    FAILED = "failed"
    STALE = "stale"


class SnapshotStore:
    """Snapshots of one field/index pair and the active selection."""

    def __init__(self, gateway: RemoteDataGateway, bus: EventBus, settings: Settings):
        self.gateway = gateway
        self.bus = bus
        self.settings = settings
        self._generations = GenerationCounter("snapshots")

        self.snapshots: List[VISnapshot] = []
        self.selected: Optional[VISnapshot] = None
        self.no_data = False
        self.last_notice: Optional[Notice] = None

    async def _notify(self, level: str, message: str) -> None:
        self.last_notice = Notice(level, message)
        await self.bus.publish(NOTICE, self.last_notice)

    def get(self, snapshot_id: str) -> Optional[VISnapshot]:
        for snapshot in self.snapshots:
            if snapshot.id == snapshot_id:
                return snapshot
        return None

    async def load_snapshots(self, field_id: str, index_type: str) -> LoadOutcome:
        """
        Load snapshots for a field and index, newest first.

        The prior list is replaced. A non-empty result auto-selects the most
        recent snapshot; an empty one clears the selection. Either way the
        selection is signalled on ``snapshot_selected``.

        Args:
            field_id: Field identifier
            index_type: Vegetation index code

        Returns:
            LoadOutcome describing what happened
        """
        generation = self._generations.issue(field_id, index_type)
        logger.info("Loading snapshots for field %s, index %s", field_id, index_type)

        try:
            snapshots = await self.gateway.get_snapshots(
                field_id, index_type, limit=self.settings.snapshot_limit
            )
        except TransportFailure as exc:
            if not self._generations.is_current(generation):
                logger.debug("Discarding failed snapshot load %s", generation)
                return LoadOutcome.STALE
            logger.error("Failed to load snapshots: %s", exc.describe())
            if not self.snapshots:
                self.no_data = True
            await self._notify("error", f"Could not load snapshots. {exc.describe()}")
            return LoadOutcome.FAILED

        if not self._generations.is_current(generation):
            logger.debug("Discarding stale snapshot load %s", generation)
            return LoadOutcome.STALE

        self.snapshots = sorted(snapshots, key=lambda s: s.snapshot_date, reverse=True)
        self.no_data = not self.snapshots
        self.selected = self.snapshots[0] if self.snapshots else None

        await self.bus.publish(SNAPSHOTS_LOADED, list(self.snapshots))
        await self.bus.publish(SNAPSHOT_SELECTED, self.selected)
        return LoadOutcome.LOADED if self.snapshots else LoadOutcome.EMPTY

    async def select_snapshot(self, snapshot_id: str) -> bool:
        """
        Make a loaded snapshot the active one.

        Unknown ids are logged and ignored; nothing changes.
        """
        snapshot = self.get(snapshot_id)
        if snapshot is None:
            error = InvalidSelection(f"unknown snapshot id: {snapshot_id!r}")
            logger.warning("Ignoring selection: %s", error)
            return False

        self.selected = snapshot
        await self.bus.publish(SNAPSHOT_SELECTED, snapshot)
        return True

    def clear(self) -> None:
        """Forget all snapshots and the selection; pending loads become stale."""
        self._generations.invalidate()
        self.snapshots = []
        self.selected = None
        self.no_data = False
        self.last_notice = None

    async def run_historical_analysis(self, field_id: str, index_type: str,
                                      count: Optional[int] = None) -> Optional[HistoricalAnalysisResult]:
        """
        Ask the backend to recompute recent snapshots, then reload them.

        Old snapshots are deleted first; a failed delete is logged and the
        analysis continues.

        Args:
            field_id: Field identifier
            index_type: Vegetation index code
            count: Number of unique cloud-free images to request

        Returns:
            HistoricalAnalysisResult, or None if the analysis request failed
        """
        count = count or self.settings.historical_count

        try:
            await self.gateway.delete_snapshots(field_id, index_type)
        except TransportFailure as exc:
            logger.warning("Failed to clear old snapshots, continuing: %s", exc.describe())

        try:
            result = await self.gateway.analyze_historical(
                field_id, index_type, count=count, clear_old=True
            )
        except TransportFailure as exc:
            await self._notify("error", f"Analysis failed. {exc.describe()}")
            return None

        logger.info("Historical analysis for %s/%s created %d snapshots",
                    field_id, index_type, result.snapshots_created)
        await self.load_snapshots(field_id, index_type)

        if result.snapshots_created == 0:
            await self._notify(
                "warning",
                "No satellite imagery could be retrieved. There may be no cloud-free "
                "images for this area yet; please try again later."
            )
        else:
            await self._notify(
                "info",
                f"Analysis complete: {result.snapshots_created} {index_type} images "
                f"on {result.unique_dates} distinct dates."
            )
        return result
