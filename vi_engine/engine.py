"""
FieldWatch VI - Field View Engine
=================================
Per-view owner of the selection state. The engine is created when a field
detail view mounts, receives the map handle it will drive, and is closed when
the view unmounts.

Data flows one way: user actions change the stores, the stores publish
events, and the handlers below apply the visual consequences.
"""

import logging
from datetime import date
from typing import Callable, List, Optional

from .config import Settings
from .errors import InvalidSelection, TransportFailure
from .events import (
    LEGEND_CHANGED,
    NOTICE,
    SNAPSHOT_SELECTED,
    TILES_CHANGED,
    EventBus,
)
from .exports import ExportBundle, build_export_bundle
from .field_context import FieldContext
from .gateway import RemoteDataGateway
from .generation import GenerationCounter
from .map_overlay import MapHandle, MapOverlayManager
from .models import (
    AnalysisMode,
    AnalysisRequest,
    HistoricalAnalysisResult,
    LegendEntry,
    Notice,
    PlaceResult,
    ProbeReading,
    SelectionState,
    TileDescriptor,
    VISnapshot,
)
from .search import PlaceSearch
from .snapshots import LoadOutcome, SnapshotStore
from .tiles import TileOverlaySynchronizer
from .timeseries import TimeSeriesAnalyzer, TimeSeriesResult
from .vegetation_indices import DEFAULT_INDEX, validate_index

logger = logging.getLogger(__name__)


class FieldViewEngine:
    """Snapshot, tile, probe and trend orchestration for one field view."""

    def __init__(self, map_handle: MapHandle, gateway: RemoteDataGateway, settings: Settings,
                 field_context: Optional[FieldContext] = None,
                 today: Callable[[], date] = date.today):
        self.settings = settings
        self.gateway = gateway
        self.bus = EventBus()
        self.field_context = field_context or FieldContext(gateway.get_field)

        self.overlay = MapOverlayManager(map_handle, settings)
        self.snapshots = SnapshotStore(gateway, self.bus, settings)
        self.tiles = TileOverlaySynchronizer(gateway, self.overlay, self.bus, settings)
        self.analyzer = TimeSeriesAnalyzer(gateway, self.bus, settings.label_locale, today)
        self.search = PlaceSearch(gateway)

        self.state = SelectionState(index_type=DEFAULT_INDEX)
        self.legend: List[LegendEntry] = []
        self.probe: Optional[ProbeReading] = None
        self._field_generations = GenerationCounter("field")

        self._unsubscribe = [
            self.bus.subscribe(SNAPSHOT_SELECTED, self._on_snapshot_selected),
            self.bus.subscribe(TILES_CHANGED, self._on_tiles_changed),
            self.bus.subscribe(LEGEND_CHANGED, self._on_legend_changed),
            self.bus.subscribe(NOTICE, self._on_notice),
        ]

        self.overlay.install_base_layers()
        self.overlay.bind_pointer(self.handle_pointer_move, self.handle_pointer_leave)
        self.mounted = True

    # -------------------------------------------------------------------------
    # Read-only views
    # -------------------------------------------------------------------------

    @property
    def field(self):
        return self.state.field

    @property
    def index_type(self) -> str:
        return self.state.index_type

    @property
    def selected_snapshot(self) -> Optional[VISnapshot]:
        return self.state.snapshot

    @property
    def notices(self) -> List[Notice]:
        return self.state.notices

    def pop_notices(self) -> List[Notice]:
        """Return and forget the notices collected so far."""
        notices = list(self.state.notices)
        self.state.notices.clear()
        return notices

    # -------------------------------------------------------------------------
    # Event handlers
    # -------------------------------------------------------------------------

    async def _on_snapshot_selected(self, snapshot: Optional[VISnapshot]) -> None:
        self.state.snapshot = snapshot
        field = self.state.field
        if field is None:
            return

        bounds = field.bounds()
        if snapshot is not None and snapshot.overlay_asset_ref and bounds is not None:
            url = self.gateway.resolve_asset_url(snapshot.overlay_asset_ref)
            self.overlay.show_image_overlay(url, bounds)
        else:
            self.overlay.clear_image_overlay()

        reference = snapshot.snapshot_date if snapshot is not None else None
        await self.tiles.refresh(field, self.state.index_type, reference)

    def _on_tiles_changed(self, descriptor: TileDescriptor) -> None:
        self.state.tile_descriptor = descriptor

    def _on_legend_changed(self, entries: List[LegendEntry]) -> None:
        self.legend = list(entries)

    def _on_notice(self, notice: Notice) -> None:
        self.state.notices.append(notice)

    # -------------------------------------------------------------------------
    # Selection
    # -------------------------------------------------------------------------

    def _reset(self) -> None:
        self.snapshots.clear()
        self.tiles.reset()
        self.analyzer.clear()
        self.overlay.clear_field_layers()
        self.state = SelectionState(index_type=self.state.index_type)
        self.legend = []
        self.probe = None

    async def open_field(self, field_id: str) -> bool:
        """
        Make ``field_id`` the active field.

        Everything tied to the previous field is reset first; then the
        boundary is drawn and the snapshots of the active index are loaded.

        Returns:
            True when the field was loaded and is now active
        """
        generation = self._field_generations.issue(field_id)
        self._reset()
        try:
            field = await self.field_context.get_field(field_id)
        except TransportFailure as exc:
            if self._field_generations.is_current(generation):
                await self.bus.publish(
                    NOTICE, Notice("error", f"Could not load the field. {exc.describe()}")
                )
            return False

        if not self._field_generations.is_current(generation):
            logger.debug("Discarding stale field load for %s", field_id)
            return False

        self.state.field = field
        self.overlay.show_boundary(field)
        await self._load_for_index()
        return True

    async def set_index_type(self, index_type: str) -> bool:
        """
        Switch the active index; reloads snapshots and refreshes tiles.

        Unknown index codes are logged and ignored.
        """
        try:
            validate_index(index_type)
        except InvalidSelection as exc:
            logger.warning("Ignoring index change: %s", exc)
            return False

        self.state.index_type = index_type
        if self.state.field is not None:
            await self._load_for_index()
        return True

    async def _load_for_index(self) -> None:
        field = self.state.field
        outcome = await self.snapshots.load_snapshots(field.id, self.state.index_type)
        if outcome is LoadOutcome.FAILED:
            # No selection was signalled; the raster still has to follow the index
            await self.tiles.refresh(field, self.state.index_type, self.state.reference_date())

    async def select_snapshot(self, snapshot_id: str) -> bool:
        return await self.snapshots.select_snapshot(snapshot_id)

    async def run_historical_analysis(self, count: Optional[int] = None) -> Optional[HistoricalAnalysisResult]:
        """Recompute recent snapshots of the active field and index."""
        field = self.state.field
        if field is None:
            logger.warning("Ignoring historical analysis: no field selected")
            return None
        return await self.snapshots.run_historical_analysis(field.id, self.state.index_type, count)

    # -------------------------------------------------------------------------
    # Probe
    # -------------------------------------------------------------------------

    def probe_at(self, lat: float, lng: float) -> Optional[ProbeReading]:
        """Approximate value under the pointer, or None to hide the probe."""
        snapshot = self.state.snapshot
        self.probe = self.overlay.probe_at(
            lat, lng, self.state.index_type,
            snapshot.mean_value if snapshot is not None else None,
        )
        return self.probe

    def handle_pointer_move(self, lat: float, lng: float) -> Optional[ProbeReading]:
        return self.probe_at(lat, lng)

    def handle_pointer_leave(self, *_args) -> None:
        self.probe = None

    # -------------------------------------------------------------------------
    # Trend analysis
    # -------------------------------------------------------------------------

    def build_analysis_request(self, mode: AnalysisMode, year: Optional[int] = None,
                               start_month: int = 1, end_month: int = 3) -> AnalysisRequest:
        if self.state.field is None:
            raise InvalidSelection("no field selected")
        return AnalysisRequest(
            field_id=self.state.field.id,
            index_type=self.state.index_type,
            mode=mode,
            year=year,
            start_month=start_month,
            end_month=end_month,
        )

    async def analyze(self, request: AnalysisRequest) -> Optional[TimeSeriesResult]:
        """Run a time-series analysis; stale results come back as None."""
        try:
            validate_index(request.index_type)
        except InvalidSelection as exc:
            logger.warning("Ignoring analysis: %s", exc)
            return None
        self.state.analysis_request = request
        return await self.analyzer.analyze(request)

    def export_bundle(self) -> Optional[ExportBundle]:
        result = self.analyzer.result
        if result is None:
            return None
        name = self.state.field.name if self.state.field else None
        return build_export_bundle(result, name, self.settings.chart_service_url)

    # -------------------------------------------------------------------------
    # Search
    # -------------------------------------------------------------------------

    async def search_places(self, query: str) -> Optional[List[PlaceResult]]:
        return await self.search.on_input(query)

    def recenter_on(self, place: PlaceResult, zoom: int = 15) -> bool:
        return self.overlay.recenter(place.lat, place.lon, zoom, label=place.display_name)

    # -------------------------------------------------------------------------
    # Base map
    # -------------------------------------------------------------------------

    @property
    def base_layer(self) -> Optional[str]:
        return self.overlay.active_base_layer

    def set_base_layer(self, name: str) -> bool:
        """Switch between the satellite and street base maps."""
        return self.overlay.select_base_layer(name)

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    def close(self) -> None:
        """Tear down: drop pending work, remove every layer, unsubscribe."""
        if not self.mounted:
            return
        self._field_generations.invalidate()
        self.search.debouncer.cancel()
        self._reset()
        self.overlay.clear_all()
        for unsubscribe in self._unsubscribe:
            unsubscribe()
        self._unsubscribe = []
        self.field_context.clear()
        self.mounted = False
