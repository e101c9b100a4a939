"""
FieldWatch VI - Data Model
==========================
Records exchanged between the gateway, the engine components and the UI.
Backend payloads are parsed here so the rest of the engine works with typed
values only.
"""

import calendar
import dataclasses
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple

from shapely.geometry import shape

from .errors import NoDataAvailable


def parse_date(raw: Any) -> Optional[date]:
    """Parse an ISO date or datetime string (``Z`` suffix allowed)."""
    if isinstance(raw, datetime):
        return raw.date()
    if isinstance(raw, date):
        return raw
    if not isinstance(raw, str) or not raw:
        return None
    candidate = raw.replace("Z", "+00:00")
    try:
        return datetime.fromisoformat(candidate).date()
    except ValueError:
        pass
    try:
        return date.fromisoformat(candidate[:10])
    except ValueError:
        return None


def parse_datetime(raw: Any) -> Optional[datetime]:
    if isinstance(raw, datetime):
        return raw
    if not isinstance(raw, str) or not raw:
        return None
    try:
        return datetime.fromisoformat(raw.replace("Z", "+00:00"))
    except ValueError:
        return None


def _to_float(raw: Any) -> Optional[float]:
    if raw is None or raw == "":
        return None
    try:
        return float(raw)
    except (TypeError, ValueError):
        return None


# =============================================================================
# Geometry
# =============================================================================

@dataclass(frozen=True)
class Bounds:
    """Geographic bounding box in WGS84 degrees."""

    south: float
    west: float
    north: float
    east: float

    def contains(self, lat: float, lng: float) -> bool:
        return self.south <= lat <= self.north and self.west <= lng <= self.east

    def as_corners(self) -> List[List[float]]:
        """``[[south, west], [north, east]]`` as expected by Leaflet/folium."""
        return [[self.south, self.west], [self.north, self.east]]


@dataclass(frozen=True)
class Field:
    """Field record supplied by the field context."""

    id: str
    name: str
    geometry: Optional[Dict[str, Any]] = None
    centroid_lat: Optional[float] = None
    centroid_lng: Optional[float] = None

    @classmethod
    def from_api(cls, payload: Dict[str, Any]) -> "Field":
        geometry = payload.get("geometry") or payload.get("boundary")
        lat = _to_float(payload.get("centroid_lat"))
        lng = _to_float(payload.get("centroid_lng"))
        if (lat is None or lng is None) and geometry:
            centroid = shape(geometry).centroid
            lat, lng = centroid.y, centroid.x
        return cls(
            id=str(payload["id"]),
            name=payload.get("name") or "",
            geometry=geometry,
            centroid_lat=lat,
            centroid_lng=lng,
        )

    @property
    def centroid(self) -> Tuple[float, float]:
        return (self.centroid_lat or 0.0, self.centroid_lng or 0.0)

    def bounds(self) -> Optional[Bounds]:
        """Bounds of the boundary geometry, or None without a boundary."""
        if not self.geometry:
            return None
        minx, miny, maxx, maxy = shape(self.geometry).bounds
        return Bounds(south=miny, west=minx, north=maxy, east=maxx)

    def aoi_feature_collection(self) -> Dict[str, Any]:
        """The boundary wrapped as the area-of-interest FeatureCollection."""
        return {
            "type": "FeatureCollection",
            "features": [
                {"type": "Feature", "properties": {}, "geometry": self.geometry}
            ],
        }


# =============================================================================
# Snapshots and tiles
# =============================================================================

@dataclass(frozen=True)
class VISnapshot:
    """One computed index result for a field on a date."""

    id: str
    field_id: str
    index_type: str
    snapshot_date: date
    mean_value: float
    min_value: Optional[float] = None
    max_value: Optional[float] = None
    overlay_asset_ref: Optional[str] = None
    status_message: Optional[str] = None
    created_at: Optional[datetime] = None

    @classmethod
    def from_api(cls, payload: Dict[str, Any]) -> "VISnapshot":
        snapshot_date = parse_date(payload.get("snapshot_date"))
        if snapshot_date is None:
            raise ValueError(f"snapshot without a valid date: {payload.get('id')!r}")
        return cls(
            id=str(payload["id"]),
            field_id=str(payload.get("field_id", "")),
            index_type=payload.get("vi_type") or payload.get("index_type") or "",
            snapshot_date=snapshot_date,
            mean_value=float(payload.get("mean_value") or 0.0),
            min_value=_to_float(payload.get("min_value")),
            max_value=_to_float(payload.get("max_value")),
            overlay_asset_ref=payload.get("overlay_data") or None,
            status_message=payload.get("status_message"),
            created_at=parse_datetime(payload.get("created_at")),
        )


@dataclass(frozen=True)
class LegendBreak:
    """One class of a backend-provided discrete legend."""

    color: str
    label: str
    lower: Optional[float] = None
    upper: Optional[float] = None
    percent: Optional[float] = None


@dataclass(frozen=True)
class LegendEntry:
    """Legend row as published to the UI: color and label only."""

    color: str
    label: str


@dataclass(frozen=True)
class TileDescriptor:
    """Backend answer describing whether raster tiles exist for a window."""

    available: bool
    tile_url_template: Optional[str] = None
    legend: Tuple[LegendBreak, ...] = ()
    reason: Optional[str] = None

    @classmethod
    def from_api(cls, payload: Dict[str, Any]) -> "TileDescriptor":
        breaks = []
        legend = payload.get("legend")
        if isinstance(legend, dict) and isinstance(legend.get("breaks"), list):
            for item in legend["breaks"]:
                breaks.append(LegendBreak(
                    color=item.get("color", ""),
                    label=item.get("label", ""),
                    lower=_to_float(item.get("from")),
                    upper=_to_float(item.get("to")),
                    percent=_to_float(item.get("percent")),
                ))
        tiles = payload.get("tiles") or payload.get("tile_url_template")
        available = bool(payload.get("available")) and bool(tiles)
        reason = payload.get("reason")
        if payload.get("available") and not tiles:
            reason = reason or "missing_tile_url"
        return cls(
            available=available,
            tile_url_template=tiles if available else None,
            legend=tuple(breaks),
            reason=reason,
        )

    def require_tiles(self) -> str:
        """Tile URL template; raises NoDataAvailable when none is renderable."""
        if not self.available or not self.tile_url_template:
            raise NoDataAvailable(self.reason or "unavailable")
        return self.tile_url_template

    def legend_entries(self) -> List[LegendEntry]:
        return [LegendEntry(color=b.color, label=b.label) for b in self.legend]


@dataclass(frozen=True)
class HistoricalAnalysisResult:
    snapshots_created: int
    unique_dates: int

    @classmethod
    def from_api(cls, payload: Dict[str, Any]) -> "HistoricalAnalysisResult":
        return cls(
            snapshots_created=int(payload.get("snapshots_created") or 0),
            unique_dates=int(payload.get("unique_dates") or 0),
        )


# =============================================================================
# Time series
# =============================================================================

class AnalysisMode(str, Enum):
    MONTHLY_RANGE = "monthly_range"
    FULL_YEAR = "full_year"
    TEN_YEAR_AVG = "ten_year_avg"


@dataclass(frozen=True)
class TimeSeriesPoint:
    """One bucketed value; ordering is by ``bucket_date``, never the label."""

    bucket_date: date
    bucket_label: str
    value: float


@dataclass(frozen=True)
class AnalysisRequest:
    """Parameters of one time-series query."""

    field_id: str
    index_type: str
    mode: AnalysisMode = AnalysisMode.MONTHLY_RANGE
    year: Optional[int] = None
    start_month: int = 1
    end_month: int = 3

    def __post_init__(self):
        object.__setattr__(self, "mode", AnalysisMode(self.mode))
        if self.mode is AnalysisMode.MONTHLY_RANGE:
            if not 1 <= self.start_month <= 12 or not 1 <= self.end_month <= 12:
                raise ValueError("months must be between 1 and 12")
            if self.start_month > self.end_month:
                raise ValueError("start_month must not be after end_month")

    def date_range(self, today: Optional[date] = None) -> Tuple[date, date]:
        """
        Derive the query window for the request's mode.

        Args:
            today: Reference day for ``ten_year_avg`` and the default year

        Returns:
            (start_date, end_date), both inclusive
        """
        today = today or date.today()
        year = self.year or today.year

        if self.mode is AnalysisMode.MONTHLY_RANGE:
            last_day = calendar.monthrange(year, self.end_month)[1]
            return date(year, self.start_month, 1), date(year, self.end_month, last_day)
        if self.mode is AnalysisMode.FULL_YEAR:
            return date(year, 1, 1), date(year, 12, 31)

        try:
            start = today.replace(year=today.year - 10)
        except ValueError:
            # 29 February
            start = today.replace(year=today.year - 10, day=28)
        return start, today


# =============================================================================
# Engine state
# =============================================================================

@dataclass(frozen=True)
class ProbeReading:
    """
    Value shown by the pointer probe.

    The value is a synthetic approximation derived from the pointer offset and
    the snapshot mean, not a per-pixel sample; ``approximate`` is always True.
    """

    index_type: str
    value: float
    lat: float
    lng: float
    approximate: bool = True


@dataclass(frozen=True)
class PlaceResult:
    display_name: str
    lat: float
    lon: float
    type: str = ""
    category: str = ""


@dataclass(frozen=True)
class Notice:
    """User-facing status message."""

    level: str
    message: str


@dataclass
class SelectionState:
    """Engine-owned, ephemeral selection."""

    field: Optional[Field] = None
    index_type: str = "NDVI"
    snapshot: Optional[VISnapshot] = None
    tile_descriptor: Optional[TileDescriptor] = None
    analysis_request: Optional[AnalysisRequest] = None
    notices: List[Notice] = dataclasses.field(default_factory=list)

    def reference_date(self) -> Optional[date]:
        return self.snapshot.snapshot_date if self.snapshot else None


def tile_window(reference: Optional[date], days: int) -> Tuple[date, date]:
    """Trailing ``days`` window ending at ``reference`` (today by default)."""
    end = reference or date.today()
    return end - timedelta(days=days), end
