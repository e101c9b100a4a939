"""
FieldWatch VI - Map Overlay Manager
===================================
Owns the layer stack of one map handle: base layers, the field boundary,
at most one raster tile overlay, at most one static image overlay and the
pointer probe. Every map call is guarded so that a rendering failure never
interrupts the engine's state transitions.
"""

import logging
import math
from typing import Any, Callable, Dict, Optional, Protocol, Tuple

from .config import Settings
from .models import Bounds, Field, ProbeReading
from .vegetation_indices import get_index_range

logger = logging.getLogger(__name__)


BASE_LAYERS = {
    "Esri Satellite": {
        "url": "https://server.arcgisonline.com/ArcGIS/rest/services/World_Imagery/MapServer/tile/{z}/{y}/{x}",
        "attribution": "Tiles © Esri",
    },
    "OpenStreetMap": {
        "url": "https://{s}.tile.openstreetmap.org/{z}/{x}/{y}.png",
        "attribution": "© OpenStreetMap",
        "max_zoom": 19,
    },
}
DEFAULT_BASE_LAYER = "Esri Satellite"

BOUNDARY_STYLE = {
    "color": "#2b7a4b",
    "weight": 2,
    "fillOpacity": 0.05,
}

# Probe value used when no snapshot is selected
DEFAULT_PROBE_BASE = 0.5


class MapHandle(Protocol):
    """Capabilities the engine needs from a map-rendering library."""

    def tile_layer(self, url_template: str, **options: Any) -> Any: ...

    def image_overlay(self, url: str, bounds: Bounds, **options: Any) -> Any: ...

    def geojson_layer(self, geometry: Dict[str, Any], **options: Any) -> Any: ...

    def marker(self, lat: float, lng: float, **options: Any) -> Any: ...

    def add_layer(self, layer: Any) -> None: ...

    def remove_layer(self, layer: Any) -> None: ...

    def fit_bounds(self, bounds: Bounds, padding: Tuple[int, int]) -> None: ...

    def pan_to(self, lat: float, lng: float, zoom: Optional[int] = None) -> None: ...

    def on(self, event: str, handler: Callable[..., Any]) -> None: ...


def synthetic_probe_value(lat: float, lng: float, centroid: Tuple[float, float],
                          base_value: float, value_range: Tuple[float, float]) -> float:
    """
    Approximate index value under the pointer.

    The value is derived from the pointer offset to the field centroid and the
    snapshot mean; it is a visual approximation, not a raster sample.

    Args:
        lat: Pointer latitude
        lng: Pointer longitude
        centroid: (lat, lng) of the field centroid
        base_value: Snapshot mean value
        value_range: Valid (min, max) of the index

    Returns:
        Value clamped to ``value_range``
    """
    lat_offset = (lat - centroid[0]) * 1000
    lng_offset = (lng - centroid[1]) * 1000
    seed = math.fmod(abs(lat_offset + lng_offset), 1000)
    variation = (math.fmod(seed, 200) - 100) / 1000
    low, high = value_range
    return max(low, min(high, base_value + variation))


class MapOverlayManager:
    """Layer stack of a single map handle."""

    def __init__(self, map_handle: MapHandle, settings: Settings):
        self.map = map_handle
        self.settings = settings

        self._base_layers: Dict[str, Any] = {}
        self.active_base_layer: Optional[str] = None

        self._field: Optional[Field] = None
        self._boundary_layer = None

        self._raster_layer = None
        self.raster_url: Optional[str] = None

        self._image_layer = None
        self.image_url: Optional[str] = None
        self.image_bounds: Optional[Bounds] = None

        self._place_marker = None
        self.place: Optional[Tuple[float, float]] = None

    # -------------------------------------------------------------------------
    # Guarded map calls
    # -------------------------------------------------------------------------

    def _call(self, action: str, fn: Callable[..., Any], *args: Any, **kwargs: Any) -> Any:
        """Run a map API call; failures are logged and reported as None."""
        try:
            result = fn(*args, **kwargs)
        except Exception:
            logger.exception("Map operation failed: %s", action)
            return None
        return True if result is None else result

    def _remove(self, layer: Any, action: str) -> None:
        if layer is not None:
            self._call(action, self.map.remove_layer, layer)

    def _add(self, layer: Any, action: str) -> bool:
        if layer is None:
            return False
        return self._call(action, self.map.add_layer, layer) is not None

    # -------------------------------------------------------------------------
    # Base layers
    # -------------------------------------------------------------------------

    def install_base_layers(self, default: str = DEFAULT_BASE_LAYER) -> None:
        """Create the satellite and street base layers and show ``default``."""
        for name, spec in BASE_LAYERS.items():
            if name in self._base_layers:
                continue
            options = {k: v for k, v in spec.items() if k != "url"}
            layer = self._call(
                f"create base layer {name}",
                self.map.tile_layer, spec["url"], name=name, base=True, **options
            )
            if layer is not None:
                self._base_layers[name] = layer
        self.select_base_layer(default)

    def select_base_layer(self, name: str) -> bool:
        """Show one base layer and hide the other; unknown names are ignored."""
        if name not in self._base_layers:
            logger.warning("Ignoring unknown base layer %r", name)
            return False
        if self.active_base_layer == name:
            return True
        if self.active_base_layer is not None:
            self._remove(self._base_layers[self.active_base_layer], "remove base layer")
        self._add(self._base_layers[name], "add base layer")
        self.active_base_layer = name
        return True

    # -------------------------------------------------------------------------
    # Field boundary
    # -------------------------------------------------------------------------

    @property
    def field(self) -> Optional[Field]:
        return self._field

    @property
    def boundary_bounds(self) -> Optional[Bounds]:
        return self._field.bounds() if self._field else None

    def show_boundary(self, field: Field) -> None:
        """Replace the boundary layer and fit the viewport to the field."""
        self.clear_boundary()
        self._field = field
        if not field.geometry:
            logger.info("Field %s has no boundary geometry", field.id)
            return

        layer = self._call(
            "create boundary layer",
            self.map.geojson_layer, field.geometry, name="Field boundary", style=dict(BOUNDARY_STYLE)
        )
        if self._add(layer, "add boundary layer"):
            self._boundary_layer = layer

        bounds = field.bounds()
        if bounds is not None:
            self._call("fit bounds", self.map.fit_bounds, bounds, self.settings.fit_padding)

    def clear_boundary(self) -> None:
        self._remove(self._boundary_layer, "remove boundary layer")
        self._boundary_layer = None
        self._field = None

    # -------------------------------------------------------------------------
    # Raster tile overlay
    # -------------------------------------------------------------------------

    @property
    def has_raster_overlay(self) -> bool:
        return self.raster_url is not None

    def show_raster_overlay(self, url_template: str, opacity: Optional[float] = None) -> None:
        """Replace the raster tile overlay; at most one is ever on the map."""
        self.clear_raster_overlay()
        opacity = self.settings.raster_opacity if opacity is None else opacity
        layer = self._call(
            "create raster layer",
            self.map.tile_layer, url_template, name="Vegetation index", opacity=opacity, overlay=True
        )
        self._add(layer, "add raster layer")
        self._raster_layer = layer
        self.raster_url = url_template

    def clear_raster_overlay(self) -> None:
        self._remove(self._raster_layer, "remove raster layer")
        self._raster_layer = None
        self.raster_url = None

    # -------------------------------------------------------------------------
    # Static image overlay
    # -------------------------------------------------------------------------

    @property
    def has_image_overlay(self) -> bool:
        return self.image_url is not None

    def show_image_overlay(self, url: str, bounds: Bounds, opacity: Optional[float] = None) -> None:
        """Replace the static image overlay, stretched over ``bounds``."""
        self.clear_image_overlay()
        opacity = self.settings.image_opacity if opacity is None else opacity
        layer = self._call(
            "create image overlay",
            self.map.image_overlay, url, bounds, name="Snapshot overlay", opacity=opacity
        )
        self._add(layer, "add image overlay")
        self._image_layer = layer
        self.image_url = url
        self.image_bounds = bounds

    def clear_image_overlay(self) -> None:
        self._remove(self._image_layer, "remove image overlay")
        self._image_layer = None
        self.image_url = None
        self.image_bounds = None

    # -------------------------------------------------------------------------
    # Probe
    # -------------------------------------------------------------------------

    @property
    def overlay_bounds(self) -> Optional[Bounds]:
        """Bounds of the displayed overlay, or None when nothing is shown."""
        if self.has_image_overlay:
            return self.image_bounds
        if self.has_raster_overlay:
            return self.boundary_bounds
        return None

    def probe_at(self, lat: float, lng: float, index_type: str,
                 base_value: Optional[float] = None) -> Optional[ProbeReading]:
        """
        Probe reading for a pointer position.

        Args:
            lat: Pointer latitude
            lng: Pointer longitude
            index_type: Active index code
            base_value: Mean of the active snapshot, if any

        Returns:
            ProbeReading, or None when no overlay is shown or the pointer is
            outside its bounds (the UI hides the probe)
        """
        bounds = self.overlay_bounds
        if bounds is None or self._field is None or not bounds.contains(lat, lng):
            return None

        base = DEFAULT_PROBE_BASE if base_value is None else base_value
        value = synthetic_probe_value(
            lat, lng, self._field.centroid, base, get_index_range(index_type)
        )
        return ProbeReading(index_type=index_type, value=value, lat=lat, lng=lng)

    def recenter(self, lat: float, lng: float, zoom: Optional[int] = None,
                 label: Optional[str] = None) -> bool:
        """Pan the map to a searched place and mark it, replacing any earlier mark."""
        self.clear_place_marker()
        marker = self._call("create place marker", self.map.marker, lat, lng,
                            name="Search result", tooltip=label or None)
        if self._add(marker, "add place marker"):
            self._place_marker = marker
            self.place = (lat, lng)
        return self._call("pan map", self.map.pan_to, lat, lng, zoom) is not None

    def clear_place_marker(self) -> None:
        self._remove(self._place_marker, "remove place marker")
        self._place_marker = None
        self.place = None

    def bind_pointer(self, on_move: Callable[..., Any], on_leave: Callable[..., Any]) -> None:
        """Subscribe pointer handlers on the map handle."""
        self._call("bind mousemove", self.map.on, "mousemove", on_move)
        self._call("bind mouseout", self.map.on, "mouseout", on_leave)

    # -------------------------------------------------------------------------
    # Teardown
    # -------------------------------------------------------------------------

    def clear_field_layers(self) -> None:
        """Remove everything tied to the current field; base layers stay."""
        self.clear_raster_overlay()
        self.clear_image_overlay()
        self.clear_boundary()

    def clear_all(self) -> None:
        self.clear_field_layers()
        self.clear_place_marker()
        for layer in self._base_layers.values():
            self._remove(layer, "remove base layer")
        self._base_layers.clear()
        self.active_base_layer = None
