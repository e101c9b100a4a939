"""
FieldWatch VI - Folium Map Handle
=================================
Concrete map handle built on Folium. Folium maps are rendered once, so the
handle keeps an ordered record of live layers and builds a fresh
``folium.Map`` from it on every ``to_folium`` call.
"""

import itertools
import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Tuple

import folium

from .models import Bounds

logger = logging.getLogger(__name__)

_layer_ids = itertools.count(1)


@dataclass(eq=False)
class MapLayer:
    """Library-neutral description of one layer."""

    kind: str
    source: Any
    options: Dict[str, Any] = field(default_factory=dict)
    bounds: Optional[Bounds] = None
    id: int = field(default_factory=lambda: next(_layer_ids))

    @property
    def name(self) -> str:
        return self.options.get("name") or f"{self.kind}-{self.id}"


class FoliumMapHandle:
    """Map handle whose layer stack is rendered with Folium."""

    def __init__(self, center: Tuple[float, float] = (13.7, 100.5), zoom: int = 15):
        self.center = center
        self.zoom = zoom
        self.layers: List[MapLayer] = []
        self.viewport: Optional[Bounds] = None
        self.padding: Tuple[int, int] = (0, 0)
        self._handlers: Dict[str, List[Callable[..., Any]]] = {}

    # -------------------------------------------------------------------------
    # Layer constructors
    # -------------------------------------------------------------------------

    def tile_layer(self, url_template: str, **options: Any) -> MapLayer:
        return MapLayer(kind="tile", source=url_template, options=options)

    def image_overlay(self, url: str, bounds: Bounds, **options: Any) -> MapLayer:
        return MapLayer(kind="image", source=url, options=options, bounds=bounds)

    def geojson_layer(self, geometry: Dict[str, Any], **options: Any) -> MapLayer:
        return MapLayer(kind="geojson", source=geometry, options=options)

    def marker(self, lat: float, lng: float, **options: Any) -> MapLayer:
        return MapLayer(kind="marker", source=(lat, lng), options=options)

    # -------------------------------------------------------------------------
    # Layer stack
    # -------------------------------------------------------------------------

    def add_layer(self, layer: MapLayer) -> None:
        if not isinstance(layer, MapLayer):
            raise TypeError(f"not a map layer: {layer!r}")
        if layer not in self.layers:
            self.layers.append(layer)

    def remove_layer(self, layer: MapLayer) -> None:
        if layer in self.layers:
            self.layers.remove(layer)

    def has_layer(self, layer: MapLayer) -> bool:
        return layer in self.layers

    def layers_of_kind(self, kind: str) -> List[MapLayer]:
        return [layer for layer in self.layers if layer.kind == kind]

    def fit_bounds(self, bounds: Bounds, padding: Tuple[int, int]) -> None:
        self.viewport = bounds
        self.padding = tuple(padding)
        self.center = ((bounds.south + bounds.north) / 2, (bounds.west + bounds.east) / 2)

    def pan_to(self, lat: float, lng: float, zoom: Optional[int] = None) -> None:
        self.viewport = None
        self.center = (lat, lng)
        if zoom is not None:
            self.zoom = zoom

    # -------------------------------------------------------------------------
    # Pointer events
    # -------------------------------------------------------------------------

    def on(self, event: str, handler: Callable[..., Any]) -> None:
        self._handlers.setdefault(event, []).append(handler)

    def dispatch(self, event: str, *args: Any) -> List[Any]:
        """Invoke handlers for an event reported by the front end."""
        return [handler(*args) for handler in self._handlers.get(event, [])]

    # -------------------------------------------------------------------------
    # Rendering
    # -------------------------------------------------------------------------

    def to_folium(self) -> folium.Map:
        """
        Build a Folium map for the current layer stack.

        Returns:
            folium.Map with base layers, overlays, boundary and layer control
        """
        m = folium.Map(
            location=list(self.center),
            zoom_start=self.zoom,
            tiles=None,
            control_scale=True,
            zoom_control=False
        )

        for layer in self.layers:
            options = dict(layer.options)
            name = options.pop("name", layer.name)

            if layer.kind == "tile":
                is_base = options.pop("base", False)
                options.pop("overlay", None)
                folium.TileLayer(
                    tiles=layer.source,
                    attr=options.pop("attribution", "FieldWatch"),
                    name=name,
                    overlay=not is_base,
                    control=True,
                    show=True,
                    **options
                ).add_to(m)
            elif layer.kind == "image":
                folium.raster_layers.ImageOverlay(
                    image=layer.source,
                    bounds=layer.bounds.as_corners(),
                    name=name,
                    opacity=options.get("opacity", 1.0),
                    interactive=False,
                    cross_origin=False
                ).add_to(m)
            elif layer.kind == "geojson":
                style = options.get("style", {})
                folium.GeoJson(
                    layer.source,
                    name=name,
                    style_function=lambda _feature, style=style: style
                ).add_to(m)
            elif layer.kind == "marker":
                folium.Marker(
                    location=list(layer.source),
                    tooltip=options.get("tooltip") or name,
                    icon=folium.Icon(color=options.get("color", "green"), icon="map-marker")
                ).add_to(m)
            else:
                logger.warning("Skipping unknown layer kind %s", layer.kind)

        if self.viewport is not None:
            m.fit_bounds(self.viewport.as_corners(), padding=self.padding)

        folium.LayerControl(position='topleft', collapsed=True).add_to(m)
        return m
