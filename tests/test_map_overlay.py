import pytest

from tests.fakes import FakeMapHandle, make_field
from vi_engine.config import Settings
from vi_engine.map_overlay import (
    BOUNDARY_STYLE,
    DEFAULT_BASE_LAYER,
    MapOverlayManager,
    synthetic_probe_value,
)
from vi_engine.models import Bounds


def _overlay(handle=None):
    handle = handle or FakeMapHandle()
    return MapOverlayManager(handle, Settings()), handle


def test_base_layers_switch_one_at_a_time():
    overlay, handle = _overlay()
    overlay.install_base_layers()

    assert overlay.active_base_layer == DEFAULT_BASE_LAYER
    assert len(handle.of_kind("tile")) == 1

    assert overlay.select_base_layer("OpenStreetMap") is True
    assert [layer.options["name"] for layer in handle.of_kind("tile")] == ["OpenStreetMap"]
    assert overlay.select_base_layer("Nope") is False


def test_boundary_is_drawn_once_and_fitted():
    overlay, handle = _overlay()
    field = make_field()

    overlay.show_boundary(field)
    overlay.show_boundary(field)

    boundaries = handle.of_kind("geojson")
    assert len(boundaries) == 1
    assert boundaries[0].options["style"] == BOUNDARY_STYLE
    bounds, padding = handle.fitted[-1]
    assert bounds == Bounds(south=14.0, west=100.0, north=14.01, east=100.01)
    assert padding == (20, 20)


def test_at_most_one_raster_and_one_image_overlay():
    overlay, handle = _overlay()
    bounds = Bounds(14.0, 100.0, 14.01, 100.01)

    overlay.show_raster_overlay("https://t/1/{z}/{x}/{y}")
    overlay.show_raster_overlay("https://t/2/{z}/{x}/{y}")
    overlay.show_image_overlay("https://i/1.png", bounds)
    overlay.show_image_overlay("https://i/2.png", bounds)

    assert [layer.source for layer in handle.of_kind("tile")] == ["https://t/2/{z}/{x}/{y}"]
    assert [layer.source for layer in handle.of_kind("image")] == ["https://i/2.png"]

    overlay.clear_field_layers()
    assert handle.layers == []
    assert overlay.has_raster_overlay is False
    assert overlay.has_image_overlay is False


def test_probe_requires_overlay_and_pointer_inside():
    overlay, handle = _overlay()
    overlay.show_boundary(make_field())

    assert overlay.probe_at(14.005, 100.005, "NDVI", 0.6) is None

    overlay.show_raster_overlay("https://t/{z}/{x}/{y}")
    reading = overlay.probe_at(14.005, 100.005, "NDVI", 0.6)
    assert reading.approximate is True
    assert overlay.probe_at(13.0, 100.005, "NDVI", 0.6) is None


def test_synthetic_probe_value_is_deterministic_and_clamped():
    centroid = (14.005, 100.005)

    first = synthetic_probe_value(14.006, 100.004, centroid, 0.5, (0.0, 1.0))
    assert first == synthetic_probe_value(14.006, 100.004, centroid, 0.5, (0.0, 1.0))
    assert 0.399 <= first <= 0.601
    assert synthetic_probe_value(14.005, 100.005, centroid, 0.5, (0.0, 1.0)) == pytest.approx(0.4)
    assert synthetic_probe_value(14.005, 100.005, centroid, 0.65, (0.0, 0.6)) == pytest.approx(0.55)
    assert synthetic_probe_value(14.005, 100.005, centroid, 0.0, (0.0, 1.0)) == 0.0


def test_failing_map_calls_are_logged_not_raised(caplog):
    handle = FakeMapHandle(fail_on=("add_layer", "remove_layer", "tile_layer"))
    overlay, _ = _overlay(handle)

    overlay.install_base_layers()
    overlay.show_raster_overlay("https://t/{z}/{x}/{y}")
    overlay.clear_all()

    assert handle.layers == []
    assert "Map operation failed" in caplog.text


def test_recenter_replaces_the_place_marker():
    overlay, handle = _overlay()

    assert overlay.recenter(18.79, 98.98, 12, label="Chiang Mai") is True
    assert overlay.recenter(13.75, 100.5, label="Bangkok") is True

    assert [m.source for m in handle.of_kind("marker")] == [(13.75, 100.5)]
    assert overlay.place == (13.75, 100.5)
    overlay.clear_place_marker()
    assert handle.of_kind("marker") == []


def test_recenter_still_pans_when_marker_fails():
    overlay, handle = _overlay(FakeMapHandle(fail_on=("marker",)))

    assert overlay.recenter(18.79, 98.98) is True
    assert handle.center == (18.79, 98.98)
    assert overlay.place is None
