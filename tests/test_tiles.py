import asyncio
from datetime import date

from tests.fakes import FakeMapHandle, ScriptedGateway, make_field
from vi_engine.config import Settings
from vi_engine.errors import TransportFailure
from vi_engine.events import LEGEND_CHANGED, NOTICE, EventBus
from vi_engine.map_overlay import MapOverlayManager
from vi_engine.models import TileDescriptor
from vi_engine.tiles import RefreshOutcome, TileOverlaySynchronizer


def _synchronizer(settings=None):
    settings = settings or Settings()
    gateway = ScriptedGateway(settings)
    handle = FakeMapHandle()
    overlay = MapOverlayManager(handle, settings)
    overlay.show_boundary(make_field())
    bus = EventBus()
    return TileOverlaySynchronizer(gateway, overlay, bus, settings), gateway, handle, bus


def _rasters(handle):
    return [layer for layer in handle.of_kind("tile") if not layer.options.get("base")]


def test_refresh_applies_tiles_and_legend():
    tiles, gateway, handle, bus = _synchronizer()
    legends = []
    bus.subscribe(LEGEND_CHANGED, legends.append)

    outcome = asyncio.run(tiles.refresh(make_field(), "NDVI", date(2024, 3, 1)))

    assert outcome is RefreshOutcome.APPLIED
    assert tiles.window == (date(2024, 1, 31), date(2024, 3, 1))
    assert [layer.source for layer in _rasters(handle)] == ["https://tiles.example/NDVI/{z}/{x}/{y}.png"]
    assert [e.label for e in legends[-1]] == ["NDVI low", "NDVI high"]


def test_window_length_follows_settings():
    tiles, gateway, handle, bus = _synchronizer(Settings(tile_window_days=10))

    asyncio.run(tiles.refresh(make_field(), "NDVI", date(2024, 3, 1)))

    assert tiles.window == (date(2024, 2, 20), date(2024, 3, 1))


def test_late_response_of_superseded_refresh_is_discarded():
    tiles, gateway, handle, bus = _synchronizer()

    async def scenario():
        release = gateway.hold("tiles", "NDVI")
        first = asyncio.create_task(tiles.refresh(make_field(), "NDVI"))
        await asyncio.sleep(0)
        second = await tiles.refresh(make_field(), "EVI")
        release.set()
        return await first, second

    first, second = asyncio.run(scenario())

    assert first is RefreshOutcome.STALE
    assert second is RefreshOutcome.APPLIED
    assert [layer.source for layer in _rasters(handle)] == ["https://tiles.example/EVI/{z}/{x}/{y}.png"]
    assert [e.label for e in tiles.legend] == ["EVI low", "EVI high"]


def test_unavailable_descriptor_clears_raster():
    tiles, gateway, handle, bus = _synchronizer()
    field = make_field()

    async def scenario():
        await tiles.refresh(field, "NDVI")
        gateway.tiles["NDVI"] = TileDescriptor.from_api({"available": False, "reason": "no_clear_imagery"})
        return await tiles.refresh(field, "NDVI")

    outcome = asyncio.run(scenario())

    assert outcome is RefreshOutcome.UNAVAILABLE
    assert _rasters(handle) == []
    assert tiles.legend == []
    assert tiles.descriptor.reason == "no_clear_imagery"


def test_transport_failure_keeps_current_layer_and_notifies():
    tiles, gateway, handle, bus = _synchronizer()
    notices = []
    bus.subscribe(NOTICE, notices.append)
    field = make_field()

    async def scenario():
        await tiles.refresh(field, "NDVI")
        gateway.failures["tiles"] = TransportFailure("Request to /vi/tiles failed")
        return await tiles.refresh(field, "EVI")

    outcome = asyncio.run(scenario())

    assert outcome is RefreshOutcome.FAILED
    assert len(_rasters(handle)) == 1
    assert [e.label for e in tiles.legend] == ["NDVI low", "NDVI high"]
    assert notices[0].level == "error"


def test_reset_drops_in_flight_refresh():
    tiles, gateway, handle, bus = _synchronizer()

    async def scenario():
        release = gateway.hold("tiles", "NDVI")
        pending = asyncio.create_task(tiles.refresh(make_field(), "NDVI"))
        await asyncio.sleep(0)
        tiles.reset()
        release.set()
        return await pending

    assert asyncio.run(scenario()) is RefreshOutcome.STALE
    assert _rasters(handle) == []
