import asyncio

from tests.fakes import ScriptedGateway
from vi_engine.errors import TransportFailure
from vi_engine.models import PlaceResult
from vi_engine.search import Debouncer, PlaceSearch

BANGKOK = PlaceResult("Bangkok", 13.75, 100.5, "city", "place")
CHIANG_MAI = PlaceResult("Chiang Mai", 18.79, 98.98, "city", "place")


async def _no_wait(_seconds):
    await asyncio.sleep(0)


def test_blank_query_returns_nothing_without_calls():
    gateway = ScriptedGateway()
    search = PlaceSearch(gateway, sleep=_no_wait)

    assert asyncio.run(search.search("   ")) == []
    assert asyncio.run(search.on_input("")) == []
    assert gateway.calls == []


def test_backend_search_used_first():
    gateway = ScriptedGateway()
    gateway.places = [BANGKOK]

    assert asyncio.run(PlaceSearch(gateway).search("bang")) == [BANGKOK]
    assert gateway.calls == [("search", "bang")]


def test_falls_back_to_nominatim():
    gateway = ScriptedGateway()
    gateway.failures["search"] = TransportFailure("Backend returned HTTP 503", status_code=503)
    gateway.nominatim = [CHIANG_MAI]

    assert asyncio.run(PlaceSearch(gateway).search("chiang")) == [CHIANG_MAI]


def test_both_searches_failing_returns_empty():
    gateway = ScriptedGateway()
    gateway.failures["search"] = TransportFailure("down")
    gateway.failures["nominatim"] = TransportFailure("down too")

    assert asyncio.run(PlaceSearch(gateway).search("x")) == []


def test_debounced_input_only_runs_last_query():
    gateway = ScriptedGateway()
    gateway.places = [CHIANG_MAI]
    search = PlaceSearch(gateway, sleep=_no_wait)

    async def scenario():
        return await asyncio.gather(
            search.on_input("ch"),
            search.on_input("chi"),
            search.on_input("chiang"),
        )

    results = asyncio.run(scenario())

    assert results == [None, None, [CHIANG_MAI]]
    assert gateway.calls == [("search", "chiang")]
    assert search.results == [CHIANG_MAI]


def test_debouncer_waits_for_quiet_period():
    waits = []

    async def fake_sleep(seconds):
        waits.append(seconds)

    async def work():
        return "done"

    debouncer = Debouncer(0.35, sleep=fake_sleep)

    assert asyncio.run(debouncer.submit(work)) == "done"
    assert waits == [0.35]
