from __future__ import annotations

import asyncio
import math

import pytest

from weatherdesk.dispatch import UiDispatcher
from weatherdesk.domain import Place
from weatherdesk.orchestrator import DashboardOrchestrator, build_view_model
from weatherdesk.weather_clients import ApiError, NetworkError, WeatherApiClient

from tests.helpers import FakeSource, MemoryLines, Recorder, corrupt_gzip, make_current, make_day

pytestmark = pytest.mark.anyio


def orchestrator(dispatcher=None, source=None, favorites=None, last_query=None):
    return DashboardOrchestrator(
        source or FakeSource(),
        dispatcher or UiDispatcher(),
        favorites_store=favorites if favorites is not None else MemoryLines(),
        last_query_store=last_query if last_query is not None else MemoryLines(),
    )


async def search(orch, raw, place=None):
    task = orch.search(raw, place)
    await orch.dispatcher.settle()
    return task


def test_view_model_uses_selected_day_hourly():
    forecast = [make_day("Fri", 10, 20, {3: 12.0}), make_day("Sat", 11, 21, {5: 14.0})]

    vm = build_view_model("x", "x", make_current(), forecast, selected_day=1)

    low, high = vm.hourly_series
    assert low.values[5] == pytest.approx(12.5)
    assert math.isnan(low.values[3])
    assert vm.daily_series[0].categories == ("Fri", "Sat")
    assert vm.selected_day == 1


def test_view_model_with_empty_forecast():
    vm = build_view_model("x", "x", make_current(), [])

    assert vm.forecast == ()
    assert all(math.isnan(v) for v in vm.hourly_series[0].values)


async def test_successful_search_replaces_view_model(dispatcher):
    source = FakeSource(current=make_current(25.0, "Surat"))
    last_query = MemoryLines()
    orch = orchestrator(dispatcher, source, last_query=last_query)
    outcomes = []
    orch.set_listener(outcomes.append)

    await search(orch, "  Surat ")

    vm = orch.view_model
    assert vm.raw_input == "Surat"
    assert vm.query == "Surat"
    assert vm.current.temperature == 25.0
    assert vm.forecast[0].label == "Fri"
    assert orch.last_error is None
    assert orch.recents == ["Surat"]
    assert last_query.lines == ["Surat"]
    assert source.queries == ["Surat"]
    assert len(outcomes) == 1 and outcomes[0].ok
    assert orch.in_flight == 0


async def test_recents_do_not_repeat(dispatcher):
    orch = orchestrator(dispatcher)

    for raw in ["Surat", "Pune", "Surat"]:
        await search(orch, raw)

    assert orch.recents == ["Pune", "Surat"]


async def test_blank_search_is_a_no_op(dispatcher):
    source = FakeSource()
    orch = orchestrator(dispatcher, source)

    assert orch.search("   ") is None
    assert orch.search(None) is None
    await dispatcher.settle()

    assert source.queries == []
    assert orch.view_model is None
    assert orch.last_error is None


async def test_picked_place_is_searched_by_coordinates(dispatcher):
    source = FakeSource()
    orch = orchestrator(dispatcher, source)
    picked = Place(label="London, Canada", name="London", lat=42.98, lon=-81.25)

    await search(orch, "London, Canada", picked)

    assert source.queries == ["42.98,-81.25"]
    assert orch.view_model.raw_input == "London, Canada"
    assert orch.view_model.query == "42.98,-81.25"
    assert orch.recents == ["London, Canada"]


async def test_failure_keeps_previous_view_model(dispatcher):
    source = FakeSource()
    orch = orchestrator(dispatcher, source)
    outcomes = []
    orch.set_listener(outcomes.append)
    await search(orch, "Surat")
    before = orch.view_model

    # Current conditions succeed, forecast fails: nothing partial is shown
    source.forecast_error = ApiError("API error: No matching location found.")
    await search(orch, "Atlantis")

    assert orch.view_model is before
    assert orch.last_error == "API error: No matching location found."
    assert orch.recents == ["Surat"]
    assert not outcomes[-1].ok
    assert outcomes[-1].view_model is before


async def test_next_success_clears_error(dispatcher):
    source = FakeSource(current_error=NetworkError("offline"))
    orch = orchestrator(dispatcher, source)

    await search(orch, "Surat")
    assert orch.last_error == "offline"
    assert orch.view_model is None

    source.current_error = None
    await search(orch, "Surat")
    assert orch.last_error is None
    assert orch.view_model is not None


class HandshakeSource(FakeSource):
    """Each fetch waits for the other one to start."""

    def __init__(self):
        super().__init__()
        self.current_started = asyncio.Event()
        self.forecast_started = asyncio.Event()

    async def get_current_conditions(self, query):
        self.current_started.set()
        await asyncio.wait_for(self.forecast_started.wait(), 1)
        return await super().get_current_conditions(query)

    async def get_forecast(self, query, days=7):
        self.forecast_started.set()
        await asyncio.wait_for(self.current_started.wait(), 1)
        return await super().get_forecast(query, days)


async def test_current_and_forecast_are_fetched_together(dispatcher):
    source = HandshakeSource()
    orch = orchestrator(dispatcher, source)

    await search(orch, "Surat")

    assert orch.last_error is None
    assert orch.view_model is not None
    assert source.queries == source.forecast_queries == ["Surat"]


async def test_overlapping_fetches_take_one_round_trip(dispatcher):
    source = FakeSource(call_delay=0.1)
    orch = orchestrator(dispatcher, source)
    loop = asyncio.get_running_loop()

    started = loop.time()
    await search(orch, "Surat")

    assert loop.time() - started < 0.18
    assert orch.view_model is not None


async def test_undecodable_response_is_reported(dispatcher):
    recorder = Recorder({"current.json": corrupt_gzip, "forecast.json": corrupt_gzip})
    orch = orchestrator(dispatcher, WeatherApiClient("secret", transport=recorder.transport))
    outcomes = []
    orch.set_listener(outcomes.append)

    await search(orch, "Surat")

    assert orch.last_error is not None
    assert orch.in_flight == 0
    assert len(outcomes) == 1 and not outcomes[0].ok


async def test_persistence_failure_does_not_fail_search(dispatcher):
    orch = orchestrator(dispatcher, last_query=MemoryLines(fail=True))

    await search(orch, "Surat")

    assert orch.view_model is not None
    assert orch.last_error is None
    assert orch.recents == ["Surat"]


async def test_newer_search_supersedes_slow_older_one(dispatcher):
    source = FakeSource(delays={"Slow": 0.1})
    orch = orchestrator(dispatcher, source)

    orch.search("Slow")
    orch.search("Fast")
    await dispatcher.settle()

    assert orch.view_model.raw_input == "Fast"
    assert orch.recents == ["Fast"]
    assert orch.in_flight == 0


async def test_listener_slot_is_replaced(dispatcher):
    orch = orchestrator(dispatcher)
    first, second = [], []
    orch.set_listener(first.append)
    orch.set_listener(second.append)

    await search(orch, "Surat")

    assert first == []
    assert len(second) == 1


async def test_select_day_rebuilds_hourly_series(dispatcher):
    source = FakeSource(forecast=[make_day("Fri", 10, 20, {1: 11.0}), make_day("Sat", 12, 22, {2: 13.0})])
    orch = orchestrator(dispatcher, source)
    await search(orch, "Surat")

    vm = orch.select_day(1)

    assert vm.selected_day == 1
    assert vm.hourly_series[0].values[2] == pytest.approx(11.5)
    assert math.isnan(vm.hourly_series[0].values[1])
    # Out of range leaves the selection alone
    assert orch.select_day(7).selected_day == 1
    assert orch.select_day(-1).selected_day == 1


def test_select_day_without_view_model():
    orch = orchestrator()

    assert orch.select_day(0) is None


def test_restore_puts_last_query_first():
    orch = orchestrator(
        favorites=MemoryLines(["Pune", "Delhi"]),
        last_query=MemoryLines(["Surat"]),
    )

    assert orch.restore() == "Surat"
    assert orch.favorites == ["Pune", "Delhi"]
    assert orch.recents == ["Surat", "Pune", "Delhi"]


def test_restore_does_not_repeat_favorite():
    orch = orchestrator(favorites=MemoryLines(["Pune", "Delhi"]), last_query=MemoryLines(["Delhi"]))

    orch.restore()

    assert orch.recents == ["Pune", "Delhi"]


def test_restore_survives_broken_stores():
    orch = orchestrator(favorites=MemoryLines(fail=True), last_query=MemoryLines(fail=True))

    assert orch.restore() == ""
    assert orch.favorites == []
    assert orch.recents == []


def test_favorites_add_and_remove():
    store = MemoryLines()
    orch = orchestrator(favorites=store)

    assert orch.add_favorite(" Surat ")
    assert not orch.add_favorite("Surat")
    assert not orch.add_favorite("  ")
    assert orch.add_favorite("Pune")
    assert store.lines == ["Surat", "Pune"]

    assert orch.remove_favorite("Surat")
    assert not orch.remove_favorite("Surat")
    assert store.lines == ["Pune"]
    assert store.saves == 3
