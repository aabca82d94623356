import asyncio
import json

import httpx
import pytest

from loom_scheduler.core.config import Settings
from loom_scheduler.services.routing import (
    HttpRoutingProvider,
    RouteStop,
    UnroutedProvider,
    get_routing_provider,
)

STOPS = [
    RouteStop(participant_id=1, latitude=-33.8, longitude=151.2),
    RouteStop(participant_id=2, latitude=-33.9, longitude=151.1),
    RouteStop(participant_id=3, address="3 Loom Street"),
]


def _provider(handler, **kwargs) -> HttpRoutingProvider:
    return HttpRoutingProvider(
        "http://routing.test", transport=httpx.MockTransport(handler), depot=(-33.0, 151.0), **kwargs
    )


@pytest.mark.anyio("asyncio")
async def test_optimised_order_is_returned() -> None:
    captured: dict = {}

    def handler(request: httpx.Request) -> httpx.Response:
        captured["path"] = request.url.path
        captured["body"] = json.loads(request.content)
        return httpx.Response(200, json={"stop_order": [3, 1, 2], "quality_score": 0.82})

    route = await _provider(handler).plan_route(vehicle_id=9, stops=STOPS, destination=(-33.5, 151.5))

    assert route.computed is True
    assert route.stop_sequence == [3, 1, 2]
    assert route.quality_score == pytest.approx(0.82)
    assert captured["path"] == "/routes/optimize"
    assert captured["body"]["vehicle_id"] == 9
    assert captured["body"]["origin"] == [-33.0, 151.0]
    assert [stop["id"] for stop in captured["body"]["stops"]] == [1, 2, 3]


@pytest.mark.anyio("asyncio")
async def test_server_error_falls_back_to_input_order() -> None:
    route = await _provider(lambda request: httpx.Response(500)).plan_route(vehicle_id=1, stops=STOPS)

    assert route.computed is False
    assert route.stop_sequence == [1, 2, 3]


@pytest.mark.anyio("asyncio")
async def test_malformed_response_falls_back() -> None:
    route = await _provider(lambda request: httpx.Response(200, json={"order": [1]})).plan_route(
        vehicle_id=1, stops=STOPS
    )

    assert route.computed is False
    assert route.stop_sequence == [1, 2, 3]


@pytest.mark.anyio("asyncio")
async def test_response_missing_stops_falls_back() -> None:
    route = await _provider(lambda request: httpx.Response(200, json={"stop_order": [2, 1]})).plan_route(
        vehicle_id=1, stops=STOPS
    )

    assert route.computed is False


@pytest.mark.anyio("asyncio")
async def test_slow_service_times_out() -> None:
    async def handler(request: httpx.Request) -> httpx.Response:
        await asyncio.sleep(1)
        return httpx.Response(200, json={"stop_order": [1, 2, 3]})

    route = await _provider(handler, timeout_seconds=0.05).plan_route(vehicle_id=1, stops=STOPS)

    assert route.computed is False
    assert route.stop_sequence == [1, 2, 3]


@pytest.mark.anyio("asyncio")
async def test_no_stops_skips_the_service() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise AssertionError("routing service should not be called")

    route = await _provider(handler).plan_route(vehicle_id=1, stops=[])

    assert route.computed is True
    assert route.stop_sequence == []


@pytest.mark.anyio("asyncio")
async def test_unrouted_provider_keeps_order() -> None:
    route = await UnroutedProvider().plan_route(vehicle_id=1, stops=STOPS)

    assert route.stop_sequence == [1, 2, 3]
    assert route.computed is False


def test_provider_selection_follows_settings() -> None:
    assert isinstance(get_routing_provider(Settings(routing_base_url=None)), UnroutedProvider)
    provider = get_routing_provider(
        Settings(routing_base_url="http://routing.test", depot_latitude=-33.0, depot_longitude=151.0)
    )
    assert isinstance(provider, HttpRoutingProvider)
    assert provider.depot == (-33.0, 151.0)
