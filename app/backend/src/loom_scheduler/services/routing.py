"""Route planning for vehicle assignments.

Routing is advisory: a provider that fails or times out yields the stops in
their input order, marked as not computed, and the vehicle stays assigned.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Protocol, Sequence

import httpx

from loom_scheduler.core.config import Settings, get_settings

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RouteStop:
    participant_id: int
    latitude: float | None = None
    longitude: float | None = None
    address: str | None = None


@dataclass
class RouteResult:
    stop_sequence: list[int] = field(default_factory=list)
    quality_score: float | None = None
    computed: bool = False


class RoutingProvider(Protocol):
    async def plan_route(
        self,
        *,
        vehicle_id: int,
        stops: Sequence[RouteStop],
        destination: tuple[float, float] | None = None,
    ) -> RouteResult: ...


def unrouted(stops: Sequence[RouteStop]) -> RouteResult:
    return RouteResult(stop_sequence=[stop.participant_id for stop in stops], computed=False)


class UnroutedProvider:
    """Used when no routing service is configured."""

    async def plan_route(
        self,
        *,
        vehicle_id: int,
        stops: Sequence[RouteStop],
        destination: tuple[float, float] | None = None,
    ) -> RouteResult:
        return unrouted(stops)


class HttpRoutingProvider:
    """Client for an external route optimiser exposing ``POST /routes/optimize``."""

    def __init__(
        self,
        base_url: str,
        *,
        timeout_seconds: float = 5.0,
        depot: tuple[float, float] | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.base_url = base_url
        self.timeout_seconds = timeout_seconds
        self.depot = depot
        self._transport = transport

    async def plan_route(
        self,
        *,
        vehicle_id: int,
        stops: Sequence[RouteStop],
        destination: tuple[float, float] | None = None,
    ) -> RouteResult:
        if not stops:
            return RouteResult(stop_sequence=[], computed=True)

        payload = {
            "vehicle_id": vehicle_id,
            "origin": list(self.depot) if self.depot else None,
            "destination": list(destination) if destination else None,
            "stops": [
                {
                    "id": stop.participant_id,
                    "latitude": stop.latitude,
                    "longitude": stop.longitude,
                    "address": stop.address,
                }
                for stop in stops
            ],
        }
        try:
            data = await asyncio.wait_for(self._request(payload), timeout=self.timeout_seconds)
        except (httpx.HTTPError, ValueError, asyncio.TimeoutError) as exc:
            logger.warning("Routing failed for vehicle %s, keeping input order: %s", vehicle_id, exc)
            return unrouted(stops)

        try:
            order = [int(stop_id) for stop_id in data["stop_order"]]
            score = data.get("quality_score")
            quality = float(score) if score is not None else None
        except (KeyError, TypeError, ValueError) as exc:
            logger.warning("Routing response for vehicle %s was malformed: %s", vehicle_id, exc)
            return unrouted(stops)

        if sorted(order) != sorted(stop.participant_id for stop in stops):
            logger.warning("Routing response for vehicle %s did not cover the requested stops", vehicle_id)
            return unrouted(stops)
        return RouteResult(stop_sequence=order, quality_score=quality, computed=True)

    async def _request(self, payload: dict) -> dict:
        async with httpx.AsyncClient(
            base_url=self.base_url,
            timeout=httpx.Timeout(self.timeout_seconds),
            transport=self._transport,
        ) as client:
            response = await client.post("/routes/optimize", json=payload)
            response.raise_for_status()
            return response.json()


def get_routing_provider(settings: Settings | None = None) -> RoutingProvider:
    settings = settings or get_settings()
    if not settings.routing_base_url:
        return UnroutedProvider()
    depot = None
    if settings.depot_latitude is not None and settings.depot_longitude is not None:
        depot = (settings.depot_latitude, settings.depot_longitude)
    return HttpRoutingProvider(
        settings.routing_base_url,
        timeout_seconds=settings.routing_timeout_seconds,
        depot=depot,
    )
