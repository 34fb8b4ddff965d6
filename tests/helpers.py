# Shared builders and stand-ins for the test suite.

import asyncio
from typing import Any, Dict, List, Optional

from repairfinder.models.dto import GeoPoint

SF = GeoPoint(lat=37.77, lon=-122.42)


def make_element(
    element_id: int,
    lat: Optional[float] = None,
    lon: Optional[float] = None,
    element_type: str = "node",
    center: Optional[Dict[str, float]] = None,
    tags: Optional[Dict[str, str]] = None,
) -> Dict[str, Any]:
    element: Dict[str, Any] = {"type": element_type, "id": element_id, "tags": dict(tags or {})}
    if lat is not None:
        element["lat"] = lat
    if lon is not None:
        element["lon"] = lon
    if center is not None:
        element["center"] = center
    return element


class FakeClock:
    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class RecordingSleep:
    def __init__(self):
        self.delays: List[float] = []

    async def __call__(self, seconds: float) -> None:
        self.delays.append(seconds)


class StubEndpointClient:
    """Stands in for EndpointClient; returns a fixed payload or raises."""

    def __init__(self, payload: Optional[Dict[str, Any]] = None, error: Optional[Exception] = None):
        self.payload = payload if payload is not None else {"elements": []}
        self.error = error
        self.queries: List[str] = []

    async def fetch(self, query: str) -> Dict[str, Any]:
        self.queries.append(query)
        if self.error is not None:
            raise self.error
        return self.payload




class GatedEndpointClient(StubEndpointClient):
    """Holds every fetch until ``release`` is set, so callers can overlap."""

    def __init__(self, payload: Optional[Dict[str, Any]] = None):
        super().__init__(payload)
        self.release = asyncio.Event()

    async def fetch(self, query: str) -> Dict[str, Any]:
        self.queries.append(query)
        await self.release.wait()
        return self.payload
