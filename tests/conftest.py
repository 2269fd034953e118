"""Shared fixtures: a controllable clock, fake providers and coordinate helpers."""

import asyncio

import pytest

from smokearrow.models import Coordinate, Location, PlaceResult
from smokearrow.search import PlaceSearchProvider

# Tokyo Station
BASE_LAT = 35.681236
BASE_LON = 139.767125
METERS_PER_DEGREE_LAT = 6371000 * 3.141592653589793 / 180


def north_of(meters: float, lat: float = BASE_LAT, lon: float = BASE_LON) -> Coordinate:
    """Coordinate the given distance due north of (lat, lon)"""
    return Coordinate(lat + meters / METERS_PER_DEGREE_LAT, lon)


class FakeClock:
    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakePlaceProvider(PlaceSearchProvider):
    """Answers by query text: a list of results, an exception to raise, or "hang"."""

    name = "fake"

    def __init__(self, responses: dict | None = None, default=None):
        self.responses = responses or {}
        self.default = default if default is not None else []
        self.calls: list[tuple[str, float]] = []

    async def search(self, query: str, center: Coordinate, radius: float) -> list[PlaceResult]:
        self.calls.append((query, radius))
        response = self.responses.get(query, self.default)
        if response == "hang":
            await asyncio.sleep(60)
        if isinstance(response, BaseException):
            raise response
        return list(response)

    def radii_called(self) -> list[float]:
        return sorted({radius for _, radius in self.calls})


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def base_location() -> Location:
    return Location(lat=BASE_LAT, lon=BASE_LON, accuracy=10.0)
