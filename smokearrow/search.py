"""Place search: provider queries, radius ladder, dedup/rank and failure cache."""

import asyncio
import json
import math
import os
import threading
import time
from dataclasses import dataclass
from typing import Callable, Optional

import requests

from .config import CONFIG
from .logger import Logger
from .models import Coordinate, Location, PlaceResult, SearchMode, Spot, SpotCategory


class SearchError(Exception):
    """Base class for place search failures."""


class SearchTimedOut(SearchError):
    """A single provider query exceeded its time budget."""


class SearchFailed(SearchError):
    """A radius produced no results and at least one provider query errored."""


@dataclass(frozen=True)
class SearchQuery:
    text: str
    category: SpotCategory


@dataclass
class SpotCache:
    created_at: float
    center: Location
    spots: list[Spot]
    key: str


@dataclass
class _QueryOutcome:
    spots: list[Spot]
    had_error: bool


def cache_key(mode: SearchMode, preference: SpotCategory) -> str:
    return f"{mode.value}-{preference.value}"


def rank_spots(spots: list[Spot], location: Location,
               radius: Optional[float] = None) -> list[Spot]:
    """Deduplicate, drop anything beyond radius and sort nearest first.

    Duplicates share a Spot.id; the copy with the better category priority is
    kept. Equal distances are ordered by name.
    """
    best: dict[str, Spot] = {}
    for spot in spots:
        kept = best.get(spot.id)
        if kept is None or spot.category.priority < kept.category.priority:
            best[spot.id] = spot

    with_distance = [(spot.distance_to(location), spot) for spot in best.values()]
    if radius is not None:
        with_distance = [(d, spot) for d, spot in with_distance if d <= radius]
    with_distance.sort(key=lambda item: (item[0], item[1].name or ""))
    return [spot for _, spot in with_distance]


class PlaceSearchProvider:
    """Issues one natural-language point-of-interest query inside a circle"""

    name = "base"
    # Minimum seconds between the starts of two queries; 0 means unpaced
    min_interval = 0.0

    async def search(self, query: str, center: Coordinate, radius: float) -> list[PlaceResult]:
        raise NotImplementedError


class NominatimSearchProvider(PlaceSearchProvider):
    """Free-text search against OpenStreetMap Nominatim, bounded to a viewbox"""

    name = "nominatim"
    FALLBACK_USER_AGENT = "smokearrow/0.1 (+https://nominatim.org/release-docs/latest/api/Search/)"

    def __init__(self, base_url: Optional[str] = None, user_agent: Optional[str] = None,
                 session: Optional[requests.Session] = None, config: Optional[dict] = None):
        self.config = {**CONFIG, **(config or {})}
        self.base_url = base_url or self.config["nominatim_url"]
        self.session = session or requests.Session()
        self.headers = {
            "User-Agent": user_agent or os.getenv("SMOKEARROW_USER_AGENT") or self.FALLBACK_USER_AGENT,
        }
        self.min_interval = self.config["nominatim_min_interval"]
        self._lock = threading.Lock()
        self._last_request_ts: Optional[float] = None

    @staticmethod
    def viewbox(center: Coordinate, radius: float) -> str:
        """Bounding box 'left,top,right,bottom' enclosing the search circle"""
        dlat = radius / 111_320
        cos_lat = max(math.cos(math.radians(center.lat)), 1e-6)
        dlon = min(radius / (111_320 * cos_lat), 180)
        return (f"{center.lon - dlon:.6f},{center.lat + dlat:.6f},"
                f"{center.lon + dlon:.6f},{center.lat - dlat:.6f}")

    def _throttled_get(self, params: dict) -> requests.Response:
        """GET with a per-provider rate limit shared by all worker threads"""
        with self._lock:
            if self._last_request_ts is not None:
                delta = time.monotonic() - self._last_request_ts
                if delta < self.min_interval:
                    time.sleep(self.min_interval - delta)
            self._last_request_ts = time.monotonic()
        return self.session.get(
            self.base_url,
            params=params,
            headers=self.headers,
            timeout=self.config["nominatim_request_timeout"],
        )

    def _fetch(self, query: str, center: Coordinate, radius: float) -> list[PlaceResult]:
        params = {
            "q": query,
            "format": "jsonv2",
            "viewbox": self.viewbox(center, radius),
            "bounded": "1",
            "limit": str(self.config["nominatim_result_limit"]),
        }
        response = self._throttled_get(params)
        response.raise_for_status()

        results = []
        for item in response.json():
            try:
                coordinate = Coordinate(float(item["lat"]), float(item["lon"]))
            except (KeyError, TypeError, ValueError):
                continue
            results.append(PlaceResult(name=item.get("name") or None, coordinate=coordinate))
        return results

    async def search(self, query: str, center: Coordinate, radius: float) -> list[PlaceResult]:
        # A cancelled wait leaves the worker thread to finish under the HTTP timeout
        return await asyncio.to_thread(self._fetch, query, center, radius)


class StaticSearchProvider(PlaceSearchProvider):
    """In-memory results keyed by query text; "*" answers any query"""

    name = "static"

    def __init__(self, results: dict[str, list[PlaceResult]]):
        self.results = results

    @classmethod
    def from_file(cls, path: str) -> "StaticSearchProvider":
        """Load {"query": [{"name", "lat", "lon"}, ...]} from JSON"""
        with open(path, encoding="utf-8") as f:
            data = json.load(f)
        results = {
            query: [
                PlaceResult(name=item.get("name"), coordinate=Coordinate(item["lat"], item["lon"]))
                for item in items
            ]
            for query, items in data.items()
        }
        return cls(results)

    async def search(self, query: str, center: Coordinate, radius: float) -> list[PlaceResult]:
        return list(self.results.get(query, self.results.get("*", [])))


class SpotSearchService:
    """Finds the nearest spots by widening the search radius until something turns up"""

    def __init__(self, provider: PlaceSearchProvider, config: Optional[dict] = None,
                 logger: Optional[Logger] = None, clock: Callable[[], float] = time.monotonic):
        self.provider = provider
        self.config = {**CONFIG, **(config or {})}
        self.logger = logger or Logger(echo=False)
        self.clock = clock
        self.cache: Optional[SpotCache] = None
        self._pace_lock = asyncio.Lock()
        self._last_query_started: Optional[float] = None

    def queries_for(self, mode: SearchMode) -> list[SearchQuery]:
        queries = [SearchQuery(text, SpotCategory.SMOKING_SPOT)
                   for text in self.config["smoking_spot_queries"]]
        if mode is SearchMode.INCLUDE_CAFE:
            queries += [SearchQuery(text, SpotCategory.CAFE)
                        for text in self.config["cafe_queries"]]
        return queries

    async def search_nearest_spots(self, location: Location,
                                   mode: SearchMode = SearchMode.SMOKING_ONLY,
                                   preference: SpotCategory = SpotCategory.SMOKING_SPOT) -> list[Spot]:
        """Nearest-first spots around location.

        Raises SearchFailed when a radius errors out and no fresh cached result
        for the same mode/preference exists.
        """
        key = cache_key(mode, preference)
        try:
            spots = await self._search_first_available(location, self.queries_for(mode))
        except SearchError as e:
            cached = self._cached_fallback(key)
            if cached is None:
                raise
            self.logger.log("Search failed, using cached spots", {
                "error": str(e),
                "spots": len(cached),
                "age": round(self.clock() - self.cache.created_at, 1),
            })
            return cached

        self.cache = SpotCache(created_at=self.clock(), center=location, spots=spots, key=key)
        return spots

    def _cached_fallback(self, key: str) -> Optional[list[Spot]]:
        cache = self.cache
        if cache is None or cache.key != key:
            return None
        if self.clock() - cache.created_at > self.config["cache_ttl"]:
            return None
        return list(cache.spots)

    async def _search_first_available(self, location: Location,
                                      queries: list[SearchQuery]) -> list[Spot]:
        for radius in self.config["search_radii"]:
            spots = await self._search_within_radius(location, radius, queries)
            if spots:
                return spots
        return []

    async def _search_within_radius(self, location: Location, radius: float,
                                    queries: list[SearchQuery]) -> list[Spot]:
        center = location.coordinate
        # A query cancelled from inside the provider comes back as an exception
        # instead of aborting its siblings; cancelling this task still propagates
        results = await asyncio.gather(
            *(self._run_query(query, center, radius) for query in queries),
            return_exceptions=True,
        )
        outcomes = []
        for query, result in zip(queries, results):
            if isinstance(result, asyncio.CancelledError):
                self.logger.log("Query cancelled", {"query": query.text, "radius": radius})
                result = _QueryOutcome(spots=[], had_error=False)
            elif isinstance(result, BaseException):
                raise result
            outcomes.append(result)

        merged = [spot for outcome in outcomes for spot in outcome.spots]
        had_error = any(outcome.had_error for outcome in outcomes)
        ranked = rank_spots(merged, location, radius)

        self.logger.log("Radius searched", {
            "radius": radius,
            "queries": len(queries),
            "raw": len(merged),
            "spots": len(ranked),
            "had_error": had_error,
        })

        if not ranked and had_error:
            raise SearchFailed(f"no results within {radius:.0f}m and provider errors")
        return ranked

    async def _run_query(self, query: SearchQuery, center: Coordinate,
                         radius: float) -> _QueryOutcome:
        await self._wait_for_turn()
        try:
            results = await self._with_timeout(self.provider.search(query.text, center, radius))
        except SearchTimedOut:
            self.logger.log("Query timed out", {"query": query.text, "radius": radius})
            return _QueryOutcome(spots=[], had_error=False)
        except Exception as e:
            # Isolated per query so sibling queries still contribute
            self.logger.log("Provider error", {
                "provider": self.provider.name,
                "query": query.text,
                "radius": radius,
                "error": repr(e),
            })
            return _QueryOutcome(spots=[], had_error=True)

        spots = [Spot(name=r.name, coordinate=r.coordinate, category=query.category) for r in results]
        return _QueryOutcome(spots=spots, had_error=False)

    async def _wait_for_turn(self):
        """Space query starts by the provider's minimum interval.

        The wait happens before the query timeout starts, so a paced query is
        never counted as timed out.
        """
        interval = self.provider.min_interval
        if interval <= 0:
            return
        async with self._pace_lock:
            if self._last_query_started is not None:
                wait = self._last_query_started + interval - time.monotonic()
                if wait > 0:
                    await asyncio.sleep(wait)
            self._last_query_started = time.monotonic()

    async def _with_timeout(self, awaitable):
        """Race the query against the timeout; whichever loses is cancelled"""
        timeout = self.config["query_timeout"]
        try:
            return await asyncio.wait_for(awaitable, timeout=timeout)
        except asyncio.TimeoutError:
            raise SearchTimedOut(f"query exceeded {timeout}s") from None
