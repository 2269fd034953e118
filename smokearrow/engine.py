"""Guidance engine: search policy, target tracking and arrow smoothing."""

import asyncio
import time
from typing import Callable, Optional

from . import distance
from .config import CONFIG
from .geo import bearing_degrees, normalize_180, smooth_angle_degrees
from .location import LocationProvider
from .logger import Logger
from .messages import message
from .models import (
    AuthorizationStatus,
    DistanceZone,
    GuidanceSnapshot,
    GuidanceState,
    Heading,
    Location,
    SearchMode,
    SearchSession,
    Spot,
    SpotCategory,
)
from .search import SearchError, SpotSearchService

HIGH_FREQUENCY_STATES = {GuidanceState.NAVIGATING, GuidanceState.LOW_ACCURACY}
RETRY_STATES = {GuidanceState.ERROR, GuidanceState.NOT_FOUND}
CAFE_NOTICE_ZONES = {DistanceZone.OUT_OF_RANGE, DistanceZone.OUT_OF_RANGE_LONG}

STATUS_MESSAGE_KEYS = {
    GuidanceState.PERMISSION_NOT_DETERMINED: "status_permission_not_determined",
    GuidanceState.PERMISSION_DENIED: "status_permission_denied",
    GuidanceState.LOCATING: "status_locating",
    GuidanceState.SEARCHING: "status_searching",
    GuidanceState.LOW_ACCURACY: "status_low_accuracy",
    GuidanceState.NOT_FOUND: "status_not_found",
    GuidanceState.ERROR: "status_error",
}


def derive_state(authorization: AuthorizationStatus, has_location: bool, has_target: bool,
                 low_accuracy: bool, is_searching: bool, last_search_failed: bool,
                 has_no_results: bool) -> GuidanceState:
    """Exactly one state from the engine's canonical inputs"""
    if authorization == AuthorizationStatus.NOT_DETERMINED:
        return GuidanceState.PERMISSION_NOT_DETERMINED
    if authorization != AuthorizationStatus.AUTHORIZED:
        return GuidanceState.PERMISSION_DENIED
    if not has_location:
        return GuidanceState.LOCATING
    if has_target:
        return GuidanceState.LOW_ACCURACY if low_accuracy else GuidanceState.NAVIGATING
    if is_searching:
        return GuidanceState.SEARCHING
    if last_search_failed:
        return GuidanceState.ERROR
    if has_no_results:
        return GuidanceState.NOT_FOUND
    return GuidanceState.SEARCHING


def is_low_accuracy(location: Optional[Location], heading: Optional[Heading],
                    best_heading: Optional[float], config: dict = CONFIG) -> bool:
    """True when the fix or the compass is too poor to trust the arrow"""
    if location is None:
        return True
    if location.accuracy is None or location.accuracy < 0:
        return True
    if location.accuracy > config["max_horizontal_accuracy"]:
        return True

    if heading is not None:
        if heading.accuracy < 0 or heading.accuracy > config["max_heading_accuracy"]:
            return True
    elif best_heading is None:
        return True

    return False


def retry_backoff_interval(failures: int, base: float = 5, maximum: float = 60) -> float:
    """Seconds to wait after the given number of consecutive failures"""
    exponent = max(0, failures - 1)
    return min(maximum, base * 2 ** exponent)


def choose_target(current: Optional[Spot], candidates: list[Spot], user_location: Location,
                  force: bool = False, switch_ratio: float = 0.9) -> Optional[Spot]:
    """Pick the target after a search.

    The nearest candidate replaces the current target only when it is at most
    switch_ratio of the current distance, unless force is set. No candidates
    clears the target.
    """
    if not candidates:
        return None
    nearest = min(candidates, key=lambda spot: spot.distance_to(user_location))
    if current is None or force:
        return nearest
    if nearest.distance_to(user_location) <= current.distance_to(user_location) * switch_ratio:
        return nearest
    return current


def target_display_name(spot: Optional[Spot], locale: Optional[str] = None) -> Optional[str]:
    if spot is None:
        return None
    name = spot.name.strip() if spot.name else ""
    if spot.category is SpotCategory.CAFE:
        return message("cafe_named", locale, name=name) if name else message("cafe", locale)
    return name or message("smoking_spot", locale)


class GuidanceEngine:
    """Turns location/heading updates into a target, a distance and an arrow.

    All mutation happens on the event loop: the tick task, the single search
    task and the public operations. Location providers only push values that
    are read on the next tick.
    """

    def __init__(self, location_provider: LocationProvider, search_service: SpotSearchService,
                 config: Optional[dict] = None, logger: Optional[Logger] = None,
                 clock: Callable[[], float] = time.monotonic,
                 on_change: Optional[Callable[[GuidanceSnapshot], None]] = None):
        self.location_provider = location_provider
        self.search_service = search_service
        self.config = {**CONFIG, **(config or {})}
        self.locale = self.config["locale"]
        self.logger = logger or Logger(echo=False)
        self.clock = clock
        self.on_change = on_change

        self.target: Optional[Spot] = None
        self.search_mode = SearchMode.SMOKING_ONLY
        self.cafe_preference = SpotCategory.SMOKING_SPOT
        self.session = SearchSession()
        self.is_searching = False
        self.has_no_results = False
        self.last_search_failed = False
        self.force_target_update = False

        self._search_generation = 0
        self._search_task: Optional[asyncio.Task] = None
        self._tick_task: Optional[asyncio.Task] = None

        self._distance_meters: Optional[float] = None
        self._smoothed_angle: Optional[float] = None
        self._last_angle_update: Optional[float] = None

        self._snapshot = self._build_snapshot()

    @property
    def search_task(self) -> Optional[asyncio.Task]:
        return self._search_task

    def current_state(self) -> GuidanceSnapshot:
        return self._snapshot

    # Lifecycle

    def start(self):
        """Start the location provider and the tick loop (needs a running event loop)"""
        self.location_provider.start()
        self.refresh()
        if self._tick_task is None or self._tick_task.done():
            self._tick_task = asyncio.create_task(self._tick_loop())
        self.logger.log("Engine started", {"mode": self.search_mode.value})

    async def stop(self):
        """Cancel the tick loop and any in-flight search, then stop the provider"""
        tasks = [t for t in (self._tick_task, self._search_task) if t is not None]
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        self._tick_task = None
        self._search_task = None
        self.is_searching = False
        self.location_provider.stop()
        self.logger.log("Engine stopped")

    async def _tick_loop(self):
        while True:
            self.refresh()
            await asyncio.sleep(self.tick_interval())

    def tick_interval(self) -> float:
        if self._snapshot.state in HIGH_FREQUENCY_STATES:
            return self.config["fast_tick_interval"]
        return self.config["slow_tick_interval"]

    # User actions

    def request_authorization(self):
        self.location_provider.request_authorization()
        self.refresh()

    def retry_search_now(self):
        """Search immediately, superseding any search in flight"""
        location = self.location_provider.location
        if not self.location_provider.is_authorized or location is None:
            return
        self._start_search(location)
        self._publish()

    def enable_cafe_search(self):
        """One-way switch to include smoking-friendly cafes"""
        if self.search_mode is not SearchMode.SMOKING_ONLY:
            return
        self.search_mode = SearchMode.INCLUDE_CAFE
        self.cafe_preference = SpotCategory.CAFE
        self.force_target_update = True
        self.logger.log("Cafe search enabled")

        location = self.location_provider.location
        if location is not None:
            self._start_search(location)
        self._publish()

    # Tick

    def refresh(self) -> GuidanceSnapshot:
        """Re-evaluate search trigger and guidance against the latest inputs"""
        provider = self.location_provider
        location = provider.location
        if not provider.is_authorized or location is None:
            self._reset_guidance()
            return self._publish()

        if self.should_start_search(location):
            self._start_search(location)

        self._update_guidance(location)
        return self._publish()

    def should_start_search(self, location: Location) -> bool:
        if self.is_searching:
            return False

        session = self.session
        if session.location is None or session.started_at is None:
            return True

        elapsed = self.clock() - session.started_at
        moved = location.distance_to(session.location) >= self.config["research_distance"]
        stale = elapsed >= self.config["research_interval"]
        mode_changed = session.mode != self.search_mode

        retry_after_failure = self.last_search_failed and elapsed >= retry_backoff_interval(
            session.consecutive_failures,
            self.config["failure_backoff_base"],
            self.config["failure_backoff_max"],
        )

        improved_accuracy = (
            location.accuracy is not None
            and session.accuracy is not None
            and location.accuracy >= 0
            and session.accuracy >= 0
            and location.accuracy <= session.accuracy - self.config["accuracy_improvement"]
        )

        return moved or stale or improved_accuracy or retry_after_failure or mode_changed

    # Search

    def _start_search(self, location: Location):
        if self._search_task is not None and not self._search_task.done():
            self._search_task.cancel()

        self._search_generation += 1
        generation = self._search_generation
        self.is_searching = True
        self.last_search_failed = False
        self.has_no_results = False

        self.session.location = location
        self.session.started_at = self.clock()
        self.session.accuracy = location.accuracy
        self.session.mode = self.search_mode

        self.logger.log("Search started", {
            "generation": generation,
            "lat": location.lat,
            "lon": location.lon,
            "accuracy": location.accuracy,
            "mode": self.search_mode.value,
        })
        self._search_task = asyncio.create_task(
            self._run_search(generation, location, self.search_mode, self.cafe_preference)
        )

    async def _run_search(self, generation: int, location: Location,
                          mode: SearchMode, preference: SpotCategory):
        try:
            spots = await self.search_service.search_nearest_spots(location, mode, preference)
        except SearchError as e:
            if generation == self._search_generation:
                self.last_search_failed = True
                self.has_no_results = False
                self.session.consecutive_failures += 1
                self.logger.log("Search failed", {
                    "generation": generation,
                    "error": str(e),
                    "failures": self.session.consecutive_failures,
                })
            return
        finally:
            if generation == self._search_generation:
                self.is_searching = False
                self._search_task = None

        if generation != self._search_generation:
            return

        self.last_search_failed = False
        self.has_no_results = not spots
        self.session.consecutive_failures = 0
        self.logger.log("Search finished", {"generation": generation, "spots": len(spots)})
        current = self.location_provider.location or location
        self._update_target(spots, current)
        self._update_guidance(current)
        self._publish()

    def _update_target(self, spots: list[Spot], user_location: Location):
        previous = self.target
        self.target = choose_target(
            previous, spots, user_location,
            force=self.force_target_update,
            switch_ratio=self.config["target_switch_ratio"],
        )
        self.force_target_update = False

        if self.target != previous:
            # Smoothing state belongs to the previous target
            self._smoothed_angle = None
            self._last_angle_update = None
            self.logger.log("Target changed", {
                "name": self.target.name if self.target else None,
                "category": self.target.category.value if self.target else None,
                "distance": round(self.target.distance_to(user_location)) if self.target else None,
            })

    # Guidance

    def _update_guidance(self, location: Location):
        target = self.target
        if target is None:
            self._reset_guidance()
            return

        self._distance_meters = target.distance_to(location)

        heading = self.location_provider.best_heading_degrees()
        if heading is None:
            self._smoothed_angle = None
            self._last_angle_update = None
            return

        bearing = bearing_degrees(location.coordinate, target.coordinate)
        relative = normalize_180(bearing - heading)
        now = self.clock()
        delta_time = now - self._last_angle_update if self._last_angle_update is not None else 0.0
        self._last_angle_update = now
        self._smoothed_angle = smooth_angle_degrees(
            self._smoothed_angle, relative, delta_time, self.config["heading_smoothing_time"]
        )

    def _reset_guidance(self):
        self._distance_meters = None
        self._smoothed_angle = None
        self._last_angle_update = None

    # Snapshot

    def _current_guidance_state(self) -> GuidanceState:
        provider = self.location_provider
        location = provider.location
        low_accuracy = self.target is not None and is_low_accuracy(
            location, provider.heading, provider.best_heading_degrees(), self.config
        )
        return derive_state(
            provider.authorization_status,
            has_location=location is not None,
            has_target=self.target is not None,
            low_accuracy=low_accuracy,
            is_searching=self.is_searching,
            last_search_failed=self.last_search_failed,
            has_no_results=self.has_no_results,
        )

    def _build_snapshot(self) -> GuidanceSnapshot:
        state = self._current_guidance_state()
        meters = self._distance_meters

        zone = None
        text = message("placeholder", self.locale)
        detail = distance.detail_text(meters) if meters is not None else text
        if meters is not None:
            presentation = distance.presentation(meters, self.locale)
            zone = presentation.zone
            text = presentation.text

        smoking_only = self.search_mode is SearchMode.SMOKING_ONLY
        cafe_notice = None
        if not smoking_only and zone in CAFE_NOTICE_ZONES:
            cafe_notice = message("cafe_fallback_notice", self.locale)

        status_key = STATUS_MESSAGE_KEYS.get(state)
        return GuidanceSnapshot(
            state=state,
            arrow_angle_degrees=self._smoothed_angle,
            distance_text=text,
            distance_detail=detail,
            distance_zone=zone,
            distance_meters=meters,
            target=self.target,
            search_mode=self.search_mode,
            should_suggest_cafe=smoking_only and zone in distance.FAR_ZONES,
            cafe_fallback_message=cafe_notice,
            target_display_name=target_display_name(self.target, self.locale),
            status_message=message(status_key, self.locale) if status_key else None,
            is_showing_cafe_alternative=(
                self.target is not None and self.target.category is SpotCategory.CAFE
            ),
            should_offer_retry=state in RETRY_STATES,
        )

    def _publish(self) -> GuidanceSnapshot:
        snapshot = self._build_snapshot()
        previous = self._snapshot
        self._snapshot = snapshot
        if snapshot.state != previous.state:
            self.logger.log("State changed", {"from": previous.state.value, "to": snapshot.state.value})
        if snapshot != previous and self.on_change:
            self.on_change(snapshot)
        return snapshot
