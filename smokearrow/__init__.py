"""SmokeArrow - Live arrow to the nearest smoking spot."""

from .config import CONFIG
from .models import (
    AuthorizationStatus,
    Coordinate,
    DistanceZone,
    GuidanceSnapshot,
    GuidanceState,
    Heading,
    Location,
    PlaceResult,
    SearchMode,
    SearchSession,
    Spot,
    SpotCategory,
)
from .logger import Logger
from .geo import (
    haversine_distance,
    bearing_degrees,
    bearing_to_compass,
    normalize_360,
    normalize_180,
    smooth_angle_degrees,
    round_half_away,
)
from .distance import DistancePresentation, classify, presentation, detail_text
from .location import (
    LocationProvider,
    StaticLocationProvider,
    TermuxLocationProvider,
    TraceRecorder,
    TracePlayback,
)
from .search import (
    SearchError,
    SearchFailed,
    SearchTimedOut,
    PlaceSearchProvider,
    NominatimSearchProvider,
    StaticSearchProvider,
    SpotSearchService,
    rank_spots,
)
from .engine import (
    GuidanceEngine,
    choose_target,
    derive_state,
    is_low_accuracy,
    retry_backoff_interval,
)

__all__ = [
    "CONFIG",
    "AuthorizationStatus",
    "Coordinate",
    "DistanceZone",
    "GuidanceSnapshot",
    "GuidanceState",
    "Heading",
    "Location",
    "PlaceResult",
    "SearchMode",
    "SearchSession",
    "Spot",
    "SpotCategory",
    "Logger",
    "haversine_distance",
    "bearing_degrees",
    "bearing_to_compass",
    "normalize_360",
    "normalize_180",
    "smooth_angle_degrees",
    "round_half_away",
    "DistancePresentation",
    "classify",
    "presentation",
    "detail_text",
    "LocationProvider",
    "StaticLocationProvider",
    "TermuxLocationProvider",
    "TraceRecorder",
    "TracePlayback",
    "SearchError",
    "SearchFailed",
    "SearchTimedOut",
    "PlaceSearchProvider",
    "NominatimSearchProvider",
    "StaticSearchProvider",
    "SpotSearchService",
    "rank_spots",
    "GuidanceEngine",
    "choose_target",
    "derive_state",
    "is_low_accuracy",
    "retry_backoff_interval",
]
