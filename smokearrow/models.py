"""Data classes for SmokeArrow."""

from dataclasses import dataclass, asdict
from enum import Enum
from typing import Optional

from .geo import haversine_distance, round_half_away


class AuthorizationStatus(str, Enum):
    NOT_DETERMINED = "not_determined"
    RESTRICTED = "restricted"
    DENIED = "denied"
    AUTHORIZED = "authorized"


class SpotCategory(str, Enum):
    SMOKING_SPOT = "smoking_spot"
    CAFE = "cafe"

    @property
    def priority(self) -> int:
        """Lower wins when two categories surface the same place"""
        return 0 if self is SpotCategory.SMOKING_SPOT else 1


class SearchMode(str, Enum):
    SMOKING_ONLY = "smoking_only"
    INCLUDE_CAFE = "include_cafe"


class GuidanceState(str, Enum):
    PERMISSION_NOT_DETERMINED = "permission_not_determined"
    PERMISSION_DENIED = "permission_denied"
    LOCATING = "locating"
    SEARCHING = "searching"
    NAVIGATING = "navigating"
    LOW_ACCURACY = "low_accuracy"
    NOT_FOUND = "not_found"
    ERROR = "error"


class DistanceZone(str, Enum):
    UNKNOWN = "unknown"
    NEAR = "near"
    WALKABLE = "walkable"
    HESITANT = "hesitant"
    FAR = "far"
    OUT_OF_RANGE = "out_of_range"
    OUT_OF_RANGE_LONG = "out_of_range_long"


@dataclass(frozen=True)
class Coordinate:
    lat: float
    lon: float


@dataclass
class Location:
    """A position fix. Negative or missing accuracy/course means unavailable."""
    lat: float
    lon: float
    accuracy: Optional[float] = None
    course: Optional[float] = None
    timestamp: Optional[float] = None

    @property
    def coordinate(self) -> Coordinate:
        return Coordinate(self.lat, self.lon)

    def distance_to(self, other: "Location") -> float:
        return haversine_distance(self.lat, self.lon, other.lat, other.lon)

    def to_dict(self) -> dict:
        return asdict(self)

    @classmethod
    def from_dict(cls, d: dict) -> "Location":
        return cls(**d)


@dataclass
class Heading:
    """A compass fix. Negative true heading or accuracy means invalid."""
    magnetic_heading: float
    true_heading: float = -1.0
    accuracy: float = -1.0
    timestamp: Optional[float] = None

    def to_dict(self) -> dict:
        return asdict(self)

    @classmethod
    def from_dict(cls, d: dict) -> "Heading":
        return cls(**d)


@dataclass(frozen=True)
class PlaceResult:
    """A named, located result returned by a place search provider"""
    name: Optional[str]
    coordinate: Coordinate


@dataclass(frozen=True)
class Spot:
    name: Optional[str]
    coordinate: Coordinate
    category: SpotCategory

    @property
    def id(self) -> str:
        """Identity key: name plus coordinates rounded to roughly one meter"""
        lat = round_half_away(self.coordinate.lat * 100_000)
        lon = round_half_away(self.coordinate.lon * 100_000)
        return f"{self.name or ''}|{lat}|{lon}"

    def distance_to(self, location: Location) -> float:
        return haversine_distance(
            self.coordinate.lat, self.coordinate.lon, location.lat, location.lon
        )

    def to_dict(self) -> dict:
        return {
            "name": self.name,
            "lat": self.coordinate.lat,
            "lon": self.coordinate.lon,
            "category": self.category.value,
        }


@dataclass
class SearchSession:
    """Bookkeeping for the most recent search attempt"""
    location: Optional[Location] = None
    started_at: Optional[float] = None
    accuracy: Optional[float] = None
    mode: Optional[SearchMode] = None
    consecutive_failures: int = 0


@dataclass(frozen=True)
class GuidanceSnapshot:
    """Everything presentation needs, computed from the engine's canonical fields"""
    state: GuidanceState
    arrow_angle_degrees: Optional[float]
    distance_text: str
    distance_detail: str
    distance_zone: Optional[DistanceZone]
    distance_meters: Optional[float]
    target: Optional[Spot]
    search_mode: SearchMode
    should_suggest_cafe: bool
    cafe_fallback_message: Optional[str]
    target_display_name: Optional[str]
    status_message: Optional[str]
    is_showing_cafe_alternative: bool
    should_offer_retry: bool

    def to_dict(self) -> dict:
        return {
            "state": self.state.value,
            "arrow": round(self.arrow_angle_degrees, 1) if self.arrow_angle_degrees is not None else None,
            "distance": self.distance_detail,
            "zone": self.distance_zone.value if self.distance_zone else None,
            "target": self.target_display_name,
            "mode": self.search_mode.value,
            "suggest_cafe": self.should_suggest_cafe,
        }
