"""Geographic utility functions."""

from __future__ import annotations

import math
from typing import TYPE_CHECKING, Optional

if TYPE_CHECKING:
    from .models import Coordinate


def haversine_distance(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """Calculate distance between two points in meters using Haversine formula"""
    R = 6371000  # Earth's radius in meters

    phi1 = math.radians(lat1)
    phi2 = math.radians(lat2)
    delta_phi = math.radians(lat2 - lat1)
    delta_lambda = math.radians(lon2 - lon1)

    a = (math.sin(delta_phi / 2) ** 2 +
         math.cos(phi1) * math.cos(phi2) * math.sin(delta_lambda / 2) ** 2)
    c = 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))

    return R * c


def bearing_degrees(start: "Coordinate", end: "Coordinate") -> float:
    """Initial great-circle bearing from start to end in degrees (0-360, 0=North)"""
    phi1 = math.radians(start.lat)
    phi2 = math.radians(end.lat)
    delta_lambda = math.radians(end.lon - start.lon)

    x = math.sin(delta_lambda) * math.cos(phi2)
    y = (math.cos(phi1) * math.sin(phi2) -
         math.sin(phi1) * math.cos(phi2) * math.cos(delta_lambda))

    return normalize_360(math.degrees(math.atan2(x, y)))


def normalize_360(degrees: float) -> float:
    """Reduce an angle to [0, 360)"""
    d = math.fmod(degrees, 360.0)
    if d < 0:
        d += 360.0
    # fmod of a tiny negative can round back up to 360
    if d >= 360.0:
        d -= 360.0
    return d


def normalize_180(degrees: float) -> float:
    """Reduce an angle to (-180, 180]"""
    d = normalize_360(degrees)
    if d > 180.0:
        d -= 360.0
    return d


def smooth_angle_degrees(previous: Optional[float], next: float,
                         delta_time: float, smoothing_time: float) -> float:
    """Exponential low-pass filter for a circular quantity.

    Moves `previous` toward `next` along the shortest arc, by a fraction
    1 - exp(-delta_time / smoothing_time) of the gap. Without a previous value
    or with a non-positive time step the new angle is returned unfiltered.
    """
    if previous is None or delta_time <= 0 or smoothing_time <= 0:
        return normalize_180(next)
    alpha = 1 - math.exp(-delta_time / smoothing_time)
    delta = normalize_180(next - previous)
    return normalize_180(previous + delta * alpha)


def round_half_away(value: float) -> int:
    """Round to the nearest integer, halves away from zero (2.5 -> 3, -2.5 -> -3)"""
    return int(math.copysign(math.floor(abs(value) + 0.5), value))


def bearing_to_compass(bearing: float) -> str:
    """Convert bearing to compass direction"""
    directions = ["north", "northeast", "east", "southeast",
                  "south", "southwest", "west", "northwest"]
    index = round(normalize_360(bearing) / 45) % 8
    return directions[index]
