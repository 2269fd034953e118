"""Distance zones and display text."""

import math
from dataclasses import dataclass
from typing import Optional

from .geo import round_half_away
from .messages import message
from .models import DistanceZone

# Upper bounds (exclusive) in meters, checked in order
ZONE_BOUNDS = [
    (150, DistanceZone.NEAR),
    (400, DistanceZone.WALKABLE),
    (600, DistanceZone.HESITANT),
    (800, DistanceZone.FAR),
    (1000, DistanceZone.OUT_OF_RANGE),
]

# Zones where the nearest smoking spot is inconveniently far
FAR_ZONES = {
    DistanceZone.HESITANT,
    DistanceZone.FAR,
    DistanceZone.OUT_OF_RANGE,
    DistanceZone.OUT_OF_RANGE_LONG,
}


@dataclass(frozen=True)
class DistancePresentation:
    zone: DistanceZone
    text: str


def _is_valid(meters: float) -> bool:
    return meters is not None and math.isfinite(meters) and meters >= 0


def classify(meters: float) -> DistanceZone:
    """Map a distance in meters to its zone"""
    if not _is_valid(meters):
        return DistanceZone.UNKNOWN
    for bound, zone in ZONE_BOUNDS:
        if meters < bound:
            return zone
    return DistanceZone.OUT_OF_RANGE_LONG


def presentation(meters: float, locale: Optional[str] = None) -> DistancePresentation:
    """Zone plus its localized label"""
    zone = classify(meters)
    if zone is DistanceZone.UNKNOWN:
        return DistancePresentation(zone, message("placeholder", locale))
    return DistancePresentation(zone, message(f"zone_{zone.value}", locale))


def detail_text(meters: float) -> str:
    """Numeric distance: whole meters below 1km, one decimal below 10km, whole km above"""
    if not _is_valid(meters):
        return "--"
    if meters < 1000:
        return f"{round_half_away(meters)}m"
    km = meters / 1000
    if km < 10:
        return f"{km:.1f}km"
    return f"{km:.0f}km"
