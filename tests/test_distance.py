"""Tests for distance zones and display text."""

import math

import pytest

from smokearrow.distance import classify, detail_text, presentation
from smokearrow.models import DistanceZone


@pytest.mark.parametrize(
    "meters,zone",
    [
        (0.0, DistanceZone.NEAR),
        (149.9, DistanceZone.NEAR),
        (150.0, DistanceZone.WALKABLE),
        (399.9, DistanceZone.WALKABLE),
        (400.0, DistanceZone.HESITANT),
        (600.0, DistanceZone.FAR),
        (800.0, DistanceZone.OUT_OF_RANGE),
        (999.9, DistanceZone.OUT_OF_RANGE),
        (1000.0, DistanceZone.OUT_OF_RANGE_LONG),
        (25000.0, DistanceZone.OUT_OF_RANGE_LONG),
    ],
)
def test_zone_boundaries(meters: float, zone: DistanceZone) -> None:
    assert classify(meters) == zone


@pytest.mark.parametrize("meters", [-1.0, math.nan, math.inf, None])
def test_invalid_distances_are_unknown(meters) -> None:
    result = presentation(meters)
    assert result.zone == DistanceZone.UNKNOWN
    assert result.text == "--"
    assert detail_text(meters) == "--"


def test_labels_follow_locale() -> None:
    assert presentation(100, "ja").text == "すぐ近く"
    assert presentation(100, "en").text == "Very close"
    assert presentation(900, "ja").text == presentation(1500, "ja").text == "徒歩圏外"


def test_detail_text_units() -> None:
    assert detail_text(0) == "0m"
    assert detail_text(0.5) == "1m"
    assert detail_text(2.5) == "3m"
    assert detail_text(149.6) == "150m"
    assert detail_text(999.4) == "999m"
    assert detail_text(1000) == "1.0km"
    assert detail_text(1234) == "1.2km"
    assert detail_text(9949) == "9.9km"
    assert detail_text(10000) == "10km"
    assert detail_text(12600) == "13km"
