"""Tests for geographic math."""

import math

import pytest

from smokearrow.geo import (
    bearing_degrees,
    bearing_to_compass,
    haversine_distance,
    normalize_180,
    normalize_360,
    round_half_away,
    smooth_angle_degrees,
)
from smokearrow.models import Coordinate


@pytest.mark.parametrize("value", [-1080.5, -720, -360, -181, -180, -0.0001, 0, 179.9, 180, 359.999, 360, 725.25])
def test_normalizers_stay_in_range_and_are_idempotent(value: float) -> None:
    """Both normalizers are total on finite input and stable when reapplied."""
    d360 = normalize_360(value)
    d180 = normalize_180(value)

    assert 0 <= d360 < 360
    assert -180 < d180 <= 180
    assert normalize_360(d360) == pytest.approx(d360)
    assert normalize_180(d180) == pytest.approx(d180)


def test_normalize_handles_negative_inputs_with_floored_modulo() -> None:
    assert normalize_360(-90) == pytest.approx(270)
    assert normalize_360(-450) == pytest.approx(270)
    assert normalize_180(-190) == pytest.approx(170)
    assert normalize_180(190) == pytest.approx(-170)
    assert normalize_180(-180) == pytest.approx(180)


def test_bearing_cardinal_directions() -> None:
    origin = Coordinate(0.0, 0.0)

    assert bearing_degrees(origin, Coordinate(1.0, 0.0)) == pytest.approx(0.0)
    assert bearing_degrees(origin, Coordinate(0.0, 1.0)) == pytest.approx(90.0)
    assert bearing_degrees(origin, Coordinate(-1.0, 0.0)) == pytest.approx(180.0)
    assert bearing_degrees(origin, Coordinate(0.0, -1.0)) == pytest.approx(270.0)


def test_haversine_one_degree_of_latitude() -> None:
    distance = haversine_distance(0.0, 0.0, 1.0, 0.0)
    assert distance == pytest.approx(6371000 * math.pi / 180, rel=1e-9)


def test_smoothing_takes_short_way_across_zero() -> None:
    """Going from 10 to 350 must pass through 0, not 180."""
    smoothed = smooth_angle_degrees(10, 350, delta_time=1, smoothing_time=1)

    alpha = 1 - math.exp(-1)
    assert smoothed == pytest.approx(10 - 20 * alpha)
    # Crossed 0 toward 350 (i.e. -10), staying well away from 180
    assert -10 < smoothed < 0
    assert abs(smoothed) < 90


def test_smoothing_wraps_past_180_boundary() -> None:
    smoothed = smooth_angle_degrees(170, -170, delta_time=10, smoothing_time=1)
    # Nearly converged on -170 via +180, never swinging back through 0
    assert abs(smoothed) > 170


@pytest.mark.parametrize(
    "previous,delta_time,smoothing_time",
    [(None, 1.0, 1.0), (10.0, 0.0, 1.0), (10.0, -1.0, 1.0), (10.0, 1.0, 0.0)],
)
def test_smoothing_passes_through_unfiltered(previous, delta_time, smoothing_time) -> None:
    assert smooth_angle_degrees(previous, 350, delta_time, smoothing_time) == pytest.approx(-10)


def test_bearing_to_compass() -> None:
    assert bearing_to_compass(0) == "north"
    assert bearing_to_compass(44) == "northeast"
    assert bearing_to_compass(359) == "north"
    assert bearing_to_compass(-90) == "west"


@pytest.mark.parametrize("value,expected", [(2.5, 3), (0.5, 1), (1.4, 1), (-2.5, -3), (-0.3, 0), (3500000.5, 3500001)])
def test_round_half_away_from_zero(value: float, expected: int) -> None:
    assert round_half_away(value) == expected
