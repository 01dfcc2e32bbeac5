import math

import pytest

from campus_run.geodesy import (
    haversine_km,
    haversine_m,
    is_within_radius,
    leg_distances_km,
    path_distance_km,
    polygon_area_km2,
)
from campus_run.models import Coordinate

from conftest import BASE_LAT, BASE_LNG, make_square, make_walk_north


def _pt(lat, lng):
    return Coordinate(latitude=lat, longitude=lng, timestamp=0)


def test_identical_points_have_zero_distance():
    a = _pt(51.5, -0.12)
    assert haversine_km(a, a) == 0.0


def test_distance_is_symmetric():
    a = _pt(40.7589, -73.9851)
    b = _pt(40.7505, -73.9934)
    assert haversine_km(a, b) == pytest.approx(haversine_km(b, a))


def test_one_degree_of_latitude_matches_earth_radius():
    a = _pt(0.0, 0.0)
    b = _pt(1.0, 0.0)
    assert haversine_km(a, b) == pytest.approx(6371.0 * math.pi / 180.0, rel=1e-9)


def test_haversine_m_scales_km():
    a, b = make_walk_north(count=2, step_m=100.0)
    assert haversine_m(a, b) == pytest.approx(haversine_km(a, b) * 1000.0)


def test_path_distance_degenerate_inputs():
    assert path_distance_km([]) == 0.0
    assert path_distance_km([_pt(1.0, 2.0)]) == 0.0
    assert leg_distances_km([_pt(1.0, 2.0)]).size == 0


def test_vectorised_legs_match_scalar_haversine():
    samples = make_walk_north(count=5, step_m=25.0) + [_pt(BASE_LAT + 0.01, BASE_LNG + 0.02)]
    legs = leg_distances_km(samples)
    expected = [haversine_km(a, b) for a, b in zip(samples, samples[1:])]
    assert list(legs) == pytest.approx(expected)
    assert path_distance_km(samples) == pytest.approx(sum(expected))


def test_area_needs_three_points():
    assert polygon_area_km2([]) == 0.0
    assert polygon_area_km2([_pt(1, 1), _pt(2, 2)]) == 0.0


def test_square_of_one_km_side_has_one_square_km(square_km):
    assert polygon_area_km2(square_km) == pytest.approx(1.0, rel=0.05)


def test_area_ignores_winding_and_explicit_closure():
    square = make_square(side_m=500.0)
    reversed_square = list(reversed(square))
    closed = make_square(side_m=500.0, close=True)
    area = polygon_area_km2(square)
    assert area == pytest.approx(0.25, rel=0.05)
    assert polygon_area_km2(reversed_square) == pytest.approx(area)
    assert polygon_area_km2(closed) == pytest.approx(area)


def test_collinear_points_enclose_nothing():
    line = make_walk_north(count=4, step_m=50.0)
    assert polygon_area_km2(line) == pytest.approx(0.0, abs=1e-6)


def test_is_within_radius_includes_boundary():
    center = _pt(BASE_LAT, BASE_LNG)
    near, far = make_walk_north(count=3, step_m=40.0)[1:]
    assert is_within_radius(near, center, 50.0)
    assert not is_within_radius(far, center, 50.0)
    assert is_within_radius(center, center, 0.0)
