"""Tests for distance and proximity helpers."""

import pytest

from gettrain_mcp import geo
from gettrain_mcp.geo import distance_km, is_at_location
from gettrain_mcp.locations import HOME, HAIFA_OFFICE, TLV_OFFICE, TRAIN_STATIONS
from gettrain_mcp.models import Coordinate, Place

POINTS = [
    HOME.coordinate,
    TLV_OFFICE.coordinate,
    HAIFA_OFFICE.coordinate,
    *(s.coordinate for s in TRAIN_STATIONS),
    Coordinate(latitude=-33.8688, longitude=151.2093),
    Coordinate(latitude=0.0, longitude=0.0),
]


class TestDistance:
    def test_same_point_is_zero(self):
        for point in POINTS:
            assert distance_km(point, point) == 0

    def test_symmetric(self):
        for a in POINTS:
            for b in POINTS:
                assert distance_km(a, b) == distance_km(b, a)

    def test_home_to_netivot(self):
        assert 9 < distance_km(HOME.coordinate, TRAIN_STATIONS[0].coordinate) < 12

    def test_home_to_tlv_office(self):
        assert 65 < distance_km(HOME.coordinate, TLV_OFFICE.coordinate) < 80

    def test_one_degree_of_latitude(self):
        a = Coordinate(latitude=0.0, longitude=0.0)
        b = Coordinate(latitude=1.0, longitude=0.0)
        assert distance_km(a, b) == pytest.approx(111.195, abs=0.01)


class TestIsAtLocation:
    def test_nearby_point(self):
        # ~100 m north of home
        current = Coordinate(latitude=HOME.coordinate.latitude + 0.0009, longitude=HOME.coordinate.longitude)
        assert is_at_location(current, HOME)

    def test_far_point(self):
        # ~1.1 km north of home
        current = Coordinate(latitude=HOME.coordinate.latitude + 0.01, longitude=HOME.coordinate.longitude)
        assert not is_at_location(current, HOME)

    def test_boundary_is_inclusive(self, monkeypatch):
        monkeypatch.setattr(geo, "distance_km", lambda a, b: 0.5)
        assert is_at_location(HOME.coordinate, Place(name="x", coordinate=HOME.coordinate))

    def test_just_past_boundary(self, monkeypatch):
        monkeypatch.setattr(geo, "distance_km", lambda a, b: 0.5000001)
        assert not is_at_location(HOME.coordinate, HOME)

    def test_real_points_around_half_a_kilometer(self):
        # 0.0044 deg of latitude is ~489 m, 0.0046 deg is ~511 m
        inside = Coordinate(latitude=HOME.coordinate.latitude + 0.0044, longitude=HOME.coordinate.longitude)
        outside = Coordinate(latitude=HOME.coordinate.latitude + 0.0046, longitude=HOME.coordinate.longitude)

        assert distance_km(inside, HOME.coordinate) == pytest.approx(0.489, abs=0.001)
        assert distance_km(outside, HOME.coordinate) == pytest.approx(0.5115, abs=0.001)
        assert is_at_location(inside, HOME)
        assert not is_at_location(outside, HOME)

    def test_custom_threshold(self):
        current = Coordinate(latitude=HOME.coordinate.latitude + 0.01, longitude=HOME.coordinate.longitude)
        assert is_at_location(current, HOME, threshold_km=2.0)
