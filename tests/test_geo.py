"""Tests for geodesy helpers and the in-memory geo index."""

import pytest

from copcore.geo.geodesy import (
    EARTH_RADIUS_M,
    haversine_m,
    in_bounding_box,
    spherical_centroid,
    within_radius,
)
from copcore.geo.index import InMemoryGeoIndex
from copcore.models.geo import BoundingBox, GeoPoint


class TestGeoPoint:
    def test_rejects_out_of_range_latitude(self) -> None:
        with pytest.raises(ValueError, match="Latitude"):
            GeoPoint(91.0, 0.0)

    def test_rejects_out_of_range_longitude(self) -> None:
        with pytest.raises(ValueError, match="Longitude"):
            GeoPoint(0.0, -180.5)

    def test_box_south_above_north_rejected(self) -> None:
        with pytest.raises(ValueError):
            BoundingBox(south=10.0, west=0.0, north=5.0, east=1.0)


class TestHaversine:
    def test_zero_distance(self) -> None:
        p = GeoPoint(51.5, -0.12)
        assert haversine_m(p, p) == 0.0

    def test_one_degree_of_latitude(self) -> None:
        d = haversine_m(GeoPoint(0.0, 0.0), GeoPoint(1.0, 0.0))
        assert d == pytest.approx(EARTH_RADIUS_M * 3.141592653589793 / 180.0, rel=1e-9)

    def test_symmetric(self) -> None:
        a, b = GeoPoint(48.85, 2.35), GeoPoint(40.71, -74.0)
        assert haversine_m(a, b) == pytest.approx(haversine_m(b, a))

    def test_across_antimeridian_is_short(self) -> None:
        d = haversine_m(GeoPoint(0.0, 179.99), GeoPoint(0.0, -179.99))
        assert d < 3_000

    def test_antipodal_points(self) -> None:
        d = haversine_m(GeoPoint(0.0, 0.0), GeoPoint(0.0, 180.0))
        assert d == pytest.approx(EARTH_RADIUS_M * 3.141592653589793)

    def test_within_radius_inclusive(self) -> None:
        a, b = GeoPoint(10.0, 10.0), GeoPoint(10.01, 10.0)
        d = haversine_m(a, b)
        assert within_radius(a, b, d)
        assert not within_radius(a, b, d - 1.0)


class TestCentroid:
    def test_single_point_unchanged(self) -> None:
        p = GeoPoint(12.3, 45.6)
        assert spherical_centroid([p]) is p

    def test_empty_rejected(self) -> None:
        with pytest.raises(ValueError):
            spherical_centroid([])

    def test_midpoint_on_equator(self) -> None:
        c = spherical_centroid([GeoPoint(0.0, 10.0), GeoPoint(0.0, 20.0)])
        assert c.latitude == pytest.approx(0.0, abs=1e-9)
        assert c.longitude == pytest.approx(15.0)

    def test_antimeridian_centroid(self) -> None:
        c = spherical_centroid([GeoPoint(0.0, 179.0), GeoPoint(0.0, -179.0)])
        assert abs(c.longitude) == pytest.approx(180.0)


class TestBoundingBox:
    def test_plain_box(self) -> None:
        box = BoundingBox(south=0.0, west=0.0, north=10.0, east=10.0)
        assert in_bounding_box(GeoPoint(5.0, 5.0), box)
        assert in_bounding_box(GeoPoint(10.0, 10.0), box)
        assert not in_bounding_box(GeoPoint(5.0, 11.0), box)

    def test_antimeridian_box(self) -> None:
        box = BoundingBox(south=-10.0, west=170.0, north=10.0, east=-170.0)
        assert box.crosses_antimeridian
        assert in_bounding_box(GeoPoint(0.0, 175.0), box)
        assert in_bounding_box(GeoPoint(0.0, -175.0), box)
        assert not in_bounding_box(GeoPoint(0.0, 0.0), box)


class TestInMemoryGeoIndex:
    def test_radius_boundary_inclusive(self) -> None:
        index = InMemoryGeoIndex()
        center = GeoPoint(34.0, 45.0)
        edge = GeoPoint(34.02, 45.0)
        index.put("report", "RPT-00000001", edge)
        d = haversine_m(center, edge)
        assert index.within_radius(center, d, "report") == ["RPT-00000001"]
        assert index.within_radius(center, d - 1.0, "report") == []

    def test_results_ordered_by_distance_then_id(self) -> None:
        index = InMemoryGeoIndex()
        center = GeoPoint(0.0, 0.0)
        index.put("report", "RPT-00000003", GeoPoint(0.02, 0.0))
        index.put("report", "RPT-00000002", GeoPoint(0.01, 0.0))
        index.put("report", "RPT-00000001", GeoPoint(0.01, 0.0))
        assert index.within_radius(center, 10_000, "report") == [
            "RPT-00000001", "RPT-00000002", "RPT-00000003",
        ]

    def test_kinds_are_separate(self) -> None:
        index = InMemoryGeoIndex()
        index.put("report", "A", GeoPoint(0.0, 0.0))
        index.put("event", "B", GeoPoint(0.0, 0.0))
        assert index.within_radius(GeoPoint(0.0, 0.0), 1.0, "event") == ["B"]
        assert index.count("report") == 1

    def test_remove(self) -> None:
        index = InMemoryGeoIndex()
        index.put("report", "A", GeoPoint(0.0, 0.0))
        index.remove("report", "A")
        index.remove("report", "missing")
        assert index.count("report") == 0

    def test_negative_radius_rejected(self) -> None:
        with pytest.raises(ValueError):
            InMemoryGeoIndex().within_radius(GeoPoint(0.0, 0.0), -1.0, "report")

    def test_bounding_query_sorted_ids(self) -> None:
        index = InMemoryGeoIndex()
        index.put("event", "E2", GeoPoint(0.0, 179.5))
        index.put("event", "E1", GeoPoint(0.0, -179.5))
        index.put("event", "E3", GeoPoint(0.0, 0.0))
        box = BoundingBox(south=-1.0, west=179.0, north=1.0, east=-179.0)
        assert index.bounding_query(box, "event") == ["E1", "E2"]
