"""Great-circle geometry on a spherical Earth.

Distances use the haversine formula, which stays well conditioned for
small separations and is exact on the sphere for any radius, near the
poles included. Planar approximations are never used.
"""

from __future__ import annotations

import math
from typing import Sequence

from copcore.models.geo import BoundingBox, GeoPoint

# IUGG mean Earth radius in meters.
EARTH_RADIUS_M = 6_371_008.8


def haversine_m(a: GeoPoint, b: GeoPoint) -> float:
    """Great-circle distance in meters."""
    phi1 = math.radians(a.latitude)
    phi2 = math.radians(b.latitude)
    dphi = phi2 - phi1
    dlmb = math.radians(b.longitude - a.longitude)
    h = (
        math.sin(dphi / 2.0) ** 2
        + math.cos(phi1) * math.cos(phi2) * math.sin(dlmb / 2.0) ** 2
    )
    # Clamp against rounding just above 1.0 for antipodal points.
    h = min(1.0, max(0.0, h))
    return 2.0 * EARTH_RADIUS_M * math.asin(math.sqrt(h))


def within_radius(center: GeoPoint, point: GeoPoint, radius_m: float) -> bool:
    """Inclusive: a point exactly at radius_m is inside."""
    return haversine_m(center, point) <= radius_m


def spherical_centroid(points: Sequence[GeoPoint]) -> GeoPoint:
    """Centroid of points on the sphere (mean of unit vectors).

    Correct across the antimeridian, where averaging longitudes is not.
    A single point is returned unchanged.
    """
    if not points:
        raise ValueError("Cannot take the centroid of no points")
    if len(points) == 1:
        return points[0]

    x = y = z = 0.0
    for p in points:
        phi = math.radians(p.latitude)
        lmb = math.radians(p.longitude)
        x += math.cos(phi) * math.cos(lmb)
        y += math.cos(phi) * math.sin(lmb)
        z += math.sin(phi)
    n = len(points)
    x, y, z = x / n, y / n, z / n

    hyp = math.hypot(x, y)
    if hyp == 0.0 and z == 0.0:
        raise ValueError("Centroid undefined for antipodal point set")
    lat = math.degrees(math.atan2(z, hyp))
    lon = math.degrees(math.atan2(y, x)) if hyp > 0.0 else 0.0
    return GeoPoint(latitude=_clamp(lat, -90.0, 90.0), longitude=_clamp(lon, -180.0, 180.0))


def in_bounding_box(point: GeoPoint, box: BoundingBox) -> bool:
    """Edges inclusive. Handles boxes crossing the antimeridian."""
    if not (box.south <= point.latitude <= box.north):
        return False
    if box.crosses_antimeridian:
        return point.longitude >= box.west or point.longitude <= box.east
    return box.west <= point.longitude <= box.east


def _clamp(value: float, lo: float, hi: float) -> float:
    return max(lo, min(hi, value))
