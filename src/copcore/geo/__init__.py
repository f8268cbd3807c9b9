"""Geodesic helpers and the reference geo index."""

from copcore.geo.geodesy import (
    EARTH_RADIUS_M,
    haversine_m,
    in_bounding_box,
    spherical_centroid,
    within_radius,
)
from copcore.geo.index import InMemoryGeoIndex

__all__ = [
    "EARTH_RADIUS_M",
    "InMemoryGeoIndex",
    "haversine_m",
    "in_bounding_box",
    "spherical_centroid",
    "within_radius",
]
