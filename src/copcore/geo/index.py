"""In-memory geo index — reference implementation of the GeoIndex collaborator.

Holds one point per (kind, entity id). Queries return entity IDs only;
the caller loads the entities and applies access filtering. Results
are ordered by distance from the query center, then by ID, so the
same query always returns the same sequence.

Thread-safety: this class is not thread-safe. The caller must
synchronise access if used from multiple threads.
"""

from __future__ import annotations

from copcore.geo.geodesy import haversine_m, in_bounding_box
from copcore.models.geo import BoundingBox, GeoPoint


class InMemoryGeoIndex:
    """Point index keyed by entity kind.

    Usage:
        index = InMemoryGeoIndex()
        index.put("report", "RPT-00000001", GeoPoint(51.5, -0.12))
        ids = index.within_radius(GeoPoint(51.5, -0.1), 2_000, "report")
    """

    def __init__(self) -> None:
        self._points: dict[str, dict[str, GeoPoint]] = {}

    def put(self, kind: str, entity_id: str, point: GeoPoint) -> None:
        """Insert or move an entity."""
        self._points.setdefault(kind, {})[entity_id] = point

    def remove(self, kind: str, entity_id: str) -> None:
        """Drop an entity. Unknown IDs are ignored."""
        self._points.get(kind, {}).pop(entity_id, None)

    def within_radius(
        self, center: GeoPoint, radius_m: float, kind: str,
    ) -> list[str]:
        """IDs whose point is within radius_m of center (inclusive)."""
        if radius_m < 0:
            raise ValueError(f"Radius must be non-negative, got {radius_m}")
        hits: list[tuple[float, str]] = []
        for entity_id, point in self._points.get(kind, {}).items():
            d = haversine_m(center, point)
            if d <= radius_m:
                hits.append((d, entity_id))
        hits.sort()
        return [entity_id for _, entity_id in hits]

    def bounding_query(self, box: BoundingBox, kind: str) -> list[str]:
        """IDs whose point lies inside the box, ordered by ID."""
        return sorted(
            entity_id
            for entity_id, point in self._points.get(kind, {}).items()
            if in_bounding_box(point, box)
        )

    def count(self, kind: str) -> int:
        return len(self._points.get(kind, {}))
