"""Geographic value types (WGS84 degrees)."""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class GeoPoint:
    """A point on the globe. Validated on construction."""
    latitude: float
    longitude: float

    def __post_init__(self) -> None:
        if not (-90.0 <= self.latitude <= 90.0):
            raise ValueError(f"Latitude must be in [-90, 90], got {self.latitude}")
        if not (-180.0 <= self.longitude <= 180.0):
            raise ValueError(
                f"Longitude must be in [-180, 180], got {self.longitude}"
            )


@dataclass(frozen=True)
class BoundingBox:
    """Latitude/longitude box.

    west > east means the box crosses the antimeridian, e.g.
    west=170, east=-170 covers the 20 degrees around 180.
    """
    south: float
    west: float
    north: float
    east: float

    def __post_init__(self) -> None:
        if self.south > self.north:
            raise ValueError(
                f"Bounding box south ({self.south}) is above north ({self.north})"
            )
        for lat in (self.south, self.north):
            if not (-90.0 <= lat <= 90.0):
                raise ValueError(f"Latitude must be in [-90, 90], got {lat}")
        for lon in (self.west, self.east):
            if not (-180.0 <= lon <= 180.0):
                raise ValueError(f"Longitude must be in [-180, 180], got {lon}")

    @property
    def crosses_antimeridian(self) -> bool:
        return self.west > self.east
