"""Radius filtering around a point, as a two-stage bounding-box + distance test.

The first stage (``geom && ST_MakeEnvelope(...)``) is answered by the GIST
index on ``geom``; the second (``ST_DWithin`` on geography) is exact.  Both
stages are always emitted together with a non-null guard.
"""

import math
from dataclasses import dataclass

from geoalchemy2 import Geography
from sqlalchemy import ColumnElement, and_, cast, func

METERS_PER_MILE = 1609.344
EARTH_RADIUS_METERS = 6_371_008.8
SRID_WGS84 = 4326


def meters_to_degrees(meters: float, latitude: float) -> float:
    """Convert meters to approximate degrees at a given latitude.

    Uses a latitude-dependent approximation and returns the larger of the
    latitude and longitude conversions, so a box built from it always
    contains the true circle.

    Args:
        meters: Distance in meters.
        latitude: WGS84 latitude for longitude scaling.

    Returns:
        Conservative radius in degrees.
    """
    if meters <= 0:
        return 0.0

    lat_deg = meters / 111_320
    cos_lat = math.cos(math.radians(latitude))
    if cos_lat <= 1e-9:
        return 360.0
    lng_deg = meters / (111_320 * cos_lat)
    return max(lat_deg, lng_deg)


def haversine_meters(lat1: float, lng1: float, lat2: float, lng2: float) -> float:
    """Great-circle distance between two WGS84 points in meters."""
    phi1, phi2 = math.radians(lat1), math.radians(lat2)
    d_phi = math.radians(lat2 - lat1)
    d_lambda = math.radians(lng2 - lng1)
    a = math.sin(d_phi / 2) ** 2 + math.cos(phi1) * math.cos(phi2) * math.sin(d_lambda / 2) ** 2
    return 2 * EARTH_RADIUS_METERS * math.asin(math.sqrt(a))


@dataclass(frozen=True)
class RadiusFilter:
    """A circle around a WGS84 point with a radius in miles."""

    latitude: float
    longitude: float
    radius_miles: float

    def __post_init__(self) -> None:
        if not (-90 <= self.latitude <= 90):
            msg = f"Latitude must be between -90 and 90, got {self.latitude}"
            raise ValueError(msg)
        if not (-180 <= self.longitude <= 180):
            msg = f"Longitude must be between -180 and 180, got {self.longitude}"
            raise ValueError(msg)
        if not (self.radius_miles > 0 and math.isfinite(self.radius_miles)):
            msg = f"Radius must be a positive number of miles, got {self.radius_miles}"
            raise ValueError(msg)

    @classmethod
    def parse(cls, value: str) -> "RadiusFilter":
        """Parse ``"lat,lng,radiusMiles"``.

        Raises:
            ValueError: If the value is malformed or out of range.
        """
        parts = [p.strip() for p in value.split(",")]
        if len(parts) != 3:
            msg = f"Radius filter must be 'lat,lng,radiusMiles', got {value!r}"
            raise ValueError(msg)
        lat, lng, radius = (float(p) for p in parts)
        return cls(lat, lng, radius)

    @property
    def radius_meters(self) -> float:
        """Radius converted to meters."""
        return self.radius_miles * METERS_PER_MILE

    def bounding_box(self) -> tuple[float, float, float, float]:
        """Return ``(xmin, ymin, xmax, ymax)`` in degrees enclosing the circle."""
        delta = meters_to_degrees(self.radius_meters, self.latitude)
        return (
            self.longitude - delta,
            self.latitude - delta,
            self.longitude + delta,
            self.latitude + delta,
        )

    def contains(self, latitude: float, longitude: float) -> bool:
        """Apply the same two-stage test in Python.

        Args:
            latitude: Candidate point latitude.
            longitude: Candidate point longitude.

        Returns:
            True if the point lies within the radius.
        """
        xmin, ymin, xmax, ymax = self.bounding_box()
        if not (xmin <= longitude <= xmax and ymin <= latitude <= ymax):
            return False
        return haversine_meters(self.latitude, self.longitude, latitude, longitude) <= self.radius_meters


def envelope(xmin: float, ymin: float, xmax: float, ymax: float) -> ColumnElement:
    """Build an ``ST_MakeEnvelope`` expression in WGS84."""
    return func.ST_MakeEnvelope(xmin, ymin, xmax, ymax, SRID_WGS84)


def radius_predicate(geom: ColumnElement, radius: RadiusFilter) -> ColumnElement[bool]:
    """Compile a radius filter against a POINT geometry column.

    Args:
        geom: The geometry column (SRID 4326).
        radius: The validated radius filter.

    Returns:
        ``geom IS NOT NULL AND geom && envelope AND ST_DWithin(geography, geography, meters)``.
    """
    center = func.ST_SetSRID(func.ST_MakePoint(radius.longitude, radius.latitude), SRID_WGS84)
    return and_(
        geom.is_not(None),
        geom.intersects(envelope(*radius.bounding_box())),
        func.ST_DWithin(
            cast(geom, Geography(srid=SRID_WGS84)),
            cast(center, Geography(srid=SRID_WGS84)),
            radius.radius_meters,
        ),
    )
