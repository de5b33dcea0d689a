"""Geographic predicates shared by the query planner and reconciliation.

All predicates treat boundary values as inclusive. A bounding box whose
``min_lon`` is greater than its ``max_lon`` crosses the antimeridian and
covers ``[min_lon, 180]`` together with ``[-180, max_lon]``.
"""

from __future__ import annotations

import math
from dataclasses import dataclass

LAT_MIN = -90.0
LAT_MAX = 90.0
LON_MIN = -180.0
LON_MAX = 180.0

EARTH_RADIUS_KM = 6371.0


def is_valid_lat(lat: float) -> bool:
    return math.isfinite(lat) and LAT_MIN <= lat <= LAT_MAX


def is_valid_lon(lon: float) -> bool:
    return math.isfinite(lon) and LON_MIN <= lon <= LON_MAX


def normalize_lon(lon: float) -> float:
    """Wrap a longitude into [-180, 180]."""
    if LON_MIN <= lon <= LON_MAX:
        return lon
    wrapped = (lon + 180.0) % 360.0 - 180.0
    return LON_MAX if wrapped == LON_MIN and lon > 0 else wrapped


@dataclass(frozen=True)
class MapPoint:
    """A WGS84 coordinate pair in degrees."""

    lat: float
    lon: float

    @property
    def is_valid(self) -> bool:
        return is_valid_lat(self.lat) and is_valid_lon(self.lon)


@dataclass(frozen=True)
class BoundingBox:
    """Rectangular geographic filter in degrees."""

    min_lat: float
    min_lon: float
    max_lat: float
    max_lon: float

    @classmethod
    def parse(cls, value: str) -> BoundingBox:
        """
        Parse ``"min_lat,min_lon,max_lat,max_lon"``.

        Raises:
            ValueError: If the string does not hold four numbers
        """
        parts = [p.strip() for p in value.split(",")]
        if len(parts) != 4:
            raise ValueError(f"Expected 4 comma-separated numbers, got {len(parts)}")
        min_lat, min_lon, max_lat, max_lon = (float(p) for p in parts)
        return cls(min_lat=min_lat, min_lon=min_lon, max_lat=max_lat, max_lon=max_lon)

    @property
    def crosses_antimeridian(self) -> bool:
        return self.min_lon > self.max_lon

    @property
    def longitude_ranges(self) -> tuple[tuple[float, float], ...]:
        """Disjoint inclusive longitude ranges covered by this box."""
        if self.crosses_antimeridian:
            return ((self.min_lon, LON_MAX), (LON_MIN, self.max_lon))
        return ((self.min_lon, self.max_lon),)

    def problems(self) -> list[str]:
        """Return human-readable validation problems (empty when valid)."""
        problems = []
        for name in ("min_lat", "max_lat"):
            if not is_valid_lat(getattr(self, name)):
                problems.append(f"{name} must be within [{LAT_MIN}, {LAT_MAX}]")
        for name in ("min_lon", "max_lon"):
            if not is_valid_lon(getattr(self, name)):
                problems.append(f"{name} must be within [{LON_MIN}, {LON_MAX}]")
        if not problems and self.min_lat > self.max_lat:
            problems.append("min_lat must not be greater than max_lat")
        return problems

    @property
    def is_valid(self) -> bool:
        return not self.problems()

    def contains(self, lat: float, lon: float) -> bool:
        """Inclusive point-in-box test."""
        if not self.min_lat <= lat <= self.max_lat:
            return False
        return any(lo <= lon <= hi for lo, hi in self.longitude_ranges)

    def contains_point(self, point: MapPoint) -> bool:
        return self.contains(point.lat, point.lon)

    @property
    def lon_span(self) -> float:
        if self.crosses_antimeridian:
            return (LON_MAX - self.min_lon) + (self.max_lon - LON_MIN)
        return self.max_lon - self.min_lon

    @property
    def lat_span(self) -> float:
        return self.max_lat - self.min_lat

    def __str__(self) -> str:
        return f"{self.min_lat},{self.min_lon},{self.max_lat},{self.max_lon}"


WORLD = BoundingBox(min_lat=LAT_MIN, min_lon=LON_MIN, max_lat=LAT_MAX, max_lon=LON_MAX)


def haversine_km(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """Great-circle distance between two points in kilometers."""
    rlat1, rlon1 = math.radians(lat1), math.radians(lon1)
    rlat2, rlon2 = math.radians(lat2), math.radians(lon2)
    dlat = rlat2 - rlat1
    dlon = rlon2 - rlon1
    a = math.sin(dlat / 2) ** 2 + math.cos(rlat1) * math.cos(rlat2) * math.sin(dlon / 2) ** 2
    c = 2 * math.asin(min(1.0, math.sqrt(a)))
    return EARTH_RADIUS_KM * c


def within_radius(
    lat: float,
    lon: float,
    center: MapPoint,
    radius_km: float,
) -> bool:
    """Inclusive distance predicate."""
    return haversine_km(lat, lon, center.lat, center.lon) <= radius_km


def bbox_around(center: MapPoint, radius_km: float) -> BoundingBox:
    """
    Smallest box enclosing the circle of ``radius_km`` around ``center``.

    The box is used as a cheap pre-filter before ``within_radius``.
    """
    if radius_km < 0:
        raise ValueError("radius_km must not be negative")

    lat_delta = math.degrees(radius_km / EARTH_RADIUS_KM)
    min_lat = max(LAT_MIN, center.lat - lat_delta)
    max_lat = min(LAT_MAX, center.lat + lat_delta)

    # Near the poles every longitude is within reach
    cos_lat = math.cos(math.radians(center.lat))
    if min_lat == LAT_MIN or max_lat == LAT_MAX or cos_lat <= 1e-12:
        return BoundingBox(min_lat=min_lat, min_lon=LON_MIN, max_lat=max_lat, max_lon=LON_MAX)

    lon_delta = math.degrees(radius_km / (EARTH_RADIUS_KM * cos_lat))
    if lon_delta >= 180.0:
        return BoundingBox(min_lat=min_lat, min_lon=LON_MIN, max_lat=max_lat, max_lon=LON_MAX)

    return BoundingBox(
        min_lat=min_lat,
        min_lon=normalize_lon(center.lon - lon_delta),
        max_lat=max_lat,
        max_lon=normalize_lon(center.lon + lon_delta),
    )


def extend_bbox(bbox: BoundingBox) -> BoundingBox:
    """
    Surroundings of a box: grow it by its own span on every side.

    Used to look for results just outside the visible map area.
    """
    lat_span = bbox.lat_span
    lon_span = bbox.lon_span
    min_lat = max(LAT_MIN, bbox.min_lat - lat_span)
    max_lat = min(LAT_MAX, bbox.max_lat + lat_span)
    if lon_span * 3 >= 360.0:
        return BoundingBox(min_lat=min_lat, min_lon=LON_MIN, max_lat=max_lat, max_lon=LON_MAX)
    return BoundingBox(
        min_lat=min_lat,
        min_lon=normalize_lon(bbox.min_lon - lon_span),
        max_lat=max_lat,
        max_lon=normalize_lon(bbox.max_lon + lon_span),
    )
