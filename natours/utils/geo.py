"""
Spherical geometry for the geospatial tour queries.

Distances use the haversine formula on a spherical earth. Radii match the
ones the radius query is expressed in: 3963.2 miles or 6378.1 kilometers.
"""

import math
from dataclasses import dataclass
from typing import Tuple

EARTH_RADIUS = {"mi": 3963.2, "km": 6378.1}
EARTH_RADIUS_METERS = 6378100.0

# Multiplier from meters to the requested unit
METERS_TO_UNIT = {"mi": 0.000621371, "km": 0.001}


@dataclass(frozen=True)
class GeoPoint:
    lat: float
    lng: float

    def __post_init__(self):
        if not -90 <= self.lat <= 90:
            raise ValueError(f"Latitude {self.lat} out of range")
        if not -180 <= self.lng <= 180:
            raise ValueError(f"Longitude {self.lng} out of range")


def parse_latlng(value: str) -> GeoPoint:
    """Parse "lat,lng". Raises ValueError on anything else."""
    parts = [p.strip() for p in value.split(",")]
    if len(parts) != 2 or not all(parts):
        raise ValueError(f"Expected 'lat,lng', got {value!r}")
    return GeoPoint(lat=float(parts[0]), lng=float(parts[1]))


def haversine_meters(a: GeoPoint, b: GeoPoint) -> float:
    lat1, lat2 = math.radians(a.lat), math.radians(b.lat)
    dlat = lat2 - lat1
    dlng = math.radians(b.lng - a.lng)
    h = math.sin(dlat / 2) ** 2 + math.cos(lat1) * math.cos(lat2) * math.sin(dlng / 2) ** 2
    return 2 * EARTH_RADIUS_METERS * math.asin(min(1.0, math.sqrt(h)))


def radius_in_radians(distance: float, unit: str) -> float:
    return distance / EARTH_RADIUS[unit]


def bounding_box(center: GeoPoint, radius_radians: float) -> Tuple[float, float, float, float]:
    """
    (min_lat, max_lat, min_lng, max_lng) enclosing a spherical cap.

    Used as a cheap SQL pre-filter; callers still check the exact distance.
    Near the poles or for huge radii the longitude span widens to the full
    range instead of wrapping.
    """
    angular = math.degrees(radius_radians)
    min_lat = max(-90.0, center.lat - angular)
    max_lat = min(90.0, center.lat + angular)
    cos_lat = math.cos(math.radians(center.lat))
    if max_lat >= 90 or min_lat <= -90 or cos_lat <= 1e-9 or angular / cos_lat >= 180:
        return min_lat, max_lat, -180.0, 180.0
    lng_span = angular / cos_lat
    min_lng, max_lng = center.lng - lng_span, center.lng + lng_span
    if min_lng < -180 or max_lng > 180:
        # The box crosses the antimeridian; fall back to the full range
        return min_lat, max_lat, -180.0, 180.0
    return min_lat, max_lat, min_lng, max_lng
