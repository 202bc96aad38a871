"""
Great-circle helpers for proximity search.
"""

import math
from dataclasses import dataclass
from typing import Optional

from app.errors import InvalidArgument

EARTH_RADIUS_M = 6_371_000.0
METERS_TO_MILES = 0.000621371

# ~0.1m of slack so float rounding never trims a point on the circle edge
_BOX_PADDING_DEG = 1e-6


def haversine_m(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """Great-circle distance in meters."""
    phi1 = math.radians(lat1)
    phi2 = math.radians(lat2)
    dphi = math.radians(lat2 - lat1)
    dlmb = math.radians(lon2 - lon1)

    a = math.sin(dphi / 2) ** 2 + math.cos(phi1) * math.cos(phi2) * math.sin(dlmb / 2) ** 2
    c = 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))
    return EARTH_RADIUS_M * c


def meters_to_miles(meters: float) -> float:
    return meters * METERS_TO_MILES


def validate_coordinates(latitude: Optional[float], longitude: Optional[float]) -> None:
    """Both components are required and must be in range."""
    if latitude is None or longitude is None:
        raise InvalidArgument("Both latitude and longitude are required")
    if not -90.0 <= latitude <= 90.0:
        raise InvalidArgument(f"Latitude {latitude} is outside [-90, 90]")
    if not -180.0 <= longitude <= 180.0:
        raise InvalidArgument(f"Longitude {longitude} is outside [-180, 180]")


@dataclass(frozen=True)
class BoundingBox:
    """
    Lat/lon rectangle containing every point within a radius of an origin.

    ``min_lon``/``max_lon`` are None when the circle reaches a pole or crosses
    the antimeridian; the longitude filter is then skipped.
    """
    min_lat: float
    max_lat: float
    min_lon: Optional[float]
    max_lon: Optional[float]


def bounding_box(latitude: float, longitude: float, radius_m: float) -> BoundingBox:
    angular = radius_m / EARTH_RADIUS_M
    dlat = math.degrees(angular) + _BOX_PADDING_DEG

    min_lat = latitude - dlat
    max_lat = latitude + dlat
    if min_lat <= -90.0 or max_lat >= 90.0:
        return BoundingBox(max(min_lat, -90.0), min(max_lat, 90.0), None, None)

    ratio = math.sin(angular) / math.cos(math.radians(latitude))
    if ratio >= 1.0:
        return BoundingBox(min_lat, max_lat, None, None)

    dlon = math.degrees(math.asin(ratio)) + _BOX_PADDING_DEG
    min_lon = longitude - dlon
    max_lon = longitude + dlon
    if min_lon < -180.0 or max_lon > 180.0:
        return BoundingBox(min_lat, max_lat, None, None)

    return BoundingBox(min_lat, max_lat, min_lon, max_lon)
