"""Great-circle distance helpers."""
from __future__ import annotations

import math
from typing import Mapping, Optional, Union

from proximity.geo.point import GeoPoint, is_finite_number

EARTH_RADIUS_KM = 6371.0

PointLike = Union[GeoPoint, Mapping[str, object]]


def haversine_distance(lat1: object, lon1: object, lat2: object, lon2: object) -> Optional[float]:
    """Return the distance in kilometres between two points, or None on bad input.

    Any argument that is not a finite real number yields ``None`` rather than
    ``NaN`` or an exception.
    """
    if not all(is_finite_number(value) for value in (lat1, lon1, lat2, lon2)):
        return None
    phi1 = math.radians(lat1)
    phi2 = math.radians(lat2)
    dphi = phi2 - phi1
    dlambda = math.radians(lon2 - lon1)

    a = math.sin(dphi / 2.0) ** 2 + math.cos(phi1) * math.cos(phi2) * math.sin(dlambda / 2.0) ** 2
    # Clamp floating point drift near antipodes.
    a = min(1.0, max(0.0, a))
    c = 2.0 * math.atan2(math.sqrt(a), math.sqrt(1.0 - a))
    return EARTH_RADIUS_KM * c


def _as_point(value: Optional[PointLike]) -> Optional[GeoPoint]:
    if isinstance(value, GeoPoint):
        return value
    return GeoPoint.from_mapping(value, bounded=False)


def distance_between(origin: Optional[PointLike], target: Optional[PointLike]) -> Optional[float]:
    """Distance between two points given as GeoPoints or ``{"lat", "lng"}`` mappings."""
    a = _as_point(origin)
    b = _as_point(target)
    if a is None or b is None:
        return None
    return haversine_distance(a.lat, a.lng, b.lat, b.lng)


def format_distance(distance_km: Optional[float]) -> str:
    if distance_km is None or not is_finite_number(distance_km):
        return "distance unknown"
    return f"{distance_km:.1f} km away"
