"""Coordinate value type shared by the geocoding and ranking layers."""
from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Dict, Mapping, Optional


def is_finite_number(value: object) -> bool:
    """Return True for real, finite numbers (booleans excluded)."""
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return False
    return math.isfinite(value)


@dataclass(frozen=True, slots=True)
class GeoPoint:
    """Represents a resolved coordinate pair."""

    lat: float
    lng: float

    @classmethod
    def from_values(cls, lat: object, lng: object, *, bounded: bool = True) -> Optional["GeoPoint"]:
        """Build a point from finite values.

        With ``bounded`` the values must also lie inside latitude/longitude
        ranges; caller-supplied coordinates are only required to be finite.
        """
        if not (is_finite_number(lat) and is_finite_number(lng)):
            return None
        if bounded and not (-90.0 <= lat <= 90.0 and -180.0 <= lng <= 180.0):
            return None
        return cls(lat=float(lat), lng=float(lng))

    @classmethod
    def from_mapping(cls, payload: object, *, bounded: bool = True) -> Optional["GeoPoint"]:
        if not isinstance(payload, Mapping):
            return None
        return cls.from_values(payload.get("lat"), payload.get("lng"), bounded=bounded)

    def as_dict(self) -> Dict[str, float]:
        return {"lat": self.lat, "lng": self.lng}
