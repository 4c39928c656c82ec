"""Field alias normalisation for records with inconsistent location fields.

Source records name their location data in many ways. Lookups follow a fixed
precedence so every caller reads the same value:

Coordinates (first match wins)
    1. ``coordinates`` mapping with ``lat``/``lng``
    2. top-level pairs, in ``COORDINATE_PAIRS`` order
    3. nested mappings under ``NESTED_KEYS`` holding any pair

Address (first non-blank string wins)
    ``address``, ``location``, ``full_address``
"""
from __future__ import annotations

from typing import Mapping, Optional, Tuple

from proximity.geo.point import GeoPoint

COORDINATE_PAIRS: Tuple[Tuple[str, str], ...] = (
    ("lat", "lng"),
    ("latitude", "longitude"),
    ("lat", "lon"),
    ("location_lat", "location_lng"),
)
NESTED_KEYS: Tuple[str, ...] = ("coordinates", "geo", "location")
ADDRESS_KEYS: Tuple[str, ...] = ("address", "location", "full_address")


def existing_coordinates(entity: Mapping[str, object]) -> Optional[GeoPoint]:
    """Return the canonical ``coordinates`` value when it is already usable."""
    return GeoPoint.from_mapping(entity.get("coordinates"), bounded=False)


def _from_pairs(payload: Mapping[str, object]) -> Optional[GeoPoint]:
    for lat_key, lng_key in COORDINATE_PAIRS:
        if lat_key in payload and lng_key in payload:
            point = GeoPoint.from_values(payload[lat_key], payload[lng_key], bounded=False)
            if point is not None:
                return point
    return None


def alias_coordinates(entity: Mapping[str, object]) -> Optional[GeoPoint]:
    """Synthesize coordinates from alternate numeric fields."""
    point = _from_pairs(entity)
    if point is not None:
        return point
    for key in NESTED_KEYS:
        nested = entity.get(key)
        if isinstance(nested, Mapping):
            point = _from_pairs(nested)
            if point is not None:
                return point
    return None


def address_for(entity: Mapping[str, object]) -> Optional[str]:
    for key in ADDRESS_KEYS:
        value = entity.get(key)
        if isinstance(value, str) and value.strip():
            return value.strip()
    return None
