"""Nearest-first ordering shared by every listing surface."""
from __future__ import annotations

from typing import Any, Dict, Iterable, List, Optional, Tuple

import structlog

from proximity.geo.distance import distance_between
from proximity.geo.point import GeoPoint, is_finite_number
from proximity.observability.metrics import MetricsRegistry

LOGGER = structlog.get_logger(__name__)

Entity = Dict[str, Any]


def _rating(entity: Entity) -> float:
    value = entity.get("rating")
    return float(value) if is_finite_number(value) else 0.0


def ranking_key(entity: Entity) -> Tuple[int, float]:
    """Sort key: known distances ascending, then unknowns by rating descending.

    Used with a stable sort, so entities with equal keys keep input order.
    """
    distance = entity.get("distance_km")
    if distance is not None:
        return (0, distance)
    return (1, -_rating(entity))


def annotate_distances(entities: Iterable[Entity], user_location: Optional[GeoPoint]) -> List[Entity]:
    annotated: List[Entity] = []
    for entity in entities:
        distance = None
        if user_location is not None:
            distance = distance_between(user_location, entity.get("coordinates"))
        entity["distance_km"] = distance
        annotated.append(entity)
    return annotated


def rank(entities: Iterable[Entity], user_location: Optional[GeoPoint]) -> List[Entity]:
    """Annotate ``distance_km`` in place and return the entities in display order."""
    return sorted(annotate_distances(entities, user_location), key=ranking_key)


class RankingEngine:
    """Wraps :func:`rank` with logging and counters."""

    def __init__(self, *, metrics: Optional[MetricsRegistry] = None) -> None:
        self._metrics = metrics or MetricsRegistry()

    def rank(self, entities: Iterable[Entity], user_location: Optional[GeoPoint]) -> List[Entity]:
        ranked = rank(entities, user_location)
        unknown = sum(1 for entity in ranked if entity["distance_km"] is None)
        self._metrics.incr("entities_ranked", len(ranked))
        LOGGER.debug(
            "entities_ranked",
            total=len(ranked),
            without_distance=unknown,
            has_user_location=user_location is not None,
        )
        return ranked
