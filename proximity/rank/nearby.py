"""Search, category filter and "popular near you" listings."""
from __future__ import annotations

from typing import Iterable, List, Optional

import structlog

from proximity.location.provider import UserLocationProvider
from proximity.rank.engine import Entity, RankingEngine
from proximity.resolve.batch import BatchResolver

LOGGER = structlog.get_logger(__name__)

SEARCH_FIELDS = ("name", "category", "display_category", "description", "address")
POPULAR_LIMIT = 10


def _haystack(entity: Entity) -> str:
    return " ".join(str(entity.get(field) or "") for field in SEARCH_FIELDS).lower()


def filter_entities(
    entities: Iterable[Entity],
    *,
    query: Optional[str] = None,
    category: Optional[str] = None,
) -> List[Entity]:
    """Keep entities matching a free text query and/or an exact category."""
    needle = (query or "").strip().lower()
    wanted = (category or "").strip().lower()
    selected: List[Entity] = []
    for entity in entities:
        if wanted and str(entity.get("category") or "").strip().lower() != wanted:
            continue
        if needle and needle not in _haystack(entity):
            continue
        selected.append(entity)
    return selected


class NearbyService:
    """Filter, resolve, locate and rank in one call."""

    def __init__(
        self,
        *,
        batch: BatchResolver,
        locator: UserLocationProvider,
        engine: Optional[RankingEngine] = None,
        popular_limit: int = POPULAR_LIMIT,
    ) -> None:
        self._batch = batch
        self._locator = locator
        self._engine = engine or RankingEngine()
        self._popular_limit = popular_limit

    async def nearby(
        self,
        entities: Iterable[Entity],
        *,
        query: Optional[str] = None,
        category: Optional[str] = None,
        limit: Optional[int] = None,
    ) -> List[Entity]:
        candidates = filter_entities(entities, query=query, category=category)
        await self._batch.ensure_coordinates_for_all(candidates)
        user_location = await self._locator.get_user_lat_lng()
        ranked = self._engine.rank(candidates, user_location)
        if limit is not None:
            ranked = ranked[: max(0, limit)]
        LOGGER.info("nearby_listing", query=query, category=category, results=len(ranked))
        return ranked

    async def popular_near_you(self, entities: Iterable[Entity]) -> List[Entity]:
        return await self.nearby(entities, limit=self._popular_limit)
