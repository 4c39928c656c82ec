"""Best-effort coordinate enrichment for a single entity."""
from __future__ import annotations

import asyncio
from typing import Any, Dict, Optional

import structlog

from proximity.geo.cache import GeocodeCache
from proximity.geo.client import GeocodingClient
from proximity.geo.point import GeoPoint
from proximity.normalize.coordinates import address_for, alias_coordinates, existing_coordinates
from proximity.observability.metrics import MetricsRegistry
from proximity.observability.tracing import log_timeout

LOGGER = structlog.get_logger(__name__)

Entity = Dict[str, Any]


class CoordinateResolver:
    """Attaches a ``coordinates`` mapping to entities when one can be found."""

    def __init__(
        self,
        *,
        cache: GeocodeCache,
        client: GeocodingClient,
        timeout: float = 4.0,
        metrics: Optional[MetricsRegistry] = None,
    ) -> None:
        self.cache = cache
        self._client = client
        self._timeout = timeout
        self._metrics = metrics or MetricsRegistry()

    async def _lookup(self, address: str) -> Optional[GeoPoint]:
        async with self.cache.lock_for(address):
            if address in self.cache:
                self._metrics.incr("cache_hits")
                return self.cache.get(address)
            self._metrics.incr("cache_misses")
            try:
                result = await asyncio.wait_for(self._client.geocode(address), timeout=self._timeout)
            except asyncio.TimeoutError:
                self._metrics.incr("geocode_timeouts")
                log_timeout(operation="geocode", timeout=self._timeout, address=address)
                result = None
            except Exception as exc:
                self._metrics.incr("resolve_failures")
                LOGGER.warning("geocode_error", address=address, reason=repr(exc))
                result = None
            if result is not None and not isinstance(result, GeoPoint):
                result = GeoPoint.from_mapping(result)
            self.cache.set(address, result)
            if result is None:
                LOGGER.info("geocode_miss", address=address)
            return result

    async def ensure_coordinates(self, entity: Entity) -> Entity:
        """Return the entity, with ``coordinates`` set when resolvable."""
        if not isinstance(entity, dict):
            return entity
        if existing_coordinates(entity) is not None:
            return entity

        point = alias_coordinates(entity)
        if point is not None:
            self._metrics.incr("alias_resolved")
            entity["coordinates"] = point.as_dict()
            return entity

        address = address_for(entity)
        if address is None:
            return entity
        point = await self._lookup(address)
        if point is not None:
            entity["coordinates"] = point.as_dict()
        return entity


async def ensure_coordinates(entity: Entity, resolver: CoordinateResolver) -> Entity:
    return await resolver.ensure_coordinates(entity)
