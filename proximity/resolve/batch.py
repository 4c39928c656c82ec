"""Bounded-concurrency coordinate resolution over a list of entities."""
from __future__ import annotations

import asyncio
from typing import List, Optional

import structlog

from proximity.observability.metrics import MetricsRegistry, record_duration
from proximity.resolve.resolver import CoordinateResolver, Entity

LOGGER = structlog.get_logger(__name__)

DEFAULT_CONCURRENCY = 3


class BatchResolver:
    """Runs a fixed pool of workers pulling entities from a shared queue."""

    def __init__(
        self,
        resolver: CoordinateResolver,
        *,
        concurrency: int = DEFAULT_CONCURRENCY,
        metrics: Optional[MetricsRegistry] = None,
    ) -> None:
        self._resolver = resolver
        self._concurrency = concurrency
        self._metrics = metrics or MetricsRegistry()

    async def _worker(self, queue: "asyncio.Queue[Entity]") -> None:
        while True:
            try:
                entity = queue.get_nowait()
            except asyncio.QueueEmpty:
                return
            try:
                await self._resolver.ensure_coordinates(entity)
            except Exception as error:
                self._metrics.incr("resolve_failures")
                LOGGER.warning(
                    "resolve_failed",
                    entity_id=entity.get("id") if isinstance(entity, dict) else None,
                    reason=repr(error),
                )
            finally:
                queue.task_done()

    async def ensure_coordinates_for_all(
        self,
        items: List[Entity],
        concurrency: Optional[int] = None,
    ) -> List[Entity]:
        """Resolve every item exactly once; returns ``items`` in input order."""
        if not items:
            return items
        limit = max(1, concurrency if concurrency is not None else self._concurrency)
        queue: asyncio.Queue[Entity] = asyncio.Queue()
        for item in items:
            queue.put_nowait(item)

        worker_count = min(limit, len(items))
        with record_duration(self._metrics, "batch_duration_ms"):
            workers = [asyncio.create_task(self._worker(queue)) for _ in range(worker_count)]
            await asyncio.gather(*workers)
        LOGGER.debug("batch_resolved", items=len(items), workers=worker_count)
        return items


async def ensure_coordinates_for_all(
    items: List[Entity],
    resolver: CoordinateResolver,
    concurrency: int = DEFAULT_CONCURRENCY,
) -> List[Entity]:
    return await BatchResolver(resolver, concurrency=concurrency).ensure_coordinates_for_all(items)
