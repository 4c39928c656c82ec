"""Resolution of the current user's coordinates."""
from __future__ import annotations

import asyncio
from typing import Any, Awaitable, Callable, Optional

import httpx
import structlog

from proximity.geo.point import GeoPoint
from proximity.observability.metrics import MetricsRegistry
from proximity.observability.tracing import log_timeout, span

LOGGER = structlog.get_logger(__name__)

DEFAULT_IP_LOCATION_URL = "https://ipapi.co/json/"

LocationQuery = Callable[[], Awaitable[Optional[GeoPoint]]]


class HttpLocationQuery:
    """One-shot IP geolocation lookup, the device query outside a browser."""

    def __init__(
        self,
        *,
        url: str = DEFAULT_IP_LOCATION_URL,
        timeout: float = 5.0,
        client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        self._url = url
        self._timeout = timeout
        self._client = client

    @staticmethod
    def _parse(payload: Any) -> Optional[GeoPoint]:
        if not isinstance(payload, dict):
            return None
        lat = payload.get("latitude", payload.get("lat"))
        lng = payload.get("longitude", payload.get("lon", payload.get("lng")))
        try:
            return GeoPoint.from_values(float(lat), float(lng))
        except (TypeError, ValueError):
            return None

    async def __call__(self) -> Optional[GeoPoint]:
        if self._client is not None:
            response = await self._client.get(self._url, timeout=self._timeout)
        else:
            async with httpx.AsyncClient(timeout=self._timeout) as client:
                response = await client.get(self._url)
        response.raise_for_status()
        return self._parse(response.json())


class UserLocationProvider:
    """Prefers an already-known location, otherwise runs a one-shot query."""

    def __init__(
        self,
        known: Optional[GeoPoint] = None,
        query: Optional[LocationQuery] = None,
        *,
        timeout: float = 5.0,
        metrics: Optional[MetricsRegistry] = None,
    ) -> None:
        self._known = known
        self._query = query
        self._timeout = timeout
        self._metrics = metrics or MetricsRegistry()

    @property
    def known(self) -> Optional[GeoPoint]:
        return self._known

    def remember(self, point: Optional[GeoPoint]) -> None:
        """Record the application-level location used by later calls."""
        self._known = point

    def forget(self) -> None:
        self._known = None

    async def get_user_lat_lng(self) -> Optional[GeoPoint]:
        """Return the best available user coordinates, or None."""
        if self._known is not None:
            return self._known
        if self._query is None:
            self._metrics.incr("location_unavailable")
            LOGGER.info("location_unavailable", reason="unsupported")
            return None
        try:
            with span(name="locate"):
                point = await asyncio.wait_for(self._query(), timeout=self._timeout)
        except asyncio.TimeoutError:
            self._metrics.incr("location_unavailable")
            log_timeout(operation="locate", timeout=self._timeout)
            return None
        except Exception as exc:
            self._metrics.incr("location_unavailable")
            LOGGER.warning("location_unavailable", reason=repr(exc))
            return None
        if point is None:
            self._metrics.incr("location_unavailable")
            LOGGER.info("location_unavailable", reason="denied")
        return point
