"""Address to coordinate lookups against an external geocoding provider."""
from __future__ import annotations

import asyncio
import time
from types import TracebackType
from typing import Any, Dict, Optional, Protocol, Type

import httpx
import structlog

from proximity.geo.point import GeoPoint
from proximity.observability.metrics import MetricsRegistry
from proximity.observability.tracing import log_geocode_result, log_timeout, span

LOGGER = structlog.get_logger(__name__)

DEFAULT_GEOCODER_URL = "https://nominatim.openstreetmap.org/search"
DEFAULT_USER_AGENT = "proximity/0.1"


class GeocodingClient(Protocol):
    """Single seam for the external address lookup; implementations never raise."""

    async def geocode(self, address: str) -> Optional[GeoPoint]:
        ...


def _parse_candidate(payload: Any) -> Optional[GeoPoint]:
    if isinstance(payload, list):
        payload = payload[0] if payload else None
    if not isinstance(payload, dict):
        return None
    lat = payload.get("lat", payload.get("latitude"))
    lng = payload.get("lon", payload.get("lng", payload.get("longitude")))
    try:
        return GeoPoint.from_values(float(lat), float(lng))
    except (TypeError, ValueError):
        return None


class HttpGeocodingClient:
    """Geocoder for Nominatim-compatible JSON search endpoints.

    Provider errors, empty results, malformed payloads and timeouts all
    collapse to ``None``.
    """

    def __init__(
        self,
        *,
        base_url: str = DEFAULT_GEOCODER_URL,
        user_agent: str = DEFAULT_USER_AGENT,
        timeout: float = 4.0,
        country_codes: Optional[str] = None,
        client: Optional[httpx.AsyncClient] = None,
        metrics: Optional[MetricsRegistry] = None,
    ) -> None:
        self._base_url = base_url
        self._user_agent = user_agent
        self._timeout = timeout
        self._country_codes = country_codes
        self._client = client
        self._owns_client = client is None
        self._metrics = metrics or MetricsRegistry()

    async def __aenter__(self) -> "HttpGeocodingClient":
        if self._client is None:
            self._client = httpx.AsyncClient(
                headers={"User-Agent": self._user_agent},
                timeout=self._timeout,
            )
            self._owns_client = True
        return self

    async def __aexit__(
        self,
        exc_type: Optional[Type[BaseException]],
        exc: Optional[BaseException],
        tb: Optional[TracebackType],
    ) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None

    def _params(self, address: str) -> Dict[str, str]:
        params = {"q": address, "format": "json", "limit": "1"}
        if self._country_codes:
            params["countrycodes"] = self._country_codes
        return params

    async def _request(self, address: str) -> Optional[GeoPoint]:
        if self._client is None:
            # Not entered as a context manager: the provider is not ready.
            LOGGER.warning("geocoder_not_ready", address=address)
            return None
        response = await self._client.get(
            self._base_url,
            params=self._params(address),
            headers={"User-Agent": self._user_agent},
            timeout=self._timeout,
        )
        response.raise_for_status()
        return _parse_candidate(response.json())

    async def geocode(self, address: str) -> Optional[GeoPoint]:
        """Return coordinates for the address or None when unavailable."""
        if not address or not address.strip():
            return None
        self._metrics.incr("geocode_requests")
        start = time.perf_counter()
        try:
            with span(name="geocode", address=address):
                result = await asyncio.wait_for(self._request(address), timeout=self._timeout)
        except asyncio.TimeoutError:
            self._metrics.incr("geocode_timeouts")
            log_timeout(operation="geocode", timeout=self._timeout, address=address)
            return None
        except (httpx.HTTPError, ValueError) as exc:
            self._metrics.incr("geocode_misses")
            LOGGER.warning("geocode_failed", address=address, reason=str(exc))
            return None
        except Exception as exc:
            # e.g. httpx.InvalidURL from a misconfigured base_url
            self._metrics.incr("geocode_misses")
            LOGGER.warning("geocode_error", address=address, reason=repr(exc))
            return None
        elapsed_ms = int((time.perf_counter() - start) * 1000)
        log_geocode_result(address=address, found=result is not None, elapsed_ms=elapsed_ms)
        self._metrics.incr("geocode_hits" if result is not None else "geocode_misses")
        return result
