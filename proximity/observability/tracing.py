"""Tracing helpers for geocoding and location lookups."""
from __future__ import annotations

import contextlib
import time
from typing import Iterator, Optional

import structlog


def _logger() -> structlog.stdlib.BoundLogger:
    return structlog.get_logger("proximity.trace")


@contextlib.contextmanager
def span(*, name: str, address: Optional[str] = None) -> Iterator[None]:
    start = time.perf_counter()
    try:
        yield
    finally:
        elapsed_ms = int((time.perf_counter() - start) * 1000)
        _logger().debug("trace_span", span=name, address=address, elapsed_ms=elapsed_ms)


def log_timeout(*, operation: str, timeout: float, address: Optional[str] = None) -> None:
    _logger().warning("provider_timeout", operation=operation, timeout=timeout, address=address)


def log_geocode_result(*, address: str, found: bool, elapsed_ms: int) -> None:
    _logger().info(
        "geocode_result",
        address=address,
        found=found,
        elapsed_ms=elapsed_ms,
    )
