"""Session-scoped cache of geocoding results keyed by normalized address."""
from __future__ import annotations

import asyncio
from typing import Dict, Optional

from proximity.geo.point import GeoPoint


def normalize_address(address: str) -> str:
    """Trim, case-fold and collapse internal whitespace."""
    return " ".join(address.split()).casefold()


class GeocodeCache:
    """Append-only map from normalized address to a point or a recorded miss.

    A stored ``None`` means the provider was asked and found nothing, which is
    different from an address that was never looked up (``address not in
    cache``).
    """

    def __init__(self) -> None:
        self._index: Dict[str, Optional[GeoPoint]] = {}
        self._locks: Dict[str, asyncio.Lock] = {}

    def __contains__(self, address: object) -> bool:
        if not isinstance(address, str):
            return False
        return normalize_address(address) in self._index

    def __len__(self) -> int:
        return len(self._index)

    def get(self, address: str, default: object = None) -> Optional[GeoPoint]:
        """Return the cached result.

        A recorded miss returns ``None``; an address never looked up returns
        ``default``. Pass a sentinel (or test ``address in cache``) to tell
        the two apart.
        """
        return self._index.get(normalize_address(address), default)

    def set(self, address: str, result: Optional[GeoPoint]) -> None:
        self._index[normalize_address(address)] = result

    def lock_for(self, address: str) -> asyncio.Lock:
        """Return the lock serialising provider lookups for one normalized key."""
        key = normalize_address(address)
        lock = self._locks.get(key)
        if lock is None:
            lock = self._locks[key] = asyncio.Lock()
        return lock
