# AGPL-3.0 License

"""
Small in-memory cache with per-entry expiry.
"""

import time
from typing import Callable, Generic, Optional, TypeVar

T = TypeVar("T")


class TTLCache(Generic[T]):
    """
    Key/value store whose entries expire ``ttl_seconds`` after being set.

    Expired entries are evicted lazily on ``get``; there is no background
    sweeping. Concurrent writers simply overwrite each other.
    """

    def __init__(self, ttl_seconds: float, clock: Callable[[], float] = time.monotonic):
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._store: dict[str, tuple[T, float]] = {}

    def get(self, key: str) -> Optional[T]:
        entry = self._store.get(key)
        if entry is None:
            return None

        value, expires_at = entry
        if self._clock() > expires_at:
            del self._store[key]
            return None

        return value

    def set(self, key: str, value: T) -> None:
        self._store[key] = (value, self._clock() + self.ttl_seconds)

    def clear(self) -> None:
        self._store.clear()

    def __len__(self) -> int:
        return len(self._store)
