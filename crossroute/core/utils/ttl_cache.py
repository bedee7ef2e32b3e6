from __future__ import annotations

import time
from dataclasses import dataclass
from typing import Callable, Dict, Generic, Optional, TypeVar

V = TypeVar("V")


@dataclass
class _CacheEntry(Generic[V]):
    value: V
    expires_at: float


class TtlCache(Generic[V]):
    """
    In-memory key/value cache with a fixed time-to-live.

    Expired entries are never returned; they are evicted lazily on read. Concurrent writers
    on the same key follow last-writer-wins, which is safe within one event loop.
    """

    def __init__(self, ttl_seconds: float, clock: Callable[[], float] = time.monotonic) -> None:
        if ttl_seconds <= 0:
            raise ValueError("ttl_seconds must be greater than zero.")
        self.ttl_seconds = float(ttl_seconds)
        self._clock = clock
        self._entries: Dict[str, _CacheEntry[V]] = {}

    def get(self, key: str) -> Optional[V]:
        entry = self._entries.get(key)
        if entry is None:
            return None
        if self._clock() >= entry.expires_at:
            del self._entries[key]
            return None
        return entry.value

    def set(self, key: str, value: V) -> float:
        """Store `value` and return its absolute expiry on the cache clock."""
        expires_at = self._clock() + self.ttl_seconds
        self._entries[key] = _CacheEntry(value=value, expires_at=expires_at)
        return expires_at

    def invalidate(self, key: str) -> None:
        self._entries.pop(key, None)

    def clear(self) -> None:
        self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)
