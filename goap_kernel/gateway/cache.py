"""
Response Cache — bounded, time-limited memoization of provider responses.

Behavioral Contract:
- A read past an entry's TTL is a miss, and the entry is discarded (lazy expiry)
- On overflow the earliest-inserted entry is evicted; access-order (LRU)
  eviction is available via ``EvictionPolicy.ACCESS``
- ``hit_rate`` covers reads since construction or the last ``clear()``
- Safe to share between concurrent agents; each entry's lifecycle is independent
"""

import itertools
import threading
import time
from collections import OrderedDict
from typing import Any, Callable, Optional

from pydantic import BaseModel, ConfigDict

from goap_kernel.models.config import CacheConfig, EvictionPolicy


class CacheEntry(BaseModel):
    model_config = ConfigDict(arbitrary_types_allowed=True)

    key: str
    value: Any
    expires_at: float                       # Clock time after which the entry is dead
    sequence: int                           # Insertion order marker


class CacheStats(BaseModel):
    size: int
    capacity: int
    hits: int
    misses: int
    hit_rate: float


class ResponseCache:
    """In-memory TTL cache with a fixed capacity."""

    def __init__(
        self,
        config: Optional[CacheConfig] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.config = config or CacheConfig()
        self._clock = clock
        self._entries: "OrderedDict[str, CacheEntry]" = OrderedDict()
        self._sequence = itertools.count()
        self._lock = threading.Lock()
        self._hits = 0
        self._misses = 0

    @property
    def capacity(self) -> int:
        return self.config.max_size

    @property
    def ttl_seconds(self) -> float:
        return self.config.ttl_seconds

    def _live_entry(self, key: str, now: float) -> Optional[CacheEntry]:
        """Return the entry if present and unexpired; drop it if expired. Caller holds the lock."""
        entry = self._entries.get(key)
        if entry is None:
            return None
        if now >= entry.expires_at:
            del self._entries[key]
            return None
        return entry

    def get(self, key: str) -> Optional[Any]:
        """Cached value for ``key``, or None on a miss."""
        with self._lock:
            entry = self._live_entry(key, self._clock())
            if entry is None:
                self._misses += 1
                return None
            if self.config.eviction == EvictionPolicy.ACCESS:
                self._entries.move_to_end(key)
            self._hits += 1
            return entry.value

    def set(self, key: str, value: Any) -> None:
        """Store ``value``; re-setting a key counts as a fresh insertion."""
        with self._lock:
            self._entries.pop(key, None)
            self._entries[key] = CacheEntry(
                key=key,
                value=value,
                expires_at=self._clock() + self.config.ttl_seconds,
                sequence=next(self._sequence),
            )
            while len(self._entries) > self.config.max_size:
                self._entries.popitem(last=False)

    def delete(self, key: str) -> bool:
        with self._lock:
            return self._entries.pop(key, None) is not None

    def clear(self) -> None:
        """Drop all entries and reset hit/miss counters."""
        with self._lock:
            self._entries.clear()
            self._hits = 0
            self._misses = 0

    def purge_expired(self) -> int:
        with self._lock:
            return self._purge_expired_locked()

    def _purge_expired_locked(self) -> int:
        now = self._clock()
        expired = [k for k, e in self._entries.items() if now >= e.expires_at]
        for key in expired:
            del self._entries[key]
        return len(expired)

    def stats(self) -> CacheStats:
        with self._lock:
            self._purge_expired_locked()
            total = self._hits + self._misses
            return CacheStats(
                size=len(self._entries),
                capacity=self.config.max_size,
                hits=self._hits,
                misses=self._misses,
                hit_rate=(self._hits / total) if total else 0.0,
            )

    def __contains__(self, key: object) -> bool:
        """Membership test that honors TTL without touching hit/miss counters."""
        if not isinstance(key, str):
            return False
        with self._lock:
            return self._live_entry(key, self._clock()) is not None

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)
