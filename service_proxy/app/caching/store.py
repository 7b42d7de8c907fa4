"""
In-memory TTL store backing the proxy cache.
"""

from __future__ import annotations

import threading
import time
from dataclasses import dataclass
from typing import Callable, Dict, Iterable, List, Optional, Tuple

from shared.errors import ConfigurationError


DEFAULT_TTL_SECONDS = 24 * 3600.0


@dataclass(frozen=True)
class CacheEntry:
    """Cached response body and the absolute time (UNIX seconds) it expires at."""

    value: bytes
    expiration: float

    def is_expired(self, now: float) -> bool:
        return now >= self.expiration


class Store:
    """
    Mapping from cache key to :class:`CacheEntry` with lazy expiration.

    Expired entries are reported as absent by :meth:`get` but stay in the
    mapping until :meth:`delete_expired` runs, so :meth:`count` and
    :meth:`all_entries` include them. All operations take the internal lock;
    callers never coordinate locking themselves.
    """

    def __init__(
        self,
        default_ttl: float = DEFAULT_TTL_SECONDS,
        *,
        clock: Callable[[], float] = time.time,
    ):
        if default_ttl <= 0:
            raise ConfigurationError("TTL must be positive", details={"ttl": default_ttl})
        self.default_ttl = default_ttl
        self._clock = clock
        self._lock = threading.Lock()
        self._items: Dict[str, CacheEntry] = {}

    @classmethod
    def from_entries(
        cls,
        entries: Iterable[Tuple[str, CacheEntry]],
        default_ttl: float = DEFAULT_TTL_SECONDS,
        *,
        clock: Callable[[], float] = time.time,
    ) -> "Store":
        """Build a store from previously persisted entries, expired ones included."""
        store = cls(default_ttl, clock=clock)
        store._items = dict(entries)
        return store

    def get(self, key: str) -> Optional[CacheEntry]:
        with self._lock:
            entry = self._items.get(key)
        if entry is None or entry.is_expired(self._clock()):
            return None
        return entry

    def set(self, key: str, value: bytes, ttl: Optional[float] = None) -> CacheEntry:
        """Insert or replace the entry for ``key``; expiration is now + ttl."""
        entry = CacheEntry(value=bytes(value), expiration=self._clock() + (self.default_ttl if ttl is None else ttl))
        with self._lock:
            self._items[key] = entry
        return entry

    def all_entries(self) -> List[Tuple[str, CacheEntry]]:
        with self._lock:
            return list(self._items.items())

    def count(self) -> int:
        with self._lock:
            return len(self._items)

    def delete_expired(self) -> int:
        """Physically remove expired entries and return how many were dropped."""
        now = self._clock()
        with self._lock:
            expired = [key for key, entry in self._items.items() if entry.is_expired(now)]
            for key in expired:
                del self._items[key]
        return len(expired)
