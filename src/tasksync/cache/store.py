# src/tasksync/cache/store.py

from __future__ import annotations

import logging
import time
from collections.abc import Callable, Iterable
from dataclasses import dataclass
from typing import Any

logger = logging.getLogger(__name__)

DEFAULT_TTL_SECONDS = 5 * 60.0


@dataclass(frozen=True, slots=True)
class CacheEntry:
    value: Any
    stored_at: float


class CacheStore:
    """
    In-memory mapping of cache keys to CacheEntry with TTL expiry.

    - expiry is lazy: get() ignores stale entries, nothing sweeps in background
    - set() replaces the entry wholesale, entries are never mutated
    - one instance per session; clear() on sign-out

    All access happens on the event loop between awaits, so no locking.
    """

    def __init__(
        self,
        ttl_seconds: float = DEFAULT_TTL_SECONDS,
        *,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if ttl_seconds <= 0:
            raise ValueError("ttl_seconds must be positive")
        self._ttl = float(ttl_seconds)
        self._clock = clock
        self._entries: dict[str, CacheEntry] = {}

    @property
    def ttl_seconds(self) -> float:
        return self._ttl

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: object) -> bool:
        return isinstance(key, str) and self.get(key) is not None

    def keys(self) -> list[str]:
        """All held keys, stale ones included."""
        return list(self._entries)

    def now(self) -> float:
        return self._clock()

    def entry(self, key: str) -> CacheEntry | None:
        """Raw entry, fresh or not."""
        return self._entries.get(key)

    def get(self, key: str, ttl: float | None = None) -> Any | None:
        """Return the value if now - stored_at < ttl, else None."""
        entry = self._entries.get(key)
        if entry is None:
            return None
        max_age = self._ttl if ttl is None else float(ttl)
        if self._clock() - entry.stored_at < max_age:
            return entry.value
        return None

    def set(self, key: str, value: Any) -> None:
        self._entries[key] = CacheEntry(value=value, stored_at=self._clock())

    def invalidate(self, key: str) -> None:
        if self._entries.pop(key, None) is not None:
            logger.debug("Cache invalidated key=%s", key)

    def invalidate_many(self, keys: Iterable[str]) -> None:
        for key in keys:
            self.invalidate(key)

    def clear(self) -> None:
        n = len(self._entries)
        self._entries.clear()
        logger.debug("Cache cleared (%d entries)", n)
