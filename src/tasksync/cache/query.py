# src/tasksync/cache/query.py

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable
from typing import TypeVar

from .store import CacheStore

logger = logging.getLogger(__name__)

T = TypeVar("T")

FetchFn = Callable[[], Awaitable[T]]


async def cached_query(
    store: CacheStore,
    key: str,
    fetch_fn: FetchFn[T],
    ttl: float | None = None,
) -> T:
    """
    Read-through cache lookup.

    - fresh entry under `key` -> returned, fetch_fn is not called
    - otherwise await fetch_fn(); on success store and return the result
    - a failing fetch_fn propagates and leaves the cache untouched,
      so calling again simply retries

    `ttl` overrides the store TTL for this read (shorter for volatile lists).
    A None result is returned but not cached.
    """
    cached = store.get(key, ttl=ttl)
    if cached is not None:
        logger.debug("Cache hit key=%s", key)
        return cached

    logger.debug("Cache miss key=%s", key)
    value = await fetch_fn()
    if value is not None:
        store.set(key, value)
    return value
