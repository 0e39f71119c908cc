# tests/test_cached_query.py

from __future__ import annotations

import pytest

from tasksync.cache.query import cached_query
from tasksync.cache.store import CacheStore
from tasksync.core.errors import FetchError

from .fakes import FakeClock


class CountingFetch:
    def __init__(self, value=None, *, error: Exception | None = None) -> None:
        self.value = value
        self.error = error
        self.calls = 0

    async def __call__(self):
        self.calls += 1
        if self.error is not None:
            raise self.error
        return self.value


@pytest.mark.asyncio
async def test_second_call_within_ttl_is_a_hit(store: CacheStore) -> None:
    fetch = CountingFetch(["row"])

    assert await cached_query(store, "k", fetch) == ["row"]
    assert await cached_query(store, "k", fetch) == ["row"]
    assert fetch.calls == 1


@pytest.mark.asyncio
async def test_refetches_after_ttl(store: CacheStore, clock: FakeClock) -> None:
    fetch = CountingFetch(["row"])

    await cached_query(store, "k", fetch)
    clock.advance(301)
    await cached_query(store, "k", fetch)
    assert fetch.calls == 2


@pytest.mark.asyncio
async def test_custom_ttl_shortens_lifetime(store: CacheStore, clock: FakeClock) -> None:
    fetch = CountingFetch("v")

    await cached_query(store, "k", fetch, ttl=10)
    clock.advance(11)
    await cached_query(store, "k", fetch, ttl=10)
    assert fetch.calls == 2


@pytest.mark.asyncio
async def test_failed_fetch_is_not_cached_and_can_be_retried(store: CacheStore) -> None:
    failing = CountingFetch(error=FetchError("todos", "select", "offline"))

    with pytest.raises(FetchError):
        await cached_query(store, "k", failing)
    assert store.entry("k") is None

    ok = CountingFetch(["fresh"])
    assert await cached_query(store, "k", ok) == ["fresh"]
    assert ok.calls == 1


@pytest.mark.asyncio
async def test_failed_refresh_keeps_previous_entry_untouched(
    store: CacheStore, clock: FakeClock
) -> None:
    await cached_query(store, "k", CountingFetch("old"))
    before = store.entry("k")
    clock.advance(301)

    with pytest.raises(RuntimeError):
        await cached_query(store, "k", CountingFetch(error=RuntimeError("down")))
    assert store.entry("k") is before


@pytest.mark.asyncio
async def test_none_result_is_not_cached(store: CacheStore) -> None:
    fetch = CountingFetch(None)
    assert await cached_query(store, "k", fetch) is None
    assert await cached_query(store, "k", fetch) is None
    assert fetch.calls == 2
