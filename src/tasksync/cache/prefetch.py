# src/tasksync/cache/prefetch.py

from __future__ import annotations

"""
Cache warming.

Every entry is fetched concurrently and written to the store regardless of
what is cached already. Entries are independent: one failure is logged,
reported through `on_error` and never cancels or fails its siblings.
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable, Iterable
from dataclasses import dataclass, field
from typing import Any

from .store import CacheStore

logger = logging.getLogger(__name__)

PrefetchErrorHandler = Callable[[str, BaseException], None]


@dataclass(frozen=True, slots=True)
class PrefetchEntry:
    key: str
    fetch_fn: Callable[[], Awaitable[Any]]


@dataclass(slots=True)
class PrefetchReport:
    succeeded: list[str] = field(default_factory=list)
    failed: dict[str, BaseException] = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return not self.failed


async def _prefetch_one(
    store: CacheStore,
    entry: PrefetchEntry,
    report: PrefetchReport,
    on_error: PrefetchErrorHandler | None,
) -> None:
    try:
        value = await entry.fetch_fn()
    except Exception as exc:
        logger.warning("Prefetch failed key=%s: %s", entry.key, exc)
        report.failed[entry.key] = exc
        if on_error is not None:
            try:
                on_error(entry.key, exc)
            except Exception:
                logger.exception("Prefetch error handler failed key=%s", entry.key)
        return

    if value is not None:
        store.set(entry.key, value)
    report.succeeded.append(entry.key)


async def prefetch_all(
    store: CacheStore,
    entries: Iterable[PrefetchEntry | tuple[str, Callable[[], Awaitable[Any]]]],
    *,
    on_error: PrefetchErrorHandler | None = None,
) -> PrefetchReport:
    """
    Fetch all entries concurrently and store every successful result.

    Never raises for a failing entry; failures end up in the returned report
    (and in `on_error`, if given).
    """
    normalized = [e if isinstance(e, PrefetchEntry) else PrefetchEntry(*e) for e in entries]
    report = PrefetchReport()
    if not normalized:
        return report

    await asyncio.gather(*(_prefetch_one(store, e, report, on_error) for e in normalized))

    logger.info(
        "Prefetch done ok=%d failed=%d",
        len(report.succeeded),
        len(report.failed),
    )
    return report
