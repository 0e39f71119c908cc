# src/tasksync/session.py

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Callable
from dataclasses import dataclass

from .cache.keys import SessionKeys
from .cache.prefetch import PrefetchErrorHandler, PrefetchReport, prefetch_all
from .cache.store import DEFAULT_TTL_SECONDS, CacheStore
from .core.ports import DataService
from .data.queries import TaskQueries
from .sync.relationships import RelationshipSynchronizer
from .sync.writer import EntityWriter

logger = logging.getLogger(__name__)


@dataclass
class Session:
    """
    Everything the presentation layer talks to for one signed-in user.

    The cache is owned by the session (no module-level cache): start() warms
    it, sign_out() empties it.
    """

    user_id: str
    service: DataService
    cache: CacheStore
    keys: SessionKeys
    queries: TaskQueries
    relationships: RelationshipSynchronizer
    writer: EntityWriter
    last_prefetch: PrefetchReport | None = None

    @classmethod
    def create(
        cls,
        service: DataService,
        user_id: str,
        *,
        cache_ttl: float = DEFAULT_TTL_SECONDS,
        task_ttl: float | None = None,
        profile_ttl: float | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> Session:
        if not user_id:
            raise ValueError("user_id is required")

        cache = CacheStore(cache_ttl, clock=clock)
        keys = SessionKeys(user_id)
        return cls(
            user_id=user_id,
            service=service,
            cache=cache,
            keys=keys,
            queries=TaskQueries(
                service, cache, keys, task_ttl=task_ttl, profile_ttl=profile_ttl
            ),
            relationships=RelationshipSynchronizer(service, cache, keys),
            writer=EntityWriter(service, cache, keys),
        )

    async def start(self, on_error: PrefetchErrorHandler | None = None) -> PrefetchReport:
        """Warm tasks, categories, profile and analytics. Never raises for a failed entry."""
        report = await prefetch_all(self.cache, self.queries.prefetch_entries(), on_error=on_error)
        self.last_prefetch = report
        if not report.ok:
            logger.warning(
                "Session %s started with cold entries: %s", self.user_id, sorted(report.failed)
            )
        return report

    def start_in_background(
        self, on_error: PrefetchErrorHandler | None = None
    ) -> asyncio.Task[PrefetchReport]:
        """Fire-and-forget warm-up; reads issued meanwhile simply miss and fetch."""
        return asyncio.create_task(self.start(on_error), name=f"prefetch:{self.user_id}")

    def invalidate(self, key: str) -> None:
        self.cache.invalidate(key)

    def sign_out(self) -> None:
        self.cache.clear()
        logger.info("Session %s signed out; cache cleared", self.user_id)

    async def aclose(self) -> None:
        self.sign_out()
        await self.service.aclose()
