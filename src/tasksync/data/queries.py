# src/tasksync/data/queries.py

from __future__ import annotations

"""
Read path.

Every projection handed to the UI goes through cached_query. The derived
Task.categories field is rebuilt here from task_categories rows (the single
source of truth for the relationship) on every fetch.

Cached task projections are exactly:
- all tasks of the user
- tasks of one category
Filtered views (priority / status / tag) are computed from "all tasks", so the
write path only has to invalidate those two kinds of keys.
"""

import asyncio
import logging
from collections import defaultdict
from collections.abc import Awaitable, Callable, Iterable
from typing import TypeVar

from ..cache.keys import SessionKeys
from ..cache.prefetch import PrefetchEntry
from ..cache.query import cached_query
from ..cache.store import CacheStore
from ..core.errors import FetchError
from ..core.models import (
    CATEGORIES_TABLE,
    PROFILES_TABLE,
    TASK_CATEGORIES_TABLE,
    TASKS_TABLE,
    Category,
    CategoryWithCounts,
    Priority,
    Profile,
    Task,
    TaskCategoryLink,
)
from ..core.ports import DataService, Operation, QueryParams, Row
from .analytics import AnalyticsSnapshot, build_snapshot

logger = logging.getLogger(__name__)

T = TypeVar("T")

STATUS_COMPLETED = "completed"
STATUS_ACTIVE = "active"


async def run_query(
    service: DataService,
    entity: str,
    operation: Operation,
    params: QueryParams | None = None,
) -> list[Row]:
    """Execute one call and return its rows, or raise FetchError."""
    try:
        result = await service.execute(entity, operation, params or {})
    except Exception as exc:
        # Adapters should return errors, but a raising one is treated the same.
        raise FetchError(entity, str(operation), f"{type(exc).__name__}: {exc}") from exc
    if not result.ok:
        raise FetchError(entity, str(operation), result.error or "unknown error")
    return list(result.rows)


def _shared(fetch_fn: Callable[[], Awaitable[T]]) -> Callable[[], Awaitable[T]]:
    """Start fetch_fn on first call; every call awaits that same run."""
    job: asyncio.Future[T] | None = None

    def run() -> Awaitable[T]:
        nonlocal job
        if job is None:
            job = asyncio.ensure_future(fetch_fn())
        return job

    return run


def group_links(rows: Iterable[Row]) -> dict[str, list[str]]:
    """task_id -> category ids, duplicates collapsed."""
    out: dict[str, set[str]] = defaultdict(set)
    for row in rows:
        link = TaskCategoryLink.from_row(row)
        out[link.task_id].add(link.category_id)
    return {task_id: sorted(ids) for task_id, ids in out.items()}


class TaskQueries:
    def __init__(
        self,
        service: DataService,
        store: CacheStore,
        keys: SessionKeys,
        *,
        task_ttl: float | None = None,
        profile_ttl: float | None = None,
    ) -> None:
        self._service = service
        self._store = store
        self._keys = keys
        self._task_ttl = task_ttl
        self._profile_ttl = profile_ttl

    @property
    def user_id(self) -> str:
        return self._keys.user_id

    # ---- fetchers (always hit the service) ----

    async def _attach_categories(self, task_rows: list[Row]) -> list[Task]:
        ids = [str(r["id"]) for r in task_rows]
        if not ids:
            return []
        link_rows = await run_query(
            self._service, TASK_CATEGORIES_TABLE, Operation.SELECT, {"in": {"task_id": ids}}
        )
        by_task = group_links(link_rows)
        return [Task.from_row(r, by_task.get(str(r["id"]), [])) for r in task_rows]

    async def fetch_all_tasks(self) -> list[Task]:
        rows = await run_query(
            self._service,
            TASKS_TABLE,
            Operation.SELECT,
            {"match": {"user_id": self.user_id}, "order_by": "created_at", "descending": True},
        )
        return await self._attach_categories(rows)

    async def fetch_tasks_in_category(self, category_id: str) -> list[Task]:
        link_rows = await run_query(
            self._service,
            TASK_CATEGORIES_TABLE,
            Operation.SELECT,
            {"match": {"category_id": category_id}},
        )
        task_ids = sorted({str(r["task_id"]) for r in link_rows})
        if not task_ids:
            return []
        rows = await run_query(
            self._service,
            TASKS_TABLE,
            Operation.SELECT,
            {
                "match": {"user_id": self.user_id},
                "in": {"id": task_ids},
                "order_by": "created_at",
                "descending": True,
            },
        )
        return await self._attach_categories(rows)

    async def fetch_categories(self) -> list[Category]:
        rows = await run_query(
            self._service,
            CATEGORIES_TABLE,
            Operation.SELECT,
            {"match": {"user_id": self.user_id}, "order_by": "created_at"},
        )
        return [Category.from_row(r) for r in rows]

    async def fetch_profile(self) -> Profile | None:
        rows = await run_query(
            self._service, PROFILES_TABLE, Operation.SELECT, {"match": {"id": self.user_id}}
        )
        return Profile.from_row(rows[0]) if rows else None

    async def fetch_analytics(self) -> AnalyticsSnapshot:
        tasks, categories = await asyncio.gather(self.fetch_all_tasks(), self.fetch_categories())
        return build_snapshot(tasks, categories)

    # ---- cached reads ----

    async def list_tasks(
        self,
        *,
        priority: Priority | str | None = None,
        status: str | None = None,
        tag: str | None = None,
    ) -> list[Task]:
        tasks = await cached_query(
            self._store, self._keys.all_tasks(), self.fetch_all_tasks, self._task_ttl
        )
        if priority:
            wanted = Priority(str(priority).upper())
            tasks = [t for t in tasks if t.priority == wanted]
        if status == STATUS_COMPLETED:
            tasks = [t for t in tasks if t.completed]
        elif status == STATUS_ACTIVE:
            tasks = [t for t in tasks if not t.completed]
        if tag:
            tasks = [t for t in tasks if tag in t.tags]
        return list(tasks)

    async def list_tags(self) -> list[str]:
        tags = {tag for t in await self.list_tasks() for tag in t.tags}
        return sorted(tags)

    async def list_tasks_in_category(self, category_id: str) -> list[Task]:
        return await cached_query(
            self._store,
            self._keys.tasks_in_category(category_id),
            lambda: self.fetch_tasks_in_category(category_id),
            self._task_ttl,
        )

    async def list_categories(self) -> list[Category]:
        return await cached_query(self._store, self._keys.categories(), self.fetch_categories)

    async def list_categories_with_counts(self) -> list[CategoryWithCounts]:
        categories, tasks = await asyncio.gather(self.list_categories(), self.list_tasks())
        out: list[CategoryWithCounts] = []
        for c in categories:
            members = [t for t in tasks if c.id in t.categories]
            out.append(
                CategoryWithCounts(
                    category=c,
                    total=len(members),
                    incomplete=sum(1 for t in members if not t.completed),
                )
            )
        return out

    async def get_profile(self) -> Profile | None:
        return await cached_query(
            self._store, self._keys.profile(), self.fetch_profile, self._profile_ttl
        )

    async def get_analytics(self) -> AnalyticsSnapshot:
        return await cached_query(self._store, self._keys.analytics(), self.fetch_analytics)

    def prefetch_entries(self) -> list[PrefetchEntry]:
        """
        What a session warms on start: tasks, categories, profile, analytics.

        Analytics is built from the same tasks and categories fetches as their
        own entries, so a warm-up reads each table once.
        """
        tasks = _shared(self.fetch_all_tasks)
        categories = _shared(self.fetch_categories)

        async def analytics() -> AnalyticsSnapshot:
            return build_snapshot(*await asyncio.gather(tasks(), categories()))

        return [
            PrefetchEntry(self._keys.all_tasks(), tasks),
            PrefetchEntry(self._keys.categories(), categories),
            PrefetchEntry(self._keys.profile(), self.fetch_profile),
            PrefetchEntry(self._keys.analytics(), analytics),
        ]
