# src/tasksync/sync/writer.py

from __future__ import annotations

import logging
from collections.abc import Mapping
from datetime import datetime, timezone
from typing import Any

from ..cache.keys import SessionKeys
from ..cache.store import CacheStore
from ..core.errors import FetchError
from ..core.models import CATEGORIES_TABLE, PROFILES_TABLE, TASKS_TABLE, Category, Profile, Task
from ..core.ports import DataService, Operation
from ..data.queries import run_query

logger = logging.getLogger(__name__)

# Never written through update_task: identity, ownership, derived relationship.
_PROTECTED_TASK_FIELDS = frozenset({"id", "user_id", "categories", "created_at"})


class EntityWriter:
    """
    Single-table writes (no join rows involved).

    Each method raises FetchError when the write fails and invalidates only
    after a successful write.
    """

    def __init__(self, service: DataService, store: CacheStore, keys: SessionKeys) -> None:
        self._service = service
        self._store = store
        self._keys = keys

    def _invalidate_task_views(self, task: Task) -> None:
        self._store.invalidate(self._keys.all_tasks())
        self._store.invalidate(self._keys.analytics())
        for cid in task.categories:
            self._store.invalidate(self._keys.tasks_in_category(cid))

    async def update_task(self, task: Task, fields: Mapping[str, Any]) -> Task:
        """Update task columns; `task` supplies the category views to refresh."""
        values = {k: v for k, v in fields.items() if k not in _PROTECTED_TASK_FIELDS}
        if not values:
            return task
        if "title" in values and not str(values["title"] or "").strip():
            raise ValueError("title is required")

        rows = await run_query(
            self._service,
            TASKS_TABLE,
            Operation.UPDATE,
            {"match": {"id": task.id, "user_id": self._keys.user_id}, "values": values},
        )
        if not rows:
            raise FetchError(TASKS_TABLE, Operation.UPDATE.value, f"task {task.id} not found")

        self._invalidate_task_views(task)
        logger.info("Task %s updated fields=%s", task.id, sorted(values))
        return Task.from_row(rows[0], task.categories)

    async def set_completed(self, task: Task, completed: bool) -> Task:
        return await self.update_task(task, {"completed": bool(completed)})

    async def toggle_subtask(self, task: Task, subtask_id: str) -> Task:
        subtasks = [st.to_row() for st in task.subtasks]
        found = False
        for st in subtasks:
            if st["id"] == subtask_id:
                st["completed"] = not st["completed"]
                found = True
        if not found:
            raise KeyError(subtask_id)
        return await self.update_task(task, {"subtasks": subtasks})

    async def create_category(self, name: str, color: str | None = None) -> Category:
        name = (name or "").strip()
        if not name:
            raise ValueError("name is required")

        row: dict[str, Any] = {"user_id": self._keys.user_id, "name": name}
        if color:
            row["color"] = color
        rows = await run_query(self._service, CATEGORIES_TABLE, Operation.INSERT, {"values": [row]})
        if not rows:
            raise FetchError(CATEGORIES_TABLE, Operation.INSERT.value, "no row returned")

        self._store.invalidate(self._keys.categories())
        self._store.invalidate(self._keys.analytics())
        category = Category.from_row(rows[0])
        logger.info("Category created id=%s name=%s", category.id, category.name)
        return category

    async def save_profile(self, fields: Mapping[str, Any]) -> Profile:
        """Update the user's profile row, creating it when missing."""
        values = {k: v for k, v in fields.items() if k != "id"}
        values["updated_at"] = datetime.now(timezone.utc).isoformat()
        match = {"id": self._keys.user_id}

        rows = await run_query(
            self._service, PROFILES_TABLE, Operation.UPDATE, {"match": match, "values": values}
        )
        if not rows:
            rows = await run_query(
                self._service, PROFILES_TABLE, Operation.INSERT, {"values": [{**match, **values}]}
            )
        if not rows:
            raise FetchError(PROFILES_TABLE, "upsert", "no row returned")

        self._store.invalidate(self._keys.profile())
        logger.info("Profile saved for user %s", self._keys.user_id)
        return Profile.from_row(rows[0])
