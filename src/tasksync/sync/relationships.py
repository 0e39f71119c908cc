# src/tasksync/sync/relationships.py

from __future__ import annotations

"""
Relationship synchronizer.

Keeps the tasks <-> categories many-to-many relationship (task_categories
rows) consistent across create / update / delete, then invalidates every
cached projection whose rows could now differ.

Steps are explicit (SyncStep) and run without server-side transactions:
- a dependent write (links of a new task) is issued only after the write it
  depends on succeeded
- independent writes (unlink A / link B on update) run concurrently and are
  both awaited before anything is invalidated
- nothing is rolled back; a failure after some steps took effect raises
  PartialRelationshipError naming the failed step and what is still pending
- a failure before any write took effect raises RelationshipWriteError and
  leaves the cache untouched
"""

import asyncio
import logging
from collections.abc import Iterable, Mapping
from typing import Any

from ..cache.keys import SessionKeys
from ..cache.store import CacheStore
from ..core.errors import (
    FetchError,
    PartialRelationshipError,
    RelationshipWriteError,
    SyncStep,
)
from ..core.models import CATEGORIES_TABLE, TASK_CATEGORIES_TABLE, TASKS_TABLE, Task
from ..core.ports import DataService, Operation
from ..data.queries import run_query

logger = logging.getLogger(__name__)


def unique_ids(ids: Iterable[str] | None) -> list[str]:
    """Drop empty and repeated ids, keep first-seen order."""
    seen: set[str] = set()
    out: list[str] = []
    for raw in ids or ():
        if raw is None:
            continue
        s = str(raw)
        if not s or s in seen:
            continue
        seen.add(s)
        out.append(s)
    return out


class RelationshipSynchronizer:
    def __init__(self, service: DataService, store: CacheStore, keys: SessionKeys) -> None:
        self._service = service
        self._store = store
        self._keys = keys

    # ---- invalidation ----

    def task_view_keys(self, category_ids: Iterable[str]) -> set[str]:
        """Keys whose result can change when a task in these categories changes."""
        keys = {self._keys.all_tasks(), self._keys.analytics()}
        keys.update(self._keys.tasks_in_category(cid) for cid in category_ids)
        return keys

    def _invalidate(self, keys: set[str]) -> None:
        self._store.invalidate_many(keys)
        logger.debug("Invalidated %d cache keys", len(keys))

    # ---- single steps ----

    async def _insert_links(self, task_id: str, category_ids: list[str]) -> None:
        rows = [{"task_id": task_id, "category_id": cid} for cid in category_ids]
        await run_query(self._service, TASK_CATEGORIES_TABLE, Operation.INSERT, {"values": rows})

    async def _delete_links(self, task_id: str, category_ids: list[str]) -> None:
        await run_query(
            self._service,
            TASK_CATEGORIES_TABLE,
            Operation.DELETE,
            {"match": {"task_id": task_id}, "in": {"category_id": category_ids}},
        )

    async def _linked_category_ids(self, task_id: str) -> list[str]:
        rows = await run_query(
            self._service,
            TASK_CATEGORIES_TABLE,
            Operation.SELECT,
            {"match": {"task_id": task_id}},
        )
        return sorted({str(r["category_id"]) for r in rows})

    # ---- public API ----

    async def create_task_with_categories(
        self,
        fields: Mapping[str, Any],
        category_ids: Iterable[str] | None = None,
    ) -> Task:
        """
        1. insert the task row (failure: RelationshipWriteError, nothing cached changes)
        2. insert one link per distinct category id
           (failure: PartialRelationshipError; the task stays, uncategorized)
        3. invalidate all tasks, analytics and each category view
        """
        title = str(fields.get("title") or "").strip()
        if not title:
            raise ValueError("title is required")

        ids = unique_ids(category_ids)
        row = {k: v for k, v in fields.items() if k not in ("categories", "id")}
        row["title"] = title
        row["user_id"] = self._keys.user_id
        row.setdefault("completed", False)

        try:
            rows = await run_query(self._service, TASKS_TABLE, Operation.INSERT, {"values": [row]})
        except FetchError as exc:
            logger.warning("Task insert failed: %s", exc.reason)
            raise RelationshipWriteError(SyncStep.INSERT_TASK, exc.reason) from exc
        if not rows:
            raise RelationshipWriteError(SyncStep.INSERT_TASK, "no row returned for inserted task")

        task = Task.from_row(rows[0])
        logger.info("Task created id=%s categories=%s", task.id, ids)

        if ids:
            try:
                await self._insert_links(task.id, ids)
            except FetchError as exc:
                # The task row exists: views listing all tasks are stale.
                self._invalidate({self._keys.all_tasks(), self._keys.analytics()})
                logger.warning(
                    "Linking new task %s to %s failed: %s", task.id, ids, exc.reason
                )
                raise PartialRelationshipError(
                    SyncStep.LINK_CATEGORIES,
                    exc.reason,
                    completed_steps=[SyncStep.INSERT_TASK],
                    task_id=task.id,
                    pending_category_ids=ids,
                    result=task,
                ) from exc
            task.categories = sorted(ids)

        self._invalidate(self.task_view_keys(ids))
        return task

    async def link_task_categories(self, task_id: str, category_ids: Iterable[str]) -> list[str]:
        """
        Link an existing task to categories, skipping links that already exist.

        This is the retry for a PartialRelationshipError raised by
        create_task_with_categories. Returns the category ids actually linked.
        """
        ids = unique_ids(category_ids)
        if not ids:
            return []

        try:
            existing = set(await self._linked_category_ids(task_id))
        except FetchError as exc:
            raise RelationshipWriteError(SyncStep.LOAD_LINKS, exc.reason, task_id=task_id) from exc

        missing = [cid for cid in ids if cid not in existing]
        if not missing:
            return []

        try:
            await self._insert_links(task_id, missing)
        except FetchError as exc:
            raise RelationshipWriteError(
                SyncStep.LINK_CATEGORIES,
                exc.reason,
                task_id=task_id,
                details={"pending_category_ids": missing},
            ) from exc

        self._invalidate(self.task_view_keys(existing | set(missing)))
        logger.info("Task %s linked to %s", task_id, missing)
        return missing

    async def update_task_categories(
        self,
        task_id: str,
        current_ids: Iterable[str],
        new_ids: Iterable[str],
    ) -> None:
        """
        Move a task from `current_ids` (as last known by the caller) to `new_ids`.

        Unlinking removed and linking added categories touch disjoint pairs and
        run concurrently. Same sets -> no writes, no invalidation.
        """
        current = set(unique_ids(current_ids))
        new = set(unique_ids(new_ids))
        removed = sorted(current - new)
        added = sorted(new - current)

        if not removed and not added:
            logger.debug("Task %s categories unchanged; nothing to do", task_id)
            return

        steps: list[SyncStep] = []
        writes = []
        if removed:
            steps.append(SyncStep.UNLINK_CATEGORIES)
            writes.append(self._delete_links(task_id, removed))
        if added:
            steps.append(SyncStep.LINK_CATEGORIES)
            writes.append(self._insert_links(task_id, added))

        outcomes = await asyncio.gather(*writes, return_exceptions=True)

        failed: dict[SyncStep, str] = {}
        for step, outcome in zip(steps, outcomes):
            if isinstance(outcome, FetchError):
                failed[step] = outcome.reason
            elif isinstance(outcome, BaseException):
                raise outcome
        completed = [s for s in steps if s not in failed]
        pending = {SyncStep.UNLINK_CATEGORIES: removed, SyncStep.LINK_CATEGORIES: added}

        if failed and not completed:
            step, reason = next(iter(failed.items()))
            logger.warning("Category update for task %s failed: %s", task_id, failed)
            raise RelationshipWriteError(
                step,
                reason,
                task_id=task_id,
                details={"failed_steps": {s.value: r for s, r in failed.items()}},
            )

        # At least one write took effect: every view holding this task is stale.
        self._invalidate(self.task_view_keys(current | new))

        if failed:
            step, reason = next(iter(failed.items()))
            logger.warning("Category update for task %s partially failed at %s", task_id, step)
            raise PartialRelationshipError(
                step,
                reason,
                completed_steps=completed,
                task_id=task_id,
                pending_category_ids=pending[step],
            )

        logger.info("Task %s categories: -%s +%s", task_id, removed, added)

    async def delete_task(self, task_id: str) -> None:
        """Remove the task's links, then the task row."""
        try:
            category_ids = await self._linked_category_ids(task_id)
        except FetchError as exc:
            raise RelationshipWriteError(SyncStep.LOAD_LINKS, exc.reason, task_id=task_id) from exc

        completed: list[SyncStep] = []
        if category_ids:
            try:
                await self._delete_links(task_id, category_ids)
            except FetchError as exc:
                raise RelationshipWriteError(
                    SyncStep.UNLINK_CATEGORIES, exc.reason, task_id=task_id
                ) from exc
            completed.append(SyncStep.UNLINK_CATEGORIES)

        try:
            await run_query(
                self._service,
                TASKS_TABLE,
                Operation.DELETE,
                {"match": {"id": task_id, "user_id": self._keys.user_id}},
            )
        except FetchError as exc:
            if not completed:
                raise RelationshipWriteError(
                    SyncStep.DELETE_TASK, exc.reason, task_id=task_id
                ) from exc
            # Links are gone, the task is still there (now uncategorized).
            self._invalidate(self.task_view_keys(category_ids))
            raise PartialRelationshipError(
                SyncStep.DELETE_TASK,
                exc.reason,
                completed_steps=completed,
                task_id=task_id,
            ) from exc

        self._invalidate(self.task_view_keys(category_ids))
        logger.info("Task %s deleted (unlinked from %d categories)", task_id, len(category_ids))

    async def _categories_sharing_tasks(self, category_id: str) -> set[str]:
        """Every category linked to a task that is linked to `category_id`."""
        rows = await run_query(
            self._service,
            TASK_CATEGORIES_TABLE,
            Operation.SELECT,
            {"match": {"category_id": category_id}},
        )
        task_ids = sorted({str(r["task_id"]) for r in rows})
        if not task_ids:
            return set()
        rows = await run_query(
            self._service,
            TASK_CATEGORIES_TABLE,
            Operation.SELECT,
            {"in": {"task_id": task_ids}},
        )
        return {str(r["category_id"]) for r in rows}

    async def delete_category(self, category_id: str) -> int:
        """
        Remove every link to the category, then the category. Returns links removed.

        Tasks of the category also sit in the views of their other categories,
        so those views are invalidated as well.
        """
        try:
            affected = await self._categories_sharing_tasks(category_id)
        except FetchError as exc:
            raise RelationshipWriteError(
                SyncStep.LOAD_LINKS, exc.reason, category_id=category_id
            ) from exc
        affected.add(category_id)

        try:
            unlinked = await run_query(
                self._service,
                TASK_CATEGORIES_TABLE,
                Operation.DELETE,
                {"match": {"category_id": category_id}},
            )
        except FetchError as exc:
            raise RelationshipWriteError(
                SyncStep.UNLINK_CATEGORIES, exc.reason, category_id=category_id
            ) from exc

        try:
            await run_query(
                self._service,
                CATEGORIES_TABLE,
                Operation.DELETE,
                {"match": {"id": category_id, "user_id": self._keys.user_id}},
            )
        except FetchError as exc:
            if not unlinked:
                raise RelationshipWriteError(
                    SyncStep.DELETE_CATEGORY, exc.reason, category_id=category_id
                ) from exc
            self._invalidate(self.task_view_keys(affected))
            raise PartialRelationshipError(
                SyncStep.DELETE_CATEGORY,
                exc.reason,
                completed_steps=[SyncStep.UNLINK_CATEGORIES],
                category_id=category_id,
            ) from exc

        keys = self.task_view_keys(affected)
        keys.add(self._keys.categories())
        self._invalidate(keys)
        logger.info("Category %s deleted (%d links removed)", category_id, len(unlinked))
        return len(unlinked)
