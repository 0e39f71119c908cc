# src/tasksync/core/errors.py

"""
Error taxonomy.

- FetchError: a data-service call failed (network, authorization, validation).
- RelationshipWriteError: a multi-step write failed and nothing took effect.
- PartialRelationshipError: a multi-step write failed after some steps took
  effect; carries what a retry needs (task id, pending category ids).

A cache miss is not an error: CacheStore.get returns None.
"""

from __future__ import annotations

from collections.abc import Iterable
from enum import StrEnum
from typing import Any


class SyncStep(StrEnum):
    INSERT_TASK = "insert_task"
    LINK_CATEGORIES = "link_categories"
    UNLINK_CATEGORIES = "unlink_categories"
    LOAD_LINKS = "load_links"
    DELETE_TASK = "delete_task"
    DELETE_CATEGORY = "delete_category"


class TaskSyncError(Exception):
    """Base exception with a machine-readable code and structured details."""

    def __init__(self, code: str, message: str, details: dict[str, Any] | None = None) -> None:
        self.code = code
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def to_dict(self) -> dict[str, Any]:
        return {"code": self.code, "message": self.message, "details": dict(self.details)}


class FetchError(TaskSyncError):
    def __init__(self, entity: str, operation: str, reason: str) -> None:
        self.entity = entity
        self.operation = operation
        self.reason = reason
        super().__init__(
            "FETCH_ERROR",
            f"{operation} on {entity} failed: {reason}",
            {"entity": entity, "operation": operation, "reason": reason},
        )


class RelationshipWriteError(TaskSyncError):
    """A synchronizer operation failed at `step`; no write took effect."""

    code = "RELATIONSHIP_WRITE_ERROR"

    def __init__(
        self,
        step: SyncStep,
        reason: str,
        *,
        task_id: str | None = None,
        category_id: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        self.step = step
        self.reason = reason
        self.task_id = task_id
        self.category_id = category_id
        payload: dict[str, Any] = {"step": step.value, "reason": reason}
        if task_id is not None:
            payload["task_id"] = task_id
        if category_id is not None:
            payload["category_id"] = category_id
        payload.update(details or {})
        super().__init__(self.code, f"{step.value} failed: {reason}", payload)


class PartialRelationshipError(RelationshipWriteError):
    """
    Some steps took effect before `step` failed.

    Nothing is rolled back. `pending_category_ids` lists the links a retry
    still has to write; for a created task, retry with
    RelationshipSynchronizer.link_task_categories(task_id, pending_category_ids)
    rather than creating the task again.
    """

    code = "PARTIAL_RELATIONSHIP_ERROR"

    def __init__(
        self,
        step: SyncStep,
        reason: str,
        *,
        completed_steps: Iterable[SyncStep],
        task_id: str | None = None,
        category_id: str | None = None,
        pending_category_ids: Iterable[str] = (),
        result: Any = None,
    ) -> None:
        self.completed_steps = list(completed_steps)
        self.pending_category_ids = list(pending_category_ids)
        # e.g. the created Task, so callers can show it without refetching
        self.result = result
        super().__init__(
            step,
            reason,
            task_id=task_id,
            category_id=category_id,
            details={
                "completed_steps": [s.value for s in self.completed_steps],
                "pending_category_ids": list(self.pending_category_ids),
            },
        )
