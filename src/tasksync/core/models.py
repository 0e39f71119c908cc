# src/tasksync/core/models.py

from __future__ import annotations

from dataclasses import dataclass, field
from enum import StrEnum
from typing import Any

from .ports import Row

TASKS_TABLE = "todos"
CATEGORIES_TABLE = "categories"
TASK_CATEGORIES_TABLE = "task_categories"
PROFILES_TABLE = "profiles"


class Priority(StrEnum):
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"
    CRITICAL = "CRITICAL"

    @classmethod
    def from_db(cls, raw: str | None) -> Priority:
        if not raw:
            return cls.MEDIUM
        try:
            return cls(str(raw).upper())
        except ValueError:
            return cls.MEDIUM


class RecurrencePattern(StrEnum):
    DAILY = "DAILY"
    WEEKLY = "WEEKLY"
    MONTHLY = "MONTHLY"
    CUSTOM = "CUSTOM"

    @classmethod
    def from_db(cls, raw: str | None) -> RecurrencePattern | None:
        if not raw:
            return None
        try:
            return cls(str(raw).upper())
        except ValueError:
            return None


@dataclass(slots=True)
class SubTask:
    id: str
    title: str
    completed: bool = False

    @classmethod
    def from_row(cls, raw: Any) -> SubTask | None:
        if not isinstance(raw, dict):
            return None
        return cls(
            id=str(raw.get("id") or ""),
            title=str(raw.get("title") or ""),
            completed=bool(raw.get("completed", False)),
        )

    def to_row(self) -> Row:
        return {"id": self.id, "title": self.title, "completed": self.completed}


@dataclass(slots=True)
class Task:
    """
    Primary work item.

    `categories` is derived: it is rebuilt from task_categories rows on every
    read and never written to the todos row (see to_row).
    """

    id: str
    user_id: str
    title: str
    description: str | None = None
    completed: bool = False
    created_at: str | None = None
    due_date: str | None = None
    priority: Priority = Priority.MEDIUM
    tags: list[str] = field(default_factory=list)
    subtasks: list[SubTask] = field(default_factory=list)
    is_recurring: bool = False
    recurrence_pattern: RecurrencePattern | None = None
    recurrence_end_date: str | None = None
    categories: list[str] = field(default_factory=list)

    @classmethod
    def from_row(cls, row: Row, categories: list[str] | None = None) -> Task:
        subtasks = [st for st in (SubTask.from_row(x) for x in row.get("subtasks") or []) if st]
        return cls(
            id=str(row["id"]),
            user_id=str(row.get("user_id") or ""),
            title=str(row.get("title") or ""),
            description=row.get("description"),
            completed=bool(row.get("completed", False)),
            created_at=row.get("created_at"),
            due_date=row.get("due_date"),
            priority=Priority.from_db(row.get("priority")),
            tags=[str(t) for t in row.get("tags") or []],
            subtasks=subtasks,
            is_recurring=bool(row.get("is_recurring", False)),
            recurrence_pattern=RecurrencePattern.from_db(row.get("recurrence_pattern")),
            recurrence_end_date=row.get("recurrence_end_date"),
            categories=sorted(categories or []),
        )

    def to_row(self) -> Row:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "title": self.title,
            "description": self.description,
            "completed": self.completed,
            "created_at": self.created_at,
            "due_date": self.due_date,
            "priority": self.priority.value,
            "tags": list(self.tags),
            "subtasks": [st.to_row() for st in self.subtasks],
            "is_recurring": self.is_recurring,
            "recurrence_pattern": (
                self.recurrence_pattern.value if self.recurrence_pattern else None
            ),
            "recurrence_end_date": self.recurrence_end_date,
        }


@dataclass(slots=True)
class Category:
    id: str
    user_id: str
    name: str
    color: str = "#6366f1"
    created_at: str | None = None

    @classmethod
    def from_row(cls, row: Row) -> Category:
        return cls(
            id=str(row["id"]),
            user_id=str(row.get("user_id") or ""),
            name=str(row.get("name") or ""),
            color=str(row.get("color") or "#6366f1"),
            created_at=row.get("created_at"),
        )


@dataclass(slots=True)
class CategoryWithCounts:
    category: Category
    total: int
    incomplete: int


@dataclass(frozen=True, slots=True)
class TaskCategoryLink:
    task_id: str
    category_id: str

    @classmethod
    def from_row(cls, row: Row) -> TaskCategoryLink:
        return cls(task_id=str(row["task_id"]), category_id=str(row["category_id"]))

    def to_row(self) -> Row:
        return {"task_id": self.task_id, "category_id": self.category_id}


@dataclass(slots=True)
class Profile:
    id: str
    username: str | None = None
    full_name: str | None = None
    avatar_url: str | None = None
    updated_at: str | None = None

    @classmethod
    def from_row(cls, row: Row) -> Profile:
        return cls(
            id=str(row["id"]),
            username=row.get("username"),
            full_name=row.get("full_name"),
            avatar_url=row.get("avatar_url"),
            updated_at=row.get("updated_at"),
        )
