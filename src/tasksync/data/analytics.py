# src/tasksync/data/analytics.py

from __future__ import annotations

"""
Statistics over task/category projections (the Analytics screen).

Computed client-side from the same rows the cache already holds, so the
analytics key is invalidated by the same writes as the task lists.
"""

from collections import Counter
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta, timezone

from ..core.models import Category, Task

ACTIVITY_DAYS = 7


@dataclass(frozen=True, slots=True)
class CompletionStats:
    total: int
    completed: int
    pending: int
    overdue: int

    @property
    def completion_rate(self) -> float:
        return self.completed / self.total if self.total else 0.0


@dataclass(frozen=True, slots=True)
class CategoryUsage:
    category_id: str
    name: str
    color: str
    task_count: int
    completed_count: int


@dataclass(frozen=True, slots=True)
class DailyActivity:
    activity_date: date
    tasks_created: int
    tasks_completed: int


@dataclass(frozen=True, slots=True)
class AnalyticsSnapshot:
    completion: CompletionStats
    categories: list[CategoryUsage] = field(default_factory=list)
    activity: list[DailyActivity] = field(default_factory=list)


def parse_timestamp(raw: str | None) -> datetime | None:
    """ISO-8601 date or datetime -> aware datetime (naive values are UTC)."""
    if not raw:
        return None
    try:
        dt = datetime.fromisoformat(str(raw))
    except ValueError:
        return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt


def _is_date_only(raw: str) -> bool:
    try:
        date.fromisoformat(raw)
    except ValueError:
        return False
    return True


def is_overdue(task: Task, now: datetime) -> bool:
    """Open and past due. A date-only due_date is overdue from the next day on."""
    if task.completed:
        return False
    due = parse_timestamp(task.due_date)
    if due is None:
        return False
    if _is_date_only(str(task.due_date)):
        return due.date() < now.date()
    return due < now


def completion_stats(tasks: list[Task], *, now: datetime | None = None) -> CompletionStats:
    now = now or datetime.now(timezone.utc)
    completed = sum(1 for t in tasks if t.completed)
    overdue = sum(1 for t in tasks if is_overdue(t, now))
    return CompletionStats(
        total=len(tasks),
        completed=completed,
        pending=len(tasks) - completed,
        overdue=overdue,
    )


def category_usage(tasks: list[Task], categories: list[Category]) -> list[CategoryUsage]:
    """Task counts per category, most used first (ties by name)."""
    totals: Counter[str] = Counter()
    done: Counter[str] = Counter()
    for t in tasks:
        for cid in t.categories:
            totals[cid] += 1
            if t.completed:
                done[cid] += 1

    usage = [
        CategoryUsage(
            category_id=c.id,
            name=c.name,
            color=c.color,
            task_count=totals[c.id],
            completed_count=done[c.id],
        )
        for c in categories
    ]
    usage.sort(key=lambda u: (-u.task_count, u.name))
    return usage


def daily_activity(
    tasks: list[Task],
    *,
    today: date | None = None,
    days: int = ACTIVITY_DAYS,
) -> list[DailyActivity]:
    """
    Tasks created per day over the last `days` days, newest first.

    tasks_completed counts tasks created that day that are now completed
    (rows carry no completion timestamp).
    """
    today = today or datetime.now(timezone.utc).date()
    created: Counter[date] = Counter()
    completed: Counter[date] = Counter()
    for t in tasks:
        ts = parse_timestamp(t.created_at)
        if ts is None:
            continue
        d = ts.astimezone(timezone.utc).date()
        created[d] += 1
        if t.completed:
            completed[d] += 1

    return [
        DailyActivity(
            activity_date=d,
            tasks_created=created[d],
            tasks_completed=completed[d],
        )
        for d in (today - timedelta(days=i) for i in range(days))
    ]


def build_snapshot(
    tasks: list[Task],
    categories: list[Category],
    *,
    now: datetime | None = None,
) -> AnalyticsSnapshot:
    now = now or datetime.now(timezone.utc)
    return AnalyticsSnapshot(
        completion=completion_stats(tasks, now=now),
        categories=category_usage(tasks, categories),
        activity=daily_activity(tasks, today=now.date()),
    )
