# tests/test_analytics.py

from __future__ import annotations

from datetime import date, datetime, timezone

from tasksync.core.models import Category, Task
from tasksync.data.analytics import (
    build_snapshot,
    category_usage,
    completion_stats,
    daily_activity,
    is_overdue,
    parse_timestamp,
)

NOW = datetime(2026, 3, 10, 12, 0, tzinfo=timezone.utc)


def _task(tid: str, **kw) -> Task:
    return Task(id=tid, user_id="u", title=tid, **kw)


def test_parse_timestamp_accepts_dates_and_naive_values() -> None:
    assert parse_timestamp("2026-03-10") == datetime(2026, 3, 10, tzinfo=timezone.utc)
    assert parse_timestamp("2026-03-10T08:00:00").tzinfo is timezone.utc
    assert parse_timestamp("not a date") is None
    assert parse_timestamp(None) is None


def test_completion_stats_counts_overdue_only_for_open_tasks() -> None:
    tasks = [
        _task("a", completed=True, due_date="2026-03-01"),
        _task("b", due_date="2026-03-01"),
        _task("c", due_date="2026-04-01"),
        _task("d"),
    ]

    stats = completion_stats(tasks, now=NOW)

    assert (stats.total, stats.completed, stats.pending, stats.overdue) == (4, 1, 3, 1)
    assert stats.completion_rate == 0.25
    assert completion_stats([], now=NOW).completion_rate == 0.0


def test_date_only_due_date_is_not_overdue_on_its_day() -> None:
    assert not is_overdue(_task("today", due_date="2026-03-10"), NOW)
    assert is_overdue(_task("yesterday", due_date="2026-03-09"), NOW)
    assert is_overdue(_task("this-morning", due_date="2026-03-10T08:00:00+00:00"), NOW)
    assert not is_overdue(_task("tonight", due_date="2026-03-10T20:00:00+00:00"), NOW)
    assert not is_overdue(_task("done", due_date="2026-03-01", completed=True), NOW)

    assert completion_stats([_task("today", due_date="2026-03-10")], now=NOW).overdue == 0


def test_category_usage_orders_by_count_then_name() -> None:
    categories = [Category("c1", "u", "Work"), Category("c2", "u", "Home"), Category("c3", "u", "Gym")]
    tasks = [
        _task("a", categories=["c2"], completed=True),
        _task("b", categories=["c1", "c2"]),
        _task("c", categories=["c1"]),
    ]

    usage = category_usage(tasks, categories)

    assert [(u.name, u.task_count, u.completed_count) for u in usage] == [
        ("Home", 2, 1),
        ("Work", 2, 0),
        ("Gym", 0, 0),
    ]


def test_daily_activity_lists_newest_day_first() -> None:
    tasks = [
        _task("a", created_at="2026-03-10T09:00:00+00:00", completed=True),
        _task("b", created_at="2026-03-10T10:00:00+00:00"),
        _task("c", created_at="2026-03-08T10:00:00+00:00"),
        _task("old", created_at="2026-01-01T10:00:00+00:00"),
    ]

    days = daily_activity(tasks, today=date(2026, 3, 10), days=3)

    assert [(d.activity_date.day, d.tasks_created, d.tasks_completed) for d in days] == [
        (10, 2, 1),
        (9, 0, 0),
        (8, 1, 0),
    ]


def test_snapshot_combines_all_sections() -> None:
    snapshot = build_snapshot([_task("a", categories=["c1"])], [Category("c1", "u", "Work")], now=NOW)

    assert snapshot.completion.total == 1
    assert snapshot.categories[0].task_count == 1
    assert len(snapshot.activity) == 7
    assert snapshot.activity[0].activity_date == NOW.date()
