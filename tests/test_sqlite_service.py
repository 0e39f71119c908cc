# tests/test_sqlite_service.py

from __future__ import annotations

from pathlib import Path

import pytest

from tasksync.core.errors import PartialRelationshipError, RelationshipWriteError
from tasksync.core.ports import Operation
from tasksync.data.sqlite_service import SQLiteDataService
from tasksync.session import Session


@pytest.fixture()
def db(tmp_path: Path) -> SQLiteDataService:
    return SQLiteDataService(tmp_path / "data" / "tasks.sqlite3")


@pytest.mark.asyncio
async def test_insert_fills_id_and_timestamp_and_decodes_columns(db: SQLiteDataService) -> None:
    res = await db.execute(
        "todos",
        Operation.INSERT,
        {"values": [{"user_id": "u1", "title": "T", "tags": ["a", "b"], "completed": True}]},
    )

    assert res.ok
    row = res.rows[0]
    assert row["id"]
    assert row["created_at"]
    assert row["tags"] == ["a", "b"]
    assert row["subtasks"] == []
    assert row["completed"] is True


@pytest.mark.asyncio
async def test_select_filters_orders_and_limits(db: SQLiteDataService) -> None:
    for i, title in enumerate(["one", "two", "three"], start=1):
        await db.execute(
            "todos",
            Operation.INSERT,
            {"values": {"id": f"t{i}", "user_id": "u1", "title": title,
                        "created_at": f"2026-01-0{i}T00:00:00+00:00"}},
        )
    await db.execute("todos", Operation.INSERT, {"values": {"user_id": "u2", "title": "other"}})

    res = await db.execute(
        "todos",
        Operation.SELECT,
        {"match": {"user_id": "u1"}, "order_by": "created_at", "descending": True, "limit": 2},
    )
    assert [r["id"] for r in res.rows] == ["t3", "t2"]

    res = await db.execute("todos", Operation.SELECT, {"in": {"id": ["t1", "t3", "missing"]}})
    assert sorted(r["id"] for r in res.rows) == ["t1", "t3"]

    res = await db.execute("todos", Operation.SELECT, {"in": {"id": []}})
    assert res.ok and res.rows == []


@pytest.mark.asyncio
async def test_update_and_delete_return_affected_rows(db: SQLiteDataService) -> None:
    await db.execute("todos", Operation.INSERT, {"values": {"id": "t1", "user_id": "u1", "title": "T"}})

    res = await db.execute(
        "todos", Operation.UPDATE, {"match": {"id": "t1"}, "values": {"completed": True}}
    )
    assert [r["completed"] for r in res.rows] == [True]

    res = await db.execute("todos", Operation.UPDATE, {"match": {"id": "nope"}, "values": {"title": "x"}})
    assert res.ok and res.rows == []

    res = await db.execute("todos", Operation.DELETE, {"match": {"id": "t1"}})
    assert [r["id"] for r in res.rows] == ["t1"]
    assert (await db.execute("todos", Operation.SELECT)).rows == []


@pytest.mark.asyncio
async def test_link_batch_is_all_or_nothing(db: SQLiteDataService) -> None:
    await db.execute("task_categories", Operation.INSERT, {"values": {"task_id": "t1", "category_id": "c1"}})

    res = await db.execute(
        "task_categories",
        Operation.INSERT,
        {"values": [{"task_id": "t1", "category_id": "c2"}, {"task_id": "t1", "category_id": "c1"}]},
    )

    assert not res.ok
    assert "UNIQUE" in (res.error or "")
    rows = (await db.execute("task_categories", Operation.SELECT)).rows
    assert [r["category_id"] for r in rows] == ["c1"]


@pytest.mark.asyncio
async def test_invalid_queries_return_errors(db: SQLiteDataService) -> None:
    assert not (await db.execute("nope", Operation.SELECT)).ok
    assert not (await db.execute("todos", Operation.SELECT, {"match": {"bogus": 1}})).ok
    assert not (await db.execute("todos", Operation.SELECT, {"order_by": "1; DROP TABLE todos"})).ok
    assert not (await db.execute("todos", Operation.DELETE, {})).ok
    assert not (await db.execute("todos", Operation.UPDATE, {"match": {"id": "x"}})).ok
    assert not (await db.execute("todos", Operation.INSERT, {"values": []})).ok


@pytest.mark.asyncio
async def test_schema_survives_reopen(tmp_path: Path) -> None:
    path = tmp_path / "tasks.sqlite3"
    first = SQLiteDataService(path)
    await first.execute("categories", Operation.INSERT, {"values": {"user_id": "u1", "name": "Work"}})

    second = SQLiteDataService(path)
    res = await second.execute("categories", Operation.SELECT, {"match": {"user_id": "u1"}})
    assert [r["name"] for r in res.rows] == ["Work"]
    assert res.rows[0]["color"] == "#6366f1"


@pytest.mark.asyncio
async def test_session_round_trip_on_sqlite(db: SQLiteDataService) -> None:
    session = Session.create(db, "u1")
    work = await session.writer.create_category("Work")
    home = await session.writer.create_category("Home")

    task = await session.relationships.create_task_with_categories(
        {"title": "Plan sprint", "priority": "HIGH"}, [work.id, home.id]
    )
    assert sorted(task.categories) == sorted([work.id, home.id])

    await session.relationships.update_task_categories(task.id, task.categories, [home.id])
    in_work = await session.queries.list_tasks_in_category(work.id)
    in_home = await session.queries.list_tasks_in_category(home.id)
    assert in_work == []
    assert [t.categories for t in in_home] == [[home.id]]

    removed = await session.relationships.delete_category(home.id)
    assert removed == 1
    assert [t.categories for t in await session.queries.list_tasks()] == [[]]

    await session.relationships.delete_task(task.id)
    assert await session.queries.list_tasks() == []
    await session.aclose()


@pytest.mark.asyncio
async def test_duplicate_link_batch_fails_without_effect(db: SQLiteDataService) -> None:
    session = Session.create(db, "u1")
    work = await session.writer.create_category("Work")
    task = await session.relationships.create_task_with_categories({"title": "T"}, [work.id])

    # Stale caller state: the batch repeats an existing pair and fails as a whole.
    with pytest.raises(RelationshipWriteError) as err:
        await session.relationships.update_task_categories(task.id, [], [work.id, "other"])

    assert not isinstance(err.value, PartialRelationshipError)
    rows = (await db.execute("task_categories", Operation.SELECT, {"match": {"task_id": task.id}})).rows
    assert [r["category_id"] for r in rows] == [work.id]
