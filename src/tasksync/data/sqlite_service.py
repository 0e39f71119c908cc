# src/tasksync/data/sqlite_service.py

from __future__ import annotations

import asyncio
import contextlib
import json
import logging
import sqlite3
import uuid
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from ..core.models import CATEGORIES_TABLE, PROFILES_TABLE, TASK_CATEGORIES_TABLE, TASKS_TABLE
from ..core.ports import Operation, QueryParams, QueryResult, Row

logger = logging.getLogger(__name__)

# column -> storage kind ("text" | "bool" | "json")
_SCHEMA: dict[str, dict[str, str]] = {
    TASKS_TABLE: {
        "id": "text",
        "user_id": "text",
        "title": "text",
        "description": "text",
        "completed": "bool",
        "created_at": "text",
        "due_date": "text",
        "priority": "text",
        "tags": "json",
        "subtasks": "json",
        "is_recurring": "bool",
        "recurrence_pattern": "text",
        "recurrence_end_date": "text",
        "parent_template_id": "text",
    },
    CATEGORIES_TABLE: {
        "id": "text",
        "user_id": "text",
        "name": "text",
        "color": "text",
        "created_at": "text",
    },
    TASK_CATEGORIES_TABLE: {
        "task_id": "text",
        "category_id": "text",
        "created_at": "text",
    },
    PROFILES_TABLE: {
        "id": "text",
        "username": "text",
        "full_name": "text",
        "avatar_url": "text",
        "updated_at": "text",
    },
}

_DDL = [
    f"""
    CREATE TABLE IF NOT EXISTS {TASKS_TABLE} (
        id TEXT PRIMARY KEY,
        user_id TEXT NOT NULL,
        title TEXT NOT NULL,
        description TEXT,
        completed INTEGER NOT NULL DEFAULT 0,
        created_at TEXT NOT NULL,
        due_date TEXT,
        priority TEXT NOT NULL DEFAULT 'MEDIUM',
        tags TEXT NOT NULL DEFAULT '[]',
        subtasks TEXT NOT NULL DEFAULT '[]',
        is_recurring INTEGER NOT NULL DEFAULT 0,
        recurrence_pattern TEXT,
        recurrence_end_date TEXT,
        parent_template_id TEXT
    )
    """,
    f"""
    CREATE TABLE IF NOT EXISTS {CATEGORIES_TABLE} (
        id TEXT PRIMARY KEY,
        user_id TEXT NOT NULL,
        name TEXT NOT NULL,
        color TEXT NOT NULL DEFAULT '#6366f1',
        created_at TEXT NOT NULL
    )
    """,
    # No FK cascade: the synchronizer removes link rows itself.
    f"""
    CREATE TABLE IF NOT EXISTS {TASK_CATEGORIES_TABLE} (
        task_id TEXT NOT NULL,
        category_id TEXT NOT NULL,
        created_at TEXT NOT NULL,
        UNIQUE (task_id, category_id)
    )
    """,
    f"""
    CREATE TABLE IF NOT EXISTS {PROFILES_TABLE} (
        id TEXT PRIMARY KEY,
        username TEXT,
        full_name TEXT,
        avatar_url TEXT,
        updated_at TEXT
    )
    """,
    f"CREATE INDEX IF NOT EXISTS idx_todos_user ON {TASKS_TABLE}(user_id, created_at)",
    f"CREATE INDEX IF NOT EXISTS idx_categories_user ON {CATEGORIES_TABLE}(user_id)",
    f"CREATE INDEX IF NOT EXISTS idx_task_categories_category ON {TASK_CATEGORIES_TABLE}(category_id)",
]

# Defaults filled in on insert when the caller leaves them out.
_TIMESTAMP_COLUMNS = {
    TASKS_TABLE: "created_at",
    CATEGORIES_TABLE: "created_at",
    TASK_CATEGORIES_TABLE: "created_at",
    PROFILES_TABLE: "updated_at",
}


def _utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


class _QueryError(Exception):
    """Invalid query shape (unknown table/column, bad values)."""


class SQLiteDataService:
    """
    Local SQLite implementation of the DataService port.

    Mirrors the remote service's tables (todos, categories, task_categories,
    profiles) so the app runs without a network backend.

    - each call opens its own connection, runs in one transaction, closes it
    - blocking sqlite work runs in asyncio.to_thread
    - multi-row inserts are all-or-nothing (a duplicate link fails the batch)
    """

    def __init__(self, db_path: str | Path = "tasksync.sqlite3") -> None:
        self._db_path = Path(db_path)
        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        self._ensure_schema()
        logger.info("SQLiteDataService ready db=%s", self._db_path)

    async def aclose(self) -> None:
        """No persistent connections to close."""
        return

    # ---- low-level helpers ----

    def _get_conn(self) -> sqlite3.Connection:
        conn = sqlite3.connect(str(self._db_path), timeout=30.0)
        conn.row_factory = sqlite3.Row
        with contextlib.suppress(sqlite3.Error):
            conn.execute("PRAGMA journal_mode=WAL")
        return conn

    def _ensure_schema(self) -> None:
        conn = self._get_conn()
        try:
            cur = conn.cursor()
            for stmt in _DDL:
                cur.execute(stmt)

            # Migrations (safe): add columns missing from older databases.
            cur.execute(f"PRAGMA table_info({TASKS_TABLE})")
            cols = {row["name"] for row in cur.fetchall()}
            for name, decl in (
                ("is_recurring", "INTEGER NOT NULL DEFAULT 0"),
                ("recurrence_pattern", "TEXT"),
                ("recurrence_end_date", "TEXT"),
                ("parent_template_id", "TEXT"),
            ):
                if name not in cols:
                    cur.execute(f"ALTER TABLE {TASKS_TABLE} ADD COLUMN {name} {decl}")
                    logger.info("SQLiteDataService migration: added column %s", name)
            conn.commit()
        finally:
            conn.close()

    @staticmethod
    def _columns(entity: str) -> dict[str, str]:
        cols = _SCHEMA.get(entity)
        if cols is None:
            raise _QueryError(f"unknown entity {entity!r}")
        return cols

    @staticmethod
    def _check_column(cols: dict[str, str], name: str) -> None:
        if name not in cols:
            raise _QueryError(f"unknown column {name!r}")

    @staticmethod
    def _encode(kind: str, value: Any) -> Any:
        if value is None:
            return None
        if kind == "json":
            return json.dumps(value, ensure_ascii=False)
        if kind == "bool":
            return 1 if value else 0
        return value

    @staticmethod
    def _decode(kind: str, value: Any) -> Any:
        if kind == "json":
            if not value:
                return []
            try:
                return json.loads(value)
            except ValueError:
                return []
        if kind == "bool":
            return bool(value)
        return value

    def _row_out(self, cols: dict[str, str], row: sqlite3.Row) -> Row:
        return {name: self._decode(kind, row[name]) for name, kind in cols.items()}

    def _where(self, cols: dict[str, str], params: QueryParams) -> tuple[str, list[Any]]:
        clauses: list[str] = []
        args: list[Any] = []

        for name, value in dict(params.get("match") or {}).items():
            self._check_column(cols, name)
            if value is None:
                clauses.append(f"{name} IS NULL")
            else:
                clauses.append(f"{name} = ?")
                args.append(self._encode(cols[name], value))

        for name, values in dict(params.get("in") or {}).items():
            self._check_column(cols, name)
            values = list(values)
            if not values:
                clauses.append("0")
                continue
            placeholders = ",".join("?" for _ in values)
            clauses.append(f"{name} IN ({placeholders})")
            args.extend(self._encode(cols[name], v) for v in values)

        sql = f" WHERE {' AND '.join(clauses)}" if clauses else ""
        return sql, args

    # ---- operations (blocking) ----

    def _select(self, conn: sqlite3.Connection, entity: str, params: QueryParams) -> list[Row]:
        cols = self._columns(entity)
        where, args = self._where(cols, params)
        sql = f"SELECT * FROM {entity}{where}"

        order_by = params.get("order_by")
        if order_by:
            self._check_column(cols, order_by)
            sql += f" ORDER BY {order_by} {'DESC' if params.get('descending') else 'ASC'}"

        limit = params.get("limit")
        if limit is not None:
            sql += " LIMIT ?"
            args.append(int(limit))

        return [self._row_out(cols, r) for r in conn.execute(sql, args).fetchall()]

    def _insert(self, conn: sqlite3.Connection, entity: str, params: QueryParams) -> list[Row]:
        cols = self._columns(entity)
        values = params.get("values")
        if isinstance(values, dict):
            values = [values]
        if not values:
            raise _QueryError("insert requires values")

        ts_col = _TIMESTAMP_COLUMNS.get(entity)
        out: list[Row] = []
        for raw in values:
            row = dict(raw)
            if "id" in cols and not row.get("id"):
                row["id"] = str(uuid.uuid4())
            if ts_col and not row.get(ts_col):
                row[ts_col] = _utc_now_iso()
            for name in row:
                self._check_column(cols, name)

            names = list(row)
            placeholders = ",".join("?" for _ in names)
            cur = conn.execute(
                f"INSERT INTO {entity}({', '.join(names)}) VALUES ({placeholders})",
                [self._encode(cols[n], row[n]) for n in names],
            )
            inserted = conn.execute(
                f"SELECT * FROM {entity} WHERE rowid = ?", (cur.lastrowid,)
            ).fetchone()
            out.append(self._row_out(cols, inserted))
        return out

    def _matching_rowids(
        self, conn: sqlite3.Connection, entity: str, params: QueryParams
    ) -> list[int]:
        cols = self._columns(entity)
        where, args = self._where(cols, params)
        return [int(r[0]) for r in conn.execute(f"SELECT rowid FROM {entity}{where}", args)]

    def _update(self, conn: sqlite3.Connection, entity: str, params: QueryParams) -> list[Row]:
        cols = self._columns(entity)
        values = params.get("values")
        if not isinstance(values, dict) or not values:
            raise _QueryError("update requires a values mapping")
        for name in values:
            self._check_column(cols, name)

        rowids = self._matching_rowids(conn, entity, params)
        if not rowids:
            return []

        sets = ", ".join(f"{n} = ?" for n in values)
        id_marks = ",".join("?" for _ in rowids)
        conn.execute(
            f"UPDATE {entity} SET {sets} WHERE rowid IN ({id_marks})",
            [self._encode(cols[n], v) for n, v in values.items()] + rowids,
        )
        rows = conn.execute(
            f"SELECT * FROM {entity} WHERE rowid IN ({id_marks})", rowids
        ).fetchall()
        return [self._row_out(cols, r) for r in rows]

    def _delete(self, conn: sqlite3.Connection, entity: str, params: QueryParams) -> list[Row]:
        cols = self._columns(entity)
        if not params.get("match") and not params.get("in"):
            # Refuse unfiltered deletes like PostgREST does.
            raise _QueryError("delete requires a filter")

        rowids = self._matching_rowids(conn, entity, params)
        if not rowids:
            return []

        id_marks = ",".join("?" for _ in rowids)
        rows = conn.execute(
            f"SELECT * FROM {entity} WHERE rowid IN ({id_marks})", rowids
        ).fetchall()
        conn.execute(f"DELETE FROM {entity} WHERE rowid IN ({id_marks})", rowids)
        return [self._row_out(cols, r) for r in rows]

    def _execute_sync(self, entity: str, operation: Operation, params: QueryParams) -> QueryResult:
        handlers = {
            Operation.SELECT: self._select,
            Operation.INSERT: self._insert,
            Operation.UPDATE: self._update,
            Operation.DELETE: self._delete,
        }
        conn = self._get_conn()
        try:
            rows = handlers[Operation(operation)](conn, entity, params)
            conn.commit()
            logger.debug("%s %s -> %d rows", operation, entity, len(rows))
            return QueryResult(rows=rows)
        except (_QueryError, sqlite3.Error, TypeError, ValueError) as exc:
            conn.rollback()
            logger.warning("%s %s failed: %s", operation, entity, exc)
            return QueryResult.failure(str(exc))
        finally:
            conn.close()

    # ---- public API ----

    async def execute(
        self,
        entity: str,
        operation: Operation,
        params: QueryParams | None = None,
    ) -> QueryResult:
        return await asyncio.to_thread(self._execute_sync, entity, operation, dict(params or {}))
