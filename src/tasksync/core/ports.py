# src/tasksync/core/ports.py

from __future__ import annotations

"""
Ports (interfaces) used by the core.

The cache and the synchronizers depend on this Protocol instead of a concrete
backend, so the SQLite store, the PostgREST client and the test fakes are
interchangeable.
"""

from collections.abc import Mapping
from dataclasses import dataclass, field
from enum import StrEnum
from typing import Any, Protocol

Row = dict[str, Any]
QueryParams = Mapping[str, Any]
# Recognized params keys:
#   match:      {column: value}      equality filters (AND)
#   in:         {column: [values]}   membership filters (AND); [] matches nothing
#   values:     [row, ...] for insert, {column: value} for update
#   order_by:   column name (select)
#   descending: bool (select)
#   limit:      int (select)


class Operation(StrEnum):
    SELECT = "select"
    INSERT = "insert"
    UPDATE = "update"
    DELETE = "delete"


@dataclass(frozen=True, slots=True)
class QueryResult:
    """
    Outcome of one data-service call: either rows or an error message.

    Writes return the affected rows (inserted / updated / deleted).
    """

    rows: list[Row] = field(default_factory=list)
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @classmethod
    def failure(cls, error: str) -> QueryResult:
        return cls(rows=[], error=error or "unknown error")


class DataService(Protocol):
    """Remote data service: execute a query, get rows or an error."""

    async def execute(
        self,
        entity: str,
        operation: Operation,
        params: QueryParams | None = None,
    ) -> QueryResult: ...

    async def aclose(self) -> None: ...
