# src/tasksync/data/rest_service.py

from __future__ import annotations

import logging
from typing import Any

import httpx

from ..core.ports import Operation, QueryParams, QueryResult, Row

logger = logging.getLogger(__name__)

_REST_PATH = "/rest/v1"


def _literal(value: Any) -> str:
    if value is True:
        return "true"
    if value is False:
        return "false"
    return str(value)


def _quoted(value: Any) -> str:
    # Double-quote list members so commas/parentheses inside values survive.
    s = _literal(value).replace("\\", "\\\\").replace('"', '\\"')
    return f'"{s}"'


def build_filters(params: QueryParams) -> list[tuple[str, str]]:
    """Translate match/in params into PostgREST query-string filters."""
    out: list[tuple[str, str]] = []
    for name, value in dict(params.get("match") or {}).items():
        if value is None:
            out.append((name, "is.null"))
        else:
            out.append((name, f"eq.{_literal(value)}"))
    for name, values in dict(params.get("in") or {}).items():
        out.append((name, f"in.({','.join(_quoted(v) for v in values)})"))
    return out


class RestDataService:
    """
    DataService over a PostgREST endpoint (e.g. Supabase `/rest/v1`).

    Service-side failures (HTTP 4xx/5xx) and transport failures are returned
    as QueryResult errors; nothing is raised to the caller.
    """

    def __init__(
        self,
        base_url: str,
        api_key: str,
        *,
        access_token: str | None = None,
        timeout_seconds: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        if not base_url:
            raise ValueError("base_url is required")
        if not api_key:
            raise ValueError("api_key is required")

        headers = {
            "apikey": api_key,
            "Authorization": f"Bearer {access_token or api_key}",
            "Accept": "application/json",
        }
        self._client = httpx.AsyncClient(
            base_url=base_url.rstrip("/") + _REST_PATH,
            headers=headers,
            timeout=httpx.Timeout(timeout_seconds, connect=min(5.0, timeout_seconds)),
            transport=transport,
        )

    async def aclose(self) -> None:
        await self._client.aclose()

    @staticmethod
    def _error_message(response: httpx.Response) -> str:
        try:
            body = response.json()
        except ValueError:
            body = None
        if isinstance(body, dict):
            msg = body.get("message") or body.get("error") or body.get("hint")
            if msg:
                return f"HTTP {response.status_code}: {msg}"
        return f"HTTP {response.status_code}: {response.text[:200]}"

    def _request_args(
        self, operation: Operation, params: QueryParams
    ) -> tuple[str, list[tuple[str, str]], dict[str, str], Any]:
        query = build_filters(params)
        headers: dict[str, str] = {}
        body: Any = None

        if operation == Operation.SELECT:
            query.insert(0, ("select", "*"))
            order_by = params.get("order_by")
            if order_by:
                direction = "desc" if params.get("descending") else "asc"
                query.append(("order", f"{order_by}.{direction}"))
            if params.get("limit") is not None:
                query.append(("limit", str(int(params["limit"]))))
            return "GET", query, headers, body

        headers["Prefer"] = "return=representation"

        if operation == Operation.INSERT:
            values = params.get("values")
            body = [values] if isinstance(values, dict) else list(values or [])
            if not body:
                raise ValueError("insert requires values")
            return "POST", query, headers, body

        if not query:
            raise ValueError(f"{operation} requires a filter")

        if operation == Operation.UPDATE:
            body = params.get("values")
            if not isinstance(body, dict) or not body:
                raise ValueError("update requires a values mapping")
            return "PATCH", query, headers, body

        return "DELETE", query, headers, body

    async def execute(
        self,
        entity: str,
        operation: Operation,
        params: QueryParams | None = None,
    ) -> QueryResult:
        params = dict(params or {})
        try:
            method, query, headers, body = self._request_args(Operation(operation), params)
        except ValueError as exc:
            return QueryResult.failure(str(exc))

        try:
            response = await self._client.request(
                method,
                f"/{entity}",
                params=query,
                headers=headers,
                json=body,
            )
        except httpx.HTTPError as exc:
            logger.warning("%s %s transport error: %s", operation, entity, exc)
            return QueryResult.failure(f"{type(exc).__name__}: {exc}")

        if response.is_error:
            msg = self._error_message(response)
            logger.warning("%s %s failed: %s", operation, entity, msg)
            return QueryResult.failure(msg)

        if not response.content:
            return QueryResult(rows=[])

        try:
            data = response.json()
        except ValueError:
            return QueryResult.failure("invalid JSON in response")

        rows: list[Row] = data if isinstance(data, list) else [data]
        logger.debug("%s %s -> %d rows", operation, entity, len(rows))
        return QueryResult(rows=rows)
