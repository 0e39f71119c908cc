# tests/test_session.py

from __future__ import annotations

import logging
from pathlib import Path

import pytest

from tasksync.bootstrap import create_data_service, init_logging, open_session
from tasksync.config import BACKEND_REST, BACKEND_SQLITE, Settings
from tasksync.core.errors import FetchError
from tasksync.core.ports import Operation
from tasksync.data.rest_service import RestDataService
from tasksync.data.sqlite_service import SQLiteDataService
from tasksync.session import Session

from .conftest import USER_ID
from .fakes import FakeDataService


def _settings(tmp_path: Path, **overrides) -> Settings:
    values = dict(
        app_name="tasksync",
        log_level="INFO",
        data_dir=tmp_path / "data",
        backend=BACKEND_SQLITE,
        sqlite_path=tmp_path / "data" / "tasks.sqlite3",
        rest_url="",
        rest_api_key=None,
        http_timeout_seconds=10.0,
        cache_ttl_seconds=300.0,
        task_ttl_seconds=60.0,
        profile_ttl_seconds=900.0,
    )
    values.update(overrides)
    return Settings(**values)


def test_session_requires_user() -> None:
    with pytest.raises(ValueError):
        Session.create(FakeDataService(), "")


@pytest.mark.asyncio
async def test_start_warms_every_projection(session: Session, service: FakeDataService) -> None:
    report = await session.start()

    assert report.ok
    assert set(report.succeeded) == {
        session.keys.all_tasks(),
        session.keys.categories(),
        session.keys.profile(),
        session.keys.analytics(),
    }
    assert session.last_prefetch is report

    calls = len(service.calls)
    await session.queries.list_categories()
    await session.queries.get_profile()
    assert len(service.calls) == calls


@pytest.mark.asyncio
async def test_start_reads_each_table_once(session: Session, service: FakeDataService) -> None:
    await session.relationships.create_task_with_categories({"title": "T"}, ["cat-1"])
    service.calls.clear()

    report = await session.start()

    selects = [c.entity for c in service.calls if c.operation == Operation.SELECT]
    assert sorted(selects) == ["categories", "profiles", "task_categories", "todos"]
    assert report.ok
    snapshot = await session.queries.get_analytics()
    assert snapshot.completion.total == 1
    assert [u.task_count for u in snapshot.categories if u.category_id == "cat-1"] == [1]
    assert len(service.calls) == 4


@pytest.mark.asyncio
async def test_failed_task_fetch_fails_analytics_too(
    session: Session, service: FakeDataService
) -> None:
    service.fail("todos", Operation.SELECT, "offline")

    report = await session.start()

    assert set(report.failed) == {session.keys.all_tasks(), session.keys.analytics()}
    assert session.cache.entry(session.keys.categories()) is not None


@pytest.mark.asyncio
async def test_failed_profile_prefetch_is_reported(
    session: Session, service: FakeDataService
) -> None:
    service.fail("profiles", Operation.SELECT, "permission denied")
    seen: list[str] = []

    report = await session.start(on_error=lambda key, exc: seen.append(key))

    assert seen == [session.keys.profile()]
    assert isinstance(report.failed[session.keys.profile()], FetchError)
    assert session.cache.entry(session.keys.categories()) is not None
    with pytest.raises(FetchError):
        await session.queries.get_profile()


@pytest.mark.asyncio
async def test_background_start(session: Session) -> None:
    report = await session.start_in_background()
    assert report.ok


@pytest.mark.asyncio
async def test_sign_out_empties_the_cache(session: Session) -> None:
    await session.start()
    assert len(session.cache) > 0

    session.sign_out()

    assert len(session.cache) == 0


@pytest.mark.asyncio
async def test_task_ttl_is_shorter_than_default(session: Session, clock, service: FakeDataService) -> None:
    await session.queries.list_tasks()
    await session.queries.list_categories()
    clock.advance(120)
    calls = len(service.calls)

    await session.queries.list_categories()
    assert len(service.calls) == calls
    await session.queries.list_tasks()
    assert len(service.calls) > calls


@pytest.mark.asyncio
async def test_open_session_on_sqlite(tmp_path: Path) -> None:
    settings = _settings(tmp_path)

    session = open_session(USER_ID, settings=settings)

    assert isinstance(session.service, SQLiteDataService)
    assert settings.sqlite_path.exists()
    assert (await session.start()).ok
    await session.aclose()


def test_open_session_uses_injected_service(tmp_path: Path) -> None:
    service = FakeDataService()
    session = open_session(USER_ID, settings=_settings(tmp_path), service=service)
    assert session.service is service


@pytest.mark.asyncio
async def test_rest_backend(tmp_path: Path) -> None:
    with pytest.raises(RuntimeError):
        create_data_service(_settings(tmp_path, backend=BACKEND_REST))

    svc = create_data_service(
        _settings(tmp_path, backend=BACKEND_REST, rest_url="https://x.supabase.co", rest_api_key="k"),
        access_token="jwt",
    )
    assert isinstance(svc, RestDataService)
    await svc.aclose()


def test_log_level_setting_drives_console_handler(
    tmp_path: Path, root_logging: logging.Logger
) -> None:
    settings = _settings(tmp_path, log_level="warning")

    init_logging(settings)

    levels = {type(h).__name__: h.level for h in root_logging.handlers}
    assert levels["StreamHandler"] == logging.WARNING
    assert levels["FileHandler"] == logging.DEBUG
    assert (settings.data_dir / "tasksync.log").exists()


def test_open_session_can_configure_logging(
    tmp_path: Path, root_logging: logging.Logger
) -> None:
    settings = _settings(tmp_path, log_level="ERROR")

    open_session(USER_ID, settings=settings, service=FakeDataService(), configure_logging=True)

    assert logging.ERROR in {h.level for h in root_logging.handlers}
    assert (settings.data_dir / "tasksync.log").exists()
