# tests/conftest.py

from __future__ import annotations

import logging

import pytest

from tasksync.cache.keys import SessionKeys
from tasksync.cache.store import CacheStore
from tasksync.session import Session

from .fakes import FakeClock, FakeDataService

USER_ID = "user-1"


@pytest.fixture()
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture()
def store(clock: FakeClock) -> CacheStore:
    return CacheStore(300.0, clock=clock)


@pytest.fixture()
def keys() -> SessionKeys:
    return SessionKeys(USER_ID)


@pytest.fixture()
def service() -> FakeDataService:
    """
    Fake service pre-seeded with three categories of the test user.

    Each test gets its own instance, so failure rules never leak between tests.
    """
    svc = FakeDataService()
    svc.tables["categories"] = [
        {"id": f"cat-{i}", "user_id": USER_ID, "name": f"Category {i}", "color": "#000000",
         "created_at": f"2026-01-0{i}T00:00:00+00:00"}
        for i in (1, 2, 3)
    ]
    svc.tables["profiles"] = [{"id": USER_ID, "username": "ana", "full_name": "Ana"}]
    return svc


@pytest.fixture()
def session(service: FakeDataService, clock: FakeClock) -> Session:
    """Session wired to the fake service and the controllable clock."""
    return Session.create(service, USER_ID, cache_ttl=300.0, task_ttl=60.0, clock=clock)


@pytest.fixture()
def root_logging():
    """Restore the root logger's handlers and level after a test that calls setup_logging."""
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    yield root
    for h in list(root.handlers):
        root.removeHandler(h)
        h.close()
    for h in handlers:
        root.addHandler(h)
    root.setLevel(level)
