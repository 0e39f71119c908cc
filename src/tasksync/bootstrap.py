# src/tasksync/bootstrap.py

"""
Composition root.

- loads settings once,
- ensures the local (gitignored) data directory exists,
- configures logging from settings.log_level (optional),
- picks the DataService adapter (local SQLite or PostgREST),
- wires a Session for the signed-in user.
"""

from __future__ import annotations

import logging

from .config import BACKEND_REST, Settings, get_settings
from .core.ports import DataService
from .data.rest_service import RestDataService
from .data.sqlite_service import SQLiteDataService
from .logging_setup import level_from_name, setup_logging
from .session import Session

logger = logging.getLogger(__name__)


def _ensure_local_dirs(settings: Settings) -> None:
    settings.data_dir.mkdir(parents=True, exist_ok=True)
    settings.sqlite_path.parent.mkdir(parents=True, exist_ok=True)


def init_logging(settings: Settings) -> None:
    """Console level from settings.log_level; full log file under settings.data_dir."""
    console_level = level_from_name(settings.log_level)
    setup_logging(log_dir=settings.data_dir, console_level=console_level)
    logger.info("Logging configured for %s (console level %s)", settings.app_name, settings.log_level)


def create_data_service(settings: Settings, *, access_token: str | None = None) -> DataService:
    if settings.backend == BACKEND_REST:
        if not settings.rest_url or not settings.rest_api_key:
            raise RuntimeError(
                "REST backend selected but TASKSYNC_REST_URL / TASKSYNC_REST_API_KEY are not set"
            )
        logger.info("Using REST data service at %s", settings.rest_url)
        return RestDataService(
            settings.rest_url,
            settings.rest_api_key,
            access_token=access_token,
            timeout_seconds=settings.http_timeout_seconds,
        )

    _ensure_local_dirs(settings)
    return SQLiteDataService(settings.sqlite_path)


def open_session(
    user_id: str,
    *,
    settings: Settings | None = None,
    access_token: str | None = None,
    service: DataService | None = None,
    configure_logging: bool = False,
) -> Session:
    """
    Build a Session for `user_id`.

    Keeping settings and service injectable avoids hidden global reads in tests.
    If settings is None, falls back to get_settings(). configure_logging=True
    installs the handlers (embedding apps that own logging leave it off).
    """
    if settings is None:
        settings = get_settings()
    if configure_logging:
        init_logging(settings)
    if service is None:
        service = create_data_service(settings, access_token=access_token)

    session = Session.create(
        service,
        user_id,
        cache_ttl=settings.cache_ttl_seconds,
        task_ttl=settings.task_ttl_seconds,
        profile_ttl=settings.profile_ttl_seconds,
    )
    logger.info("Session opened for user %s (%s backend)", user_id, settings.backend)
    return session
