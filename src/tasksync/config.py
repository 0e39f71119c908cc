# src/tasksync/config.py

"""Centralized settings loaded from environment variables (+ optional .env).

Design goals:
- One Settings object for the whole app.
- No secrets required at import time (the REST backend checks them when used).
- Cache lifetimes configurable per projection kind.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv

ENV_PREFIX = "TASKSYNC"

BACKEND_SQLITE = "sqlite"
BACKEND_REST = "rest"


def _k(suffix: str) -> str:
    """Build env var name with the project prefix."""
    return f"{ENV_PREFIX}_{suffix}"


# Local .env (gitignored) never overrides variables already set.
load_dotenv(override=False)


def _env(name: str, default: str = "") -> str:
    v = os.getenv(name)
    return default if v is None else v


def _first_env(*names: str, default: str | None = None) -> str | None:
    for n in names:
        v = os.getenv(n)
        if v is not None and v.strip() != "":
            return v
    return default


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return float(raw)
    except ValueError:
        return default


def _env_path(name: str, default: Path) -> Path:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    return Path(raw).expanduser()


@dataclass(frozen=True, slots=True)
class Settings:
    # ---- App / logging ----
    app_name: str
    log_level: str
    data_dir: Path

    # ---- Backend ----
    backend: str
    sqlite_path: Path
    rest_url: str
    rest_api_key: str | None
    http_timeout_seconds: float

    # ---- Cache ----
    cache_ttl_seconds: float
    task_ttl_seconds: float
    profile_ttl_seconds: float

    @staticmethod
    def from_env() -> "Settings":
        app_name = _env(_k("APP_NAME"), "tasksync") or "tasksync"
        log_level = _env(_k("LOG_LEVEL"), "INFO")
        data_dir = _env_path(_k("DATA_DIR"), Path(".local/tasksync"))

        backend = _env(_k("BACKEND"), BACKEND_SQLITE).strip().lower()
        if backend not in (BACKEND_SQLITE, BACKEND_REST):
            backend = BACKEND_SQLITE
        sqlite_path = _env_path(_k("SQLITE_PATH"), data_dir / "tasksync.sqlite3")

        # Accept the Supabase names the web client uses.
        rest_url = (_first_env(_k("REST_URL"), "SUPABASE_URL", default="") or "").strip()
        rest_api_key = _first_env(_k("REST_API_KEY"), "SUPABASE_ANON_KEY", default=None)
        http_timeout_seconds = _env_float(_k("HTTP_TIMEOUT_SECONDS"), 10.0)

        cache_ttl_seconds = _env_float(_k("CACHE_TTL_SECONDS"), 300.0)
        task_ttl_seconds = _env_float(_k("TASK_TTL_SECONDS"), 60.0)
        profile_ttl_seconds = _env_float(_k("PROFILE_TTL_SECONDS"), 900.0)

        return Settings(
            app_name=app_name,
            log_level=log_level,
            data_dir=data_dir,
            backend=backend,
            sqlite_path=sqlite_path,
            rest_url=rest_url,
            rest_api_key=rest_api_key,
            http_timeout_seconds=max(1.0, http_timeout_seconds),
            cache_ttl_seconds=max(1.0, cache_ttl_seconds),
            task_ttl_seconds=max(1.0, task_ttl_seconds),
            profile_ttl_seconds=max(1.0, profile_ttl_seconds),
        )


_SETTINGS: Settings | None = None


def get_settings() -> Settings:
    """Settings are read from the environment once, on first use."""
    global _SETTINGS
    if _SETTINGS is None:
        _SETTINGS = Settings.from_env()
    return _SETTINGS
