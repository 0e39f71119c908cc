# config.example.py

"""
Documentation-only module (safe to commit).

The real configuration is loaded from environment variables (optionally via a local .env file).
Do NOT commit real secrets: keep the REST API key in .env (local, gitignored).

This file exists to make the repo self-documenting even without opening .env.
"""

ENV_VARS = {
    # App / logging
    "TASKSYNC_APP_NAME": "App display name (default: tasksync).",
    "TASKSYNC_LOG_LEVEL": "Logging level (default: INFO).",
    # Backend
    "TASKSYNC_BACKEND": "Data service adapter: sqlite (default) or rest.",
    "TASKSYNC_REST_URL": "PostgREST/Supabase project URL (fallback: SUPABASE_URL).",
    "TASKSYNC_REST_API_KEY": "Anon API key for the REST backend (fallback: SUPABASE_ANON_KEY).",
    "TASKSYNC_HTTP_TIMEOUT_SECONDS": "Per-request timeout for the REST backend (default: 10).",
    # Paths (gitignored)
    "TASKSYNC_DATA_DIR": "Local data directory (default: .local/tasksync).",
    "TASKSYNC_SQLITE_PATH": "SQLite database path (default: <data_dir>/tasksync.sqlite3).",
    # Cache lifetimes (seconds, minimum 1)
    "TASKSYNC_CACHE_TTL_SECONDS": "Default entry lifetime (default: 300).",
    "TASKSYNC_TASK_TTL_SECONDS": "Lifetime of task lists (default: 60).",
    "TASKSYNC_PROFILE_TTL_SECONDS": "Lifetime of the user profile (default: 900).",
}
