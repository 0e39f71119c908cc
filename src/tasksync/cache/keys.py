# src/tasksync/cache/keys.py

from __future__ import annotations

import json
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any

from ..core.models import CATEGORIES_TABLE, PROFILES_TABLE, TASKS_TABLE

ANALYTICS_ENTITY = "analytics"


def build_key(entity: str, params: Mapping[str, Any] | None = None) -> str:
    """
    Canonical cache key: "<entity>:<params as JSON with sorted keys>".

    Key order never changes the key ({a:1,b:2} == {b:2,a:1}), nested mappings
    included. Non-JSON-serializable values raise TypeError.
    """
    serialized = json.dumps(
        dict(params or {}),
        sort_keys=True,
        separators=(",", ":"),
        ensure_ascii=False,
    )
    return f"{entity}:{serialized}"


@dataclass(frozen=True, slots=True)
class SessionKeys:
    """The cache keys of one user's projections."""

    user_id: str

    def all_tasks(self) -> str:
        return build_key(TASKS_TABLE, {"user_id": self.user_id})

    def tasks_in_category(self, category_id: str) -> str:
        return build_key(TASKS_TABLE, {"user_id": self.user_id, "category_id": category_id})

    def categories(self) -> str:
        return build_key(CATEGORIES_TABLE, {"user_id": self.user_id})

    def profile(self) -> str:
        return build_key(PROFILES_TABLE, {"id": self.user_id})

    def analytics(self) -> str:
        return build_key(ANALYTICS_ENTITY, {"user_id": self.user_id})
