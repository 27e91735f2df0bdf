"""Storage partition ("scope") ids and the paths derived from them."""

from __future__ import annotations

import datetime as dt

from mnemo.memory.models import MemoryCategory

MEMORY_BASE_PATH = "memory"
DM_PREFIX = "dm-"


def get_scope_id(guild_id: str | None, user_id: str) -> str:
    """Guild messages share the guild's scope; each DM user gets their own."""
    return guild_id or f"{DM_PREFIX}{user_id}"


def is_dm_scope(scope_id: str) -> bool:
    return scope_id.startswith(DM_PREFIX)


def _check(scope_id: str) -> str:
    if not scope_id or "/" in scope_id or scope_id.startswith("."):
        raise ValueError(f"Invalid scope id: {scope_id!r}")
    return scope_id


def scope_base_path(scope_id: str) -> str:
    return f"{MEMORY_BASE_PATH}/{_check(scope_id)}"


def category_path(scope_id: str, category: MemoryCategory) -> str:
    return f"{scope_base_path(scope_id)}/{category.value}"


def legacy_category_path(category: MemoryCategory) -> str:
    """Pre-scope layout, read-only."""
    return f"{MEMORY_BASE_PATH}/{category.value}"


def index_path(scope_id: str) -> str:
    return f"{scope_base_path(scope_id)}/.index.json"


def memory_file_path(scope_id: str, category: MemoryCategory, date: dt.date, unique_id: str) -> str:
    return f"{category_path(scope_id, category)}/{date.isoformat()}-{unique_id}.md"
