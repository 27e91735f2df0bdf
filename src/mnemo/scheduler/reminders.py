"""Reminder queue persisted as one JSON file per scope in the memory repo."""

from __future__ import annotations

import datetime as dt
import json
import logging
import secrets
import string
import time
from collections.abc import Iterable
from dataclasses import dataclass

from mnemo.github.base import ContentStore
from mnemo.memory.index import ScopeLocks
from mnemo.memory.scope import MEMORY_BASE_PATH, is_dm_scope, scope_base_path

logger = logging.getLogger(__name__)

DM_SCOPES_PATH = f"{MEMORY_BASE_PATH}/.dm_reminder_scopes.json"
_BASE36 = string.digits + string.ascii_lowercase


def reminders_path(scope_id: str) -> str:
    return f"{scope_base_path(scope_id)}/.reminders.json"


def generate_reminder_id() -> str:
    suffix = "".join(secrets.choice(_BASE36) for _ in range(6))
    return f"{time.time_ns() // 1_000_000}_{suffix}"


def _isoformat(value: dt.datetime) -> str:
    if value.tzinfo is None:
        value = value.replace(tzinfo=dt.timezone.utc)
    return value.astimezone(dt.timezone.utc).isoformat().replace("+00:00", "Z")


def _parse_time(value: str) -> dt.datetime:
    parsed = dt.datetime.fromisoformat(value.replace("Z", "+00:00"))
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=dt.timezone.utc)
    return parsed


@dataclass
class Reminder:
    id: str
    scope_id: str
    user_id: str
    channel_id: str
    message: str
    trigger_time: dt.datetime
    created_at: dt.datetime

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "userId": self.user_id,
            "channelId": self.channel_id,
            "message": self.message,
            "triggerTime": _isoformat(self.trigger_time),
            "createdAt": _isoformat(self.created_at),
        }

    @classmethod
    def from_dict(cls, scope_id: str, data: dict) -> Reminder:
        return cls(
            id=data["id"],
            scope_id=scope_id,
            user_id=data["userId"],
            channel_id=data["channelId"],
            message=data["message"],
            trigger_time=_parse_time(data["triggerTime"]),
            created_at=_parse_time(data["createdAt"]),
        )


class ReminderStore:
    """Loads each scope's reminders once, then keeps them in memory."""

    def __init__(self, store: ContentStore) -> None:
        self.store = store
        self._cache: dict[str, list[Reminder]] = {}
        self.locks = ScopeLocks()

    @property
    def scopes(self) -> list[str]:
        return list(self._cache)

    async def _read_json(self, path: str) -> tuple[dict | None, str | None]:
        file = await self.store.get_file(path)
        if file is None:
            return None, None
        try:
            data = json.loads(file.content)
        except json.JSONDecodeError:
            logger.warning("Ignoring corrupt %s", path)
            return None, file.sha
        return (data if isinstance(data, dict) else None), file.sha

    async def _write_json(self, path: str, data: dict, message: str, sha: str | None) -> None:
        content = json.dumps(data, ensure_ascii=False, indent=2)
        if sha:
            await self.store.update_file(path, content, f"Update {message}", sha)
        else:
            await self.store.create_file(path, content, f"Create {message}")

    # ── DM scope registry ─────────────────────────────────────

    async def load_dm_scopes(self) -> list[str]:
        data, _ = await self._read_json(DM_SCOPES_PATH)
        scopes = (data or {}).get("scopes")
        return [str(s) for s in scopes] if isinstance(scopes, list) else []

    async def _register_dm_scope(self, scope_id: str) -> None:
        async with self.locks.hold(DM_SCOPES_PATH):
            data, sha = await self._read_json(DM_SCOPES_PATH)
            scopes = (data or {}).get("scopes")
            scopes = list(scopes) if isinstance(scopes, list) else []
            if scope_id in scopes:
                return
            scopes.append(scope_id)
            await self._write_json(DM_SCOPES_PATH, {"scopes": scopes}, "DM reminder scopes", sha)

    # ── Per-scope reminders ───────────────────────────────────

    async def load(self, scope_id: str) -> list[Reminder]:
        if scope_id in self._cache:
            return self._cache[scope_id]

        data, _ = await self._read_json(reminders_path(scope_id))
        entries: list[Reminder] = []
        raw = (data or {}).get("reminders")
        if isinstance(raw, list):
            for item in raw:
                try:
                    entries.append(Reminder.from_dict(scope_id, item))
                except (KeyError, TypeError, ValueError) as e:
                    logger.warning("Skipping malformed reminder in %s: %s", scope_id, e)

        self._cache[scope_id] = entries
        return entries

    async def load_all(self, guild_ids: Iterable[str]) -> None:
        """Warm the cache for every guild plus every registered DM scope."""
        scope_ids = dict.fromkeys([*guild_ids, *await self.load_dm_scopes()])
        for scope_id in scope_ids:
            await self.load(scope_id)
        logger.info("Loaded reminders for %d scopes", len(scope_ids))

    async def _save(self, scope_id: str, entries: list[Reminder]) -> None:
        path = reminders_path(scope_id)
        existing = await self.store.get_file(path)
        await self._write_json(
            path,
            {"reminders": [r.to_dict() for r in entries]},
            "reminders",
            existing.sha if existing else None,
        )
        self._cache[scope_id] = entries

    async def set_reminder(
        self,
        scope_id: str,
        user_id: str,
        channel_id: str,
        message: str,
        trigger_time: dt.datetime,
    ) -> Reminder:
        if is_dm_scope(scope_id):
            await self._register_dm_scope(scope_id)
        reminder = Reminder(
            id=generate_reminder_id(),
            scope_id=scope_id,
            user_id=user_id,
            channel_id=channel_id,
            message=message,
            trigger_time=trigger_time,
            created_at=dt.datetime.now(dt.timezone.utc),
        )
        async with self.locks.hold(scope_id):
            entries = await self.load(scope_id)
            await self._save(scope_id, [*entries, reminder])
        logger.info("Reminder %s set for %s", reminder.id, _isoformat(trigger_time))
        return reminder

    async def list_reminders(self, scope_id: str, user_id: str) -> list[Reminder]:
        return [r for r in await self.load(scope_id) if r.user_id == user_id]

    async def cancel_reminder(self, scope_id: str, reminder_id: str) -> bool:
        return await self.remove(scope_id, [reminder_id]) > 0

    async def remove(self, scope_id: str, reminder_ids: Iterable[str]) -> int:
        ids = set(reminder_ids)
        async with self.locks.hold(scope_id):
            entries = await self.load(scope_id)
            remaining = [r for r in entries if r.id not in ids]
            removed = len(entries) - len(remaining)
            if removed:
                await self._save(scope_id, remaining)
        return removed

    def due(self, now: dt.datetime | None = None, limit: int | None = None) -> list[Reminder]:
        """Cached reminders whose trigger time has passed, oldest scope first."""
        now = now or dt.datetime.now(dt.timezone.utc)
        found: list[Reminder] = []
        for entries in self._cache.values():
            for reminder in entries:
                if reminder.trigger_time <= now:
                    found.append(reminder)
                    if limit is not None and len(found) >= limit:
                        return found
        return found
