"""Per-scope JSON manifest of memory records.

``memory/{scope}/.index.json`` lists every record's denormalised front-matter
so searches never have to download file bodies. The manifest is an
accelerator, not the source of truth: when it is missing, unreadable or from
an older schema it is rebuilt from the Markdown files.
"""

from __future__ import annotations

import asyncio
import json
import logging
import time
from collections.abc import AsyncIterator, Callable
from contextlib import asynccontextmanager
from dataclasses import dataclass, field, replace

from mnemo.github.base import ContentStore
from mnemo.github.errors import ConflictError, ValidationError
from mnemo.memory.markdown import parse_markdown
from mnemo.memory.models import ALL_CATEGORIES, IndexEntry
from mnemo.memory.scope import category_path, index_path, scope_base_path

logger = logging.getLogger(__name__)

INDEX_VERSION = 2
INDEX_CACHE_TTL = 60.0
INDEX_COMMIT_MESSAGE = "Update memory index"


@dataclass
class MemoryIndex:
    version: int = INDEX_VERSION
    entries: list[IndexEntry] = field(default_factory=list)

    def to_json(self) -> str:
        data = {"version": self.version, "entries": [e.to_dict() for e in self.entries]}
        return json.dumps(data, ensure_ascii=False, indent=2)

    @classmethod
    def from_json(cls, text: str) -> MemoryIndex:
        """Parse a manifest. Raises ValueError if corrupt or from another schema."""
        try:
            data = json.loads(text)
        except json.JSONDecodeError as e:
            raise ValueError(f"corrupt index: {e}") from e
        if not isinstance(data, dict) or not isinstance(data.get("entries"), list):
            raise ValueError("corrupt index: missing entries")
        version = data.get("version")
        if version != INDEX_VERSION:
            raise ValueError(f"index version {version}, expected {INDEX_VERSION}")
        try:
            entries = [IndexEntry.from_dict(e) for e in data["entries"]]
        except (KeyError, TypeError, ValueError) as e:
            raise ValueError(f"corrupt index entry: {e}") from e
        return cls(version=version, entries=entries)

    def paths(self) -> set[str]:
        return {e.path for e in self.entries}


@dataclass
class _CachedIndex:
    index: MemoryIndex
    sha: str | None
    cached_at: float


class ScopeLocks:
    """FIFO mutual exclusion per scope id.

    A scope's lock lives only while someone holds or waits on it.
    """

    def __init__(self) -> None:
        self._locks: dict[str, asyncio.Lock] = {}
        self._users: dict[str, int] = {}

    @asynccontextmanager
    async def hold(self, key: str) -> AsyncIterator[None]:
        lock = self._locks.setdefault(key, asyncio.Lock())
        self._users[key] = self._users.get(key, 0) + 1
        try:
            async with lock:
                yield
        finally:
            self._users[key] -= 1
            if self._users[key] == 0:
                del self._users[key]
                del self._locks[key]

    def __contains__(self, key: str) -> bool:
        return key in self._locks

    def __len__(self) -> int:
        return len(self._locks)


class IndexManager:
    """Owns manifest reads, rebuilds and per-scope serialized mutation."""

    def __init__(
        self,
        store: ContentStore,
        cache_ttl: float = INDEX_CACHE_TTL,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.store = store
        self.cache_ttl = cache_ttl
        self._clock = clock
        self._cache: dict[str, _CachedIndex] = {}
        self.locks = ScopeLocks()

    # ── Cache ─────────────────────────────────────────────────

    def invalidate(self, scope_id: str) -> None:
        self._cache.pop(scope_id, None)

    def _remember(self, scope_id: str, index: MemoryIndex, sha: str | None) -> None:
        self._cache[scope_id] = _CachedIndex(index=index, sha=sha, cached_at=self._clock())

    # ── Reads ─────────────────────────────────────────────────

    async def get_index(self, scope_id: str) -> tuple[MemoryIndex, str | None]:
        """Return the scope's manifest and its blob sha (None if never saved).

        A valid manifest is read without the scope lock. Rebuilding one writes
        it back, so that path runs under the lock like every other write.
        """
        cached = self._cache.get(scope_id)
        if cached and self._clock() - cached.cached_at < self.cache_ttl:
            logger.debug("Index cache hit: %s", scope_id)
            return cached.index, cached.sha

        started = time.perf_counter()
        loaded = await self._read(scope_id)
        if loaded is None:
            async with self.locks.hold(scope_id):
                loaded = await self._load_unlocked(scope_id)
        logger.debug("getIndex %s: %.0fms", scope_id, (time.perf_counter() - started) * 1000)
        return loaded

    async def _read(self, scope_id: str) -> tuple[MemoryIndex, str | None] | None:
        """Read the stored manifest without writing. None means it needs a rebuild."""
        file = await self.store.get_file(index_path(scope_id))
        if file is not None:
            try:
                index = MemoryIndex.from_json(file.content)
            except ValueError as e:
                logger.warning("Index for %s needs a rebuild: %s", scope_id, e)
            else:
                self._remember(scope_id, index, file.sha)
                return index, file.sha

        # Brand-new scope: nothing to scan.
        if not await self.store.list_contents(scope_base_path(scope_id)):
            index = MemoryIndex()
            self._remember(scope_id, index, None)
            logger.info("Empty scope %s, skipping index rebuild", scope_id)
            return index, None
        return None

    async def _load_unlocked(self, scope_id: str) -> tuple[MemoryIndex, str | None]:
        """Read or rebuild the manifest. The caller holds the scope lock."""
        loaded = await self._read(scope_id)
        if loaded is not None:
            return loaded
        return await self._rebuild_unlocked(scope_id)

    async def rebuild_index(self, scope_id: str) -> tuple[MemoryIndex, str | None]:
        """Scan every category directory of the scope and persist a fresh manifest."""
        async with self.locks.hold(scope_id):
            return await self._rebuild_unlocked(scope_id)

    async def _scan(self, scope_id: str) -> MemoryIndex:
        dirs = [category_path(scope_id, c) for c in ALL_CATEGORIES]
        files = await self.store.list_files_recursive(dirs)

        entries: list[IndexEntry] = []
        for info in files:
            if not info.name.endswith(".md"):
                continue
            file = await self.store.get_file(info.path)
            if file is None:
                continue
            parsed = parse_markdown(file.content)
            if parsed is None:
                logger.warning("Skipping unparseable memory %s", info.path)
                continue
            entries.append(IndexEntry.from_frontmatter(info.path, parsed[0]))
        return MemoryIndex(entries=entries)

    async def _rebuild_unlocked(self, scope_id: str) -> tuple[MemoryIndex, str | None]:
        index = await self._scan(scope_id)
        try:
            sha = await self.save_index(scope_id, index, None)
        except (ConflictError, ValidationError) as e:
            # Another process wrote the manifest between our read and write.
            # Serve the scan and leave the stored copy alone.
            logger.warning("Rebuilt index for %s not saved: %s", scope_id, e)
            self.invalidate(scope_id)
            return index, None
        self._remember(scope_id, index, sha)
        logger.info("Rebuilt index for %s (%d entries)", scope_id, len(index.entries))
        return index, sha

    # ── Writes ────────────────────────────────────────────────

    async def save_index(self, scope_id: str, index: MemoryIndex, sha: str | None) -> str:
        """Write the manifest; returns the new blob sha."""
        path = index_path(scope_id)
        content = index.to_json()

        if sha:
            result = await self.store.update_file(path, content, INDEX_COMMIT_MESSAGE, sha)
            return result.sha

        # sha unknown but the file may exist (corrupt or old-version manifest).
        existing = await self.store.get_file(path)
        if existing is not None:
            result = await self.store.update_file(path, content, INDEX_COMMIT_MESSAGE, existing.sha)
        else:
            result = await self.store.create_file(path, content, INDEX_COMMIT_MESSAGE)
        return result.sha

    async def _mutate(
        self,
        scope_id: str,
        change: Callable[[list[IndexEntry]], list[IndexEntry] | None],
    ) -> None:
        """Re-read, apply ``change``, save: serialized per scope.

        ``change`` returns the new entry list, or None when nothing changed.
        """
        async with self.locks.hold(scope_id):
            index, sha = await self._load_unlocked(scope_id)
            entries = change(list(index.entries))
            if entries is None:
                return
            updated = MemoryIndex(version=INDEX_VERSION, entries=entries)
            new_sha = await self.save_index(scope_id, updated, sha)
            self._remember(scope_id, updated, new_sha)

    async def append(self, scope_id: str, entry: IndexEntry) -> None:
        """Add an entry, replacing any existing entry for the same path."""

        def change(entries: list[IndexEntry]) -> list[IndexEntry]:
            return [e for e in entries if e.path != entry.path] + [entry]

        await self._mutate(scope_id, change)

    async def remove(self, scope_id: str, path: str) -> None:
        def change(entries: list[IndexEntry]) -> list[IndexEntry] | None:
            kept = [e for e in entries if e.path != path]
            return kept if len(kept) != len(entries) else None

        await self._mutate(scope_id, change)

    async def patch(
        self,
        scope_id: str,
        path: str,
        *,
        title: str | None = None,
        summary: str | None = None,
        tags: list[str] | None = None,
    ) -> None:
        """Update the denormalised fields of one entry."""

        fields: dict = {}
        if title is not None:
            fields["title"] = title
        if summary is not None:
            fields["summary"] = summary
        if tags is not None:
            fields["tags"] = list(tags)

        def change(entries: list[IndexEntry]) -> list[IndexEntry] | None:
            if not fields or all(e.path != path for e in entries):
                return None
            return [replace(e, **fields) if e.path == path else e for e in entries]

        await self._mutate(scope_id, change)
