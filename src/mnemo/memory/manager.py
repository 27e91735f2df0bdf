"""MemoryManager: save/edit/delete/search over the GitHub-backed store.

New records are always written under ``memory/{scope}/{category}/``. Reads
also look at the pre-scope ``memory/{category}/`` layout so memories saved
before scoping existed stay searchable.
"""

from __future__ import annotations

import asyncio
import datetime as dt
import logging
import time
from collections.abc import Callable, Iterable

from mnemo.github.base import ContentStore, FileInfo
from mnemo.github.errors import ConflictError, GitHubError
from mnemo.memory.errors import MemoryCreateError, MemoryNotFoundError, MemoryParseError
from mnemo.memory.ids import uuid7
from mnemo.memory.index import INDEX_CACHE_TTL, IndexManager, MemoryIndex
from mnemo.memory.markdown import parse_markdown, render_markdown
from mnemo.memory.models import (
    ALL_CATEGORIES,
    CreateMemoryInput,
    IndexEntry,
    MemoryCategory,
    MemoryFrontmatter,
    MemoryUpdate,
    SavedMemory,
    SearchResult,
)
from mnemo.memory.scope import category_path, legacy_category_path, memory_file_path

logger = logging.getLogger(__name__)

CREATE_ATTEMPTS = 3
# Status codes GitHub uses when a create collides with an existing path.
_COLLISION_STATUSES = (409, 422)


class MemoryManager:
    """Turns structured memories into committed Markdown files."""

    def __init__(
        self,
        store: ContentStore,
        index: IndexManager | None = None,
        *,
        index_cache_ttl: float = INDEX_CACHE_TTL,
        create_attempts: int = CREATE_ATTEMPTS,
        id_factory: Callable[[], object] = uuid7,
        today: Callable[[], dt.date] = dt.date.today,
    ) -> None:
        self.store = store
        self.index = index or IndexManager(store, cache_ttl=index_cache_ttl)
        self.create_attempts = create_attempts
        self._id_factory = id_factory
        self._today = today
        self._pending: set[asyncio.Task] = set()

    # ── Paths ─────────────────────────────────────────────────

    def generate_file_path(self, category: MemoryCategory, date: dt.date, scope_id: str) -> str:
        """``memory/{scope}/{category}/{YYYY-MM-DD}-{uuid7}.md``"""
        return memory_file_path(scope_id, category, date, str(self._id_factory()))

    # ── Save ──────────────────────────────────────────────────

    async def save_memory(
        self,
        input: CreateMemoryInput,
        scope_id: str,
        author_id: str | None = None,
    ) -> SavedMemory:
        started = time.perf_counter()
        date = self._today()
        fm = input.to_frontmatter(date, author_id)
        markdown = render_markdown(fm, input.content)
        message = f"Add {input.category.value}: {input.title}"

        result = None
        path = self.generate_file_path(input.category, date, scope_id)
        for attempt in range(1, self.create_attempts + 1):
            try:
                result = await self.store.create_file(path, markdown, message)
                break
            except GitHubError as e:
                if e.status not in _COLLISION_STATUSES or attempt >= self.create_attempts:
                    raise
                logger.warning("Path collision on %s (%s), regenerating", path, e.status)
                path = self.generate_file_path(input.category, date, scope_id)
        create_ms = (time.perf_counter() - started) * 1000

        if result is None:
            raise MemoryCreateError("Failed to create memory file after retries.")

        entry = IndexEntry.from_frontmatter(result.path, fm)
        self._spawn(self._append_to_index(scope_id, entry))
        self.index.invalidate(scope_id)

        logger.debug(
            "saveMemory total: %.0fms (createFile: %.0fms, addToIndex: async)",
            (time.perf_counter() - started) * 1000,
            create_ms,
        )
        return SavedMemory(
            path=result.path, sha=result.sha, frontmatter=fm, commit_url=result.commit_url
        )

    def _spawn(self, coro) -> None:
        task = asyncio.create_task(coro)
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    async def _append_to_index(self, scope_id: str, entry: IndexEntry) -> None:
        """Background manifest append. Never raises; a miss heals on rebuild."""
        started = time.perf_counter()
        try:
            try:
                await self.index.append(scope_id, entry)
            except ConflictError:
                # Someone else moved the manifest between our read and write.
                logger.info("Index conflict for %s, retrying append once", scope_id)
                await self.index.append(scope_id, entry)
        except Exception:
            logger.exception("Async index update failed for %s (%s)", scope_id, entry.path)
            return
        logger.debug(
            "saveMemory addToIndex(async): %.0fms", (time.perf_counter() - started) * 1000
        )

    async def drain(self) -> None:
        """Wait for all background index updates to settle."""
        while self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)

    # ── Edit / delete ─────────────────────────────────────────

    async def get_memory_frontmatter(self, path: str) -> MemoryFrontmatter | None:
        file = await self.store.get_file(path)
        if file is None:
            return None
        parsed = parse_markdown(file.content)
        return parsed[0] if parsed else None

    async def edit_memory(self, scope_id: str, path: str, updates: MemoryUpdate) -> SearchResult:
        file = await self.store.get_file(path)
        if file is None:
            raise MemoryNotFoundError(path)
        parsed = parse_markdown(file.content)
        if parsed is None:
            raise MemoryParseError(path)
        fm, content = parsed

        if updates.title is not None:
            fm.title = updates.title
        if updates.summary is not None:
            fm.summary = updates.summary
        if updates.tags is not None:
            fm.tags = list(updates.tags)
        if updates.content is not None:
            content = updates.content

        await self.store.update_file(
            path, render_markdown(fm, content), f"Edit memory: {fm.title}", file.sha
        )
        await self.index.patch(
            scope_id, path, title=fm.title, summary=fm.summary, tags=fm.tags
        )
        self.index.invalidate(scope_id)
        return SearchResult(path=path, frontmatter=fm, content=content)

    async def delete_memory(self, scope_id: str, path: str) -> None:
        file = await self.store.get_file(path)
        if file is None:
            raise MemoryNotFoundError(path)
        await self.store.delete_file(path, f"Delete memory: {path}", file.sha)
        await self.index.remove(scope_id, path)
        self.index.invalidate(scope_id)

    # ── Search / list / recent ────────────────────────────────

    async def search_memories(
        self,
        query: str,
        scope_id: str,
        categories: Iterable[MemoryCategory] | None = None,
    ) -> list[SearchResult]:
        """Substring match on title, summary and tags; index first, then legacy."""
        started = time.perf_counter()
        if categories is None:
            targets = set(ALL_CATEGORIES)
        else:
            targets = {MemoryCategory(c) for c in categories}
        q = query.lower()

        index, _ = await self.index.get_index(scope_id)
        results = [
            entry.to_result()
            for entry in index.entries
            if entry.category in targets and q in entry.searchable_text()
        ]
        results.extend(await self._search_legacy(q, targets, index))

        logger.debug("searchMemories: %.0fms", (time.perf_counter() - started) * 1000)
        return results

    async def _search_legacy(
        self, q: str, categories: set[MemoryCategory], index: MemoryIndex
    ) -> list[SearchResult]:
        dirs = [legacy_category_path(c) for c in ALL_CATEGORIES if c in categories]
        indexed = index.paths()
        files = [f for f in await self.store.list_files_recursive(dirs) if f.path not in indexed]

        results = []
        for result in await self._resolve(files):
            fm = result.frontmatter
            searchable = " ".join([fm.summary, fm.title, *fm.tags]).lower()
            if q in searchable:
                results.append(result)
        return results

    async def list_memories(self, category: MemoryCategory, scope_id: str) -> list[SearchResult]:
        category = MemoryCategory(category)
        scoped, legacy = await asyncio.gather(
            self.store.list_files(category_path(scope_id, category)),
            self.store.list_files(legacy_category_path(category)),
        )
        return await self._resolve(_dedupe([*scoped, *legacy]))

    async def get_recent_memories(self, scope_id: str, limit: int = 10) -> list[SearchResult]:
        """Newest first; file names sort chronologically by date + uuid7."""
        scoped, legacy = await asyncio.gather(
            self.store.list_files_recursive([category_path(scope_id, c) for c in ALL_CATEGORIES]),
            self.store.list_files_recursive([legacy_category_path(c) for c in ALL_CATEGORIES]),
        )
        files = [f for f in _dedupe([*scoped, *legacy]) if f.name.endswith(".md")]
        files.sort(key=lambda f: f.name, reverse=True)
        return await self._resolve(files[:limit])

    async def _resolve(self, files: Iterable[FileInfo]) -> list[SearchResult]:
        """Download and parse each Markdown file, skipping the unreadable."""
        results = []
        for info in files:
            if not info.name.endswith(".md"):
                continue
            file = await self.store.get_file(info.path)
            if file is None:
                continue
            parsed = parse_markdown(file.content)
            if parsed is None:
                continue
            results.append(SearchResult(path=info.path, frontmatter=parsed[0], content=parsed[1]))
        return results


def _dedupe(files: Iterable[FileInfo]) -> list[FileInfo]:
    seen: set[str] = set()
    unique = []
    for f in files:
        if f.path in seen:
            continue
        seen.add(f.path)
        unique.append(f)
    return unique
