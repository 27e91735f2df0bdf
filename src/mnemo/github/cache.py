"""ETag-validated read cache for Contents API responses."""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

logger = logging.getLogger(__name__)

REVISION_CACHE_TTL = 300.0  # 5 minutes


@dataclass
class CacheEntry:
    etag: str
    payload: Any
    validated_at: float


class RevisionCache:
    """Per-path cache of the last payload and its ETag.

    An entry is only used as a conditional-request validator while it is
    younger than ``ttl``; older entries are evicted so the next read is a
    plain GET.
    """

    def __init__(self, ttl: float = REVISION_CACHE_TTL, clock: Callable[[], float] = time.monotonic) -> None:
        self.ttl = ttl
        self._clock = clock
        self._entries: dict[str, CacheEntry] = {}

    def get(self, path: str) -> CacheEntry | None:
        entry = self._entries.get(path)
        if entry is None:
            return None
        if self._clock() - entry.validated_at >= self.ttl:
            del self._entries[path]
            return None
        return entry

    def put(self, path: str, etag: str | None, payload: Any) -> None:
        if not etag:
            self._entries.pop(path, None)
            return
        self._entries[path] = CacheEntry(etag=etag, payload=payload, validated_at=self._clock())

    def touch(self, path: str) -> None:
        """Record a 304: the cached payload is confirmed current."""
        entry = self._entries.get(path)
        if entry:
            entry.validated_at = self._clock()

    def invalidate(self, path: str) -> None:
        if self._entries.pop(path, None) is not None:
            logger.debug("Revision cache purged: %s", path)

    def clear(self) -> None:
        self._entries.clear()

    def __contains__(self, path: str) -> bool:
        return path in self._entries

    def __len__(self) -> int:
        return len(self._entries)
