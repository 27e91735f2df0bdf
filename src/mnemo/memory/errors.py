"""Errors raised by the memory layer itself (store errors pass through)."""

from __future__ import annotations


class MemoryStoreError(Exception):
    """Base class for memory layer failures."""


class MemoryNotFoundError(MemoryStoreError, LookupError):
    def __init__(self, path: str) -> None:
        super().__init__(f"Memory not found: {path}")
        self.path = path


class MemoryParseError(MemoryStoreError):
    def __init__(self, path: str) -> None:
        super().__init__(f"Failed to parse memory: {path}")
        self.path = path


class MemoryCreateError(MemoryStoreError):
    """No create attempt produced a file."""
