"""Content store protocol and shared types."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol, runtime_checkable


@dataclass
class FileContent:
    """Decoded file body plus the blob sha needed to update or delete it."""

    content: str
    sha: str


@dataclass
class FileInfo:
    """One entry of a directory listing."""

    name: str
    path: str
    sha: str
    size: int = 0
    type: str = "file"
    download_url: str | None = None


@dataclass
class WriteResult:
    """Outcome of a create or update: the new blob sha and its commit."""

    path: str
    sha: str
    commit_sha: str = ""
    commit_url: str = ""


@runtime_checkable
class ContentStore(Protocol):
    """What the memory layer needs from a versioned file store."""

    async def get_file(self, path: str) -> FileContent | None: ...

    async def create_file(self, path: str, content: str, message: str) -> WriteResult: ...

    async def update_file(self, path: str, content: str, message: str, sha: str) -> WriteResult: ...

    async def delete_file(self, path: str, message: str, sha: str) -> None: ...

    async def list_files(self, dir_path: str) -> list[FileInfo]: ...

    async def list_contents(self, dir_path: str) -> list[FileInfo]: ...

    async def list_files_recursive(self, dir_paths: list[str]) -> list[FileInfo]: ...
