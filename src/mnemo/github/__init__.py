"""GitHub repository as a versioned file store."""

from mnemo.github.base import ContentStore, FileContent, FileInfo, WriteResult
from mnemo.github.cache import RevisionCache
from mnemo.github.client import GitHubClient
from mnemo.github.errors import (
    ConflictError,
    GitHubError,
    NotFoundError,
    PermissionDeniedError,
    RateLimitError,
    ServerError,
    ValidationError,
)

__all__ = [
    "ConflictError",
    "ContentStore",
    "FileContent",
    "FileInfo",
    "GitHubClient",
    "GitHubError",
    "NotFoundError",
    "PermissionDeniedError",
    "RateLimitError",
    "RevisionCache",
    "ServerError",
    "ValidationError",
    "WriteResult",
]
