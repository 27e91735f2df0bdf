"""GitHub API error taxonomy.

Every non-2xx response from the REST API is mapped to one of these classes so
callers can branch on type (or on ``status``) instead of parsing messages.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any


class GitHubError(Exception):
    """A failed GitHub REST API call."""

    def __init__(
        self,
        status: int,
        message: str,
        headers: Mapping[str, str] | None = None,
    ) -> None:
        super().__init__(f"GitHub API {status}: {message}")
        self.status = status
        self.message = message
        # Header names are case-insensitive on the wire; store them lowered.
        self.headers = {k.lower(): v for k, v in (headers or {}).items()}

    @property
    def retry_after(self) -> float | None:
        """Server-specified resume delay in seconds, if any."""
        value = self.headers.get("retry-after")
        if value is None:
            return None
        try:
            return float(value)
        except ValueError:
            return None


class NotFoundError(GitHubError):
    """404: the path, repository or template does not exist."""


class ConflictError(GitHubError):
    """409: the supplied sha does not match the current revision."""


class ValidationError(GitHubError):
    """422: rejected payload; on a create this means the path is taken."""


class PermissionDeniedError(GitHubError):
    """401/403: bad token or missing repository scope."""


class RateLimitError(GitHubError):
    """429, an exhausted primary quota, or a secondary (abuse) rate limit."""

    @property
    def secondary(self) -> bool:
        return "secondary rate limit" in self.message.lower()


class ServerError(GitHubError):
    """5xx."""


def _message_from_body(body: Any) -> str:
    if isinstance(body, dict):
        return str(body.get("message", "")) or "Unknown error"
    if isinstance(body, str) and body:
        return body
    return "Unknown error"


def raise_for_status(status: int, body: Any, headers: Mapping[str, str] | None = None) -> None:
    """Raise the matching GitHubError subclass for an error response."""
    if status < 400:
        return

    message = _message_from_body(body)
    lowered = {k.lower(): v for k, v in (headers or {}).items()}

    if status == 404:
        raise NotFoundError(status, message, headers)
    if status == 409:
        raise ConflictError(status, message, headers)
    if status == 422:
        raise ValidationError(status, message, headers)
    if status == 429:
        raise RateLimitError(status, message, headers)
    if status == 403:
        if (
            "rate limit" in message.lower()
            or lowered.get("x-ratelimit-remaining") == "0"
        ):
            raise RateLimitError(status, message, headers)
        raise PermissionDeniedError(status, message, headers)
    if status == 401:
        raise PermissionDeniedError(status, message, headers)
    if status >= 500:
        raise ServerError(status, message, headers)
    raise GitHubError(status, message, headers)
