"""GitHub Contents API client.

Files are created, read, updated and deleted one commit at a time. Reads are
served through an ETag-validated RevisionCache so unchanged files and
directories cost a 304 instead of a full download.
"""

from __future__ import annotations

import asyncio
import base64
import json
import logging
from typing import Any
from urllib.parse import quote

import aiohttp

from mnemo.config import GitHubConfig
from mnemo.github.base import FileContent, FileInfo, WriteResult
from mnemo.github.cache import RevisionCache
from mnemo.github.errors import NotFoundError, raise_for_status
from mnemo.retry import RetryConfig, with_retry

logger = logging.getLogger(__name__)

API_VERSION = "2022-11-28"

# A create that hit a server or network error may still have landed, so only
# rate-limited creates (never executed by GitHub) are retried here.
CREATE_RETRY = RetryConfig(max_retries=0)


class GitHubClient:
    """Async wrapper around the repository Contents API."""

    def __init__(
        self,
        config: GitHubConfig,
        session: aiohttp.ClientSession | None = None,
        cache: RevisionCache | None = None,
        retry: RetryConfig | None = None,
    ) -> None:
        self.config = config
        self.cache = cache or RevisionCache()
        self._retry = retry or RetryConfig()
        self._session = session
        self._owns_session = session is None
        self.api_call_count = 0

    # ── Session lifecycle ─────────────────────────────────────

    async def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            headers = {
                "Accept": "application/vnd.github+json",
                "X-GitHub-Api-Version": API_VERSION,
                "User-Agent": "mnemo",
            }
            if self.config.token:
                headers["Authorization"] = f"Bearer {self.config.token}"
            self._session = aiohttp.ClientSession(
                headers=headers,
                timeout=aiohttp.ClientTimeout(total=self.config.timeout),
            )
            self._owns_session = True
        return self._session

    async def close(self) -> None:
        if self._session and self._owns_session and not self._session.closed:
            await self._session.close()

    async def __aenter__(self) -> GitHubClient:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.close()

    def reset_api_call_count(self) -> None:
        self.api_call_count = 0

    # ── HTTP plumbing ─────────────────────────────────────────

    def _repo_url(self) -> str:
        return f"{self.config.api_url}/repos/{self.config.owner}/{self.config.repo}"

    def _contents_url(self, path: str) -> str:
        return f"{self._repo_url()}/contents/{quote(path.strip('/'), safe='/')}"

    async def _send(
        self,
        method: str,
        url: str,
        *,
        payload: dict | None = None,
        headers: dict[str, str] | None = None,
    ) -> tuple[int, Any, dict[str, str]]:
        session = await self._get_session()
        self.api_call_count += 1
        async with session.request(method, url, json=payload, headers=headers) as resp:
            resp_headers = {k.lower(): v for k, v in resp.headers.items()}
            if resp.status == 304:
                return 304, None, resp_headers
            text = await resp.text()
            try:
                body: Any = json.loads(text) if text else None
            except ValueError:
                body = text
            raise_for_status(resp.status, body, resp_headers)
            return resp.status, body, resp_headers

    async def _request(
        self,
        method: str,
        url: str,
        *,
        payload: dict | None = None,
        headers: dict[str, str] | None = None,
        retry: RetryConfig | None = None,
        operation: str = "GitHub API call",
    ) -> tuple[int, Any, dict[str, str]]:
        return await with_retry(
            lambda: self._send(method, url, payload=payload, headers=headers),
            retry or self._retry,
            operation_name=operation,
        )

    async def _get_contents(self, path: str) -> Any | None:
        """GET a file or directory, revalidating any cached copy by ETag."""
        entry = self.cache.get(path)
        headers = {"If-None-Match": entry.etag} if entry else None
        try:
            status, body, resp_headers = await self._request(
                "GET", self._contents_url(path), headers=headers, operation=f"GET {path}"
            )
        except NotFoundError:
            self.cache.invalidate(path)
            return None

        if status == 304 and entry is not None:
            self.cache.touch(path)
            logger.debug("Revision cache hit: %s", path)
            return entry.payload

        self.cache.put(path, resp_headers.get("etag"), body)
        return body

    # ── Files ─────────────────────────────────────────────────

    async def get_file(self, path: str) -> FileContent | None:
        """Return the decoded file, or None when absent or a directory."""
        data = await self._get_contents(path)
        if not isinstance(data, dict) or data.get("type") != "file":
            return None
        content = base64.b64decode(data.get("content", "")).decode("utf-8")
        return FileContent(content=content, sha=data["sha"])

    async def file_exists(self, path: str) -> bool:
        return await self._get_contents(path) is not None

    async def create_file(self, path: str, content: str, message: str) -> WriteResult:
        """Create a new file. GitHub rejects an occupied path with 422."""
        payload = {"message": message, "content": _encode(content)}
        _, body, _ = await self._request(
            "PUT",
            self._contents_url(path),
            payload=payload,
            retry=CREATE_RETRY,
            operation=f"create {path}",
        )
        self.cache.invalidate(path)
        logger.info("Created %s", path)
        return _write_result(path, body)

    async def update_file(self, path: str, content: str, message: str, sha: str) -> WriteResult:
        """Overwrite a file; fails with ConflictError if ``sha`` is stale."""
        payload = {"message": message, "content": _encode(content), "sha": sha}
        _, body, _ = await self._request(
            "PUT", self._contents_url(path), payload=payload, operation=f"update {path}"
        )
        self.cache.invalidate(path)
        logger.info("Updated %s", path)
        return _write_result(path, body)

    async def delete_file(self, path: str, message: str, sha: str) -> None:
        payload = {"message": message, "sha": sha}
        await self._request(
            "DELETE", self._contents_url(path), payload=payload, operation=f"delete {path}"
        )
        self.cache.invalidate(path)
        logger.info("Deleted %s", path)

    # ── Directories ───────────────────────────────────────────

    async def list_contents(self, dir_path: str) -> list[FileInfo]:
        """List files and sub-directories. Missing directory → []."""
        data = await self._get_contents(dir_path)
        if not isinstance(data, list):
            return []
        return [
            FileInfo(
                name=item["name"],
                path=item["path"],
                sha=item.get("sha", ""),
                size=item.get("size", 0),
                type=item.get("type", "file"),
                download_url=item.get("download_url"),
            )
            for item in data
        ]

    async def list_files(self, dir_path: str) -> list[FileInfo]:
        """List only the files of a directory. Missing directory → []."""
        return [f for f in await self.list_contents(dir_path) if f.type == "file"]

    async def list_files_recursive(self, dir_paths: list[str]) -> list[FileInfo]:
        """List several directories concurrently and flatten the result."""
        results = await asyncio.gather(*(self.list_files(d) for d in dir_paths))
        return [f for files in results for f in files]

    # ── Repository bootstrap ──────────────────────────────────

    async def ensure_repo(self) -> bool:
        """Create the memory repository from its template if missing.

        Returns True when a repository was generated.
        """
        try:
            await self._request("GET", self._repo_url(), operation="GET repo")
            return False
        except NotFoundError:
            pass

        cfg = self.config
        logger.info(
            "Repository %s/%s not found, generating from %s/%s",
            cfg.owner,
            cfg.repo,
            cfg.template_owner,
            cfg.template_repo,
        )
        await self._request(
            "POST",
            f"{cfg.api_url}/repos/{cfg.template_owner}/{cfg.template_repo}/generate",
            payload={
                "owner": cfg.owner,
                "name": cfg.repo,
                "private": cfg.repo_private,
                "include_all_branches": False,
            },
            operation="generate repo",
        )
        return True


def _encode(content: str) -> str:
    return base64.b64encode(content.encode("utf-8")).decode("ascii")


def _write_result(path: str, body: Any) -> WriteResult:
    body = body if isinstance(body, dict) else {}
    content = body.get("content") or {}
    commit = body.get("commit") or {}
    return WriteResult(
        path=content.get("path", path),
        sha=content.get("sha", ""),
        commit_sha=commit.get("sha", ""),
        commit_url=commit.get("html_url", ""),
    )
