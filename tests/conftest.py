"""Shared fixtures: an in-process fake of the GitHub Contents API."""

from __future__ import annotations

import base64
import hashlib
import json
from dataclasses import dataclass, field

import pytest
import pytest_asyncio
from aiohttp import web
from aiohttp.test_utils import TestServer

from mnemo.config import GitHubConfig
from mnemo.github.client import GitHubClient
from mnemo.memory.manager import MemoryManager
from mnemo.retry import RetryConfig

OWNER = "octo"
REPO = "memories"


def _sha(content: str) -> str:
    data = content.encode("utf-8")
    return hashlib.sha1(b"blob %d\0" % len(data) + data).hexdigest()


@dataclass
class Fault:
    method: str
    status: int
    message: str = ""
    headers: dict[str, str] = field(default_factory=dict)
    path_prefix: str = ""
    times: int = 1


class FakeGitHub:
    """Just enough of api.github.com: contents CRUD, listings, ETags, generate."""

    def __init__(self) -> None:
        self.files: dict[str, str] = {}
        self.shas: dict[str, str] = {}
        self.repos: set[tuple[str, str]] = {(OWNER, REPO)}
        self.generated: list[dict] = []
        self.requests: list[tuple[str, str]] = []
        self.not_modified = 0
        self._faults: list[Fault] = []
        self._commits = 0

    # ── Test helpers ──────────────────────────────────────────

    def put(self, path: str, content: str) -> str:
        self.files[path] = content
        self.shas[path] = _sha(content)
        return self.shas[path]

    def fail(
        self,
        method: str,
        status: int,
        message: str = "",
        headers: dict[str, str] | None = None,
        path_prefix: str = "",
        times: int = 1,
    ) -> None:
        self._faults.append(Fault(method, status, message, headers or {}, path_prefix, times))

    def count(self, method: str, path_prefix: str = "") -> int:
        return sum(1 for m, p in self.requests if m == method and p.startswith(path_prefix))

    def paths(self, prefix: str = "") -> list[str]:
        return sorted(p for p in self.files if p.startswith(prefix))

    # ── App ───────────────────────────────────────────────────

    def app(self) -> web.Application:
        app = web.Application()
        app.router.add_route("*", "/repos/{owner}/{repo}/contents/{path:.*}", self._contents)
        app.router.add_post("/repos/{owner}/{repo}/generate", self._generate)
        app.router.add_get("/repos/{owner}/{repo}", self._get_repo)
        return app

    def _take_fault(self, method: str, path: str) -> Fault | None:
        for fault in self._faults:
            if fault.method == method and path.startswith(fault.path_prefix):
                fault.times -= 1
                if fault.times <= 0:
                    self._faults.remove(fault)
                return fault
        return None

    def _commit(self) -> dict:
        self._commits += 1
        sha = hashlib.sha1(str(self._commits).encode()).hexdigest()
        return {"sha": sha, "html_url": f"https://github.com/{OWNER}/{REPO}/commit/{sha}"}

    def _children(self, path: str) -> list[dict]:
        prefix = f"{path}/"
        entries: dict[str, dict] = {}
        for file_path in sorted(self.files):
            if not file_path.startswith(prefix):
                continue
            rest = file_path[len(prefix):]
            if "/" in rest:
                name = rest.split("/", 1)[0]
                entries.setdefault(
                    name, {"name": name, "path": f"{prefix}{name}", "sha": "", "size": 0, "type": "dir"}
                )
            else:
                entries[rest] = {
                    "name": rest,
                    "path": file_path,
                    "sha": self.shas[file_path],
                    "size": len(self.files[file_path]),
                    "type": "file",
                    "download_url": f"https://raw.example/{file_path}",
                }
        return list(entries.values())

    async def _contents(self, request: web.Request) -> web.StreamResponse:
        path = request.match_info["path"].strip("/")
        method = request.method
        self.requests.append((method, path))

        fault = self._take_fault(method, path)
        if fault:
            return web.json_response(
                {"message": fault.message or "Injected failure"},
                status=fault.status,
                headers=fault.headers,
            )

        if method == "GET":
            return self._get(request, path)
        body = await request.json()
        if method == "PUT":
            return self._put(path, body)
        if method == "DELETE":
            return self._delete(path, body)
        return web.json_response({"message": "Method Not Allowed"}, status=405)

    def _get(self, request: web.Request, path: str) -> web.StreamResponse:
        if path in self.files:
            payload: object = {
                "type": "file",
                "name": path.rsplit("/", 1)[-1],
                "path": path,
                "sha": self.shas[path],
                "size": len(self.files[path]),
                "encoding": "base64",
                "content": base64.b64encode(self.files[path].encode("utf-8")).decode("ascii"),
            }
            etag = f'"{self.shas[path]}"'
        else:
            children = self._children(path)
            if not children:
                return web.json_response({"message": "Not Found"}, status=404)
            payload = children
            etag = '"' + hashlib.sha1(json.dumps(children).encode()).hexdigest() + '"'

        if request.headers.get("If-None-Match") == etag:
            self.not_modified += 1
            return web.Response(status=304, headers={"ETag": etag})
        return web.json_response(payload, headers={"ETag": etag})

    def _put(self, path: str, body: dict) -> web.Response:
        sha = body.get("sha")
        content = base64.b64decode(body["content"]).decode("utf-8")
        status = 201
        if path in self.files:
            if not sha:
                return web.json_response(
                    {"message": 'Invalid request.\n\n"sha" wasn\'t supplied.'}, status=422
                )
            if sha != self.shas[path]:
                return web.json_response({"message": f"{path} does not match {sha}"}, status=409)
            status = 200
        new_sha = self.put(path, content)
        return web.json_response(
            {
                "content": {"name": path.rsplit("/", 1)[-1], "path": path, "sha": new_sha},
                "commit": self._commit(),
            },
            status=status,
        )

    def _delete(self, path: str, body: dict) -> web.Response:
        if path not in self.files:
            return web.json_response({"message": "Not Found"}, status=404)
        if body.get("sha") != self.shas[path]:
            return web.json_response({"message": f"{path} does not match"}, status=409)
        del self.files[path]
        del self.shas[path]
        return web.json_response({"content": None, "commit": self._commit()})

    async def _get_repo(self, request: web.Request) -> web.Response:
        key = (request.match_info["owner"], request.match_info["repo"])
        self.requests.append(("GET", f"repo:{key[0]}/{key[1]}"))
        if key not in self.repos:
            return web.json_response({"message": "Not Found"}, status=404)
        return web.json_response({"full_name": f"{key[0]}/{key[1]}", "private": True})

    async def _generate(self, request: web.Request) -> web.Response:
        body = await request.json()
        self.generated.append(
            {"template": f"{request.match_info['owner']}/{request.match_info['repo']}", **body}
        )
        self.repos.add((body["owner"], body["name"]))
        return web.json_response({"full_name": f"{body['owner']}/{body['name']}"}, status=201)


@pytest.fixture
def github() -> FakeGitHub:
    return FakeGitHub()


@pytest_asyncio.fixture
async def client(github: FakeGitHub):
    server = TestServer(github.app())
    await server.start_server()
    config = GitHubConfig(
        token="ghp_test",
        owner=OWNER,
        repo=REPO,
        api_url=f"http://{server.host}:{server.port}",
        timeout=10,
    )
    gh = GitHubClient(config, retry=RetryConfig(max_retries=3, initial_delay=0.0))
    try:
        yield gh
    finally:
        await gh.close()
        await server.close()


@pytest_asyncio.fixture
async def make_manager(client: GitHubClient):
    """Build MemoryManagers whose background index writes finish before teardown."""
    created: list[MemoryManager] = []

    def factory(**kwargs) -> MemoryManager:
        manager = MemoryManager(client, **kwargs)
        created.append(manager)
        return manager

    yield factory
    for manager in created:
        await manager.drain()


@pytest.fixture
def manager(make_manager) -> MemoryManager:
    return make_manager()
