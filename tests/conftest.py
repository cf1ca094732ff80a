"""Shared test fixtures for speardrive."""

import asyncio
import io
import os
import os.path as path
import typing as T
import zipfile
from collections import Counter
from pathlib import Path

import aiohttp
import pytest
from aiohttp import web

from speardrive.data.config import GitlabConfig, LocalSourceConfig, SpeardriveConfig
from speardrive.providers import SourceProvider
from speardrive.repogen import RepositoryGenerator, RepoType

if T.TYPE_CHECKING:
    from speardrive.utils.logging.build_logger import BuildLogger


def write_tree(root: Path, files: dict[str, str]) -> Path:
    """Create ``files`` (relative path -> text contents) under ``root``."""
    for rel_path, contents in files.items():
        target = root / rel_path
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_text(contents)
    return root


def make_zip(files: dict[str, bytes]) -> bytes:
    buf = io.BytesIO()
    with zipfile.ZipFile(buf, "w") as zf:
        for name, contents in files.items():
            zf.writestr(name, contents)
    return buf.getvalue()


class FakeProvider(SourceProvider[T.Any]):
    """Resolves specs to prepared directories, recording every call."""

    def __init__(self, directories: dict[str, str]) -> None:
        self.directories = directories
        self.calls = list[str]()
        self.failures = dict[str, Exception]()
        self.gate: asyncio.Event | None = None

    async def resolve(self, spec: T.Any) -> str:
        self.calls.append(str(spec))
        if self.gate:
            await self.gate.wait()
        if str(spec) in self.failures:
            raise self.failures[str(spec)]
        return self.directories[str(spec)]


class FakeGenerator(RepositoryGenerator):
    """
    Writes a ``repodata/repomd.xml`` listing the files in the repository, like a
    very lazy ``createrepo``.
    """

    repo_type = RepoType.RPM

    def __init__(self) -> None:
        self.calls = 0
        self.gate: asyncio.Event | None = None
        self.failure: Exception | None = None

    async def generate(self, directory: str, log_io: "BuildLogger") -> None:
        self.calls += 1
        if self.gate:
            await self.gate.wait()
        if self.failure:
            raise self.failure
        listing = sorted(
            path.relpath(path.join(root, name), directory)
            for (root, _, files) in os.walk(directory)
            for name in files
        )
        os.makedirs(path.join(directory, "repodata"))
        with open(path.join(directory, "repodata", "repomd.xml"), "w") as repomd:
            repomd.write("\n".join(listing) + "\n")


@pytest.fixture
def fake_generator() -> FakeGenerator:
    return FakeGenerator()


@pytest.fixture
async def client_session() -> T.AsyncIterator[aiohttp.ClientSession]:
    async with aiohttp.ClientSession() as session:
        yield session


class FakeGitlab:
    """State of a fake GitLab server: job artifacts by (project, job)."""

    API_KEY = "secret-token"

    def __init__(self) -> None:
        self.jobs = dict[tuple[str, int], bytes]()
        self.hits = Counter[tuple[str, int]]()
        self.status_override: int | None = None
        self.server: T.Any = None

    @property
    def hostname(self) -> str:
        return f"http://{self.server.host}:{self.server.port}"

    async def handle_artifacts(self, req: web.Request) -> web.Response:
        if req.headers.get("PRIVATE-TOKEN") != self.API_KEY:
            raise web.HTTPUnauthorized()
        # Projects may arrive with their slashes still encoded.
        project = req.match_info["project"].replace("%2F", "/")
        job = int(req.match_info["job"])
        self.hits[(project, job)] += 1
        if self.status_override:
            return web.Response(status=self.status_override)
        if (project, job) not in self.jobs:
            raise web.HTTPNotFound()
        return web.Response(body=self.jobs[(project, job)], content_type="application/zip")


@pytest.fixture
async def fake_gitlab(aiohttp_server: T.Any) -> FakeGitlab:
    gitlab = FakeGitlab()
    app = web.Application()
    app.router.add_get(
        "/api/v4/projects/{project:.+}/jobs/{job:[0-9]+}/artifacts", gitlab.handle_artifacts
    )
    gitlab.server = await aiohttp_server(app)
    return gitlab


@pytest.fixture
def config(tmp_path: Path, fake_gitlab: FakeGitlab) -> SpeardriveConfig:
    """A config with a GitLab instance ``myserver`` and a local source ``builds``."""
    (tmp_path / "builds").mkdir()
    return SpeardriveConfig(
        composites_cache=str(tmp_path / "composites"),
        gitlabs={
            "myserver": GitlabConfig(
                api_key=FakeGitlab.API_KEY,
                hostname=fake_gitlab.hostname,
                local_cache=str(tmp_path / "gitlab-cache"),
            )
        },
        local_sources={"builds": LocalSourceConfig(root=str(tmp_path / "builds"))},
    )
