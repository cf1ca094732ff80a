# Remote static file tree provider.
# Copyright (C) 2025  The speardrive developers

# This program is free software: you can redistribute it and/or modify
# it under the terms of the GNU Affero General Public License as published
# by the Free Software Foundation, either version 3 of the License, or
# (at your option) any later version.

# This program is distributed in the hope that it will be useful,
# but WITHOUT ANY WARRANTY; without even the implied warranty of
# MERCHANTABILITY or FITNESS FOR A PARTICULAR PURPOSE.  See the
# GNU Affero General Public License for more details.

# You should have received a copy of the GNU Affero General Public License
# along with this program.  If not, see <http://www.gnu.org/licenses/>.

"""
This module contains a provider for directories on static HTTP servers.

Each directory must contain a ``list.txt`` manifest, listing one path relative to the
directory per line.  Blank lines and lines starting with ``#`` are ignored.  A directory
is only cached once every file it lists has been downloaded.
"""

import asyncio
import functools
import logging
import os
import os.path as path
import typing as T
from urllib.parse import quote

import aiohttp

import speardrive.utils.str as sdu_str
import speardrive.utils.tasks as sdu_tasks
from speardrive.errors import ManifestInvalid, UnknownSourceName, UpstreamUnavailable
from speardrive.plan import RemoteStaticSpec

from . import SourceProvider
from .http import download, fetch_bytes

if T.TYPE_CHECKING:
    from speardrive.cache import ArtifactCache
    from speardrive.data.config import RemoteStaticConfig

logger = logging.getLogger(__name__)

MANIFEST_NAME = "list.txt"


def _ancestors(dirname: str) -> T.Iterator[str]:
    """Yield ``dirname`` and all its ancestors, except the root."""
    while dirname:
        yield dirname
        dirname = path.dirname(dirname)


def parse_manifest(data: bytes) -> list[str]:
    """
    Parse the contents of a ``list.txt`` manifest.

    Returns:
      Relative paths listed in the manifest, in order, without duplicates.

    Raises:
      ManifestInvalid: if the manifest is not UTF-8, or lists an unsafe path.
    """
    try:
        text = data.decode("utf-8")
    except UnicodeDecodeError as e:
        raise ManifestInvalid(f"{MANIFEST_NAME} is not valid UTF-8: {e}") from e

    files = dict[str, None]()
    for lineno, line in enumerate(text.splitlines(), start=1):
        line = line.strip()
        if not line or line.startswith("#"):
            continue
        # As produced by find(1).
        line = line.removeprefix("./")
        if not sdu_str.is_safe_relative_path(line):
            raise ManifestInvalid(f"{MANIFEST_NAME}:{lineno}: invalid path {line!r}")
        files[line] = None

    directories = {d for f in files for d in _ancestors(path.dirname(f))}
    for f in files:
        if f in directories:
            raise ManifestInvalid(f"{MANIFEST_NAME}: {f!r} is listed as a file and a directory")
    return list(files)


class RemoteStaticProvider(SourceProvider[RemoteStaticSpec]):
    """
    Provides directories of remote static file trees described by ``list.txt``
    manifests.
    """

    def __init__(
        self,
        remotes: dict[str, "RemoteStaticConfig"],
        artifacts: "ArtifactCache",
        client: aiohttp.ClientSession,
    ) -> None:
        self.remotes: T.Final = remotes
        self.artifacts: T.Final = artifacts
        self.client: T.Final = client

    def _get_remote(self, spec: RemoteStaticSpec) -> "RemoteStaticConfig":
        try:
            return self.remotes[spec.source_name]
        except KeyError:
            raise UnknownSourceName(f"unknown remote source {spec.source_name!r}") from None

    async def resolve(self, spec: RemoteStaticSpec) -> str:
        remote = self._get_remote(spec)
        return await self.artifacts.get_or_build(
            (RemoteStaticSpec.kind, spec.source_name, spec.relative_dir),
            path.join(remote.local_cache, spec.relative_dir),
            functools.partial(self._fetch, remote, spec),
        )

    async def _fetch(
        self, remote: "RemoteStaticConfig", spec: RemoteStaticSpec, staging: str
    ) -> None:
        """Download the manifest of ``spec``, then every file it lists, into ``staging``."""
        dir_url = sdu_str.fuse_with_slashes(remote.base_url, quote(spec.relative_dir))
        manifest = await fetch_bytes(
            self.client,
            sdu_str.fuse_with_slashes(dir_url, MANIFEST_NAME),
            f"{MANIFEST_NAME} of {spec}",
        )
        files = parse_manifest(manifest)
        logger.info("fetching %d files", len(files), extra=dict(source=str(spec)))

        limit = asyncio.Semaphore(remote.max_parallel_downloads)

        async def _fetch_one(rel_path: str) -> None:
            dest = path.join(staging, *rel_path.split("/"))
            async with limit:
                await asyncio.to_thread(os.makedirs, path.dirname(dest), exist_ok=True)
                await download(
                    self.client,
                    sdu_str.fuse_with_slashes(dir_url, quote(rel_path)),
                    dest,
                    f"{rel_path} of {spec}",
                    # A listed file that is missing means the upstream is broken.
                    not_found=UpstreamUnavailable,
                )

        await sdu_tasks.run_all(_fetch_one(rel_path) for rel_path in files)
