# GitLab CI job artifacts provider.
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
This module contains a provider that downloads the artifacts archive of a GitLab CI
job.  Job IDs are presumed to name immutable artifact sets, so a successfully
downloaded job is never fetched again.
"""

import asyncio
import functools
import logging
import os
import os.path as path
import typing as T
import zipfile
import zlib
from urllib.parse import quote

import aiohttp

from speardrive.errors import ExtractionFailed, UnknownSourceName
from speardrive.plan import SEPARATOR, GitlabSpec

from . import SourceProvider
from .http import download

if T.TYPE_CHECKING:
    from speardrive.cache import ArtifactCache
    from speardrive.data.config import GitlabConfig

logger = logging.getLogger(__name__)


def _extract_archive(archive: str, dest: str) -> None:
    """Extract the zip file ``archive`` into ``dest``."""
    try:
        with zipfile.ZipFile(archive) as zf:
            zf.extractall(dest)
    except (zipfile.BadZipFile, zlib.error, EOFError, NotImplementedError) as e:
        raise ExtractionFailed(f"corrupt artifacts archive: {e}") from e
    except OSError as e:
        raise ExtractionFailed(f"failed to extract artifacts archive: {e}") from e


class GitlabProvider(SourceProvider[GitlabSpec]):
    """
    Provides artifacts of GitLab CI jobs, through the GitLab v4 REST API.
    """

    def __init__(
        self,
        instances: dict[str, "GitlabConfig"],
        artifacts: "ArtifactCache",
        client: aiohttp.ClientSession,
    ) -> None:
        self.instances: T.Final = instances
        self.artifacts: T.Final = artifacts
        self.client: T.Final = client

    def _get_instance(self, spec: GitlabSpec) -> "GitlabConfig":
        try:
            return self.instances[spec.instance_name]
        except KeyError:
            raise UnknownSourceName(f"unknown GitLab instance {spec.instance_name!r}") from None

    def location_for(self, spec: GitlabSpec) -> str:
        """Directory in which the artifacts of the job in ``spec`` are cached."""
        instance = self._get_instance(spec)
        # No project path segment can be "-", so jobs never land in a subproject.
        return path.join(
            instance.local_cache, *spec.project_id.split("/"), SEPARATOR, str(spec.job_id)
        )

    async def resolve(self, spec: GitlabSpec) -> str:
        instance = self._get_instance(spec)
        return await self.artifacts.get_or_build(
            (GitlabSpec.kind, spec.instance_name, f"{spec.project_id}/{spec.job_id}"),
            self.location_for(spec),
            functools.partial(self._fetch, instance, spec),
        )

    async def _fetch(self, instance: "GitlabConfig", spec: GitlabSpec, staging: str) -> None:
        """Download and unpack the job artifacts into ``staging``."""
        url = (
            f"{instance.api_base_url()}/projects/{quote(spec.project_id, safe='')}"
            f"/jobs/{spec.job_id}/artifacts"
        )
        # Kept beside the staging directory, so that it can't collide with its contents.
        archive = f"{staging}.zip"
        try:
            logger.info("downloading job artifacts", extra=dict(source=str(spec)))
            await download(
                self.client,
                url,
                archive,
                f"artifacts of {spec}",
                headers={"PRIVATE-TOKEN": instance.api_key},
            )
            logger.info("extracting job artifacts", extra=dict(source=str(spec)))
            await asyncio.to_thread(_extract_archive, archive, staging)
        finally:
            try:
                os.unlink(archive)
            except FileNotFoundError:
                pass
