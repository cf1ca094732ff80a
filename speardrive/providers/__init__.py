# Source providers.
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
This module contains the base class for source providers, and the set of providers
the server resolves plans with.

A source provider resolves one source spec into a local directory containing the
artifacts it names, fetching and caching them as necessary.
"""

import typing as T
from abc import ABC, abstractmethod

from speardrive.plan import GitlabSpec, LocalSpec, RemoteStaticSpec, SourceSpec

if T.TYPE_CHECKING:
    import aiohttp

    from speardrive.cache import ArtifactCache
    from speardrive.data.config import SpeardriveConfig


class SourceProvider[S](ABC):
    """
    Resolves source specs of one kind.  Shared between all requests, so
    implementations must not keep per-request state.
    """

    @abstractmethod
    async def resolve(self, spec: S) -> str:
        """
        Resolve ``spec`` into a directory.  Repeated calls with the same spec return
        the same directory.  The caller must not modify the directory.

        Raises:
          SpeardriveError: on any failure.  See :py:mod:`speardrive.errors`.
        """


class ProviderSet:
    """
    Dispatches source specs to the provider for their kind.
    """

    def __init__(
        self,
        gitlab: SourceProvider[GitlabSpec],
        local: SourceProvider[LocalSpec],
        remote: SourceProvider[RemoteStaticSpec],
    ) -> None:
        self.gitlab: T.Final = gitlab
        self.local: T.Final = local
        self.remote: T.Final = remote

    async def resolve(self, spec: SourceSpec) -> str:
        """Resolve ``spec`` with the appropriate provider."""
        match spec:
            case GitlabSpec():
                return await self.gitlab.resolve(spec)
            case LocalSpec():
                return await self.local.resolve(spec)
            case RemoteStaticSpec():
                return await self.remote.resolve(spec)
            case _:
                T.assert_never(spec)


def create_providers(
    config: "SpeardriveConfig", artifacts: "ArtifactCache", client: "aiohttp.ClientSession"
) -> ProviderSet:
    """Create providers for all sources in ``config``."""
    from .gitlab import GitlabProvider
    from .local import LocalProvider
    from .remote_static import RemoteStaticProvider

    return ProviderSet(
        gitlab=GitlabProvider(config.gitlabs, artifacts, client),
        local=LocalProvider(config.local_sources),
        remote=RemoteStaticProvider(config.remote_sources, artifacts, client),
    )
