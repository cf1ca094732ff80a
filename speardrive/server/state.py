# Server state.
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
This module holds a class responsible for holding state shared by all requests: the
caches, the providers, the generators and the build coordinator.
"""

import typing as T

from aiohttp import web

from speardrive.cache import ArtifactCache, CompositeCache

from .coordinator import BuildCoordinator

if T.TYPE_CHECKING:
    import speardrive.data.config as config
    from speardrive.providers import ProviderSet
    from speardrive.repogen import RepositoryGenerator

ProviderFactory: T.TypeAlias = T.Callable[[ArtifactCache], "ProviderSet"]
"""Creates the source providers, given the artifact cache they should use."""


class ServerState:
    """
    Global state of the server.  Created once at startup, lives until shutdown.
    """

    def __init__(
        self,
        server_config: "config.SpeardriveConfig",
        make_providers: ProviderFactory,
        generators: T.Mapping[str, "RepositoryGenerator"],
    ) -> None:
        self.config: T.Final = server_config
        """
        Configuration values this server was started with.
        """
        self.artifacts: T.Final = ArtifactCache()
        """Artifacts downloaded by source providers."""
        self.composites: T.Final = CompositeCache(server_config.composites_cache)
        """Generated composite repositories."""
        self.providers: T.Final = make_providers(self.artifacts)
        self.generators: T.Final = generators
        """Repository generators, keyed by repository type."""
        self.coordinator: T.Final = BuildCoordinator(
            self.providers, self.generators, self.composites
        )


SERVER_STATE_KEY = web.AppKey("server_state", ServerState)
"""
A key for storing the server state in a :py:class:`web.Application`.
"""


def get_server_state(app: web.Application) -> ServerState:
    """
    Extracts the server state from an :py:class:`web.Application`.  Presumes that it
    is present.
    """
    return app[SERVER_STATE_KEY]
