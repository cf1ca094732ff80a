# Routes used to see what's going on
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
Routes used for read-only introspection of the server status.
"""

import os
import socket
import typing as T

from aiohttp import web

from speardrive import __version__
from speardrive.data.status import CacheEntryStatus, ServerStatus

from .state import get_server_state

if T.TYPE_CHECKING:
    from speardrive.cache import CacheEntry

blueprint = web.RouteTableDef()


def _summarize_entry(key: str, entry: "CacheEntry[T.Any]") -> CacheEntryStatus:
    return CacheEntryStatus(
        key=key,
        state=entry.state.name,
        created=entry.created,
        failure=str(entry.failure) if entry.failure else None,
    )


@blueprint.get("/_status")
async def get_server_status(req: web.Request) -> web.Response:
    state = get_server_state(req.app)

    return web.json_response(
        ServerStatus(
            hostname=socket.gethostname(),
            version=__version__,
            load_avg=os.getloadavg(),
            repo_types=sorted(state.generators),
            artifacts=[
                _summarize_entry("/".join(entry.key), entry)
                for entry in state.artifacts.entries()
            ],
            composites=[
                _summarize_entry(entry.key, entry) for entry in state.composites.entries()
            ],
        ).model_dump(mode="json")
    )
