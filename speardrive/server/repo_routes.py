# Repository file routes.
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
This module contains the route serving files out of composite repositories.  The
request path encodes the plan; see :py:mod:`speardrive.plan`.
"""

import asyncio
import logging
import os.path as path

from aiohttp import web
from werkzeug.security import safe_join

from speardrive.errors import FileNotFoundInRepo, SpeardriveError
from speardrive.plan import parse_request_path

from .state import get_server_state

blueprint = web.RouteTableDef()
logger = logging.getLogger(__name__)


async def _find_repo_file(req: web.Request) -> str:
    """
    Parse the request, get its composite, and find the requested file in it.

    Raises:
      SpeardriveError: if any step fails.
    """
    state = get_server_state(req.app)
    (plan, file_path) = parse_request_path(
        req.match_info["request_path"], state.config, state.generators.keys()
    )
    logger.debug("request %s: plan %s, file %r", req.path, plan, file_path)

    composite = await state.coordinator.get_composite(plan)

    repo_file = safe_join(composite, file_path) if file_path else None
    if repo_file is None or not await asyncio.to_thread(path.isfile, repo_file):
        raise FileNotFoundInRepo(f"{file_path!r} is not in the repository")
    return repo_file


@blueprint.get("/{request_path:.*}")
async def get_repo_file(req: web.Request) -> web.StreamResponse:
    """
    Serve a file from the composite repository described by the request path.
    """
    try:
        repo_file = await _find_repo_file(req)
    except SpeardriveError as e:
        logger.info("request %s: %s (%s)", req.path, e.http_status, e)
        return web.Response(status=e.http_status, text=f"{e}\n")

    return web.FileResponse(path=repo_file)
