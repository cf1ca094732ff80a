# HTTP helpers for source providers.
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
This module contains helpers providers use to talk to upstream HTTP servers, mapping
failures onto :py:mod:`speardrive.errors`.
"""

import typing as T

import aiohttp

from speardrive.errors import ArtifactNotFound, SpeardriveError, UpstreamUnavailable

CHUNK_SIZE = 128 * 1024


def _check_response(
    resp: aiohttp.ClientResponse, what: str, not_found: type[SpeardriveError]
) -> None:
    if resp.status == 404:
        raise not_found(f"{what}: not found upstream ({resp.url})")
    if resp.status != 200:
        raise UpstreamUnavailable(f"{what}: upstream responded {resp.status} {resp.reason}")


async def fetch_bytes(
    client: aiohttp.ClientSession,
    url: str,
    what: str,
    *,
    headers: T.Mapping[str, str] | None = None,
    not_found: type[SpeardriveError] = ArtifactNotFound,
) -> bytes:
    """
    GET ``url`` into memory.  Only suitable for small files.

    Args:
      what: Description of the object being fetched, for error messages.
      not_found: Error raised on a 404.

    Raises:
      UpstreamUnavailable: on network errors and unexpected statuses.
    """
    try:
        async with client.get(url, headers=headers) as resp:
            _check_response(resp, what, not_found)
            return await resp.read()
    except (aiohttp.ClientError, TimeoutError) as e:
        raise UpstreamUnavailable(f"{what}: {e!r}") from e


async def download(
    client: aiohttp.ClientSession,
    url: str,
    dest: str,
    what: str,
    *,
    headers: T.Mapping[str, str] | None = None,
    not_found: type[SpeardriveError] = ArtifactNotFound,
) -> None:
    """
    GET ``url`` into a new file ``dest``, streaming.  See :py:func:`fetch_bytes`.
    """
    try:
        async with client.get(url, headers=headers) as resp:
            _check_response(resp, what, not_found)
            with open(dest, "wb") as local:
                while data := await resp.content.read(CHUNK_SIZE):
                    local.write(data)
    except (aiohttp.ClientError, TimeoutError) as e:
        raise UpstreamUnavailable(f"{what}: {e!r}") from e
