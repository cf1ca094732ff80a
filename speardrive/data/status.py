# Server status models
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
This module contains a model describing the status of the server and its caches.
"""

from datetime import datetime

from pydantic import BaseModel


class CacheEntryStatus(BaseModel):
    """
    Summary of a single cache entry.
    """

    key: str
    """Cache key.  For artifacts, ``${kind}/${source}/${identifier}``."""

    state: str
    """One of ``PENDING``, ``READY`` or ``FAILED``."""

    created: datetime
    """TZ-aware timestamp of when the entry was created in this process."""

    failure: str | None
    """Reason of the failure, if ``FAILED``."""


class ServerStatus(BaseModel):
    """
    Basic information on the status of the server.
    """

    hostname: str
    """Server hostname."""

    version: str
    """Version of speardrive running."""

    load_avg: tuple[float, float, float]
    """Server load average."""

    repo_types: list[str]
    """Repository types that can be requested."""

    artifacts: list[CacheEntryStatus]
    """Entries of the artifact cache known to this process."""

    composites: list[CacheEntryStatus]
    """Entries of the composite cache known to this process."""
