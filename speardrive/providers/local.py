# Local directory provider.
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
This module contains a provider for directories on the local filesystem.  They are
used in place, without caching.
"""

import asyncio
import os.path as path
import typing as T

from werkzeug.security import safe_join

from speardrive.errors import PathNotFound, UnknownSourceName
from speardrive.plan import LocalSpec

from . import SourceProvider

if T.TYPE_CHECKING:
    from speardrive.data.config import LocalSourceConfig


class LocalProvider(SourceProvider[LocalSpec]):
    def __init__(self, sources: dict[str, "LocalSourceConfig"]) -> None:
        self.sources: T.Final = sources

    async def resolve(self, spec: LocalSpec) -> str:
        try:
            source = self.sources[spec.source_name]
        except KeyError:
            raise UnknownSourceName(f"unknown local source {spec.source_name!r}") from None

        directory = safe_join(source.root, spec.relative_dir)
        if directory is None or not await asyncio.to_thread(path.isdir, directory):
            raise PathNotFound(f"{spec}: no such directory")
        return directory
