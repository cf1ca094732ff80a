# RPM repository generation.
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
This module generates RPM repository metadata using ``createrepo_c``.
"""

import os.path as path
import shutil
import typing as T
from subprocess import CalledProcessError

import speardrive.utils.proc as sdu_proc
from speardrive.errors import GenerationFailed, GeneratorUnavailable

from . import RepositoryGenerator, RepoType

if T.TYPE_CHECKING:
    from speardrive.utils.logging.build_logger import BuildLogger

DEFAULT_TOOLS = ("createrepo_c", "createrepo")
"""Tools tried, in order, when no command is configured."""


class RpmGenerator(RepositoryGenerator):
    """
    Runs ``createrepo_c`` (or the legacy ``createrepo``) over the composite, producing
    a ``repodata/`` directory.
    """

    repo_type = RepoType.RPM

    def __init__(self, command: list[str] | None = None) -> None:
        self.command: T.Final = command
        """Configured command, or ``None`` to look one up on ``PATH``."""

    def _get_command(self) -> list[str]:
        if self.command:
            return list(self.command)
        for tool in DEFAULT_TOOLS:
            if shutil.which(tool):
                return [tool]
        raise GeneratorUnavailable(f"none of {', '.join(DEFAULT_TOOLS)} are installed")

    async def generate(self, directory: str, log_io: "BuildLogger") -> None:
        command = self._get_command()
        try:
            await sdu_proc.do_command(log_io, *command, directory)
        except FileNotFoundError:
            raise GeneratorUnavailable(f"{command[0]} is not installed") from None
        except CalledProcessError as e:
            raise GenerationFailed(f"{command[0]} exited with status {e.returncode}") from e

        if not path.isfile(path.join(directory, "repodata", "repomd.xml")):
            raise GenerationFailed(f"{command[0]} did not produce repodata/repomd.xml")
