# Repository metadata generators.
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
This module contains the base class for repository generators.

A repository generator runs an external, format-specific tool over a directory of
package files, leaving the directory usable as a package repository of that format.
"""

import enum
import typing as T
from abc import ABC, abstractmethod

if T.TYPE_CHECKING:
    from speardrive.data.config import SpeardriveConfig
    from speardrive.utils.logging.build_logger import BuildLogger


class RepoType(enum.StrEnum):
    """Repository formats, as spelled in request paths."""

    RPM = "rpm"


class RepositoryGenerator(ABC):
    """
    A ``RepositoryGenerator`` turns a merged directory of packages into a repository.

    Generators are shared among all concurrent composite builds, and so must not keep
    per-build state.
    """

    repo_type: T.ClassVar[RepoType]
    """Repository format this generator produces."""

    @abstractmethod
    async def generate(self, directory: str, log_io: "BuildLogger") -> None:
        """
        Generate repository metadata in place in ``directory``.  Afterwards,
        ``directory`` contains both the original files and the generated metadata.

        Args:
          directory: Merged directory to turn into a repository.
          log_io: Build log to send tool output into.

        Raises:
          GeneratorUnavailable: if the tool is not installed.
          GenerationFailed: if the tool failed or produced no usable metadata.
        """


def create_generators(config: "SpeardriveConfig") -> dict[str, RepositoryGenerator]:
    """
    Instantiate the generators enabled in ``config``, keyed by their repository type.
    """
    from .rpm import RpmGenerator

    generators = dict[str, RepositoryGenerator]()
    for repo_type, gen_config in config.generators.items():
        match repo_type:
            case RepoType.RPM:
                generators[repo_type.value] = RpmGenerator(gen_config.command)
            case _:
                T.assert_never(repo_type)
    return generators
