# Build coordinator.
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
This module contains the build coordinator, which turns plans into composite
repositories.

A composite build resolves every source of a plan (concurrently), merges the resolved
directories in plan order into a staging tree, writes a ``composite.json`` describing
the plan, and runs the repository generator over the result.  The composite cache
makes sure only one build per composite runs at a time, and that only complete
composites are published.
"""

import asyncio
import functools
import json
import logging
import os.path as path
import typing as T

import speardrive.utils.fs as sdu_fs
import speardrive.utils.tasks as sdu_tasks
from speardrive.errors import SpeardriveError, UnknownRepoType
from speardrive.utils.logging.build_logger import BuildLogger

if T.TYPE_CHECKING:
    from speardrive.cache import CompositeCache
    from speardrive.plan import Plan
    from speardrive.providers import ProviderSet
    from speardrive.repogen import RepositoryGenerator

logger = logging.getLogger(__name__)

COMPOSITE_INFO_FILE = "composite.json"
"""File written into each composite, describing the plan it was built from."""


class BuildCoordinator:
    """
    Resolves plans into composite repository directories, building them on demand.
    """

    def __init__(
        self,
        providers: "ProviderSet",
        generators: T.Mapping[str, "RepositoryGenerator"],
        composites: "CompositeCache",
    ) -> None:
        self.providers: T.Final = providers
        self.generators: T.Final = generators
        self.composites: T.Final = composites

    async def get_composite(self, plan: "Plan") -> str:
        """
        Get the directory of the composite for ``plan``, building it if it is not
        cached yet.  Concurrent calls for the same composite share one build.

        Raises:
          SpeardriveError: if the build failed.  Every caller sharing the failed build
                           receives the same exception.
        """
        try:
            generator = self.generators[plan.repo_type]
        except KeyError:
            raise UnknownRepoType(f"unknown repository type {plan.repo_type!r}") from None

        key = plan.composite_key()
        return await self.composites.get_or_build_composite(
            key, functools.partial(self._build, plan, key, generator)
        )

    @staticmethod
    def _merge(
        plan: "Plan", key: str, directories: list[str], staging: str, log_io: BuildLogger
    ) -> None:
        """Merge ``directories`` into ``staging``.  Later directories win collisions."""
        for source, directory in zip(plan.sources, directories, strict=True):
            log_io.info(f"Merging {source} from {directory}")
            sdu_fs.merge_tree_into(directory, staging)

        with sdu_fs.atomic_write_open(path.join(staging, COMPOSITE_INFO_FILE), "w") as info:
            json.dump(dict(key=key, **plan.to_json_obj()), info, indent=2)

    async def _build(
        self, plan: "Plan", key: str, generator: "RepositoryGenerator", staging: str
    ) -> None:
        log_extra = dict(composite=key[:12])
        logger.info("building composite for %s", plan, extra=log_extra)

        with open(self.composites.log_path_for(key), "w") as log_file:
            log_io = BuildLogger(log_file)
            log_io.info(f"Building composite {key} for {plan}")
            try:
                directories = await sdu_tasks.run_all(
                    self.providers.resolve(source) for source in plan.sources
                )
                await asyncio.to_thread(self._merge, plan, key, directories, staging, log_io)
                log_io.info(f"Generating {plan.repo_type} repository metadata")
                await generator.generate(staging, log_io)
            except SpeardriveError as e:
                log_io.error(f"Build failed: {e}")
                logger.info("build of composite failed: %s", e, extra=log_extra)
                raise
            except Exception:
                log_io.exception("Build failed unexpectedly")
                logger.exception("build of composite failed unexpectedly", extra=log_extra)
                raise

            log_io.info("Composite ready")
        logger.info("composite ready", extra=log_extra)
