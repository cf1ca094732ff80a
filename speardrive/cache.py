# Single-flight on-disk caches.
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
This module contains the keyed, on-disk caches used for artifacts and composites.

Each cache entry is a directory.  Entries are built into a private staging directory
next to their final location, and renamed into place only once complete, so readers
never observe partially-written entries.  At most one build runs per key at a time;
concurrent requests for the same key wait for the same build.
"""

import asyncio
import enum
import logging
import os
import os.path as path
import typing as T
from datetime import datetime, timezone

import speardrive.utils.fs as sdu_fs

logger = logging.getLogger(__name__)

Builder: T.TypeAlias = T.Callable[[str], T.Awaitable[None]]
"""
Coroutine function that populates the staging directory passed to it.  Raises on
failure.
"""


class EntryState(enum.Enum):
    """States a cache entry can be in."""

    PENDING = "PENDING"
    """Entry is being built."""
    READY = "READY"
    """Entry is complete, and immutable from now on."""
    FAILED = "FAILED"
    """Last attempt at building this entry failed.  The next request retries."""


class CacheEntry[K]:
    """
    One cached directory.
    """

    def __init__(self, key: K, location: str, state: EntryState) -> None:
        self.key: T.Final = key
        self.location: T.Final = location
        """Final location of the entry on disk.  Only exists once ``READY``."""
        self.state = state
        self.created: T.Final = datetime.now(timezone.utc)
        """TZ-aware timestamp of when this entry was created."""
        self.failure: Exception | None = None
        """Reason of the failure, if ``FAILED``."""
        self.task: asyncio.Task[str] | None = None
        """Build in progress, if ``PENDING``."""


class SingleFlightCache[K: T.Hashable]:
    """
    A map from keys to directories, filled in on demand by builders.

    The cache is a monitor: state transitions happen under a lock, but builds run
    outside of it, so unrelated keys build in parallel.
    """

    def __init__(self, name: str) -> None:
        self.name: T.Final = name
        """Name of this cache, for logging."""
        self._lock: T.Final = asyncio.Lock()
        """Synchronizes entry state transitions."""
        self._entries: T.Final = dict[K, CacheEntry[K]]()
        self._tasks: T.Final = set[asyncio.Task[str]]()
        """Strong references to running builds."""

    async def get_or_build(self, key: K, location: str, build: Builder) -> str:
        """
        Get the directory for ``key``, building it with ``build`` if necessary.

        Args:
          key: Cache key.
          location: Where the entry for ``key`` lives on disk.  Must always be the same
                    for the same key.
          build: Builder to run if the entry is missing or has previously failed.

        Returns:
          ``location``, once it is complete.

        Raises:
          Whatever ``build`` raised, to every caller waiting on that build.
        """
        async with self._lock:
            entry = self._entries.get(key)
            if entry and entry.state is EntryState.READY and not path.isdir(entry.location):
                logger.warning("%s: entry %s vanished from disk, rebuilding", self.name, key)
                entry = None

            if entry is None and path.isdir(location):
                # Left behind by an earlier run.
                entry = CacheEntry(key, location, EntryState.READY)
                self._entries[key] = entry

            if entry is None or entry.state is EntryState.FAILED:
                entry = CacheEntry(key, location, EntryState.PENDING)
                entry.task = task = asyncio.create_task(self._run(entry, build))
                self._tasks.add(task)
                task.add_done_callback(self._tasks.discard)
                self._entries[key] = entry

            if entry.state is EntryState.READY:
                return entry.location

            task = entry.task
            assert task is not None

        # Shielded, so that the build outlives requesters that go away.
        return await asyncio.shield(task)

    async def _run(self, entry: CacheEntry[K], build: Builder) -> str:
        """Build ``entry``, and record the outcome."""
        logger.debug("%s: building %s", self.name, entry.key)
        staging: str | None = None
        try:
            staging = await asyncio.to_thread(sdu_fs.make_staging_dir, entry.location)
            await build(staging)
            await asyncio.to_thread(self._publish, staging, entry.location)
        except BaseException as e:
            async with self._lock:
                entry.state = EntryState.FAILED
                entry.failure = e if isinstance(e, Exception) else None
                entry.task = None
            logger.info("%s: building %s failed: %s", self.name, entry.key, e)
            if staging is not None:
                await asyncio.to_thread(sdu_fs.remove_tree, staging)
            raise

        async with self._lock:
            entry.state = EntryState.READY
            entry.task = None
        logger.debug("%s: %s is ready", self.name, entry.key)
        return entry.location

    @staticmethod
    def _publish(staging: str, location: str) -> None:
        if path.isdir(location):
            # Someone outside of this process got here first.  Their copy is as good as ours.
            sdu_fs.remove_tree(staging)
            return
        sdu_fs.publish_dir(staging, location)

    def get_entry(self, key: K) -> CacheEntry[K] | None:
        """Look up the entry for ``key``, without building anything."""
        return self._entries.get(key)

    def entries(self) -> list[CacheEntry[K]]:
        """A snapshot of all entries this cache knows about."""
        return list(self._entries.values())


ArtifactKey: T.TypeAlias = tuple[str, str, str]
"""Artifact cache key: provider kind, source name, identifier within the source."""


class ArtifactCache(SingleFlightCache[ArtifactKey]):
    """
    Cache of artifact sets downloaded by source providers.  Providers decide where
    their entries live.
    """

    def __init__(self) -> None:
        super().__init__("artifacts")


class CompositeCache(SingleFlightCache[str]):
    """
    Cache of generated composite repositories, keyed by composite key, all living
    under one root directory.
    """

    def __init__(self, root: str) -> None:
        super().__init__("composites")
        self.root: T.Final = root

    def location_for(self, key: str) -> str:
        """Directory in which the composite for ``key`` lives."""
        return path.join(self.root, key)

    def log_path_for(self, key: str) -> str:
        """File that receives the build log of the composite for ``key``."""
        return path.join(self.root, f"{key}.log")

    async def get_or_build_composite(self, key: str, build: Builder) -> str:
        return await self.get_or_build(key, self.location_for(key), build)

    def sweep_staging(self) -> None:
        """
        Remove staging directories left behind by a previous process.  Must be called
        before any builds start.
        """
        try:
            names = os.listdir(self.root)
        except FileNotFoundError:
            return
        for name in names:
            if name.startswith(".staging."):
                logger.info("removing stale staging directory %s", name)
                sdu_fs.remove_tree(path.join(self.root, name))
