# Filesystem utilities.
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
This package contains utilities used for dealing with the filesystem.
"""

import contextlib
import logging
import os
import os.path as path
import shutil
import tempfile
import typing as T

AnyPath: T.TypeAlias = os.PathLike[str] | str

logger = logging.getLogger(__name__)


def _clear_destination(dest: str) -> None:
    """Remove whatever is at ``dest`` so that a new entry can take its place."""
    if path.isdir(dest) and not path.islink(dest):
        shutil.rmtree(dest)
    else:
        os.unlink(dest)


def link_or_copy(source: str, dest: str) -> None:
    """
    Hard-link ``source`` to ``dest``, falling back to a copy when linking is not
    possible (e.g. across filesystems).
    """
    try:
        os.link(source, dest)
    except OSError:
        shutil.copy2(source, dest)


def merge_tree_into(src: AnyPath, dst: AnyPath) -> None:
    """
    Copies, recursively, the file and directory structure ``src`` into ``dst``, merging
    the former tree into the latter.

    Entries from ``src`` replace colliding entries already in ``dst``, so merging
    several trees in order makes the last one win.  Files are hard-linked where
    possible.  Symbolic links are not carried over, as they could point outside of
    the tree being served.
    """

    def _raise(x: BaseException) -> None:
        raise x

    for root, dirs, files in os.walk(src, onerror=_raise):
        rel_root = path.relpath(root, start=src)
        for dirn in list(dirs):
            source = path.join(root, dirn)
            if path.islink(source):
                logger.debug("skipping symlink %s", source)
                dirs.remove(dirn)
                continue
            dest = path.normpath(path.join(dst, rel_root, dirn))
            if path.lexists(dest) and not (path.isdir(dest) and not path.islink(dest)):
                _clear_destination(dest)
            try:
                os.mkdir(dest)
            except FileExistsError:
                pass
            shutil.copystat(source, dest)
        for filen in files:
            source = path.join(root, filen)
            if path.islink(source):
                logger.debug("skipping symlink %s", source)
                continue
            dest = path.normpath(path.join(dst, rel_root, filen))
            if path.lexists(dest):
                _clear_destination(dest)
            link_or_copy(source, dest)


def remove_tree(tree: AnyPath) -> None:
    """Remove ``tree`` if it exists.  Errors are logged, not raised."""

    def _log(func: T.Any, failed_path: str, exc: BaseException) -> None:
        logger.warning("failed to remove %s: %s", failed_path, exc)

    if not path.lexists(tree):
        return
    shutil.rmtree(tree, onexc=_log)


def make_staging_dir(final_location: str) -> str:
    """
    Create a fresh, private staging directory next to ``final_location``, so that it
    can later be published with an atomic :py:func:`os.rename`.
    """
    parent = path.dirname(final_location)
    os.makedirs(parent, exist_ok=True)
    return tempfile.mkdtemp(prefix=f".staging.{path.basename(final_location)}.", dir=parent)


def publish_dir(staging: str, final_location: str) -> None:
    """
    Atomically move the directory ``staging`` into place as ``final_location``.
    """
    # Staging directories are created 0700 by mkdtemp.
    os.chmod(staging, 0o755)
    os.rename(staging, final_location)


@contextlib.contextmanager
def atomic_write_open(fpath: str, mode: str) -> T.Generator[T.IO[T.Any]]:
    path_dir = path.dirname(fpath)
    with tempfile.NamedTemporaryFile(prefix=".", dir=path_dir, delete=False, mode=mode) as f:
        try:
            yield f
        except:  # noqa: E722
            os.unlink(f.name)
            raise
        os.chmod(f.name, 0o644)
        os.rename(f.name, fpath)
