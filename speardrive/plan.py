# Request plans.
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
This module decodes request paths into plans, and derives composite keys from them.

A request path looks like::

    <source-spec>{/-/<source-spec>}*/-/<repo-type>/<file-path>

where ``<source-spec>`` is one of ``<gitlab-name>/<project>/<job>``,
``<local-name>/<dir>`` or ``<remote-name>/<dir>``.  GitLab project paths may contain
slashes (e.g. ``group/subgroup/project``).
"""

import hashlib
import json
import typing as T
from dataclasses import asdict, dataclass

import speardrive.utils.str as sdu_str
from speardrive.errors import MalformedPlan, UnknownRepoType, UnknownSourceName

if T.TYPE_CHECKING:
    from speardrive.data.config import SpeardriveConfig

SEPARATOR = "-"
"""Path segment separating source specs from each other and from the repository type."""


@dataclass(frozen=True)
class GitlabSpec:
    """Artifacts of one GitLab CI job."""

    kind: T.ClassVar[str] = "gitlab"

    instance_name: str
    project_id: str
    """Project path, possibly namespaced, or numeric project ID."""
    job_id: int

    def __str__(self) -> str:
        return f"{self.instance_name}/{self.project_id}/{self.job_id}"


@dataclass(frozen=True)
class LocalSpec:
    """A subdirectory of a local source root."""

    kind: T.ClassVar[str] = "local"

    source_name: str
    relative_dir: str

    def __str__(self) -> str:
        return f"{self.source_name}/{self.relative_dir}"


@dataclass(frozen=True)
class RemoteStaticSpec:
    """A subdirectory of a remote static file tree, listed by its ``list.txt``."""

    kind: T.ClassVar[str] = "remote"

    source_name: str
    relative_dir: str

    def __str__(self) -> str:
        return f"{self.source_name}/{self.relative_dir}"


SourceSpec: T.TypeAlias = GitlabSpec | LocalSpec | RemoteStaticSpec
"""Identifies one artifact set."""


@dataclass(frozen=True)
class Plan:
    """
    An ordered list of sources and the repository type to generate over their merge.
    Later sources take precedence over earlier ones when their files collide.
    """

    sources: tuple[SourceSpec, ...]
    repo_type: str

    def __str__(self) -> str:
        return " + ".join(str(source) for source in self.sources) + f" -> {self.repo_type}"

    def to_json_obj(self) -> dict[str, T.Any]:
        """A JSON-serializable description of this plan."""
        return dict(
            repo_type=self.repo_type,
            sources=[dict(kind=source.kind, **asdict(source)) for source in self.sources],
        )

    def composite_key(self) -> str:
        """
        Derive the key under which this plan's composite is cached.

        The key depends on source order, since order decides which file wins a
        collision, and hence the contents of the composite.
        """
        canonical = json.dumps(self.to_json_obj(), sort_keys=True, separators=(",", ":"))
        return hashlib.sha256(canonical.encode("utf-8")).hexdigest()


def _check_segments(group: list[str]) -> None:
    for segment in group:
        if not sdu_str.is_safe_segment(segment):
            raise MalformedPlan(f"invalid path segment {segment!r}")


def _parse_source(group: list[str], config: "SpeardriveConfig") -> SourceSpec:
    """Decode one group of segments into a source spec."""
    (name, *args) = group
    if name in config.gitlabs:
        if len(args) < 2:
            raise MalformedPlan(f"{'/'.join(group)}: expected {name}/<project>/<job>")
        (*project, job) = args
        _check_segments(args)
        if not job.isascii() or not job.isdigit():
            raise MalformedPlan(f"{'/'.join(group)}: job ID {job!r} is not a number")
        return GitlabSpec(name, "/".join(project), int(job))

    if name in config.local_sources or name in config.remote_sources:
        if len(args) != 1:
            raise MalformedPlan(f"{'/'.join(group)}: expected {name}/<dir>")
        _check_segments(args)
        if name in config.local_sources:
            return LocalSpec(name, args[0])
        return RemoteStaticSpec(name, args[0])

    raise UnknownSourceName(f"unknown source {name!r}")


def parse_request_path(
    request_path: str, config: "SpeardriveConfig", repo_types: T.Collection[str]
) -> tuple[Plan, str]:
    """
    Decode a request path.  Pure; does not touch the network or the filesystem.

    Args:
      request_path: Path part of the request URL, already percent-decoded.
      config: Configuration defining the known source names.
      repo_types: Registered repository types.

    Returns:
      The plan, and the path of the requested file within the composite (possibly
      empty).

    Raises:
      MalformedPlan: if the path structure is wrong.
      UnknownSourceName: if a source spec names an unconfigured source.
      UnknownRepoType: if the trailing tag is not a registered repository type.
    """
    segments = request_path.split("/")
    if segments[0] == "":
        segments = segments[1:]
    if not segments or segments == [""]:
        raise MalformedPlan("empty path")

    sources = list[SourceSpec]()
    pos = 0
    while True:
        if pos >= len(segments):
            raise MalformedPlan("missing repository type")
        head = segments[pos]
        if not head:
            raise MalformedPlan("empty path segment")
        if head == SEPARATOR:
            raise MalformedPlan("empty source spec")

        if head in repo_types:
            # Whatever follows is a path inside the repository.
            repo_type = head
            file_path = "/".join(segments[pos + 1 :])
            break

        try:
            end = segments.index(SEPARATOR, pos)
        except ValueError:
            end = len(segments)
        group = segments[pos:end]
        if end == len(segments):
            if head in config.gitlabs or head in config.local_sources or (
                head in config.remote_sources
            ):
                raise MalformedPlan(f"missing repository type after {'/'.join(group)}")
            raise UnknownRepoType(f"unknown repository type {head!r}")

        sources.append(_parse_source(group, config))
        pos = end + 1

    if not sources:
        raise MalformedPlan("no sources given")

    return (Plan(tuple(sources), repo_type), file_path)
