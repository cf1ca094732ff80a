# Error taxonomy.
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
Exceptions raised while parsing plans and building composites.

Every error carries the HTTP status it is reported to clients with.  None of these
are fatal to the server; each is scoped to the request or build that raised it.
"""

import typing as T


class SpeardriveError(Exception):
    """Base class of all errors reported to clients."""

    http_status: T.ClassVar[int] = 500
    """HTTP status code used when reporting this error to a client."""


# Client input errors.  Raised before any cache interaction.
class PlanError(SpeardriveError):
    """The request path does not describe a valid plan."""

    http_status = 400


class MalformedPlan(PlanError):
    """Segment count, arity or segment contents are inconsistent."""


class UnknownSourceName(PlanError):
    """A source spec names a source that is not configured."""


class UnknownRepoType(PlanError):
    """The trailing repository type tag matches no registered generator."""


# Not found.
class NotFoundError(SpeardriveError):
    http_status = 404


class PathNotFound(NotFoundError):
    """A local source directory does not exist."""


class ArtifactNotFound(NotFoundError):
    """An upstream reports that the requested artifact set does not exist."""


class FileNotFoundInRepo(NotFoundError):
    """The composite was built, but does not contain the requested file."""


# Build-time failures caused by upstreams.
class UpstreamError(SpeardriveError):
    http_status = 502


class UpstreamUnavailable(UpstreamError):
    """An upstream could not be reached, or it returned an error."""


class ManifestInvalid(UpstreamError):
    """A remote ``list.txt`` manifest could not be parsed."""


class ExtractionFailed(UpstreamError):
    """A downloaded artifact archive is corrupt."""


# Build-time failures caused by the repository generator.
class GeneratorError(SpeardriveError):
    http_status = 500


class GeneratorUnavailable(GeneratorError):
    """The generator tool is not installed."""


class GenerationFailed(GeneratorError):
    """The generator tool ran, but failed."""
