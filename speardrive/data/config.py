# Configuration file models
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
Data models and validation schemas for configuration files.
"""

import logging
import os
import os.path as path
import sys
import typing as T

import toml
from pydantic import BaseModel, Field, ValidationError, field_validator, model_validator
from pydantic_settings import BaseSettings, PydanticBaseSettingsSource, SettingsConfigDict

from speardrive.repogen import RepoType

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_DIR = "/etc/speardrive"
CONFIG_FILE_NAME = "speardrive.toml"
ENV_PREFIX = "SPEARDRIVE__"

SourceName: T.TypeAlias = T.Annotated[str, Field(pattern="^[a-zA-Z0-9][a-zA-Z0-9_.-]*$")]
"""
Name of a configured source, used as the first segment of a source spec in request
paths.  Cannot start with an underscore, those paths are reserved for the server.
"""


class LoggingConfig(BaseModel):
    """
    Common logging configuration.
    """

    debug: bool = Field(default=False)
    """
    If ``true``, enables logging the debug level.  This can be extremely verbose.
    """


class GitlabConfig(BaseModel):
    """
    A GitLab instance whose CI job artifacts can be used as sources.
    """

    api_key: str
    """
    Personal or project access token, sent as ``PRIVATE-TOKEN``.  Needs the
    ``read_api`` scope.
    """

    hostname: str
    """
    Hostname of the GitLab instance.  HTTPS is used, unless the value includes a URL
    scheme, in which case it is used verbatim as the base URL.
    """

    local_cache: str
    """
    Directory in which downloaded job artifacts are kept, as
    ``${local_cache}/${project}/-/${job_id}``.
    """

    def api_base_url(self) -> str:
        """Get the base URL of the GitLab v4 REST API on this instance."""
        base = self.hostname if "://" in self.hostname else f"https://{self.hostname}"
        return f"{base.rstrip('/')}/api/v4"


class LocalSourceConfig(BaseModel):
    """
    A directory on the local filesystem whose subdirectories can be used as sources.
    """

    root: str
    """
    Directory under which the requested subdirectories are looked up.  Never written
    to.
    """


class RemoteStaticConfig(BaseModel):
    """
    A static HTTP file tree whose subdirectories can be used as sources.  Each
    subdirectory must list its files in a ``list.txt``.
    """

    base_url: str
    """Base URL under which subdirectories are looked up."""

    local_cache: str
    """
    Directory in which downloaded subdirectories are kept, as
    ``${local_cache}/${dir}``.
    """

    max_parallel_downloads: int = Field(default=8, ge=1)
    """Maximum number of files fetched from this remote at once for one directory."""


class GeneratorConfig(BaseModel):
    """
    Configuration for a repository metadata generator.
    """

    command: list[str] | None = Field(default=None)
    """
    Command to run, without the repository directory (which is appended).  Defaults to a
    generator-specific tool looked up on ``PATH``.
    """


class SpeardriveConfig(BaseSettings):
    """
    Configuration model for the server.

    Values from the configuration file can be overridden by environment variables
    named ``SPEARDRIVE__`` followed by the path of the value, with ``__`` between
    components, e.g. ``SPEARDRIVE__GITLABS__MYSERVER__API_KEY``.  Environment
    variable names are case-insensitive.
    """

    model_config = SettingsConfigDict(
        env_prefix=ENV_PREFIX,
        env_nested_delimiter="__",
        extra="ignore",
    )

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        # The environment takes precedence over the configuration file.
        return (env_settings, init_settings)

    log: LoggingConfig = Field(default_factory=LoggingConfig)
    """
    Logger configuration.  See :py:class:`LoggingConfig`.
    """

    listen_addr: str = Field(default="127.0.0.1:4444")
    """
    Either ``host:port``, or ``unix:`` followed by the path of a UNIX socket.
    """

    composites_cache: str
    """
    The location where the server keeps generated composite repositories.
    """

    gitlabs: dict[SourceName, GitlabConfig] = Field(default_factory=dict)
    """GitLab instances, by name."""

    local_sources: dict[SourceName, LocalSourceConfig] = Field(default_factory=dict)
    """Local directory sources, by name."""

    remote_sources: dict[SourceName, RemoteStaticConfig] = Field(default_factory=dict)
    """Remote static sources, by name."""

    generators: dict[RepoType, GeneratorConfig] = Field(
        default_factory=lambda: {RepoType.RPM: GeneratorConfig()}
    )
    """
    Repository types that may be requested, mapped to their generator configuration.
    Defaults to just RPM, with the default tool.
    """

    @field_validator("listen_addr")
    @classmethod
    def _check_listen_addr(cls, value: str) -> str:
        if value.startswith("unix:"):
            if not value[len("unix:") :]:
                raise ValueError("empty UNIX socket path")
            return value
        (host, sep, port) = value.rpartition(":")
        if not sep or not host or not port.isdigit() or not 0 < int(port) < 65536:
            raise ValueError(f"{value!r} is neither host:port nor unix:path")
        return value

    @model_validator(mode="after")
    def _check_names(self) -> "SpeardriveConfig":
        seen = set[str]()
        for name in (*self.gitlabs, *self.local_sources, *self.remote_sources):
            if name in seen:
                raise ValueError(f"source name {name!r} is used more than once")
            if name in {repo_type.value for repo_type in RepoType}:
                raise ValueError(f"source name {name!r} collides with a repository type")
            seen.add(name)
        return self

    def get_path_host_port(self) -> T.Union[
        T.Tuple[str, None, None],
        T.Tuple[None, str, int],
    ]:
        if self.listen_addr.startswith("unix:"):
            return (self.listen_addr[len("unix:") :], None, None)
        (host, _, port) = self.listen_addr.rpartition(":")
        return (None, host.strip("[]"), int(port))


def example_config() -> SpeardriveConfig:
    """An example configuration, printed by ``speardrive example-conf``."""
    return SpeardriveConfig(
        listen_addr="127.0.0.1:4444",
        composites_cache="/storage/for/repo-composites",
        gitlabs={
            "myserver": GitlabConfig(
                api_key="SomeAPIKEYObtainedFromGitlab",
                hostname="git.myserver.com",
                local_cache="/storage/for/cached-job-artifacts",
            )
        },
        local_sources={"builds": LocalSourceConfig(root="/srv/builds")},
        remote_sources={
            "mirror": RemoteStaticConfig(
                base_url="https://mirror.example.com/pub",
                local_cache="/storage/for/cached-remote-files",
            )
        },
    )


def find_config_file(explicit: str | None = None) -> str:
    """
    Work out where the configuration lives.  In order of preference: ``explicit``,
    ``$SPEARDRIVE_CONFIG_PATH``, ``$SPEARDRIVE_CFG_DIR/speardrive.toml``, and finally
    ``/etc/speardrive/speardrive.toml``.
    """
    if explicit:
        return explicit
    if env_path := os.getenv("SPEARDRIVE_CONFIG_PATH"):
        return env_path
    config_dir = os.getenv("SPEARDRIVE_CFG_DIR") or DEFAULT_CONFIG_DIR
    return path.join(config_dir, CONFIG_FILE_NAME)


def load_and_validate_config[M: BaseModel](config_file: str, model: type[M]) -> M:
    """
    Validate and load a config file as the given model.
    Settings models also pick up their environment variable overrides.

    Args:
      config_file: Path of the file to load
      model: A Pydantic model by which to validate the loaded config

    Returns:
      A parsed config.

    Raises:
      SystemExit: if configuration parsing fails.  Exit code 1.
    """

    try:
        with open(config_file, "r") as config:
            return model(**toml.load(config))
    except (ValidationError, toml.TomlDecodeError):
        logger.exception("failed to parse config %s", config_file)
        sys.exit(1)
    except Exception:
        logger.exception("failed to load config %s", config_file)
        sys.exit(1)
