# Server entrypoint.
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
The speardrive server: command line handling, and application setup.
"""

import argparse
import logging
import os
import typing as T

import aiohttp
import toml
from aiohttp import web

import speardrive.data.config as config
import speardrive.utils.argparse as sdu_argparse
import speardrive.utils.logging as sdu_logging
from speardrive.providers import create_providers
from speardrive.repogen import create_generators

from .state import SERVER_STATE_KEY, ProviderFactory, ServerState

if T.TYPE_CHECKING:
    from speardrive.repogen import RepositoryGenerator

logger = logging.getLogger(__name__)

UPSTREAM_TIMEOUT = aiohttp.ClientTimeout(total=None, sock_connect=30, sock_read=300)
"""Timeouts for upstream requests.  There is no total limit, artifacts can be large."""


def create_app(
    server_config: config.SpeardriveConfig,
    *,
    make_providers: ProviderFactory | None = None,
    generators: T.Mapping[str, "RepositoryGenerator"] | None = None,
) -> web.Application:
    """
    Create the server application.

    Args:
      server_config: Server configuration.
      make_providers: Override for the source providers.  By default, providers for the
                      sources in ``server_config`` are used.
      generators: Override for the repository generators.  By default, the generators
                  enabled in ``server_config`` are used.
    """
    app = web.Application()

    async def _server_state_ctx(app: web.Application) -> T.AsyncIterator[None]:
        async with aiohttp.ClientSession(timeout=UPSTREAM_TIMEOUT) as client:
            state = ServerState(
                server_config,
                make_providers
                or (lambda artifacts: create_providers(server_config, artifacts, client)),
                generators if generators is not None else create_generators(server_config),
            )
            os.makedirs(server_config.composites_cache, exist_ok=True)
            state.composites.sweep_staging()
            app[SERVER_STATE_KEY] = state
            yield

    app.cleanup_ctx.append(_server_state_ctx)

    # Register route tables.  The repository route matches everything, so it goes last.
    from . import status_routes

    app.add_routes(status_routes.blueprint)

    from . import repo_routes

    app.add_routes(repo_routes.blueprint)

    return app


def _dump_config(server_config: config.SpeardriveConfig) -> str:
    return toml.dumps(server_config.model_dump(mode="json", exclude_none=True))


def create_argparser() -> argparse.ArgumentParser:
    parser = sdu_argparse.create_root_parser("On-demand package repository compositor")
    parser.add_argument(
        "-c",
        "--config-path",
        help="configuration file (default: $SPEARDRIVE_CONFIG_PATH, or "
        "$SPEARDRIVE_CFG_DIR/speardrive.toml)",
    )
    parser.add_argument(
        "--dump-config", action="store_true", help="log the effective configuration on startup"
    )
    parser.add_argument("--debug", action="store_true", help="enable debug logging")
    subcommands = parser.add_subparsers(dest="command", required=True)
    subcommands.add_parser("serve", help="serve composite repositories")
    subcommands.add_parser("example-conf", help="print an example configuration file")
    return parser


def main(argv: list[str] | None = None) -> None:
    args = create_argparser().parse_args(argv)

    if args.command == "example-conf":
        print(_dump_config(config.example_config()), end="")
        return

    server_config = config.load_and_validate_config(
        config.find_config_file(args.config_path), config.SpeardriveConfig
    )
    sdu_logging.apply_logging_config(server_config.log, force_debug=args.debug)
    if args.dump_config:
        logger.info("configuration:\n%s", _dump_config(server_config))

    (path, host, port) = server_config.get_path_host_port()
    logger.info("waiting for requests on %s", server_config.listen_addr)

    web.run_app(
        create_app(server_config),
        path=path,
        host=host,
        port=port,
        # Used only for some silly banner.
        print=None,
    )
