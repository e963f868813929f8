"""Command-line interface to the `.EntityServer`.

This module provides a command-line interface that is provided as
``propbind-server``. It exposes various functions that may be useful to
projects based on propbind, if they wish to expose their own CLI.

For example, to serve a knob and a dial showing its position as a
percentage:

.. code-block:: bash

    propbind-server --config entities.json --port 5000
"""

from argparse import ArgumentParser, Namespace
import logging
import sys
from typing import Optional

from pydantic import ValidationError
import uvicorn

from . import EntityServer
from .config_model import EntityServerConfig, EntityImportFailure


def get_default_parser() -> ArgumentParser:
    """Return the default CLI parser for propbind.

    This can be used to add more arguments, for custom CLIs that make use of
    propbind.

    :return: an `argparse.ArgumentParser` set up with the options for
        ``propbind-server``.
    """
    parser = ArgumentParser()
    parser.add_argument("-c", "--config", type=str, help="Path to configuration file")
    parser.add_argument("-j", "--json", type=str, help="Configuration as JSON string")
    parser.add_argument(
        "--host", type=str, default="127.0.0.1", help="Bind socket to this host"
    )
    parser.add_argument(
        "--port",
        type=int,
        default=5000,
        help="Bind socket to this port. If 0, an available port will be picked.",
    )
    parser.add_argument(
        "--log-level",
        type=str.upper,
        default="INFO",
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        help="Logging level for propbind messages.",
    )
    return parser


def parse_args(argv: Optional[list[str]] = None) -> Namespace:
    r"""Process command line arguments for the server.

    The arguments are defined in `.get_default_parser`\ .

    :param argv: command line arguments (defaults to arguments supplied
        to the current command).

    :return: a namespace with the extracted options.
    """
    parser = get_default_parser()
    return parser.parse_args(argv)


def config_from_args(args: Namespace) -> EntityServerConfig:
    """Load the configuration from a supplied file or JSON string.

    :param args: Parsed arguments from `.parse_args`.

    :return: the server configuration.

    :raise FileNotFoundError: if the configuration file specified is missing.
    :raise RuntimeError: if neither or both of a config file and a string
        are provided.
    """
    if args.config:
        if args.json:
            raise RuntimeError("Can't use both --config and --json simultaneously.")
        try:
            with open(args.config) as f:
                return EntityServerConfig.model_validate_json(f.read())
        except FileNotFoundError as e:
            raise FileNotFoundError(
                f"Could not find configuration file {args.config}"
            ) from e
    elif args.json:
        return EntityServerConfig.model_validate_json(args.json)
    else:
        raise RuntimeError("No configuration (or empty configuration) provided")


def serve_from_cli(
    argv: Optional[list[str]] = None, dry_run: bool = False
) -> EntityServer | None:
    r"""Start the server from the command line.

    This function will parse command line arguments, load configuration,
    set up a server, and start it. It calls `.parse_args`,
    `.config_from_args` and `.EntityServer.from_config` to get a server, then
    starts `uvicorn` to serve on the specified host and port.

    :param argv: command line arguments (defaults to arguments supplied
        to the current command).
    :param dry_run: may be set to ``True`` to terminate after the server
        has been created. This checks the entities can be created and bound,
        but does not start `uvicorn`\ .

    :return: the `.EntityServer` instance created, if ``dry_run`` is ``True``.
    """
    args = parse_args(argv)
    logging.basicConfig(level=args.log_level)
    try:
        config = config_from_args(args)
        server = EntityServer.from_config(config)
    except (ValidationError, EntityImportFailure) as e:
        print(f"Error reading propbind configuration:\n{e}")
        sys.exit(3)
    if dry_run:
        return server
    uvicorn.run(server.app, host=args.host, port=args.port)
    return None  # This is required as we sometimes return the server
