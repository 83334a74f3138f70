r"""Command-line interface, provided as ``qdb-sync``.

This builds a `.RestTransport`\ , a `.Database` and an `.Application` with a
`.DatabaseWorker` from a `.ClientConfig`\ , then runs until interrupted.
Projects that add their own workers can reuse `.get_default_parser`,
`.config_from_args` and `.build_application`, then add workers before calling
`.Application.run`\ .

Configuration may be given as a JSON file (``--config``) or string
(``--json``). The remaining options override individual settings.
"""

from argparse import ArgumentParser, Namespace
import signal
import sys
from typing import Any, Optional

from pydantic import ValidationError

from .application import Application, ApplicationContext
from .config import ClientConfig
from .database import Database
from .logs import configure_logger
from .rest import RestTransport
from .workers import DatabaseWorker


def get_default_parser() -> ArgumentParser:
    """Return the default CLI parser for qdb-sync.

    :return: an `argparse.ArgumentParser` set up with the options for
        ``qdb-sync``.
    """
    parser = ArgumentParser(prog="qdb-sync")
    parser.add_argument("-c", "--config", type=str, help="Path to configuration file")
    parser.add_argument("-j", "--json", type=str, help="Configuration as JSON string")
    parser.add_argument("--url", type=str, help="Base URL of the database service")
    parser.add_argument(
        "--interval", type=int, help="Time between scheduler ticks, in milliseconds"
    )
    parser.add_argument("--log-level", type=str, help="Logging level, e.g. INFO")
    return parser


def parse_args(argv: Optional[list[str]] = None) -> Namespace:
    """Process command line arguments.

    :param argv: command line arguments (defaults to arguments supplied
        to the current command).

    :return: a namespace with the extracted options.
    """
    parser = get_default_parser()
    return parser.parse_args(argv)


def config_from_args(args: Namespace) -> ClientConfig:
    """Load the configuration from a file or JSON string, then apply overrides.

    If neither ``--config`` nor ``--json`` is given, the defaults are used.

    :param args: Parsed arguments from `.parse_args`.

    :return: the client configuration.

    :raise FileNotFoundError: if the configuration file specified is missing.
    :raise RuntimeError: if both a file and a string are provided.
    """
    if args.config and args.json:
        raise RuntimeError("Can't use both --config and --json simultaneously.")
    if args.config:
        try:
            with open(args.config) as f:
                config = ClientConfig.model_validate_json(f.read())
        except FileNotFoundError as e:
            raise FileNotFoundError(
                f"Could not find configuration file {args.config}"
            ) from e
    elif args.json:
        config = ClientConfig.model_validate_json(args.json)
    else:
        config = ClientConfig()

    overrides: dict[str, Any] = {}
    if args.url is not None:
        overrides["url"] = args.url
    if args.interval is not None:
        overrides["loop_interval_ms"] = args.interval
    if args.log_level is not None:
        overrides["log_level"] = args.log_level
    if overrides:
        config = ClientConfig.model_validate({**config.model_dump(), **overrides})
    return config


def build_application(config: ClientConfig) -> Application:
    """Create an application that keeps a database connection alive.

    :param config: the client configuration.

    :return: an `.Application` with a `.DatabaseWorker` added. It has not
        been started.
    """
    transport = RestTransport(
        config.url, auth_attempts=config.auth_attempts, timeout=config.timeout
    )
    ctx = ApplicationContext(database=Database(transport))
    app = Application(ctx, loop_interval=config.loop_interval)
    app.add_worker(DatabaseWorker())
    return app


def run_from_cli(
    argv: Optional[list[str]] = None, dry_run: bool = False
) -> Application | None:
    r"""Start qdb-sync from the command line.

    This parses arguments, configures logging, builds the application and
    runs it until interrupted with Ctrl+C.

    :param argv: command line arguments (defaults to arguments supplied
        to the current command).
    :param dry_run: may be set to ``True`` to return the application
        without running it.

    :return: the `.Application` created, if ``dry_run`` is ``True``\ .
    """
    args = parse_args(argv)
    try:
        config = config_from_args(args)
    except ValidationError as e:
        print(f"Error reading qdb-sync configuration:\n{e}")
        sys.exit(3)
    logger = configure_logger(config.log_level)
    app = build_application(config)
    if dry_run:
        return app

    def handle_interrupt(signum: int, frame: Any) -> None:
        logger.info("Interrupted, quitting after this tick")
        app.request_quit()

    signal.signal(signal.SIGINT, handle_interrupt)
    app.run()
    return None
