"""Shared CLI utilities and argument parsers."""

import argparse
import logging

from ..__logger__ import add_file_handler, create_logger
from ..config import Config, ConfigurationError, find_config_file, load_config
from ..transaction import set_transaction_log

logger = logging.getLogger(__name__)


def create_global_parser() -> argparse.ArgumentParser:
    """Create a parser with global options that can be used as a parent.

    Options left off the command line are not set at all, so a flag given
    before the command survives the subcommand's parse.
    """
    parser = argparse.ArgumentParser(add_help=False)
    add_verbosity_args(parser, suppress_defaults=True)
    return parser


def add_verbosity_args(
    parser: argparse.ArgumentParser, suppress_defaults: bool = False
) -> None:
    """Add verbosity-related arguments to a parser."""
    default = argparse.SUPPRESS if suppress_defaults else False
    group = parser.add_argument_group("Output options")
    group.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        default=default,
        help="Enable verbose output",
    )
    group.add_argument(
        "-q",
        "--quiet",
        action="store_true",
        default=default,
        help="Suppress non-essential output",
    )
    group.add_argument(
        "--debug",
        action="store_true",
        default=default,
        help="Enable debug output",
    )


def get_log_level(args: argparse.Namespace) -> str:
    """Determine log level from parsed arguments.

    Args:
        args: Parsed command line arguments

    Returns:
        Log level string (DEBUG, INFO, WARNING)
    """
    if getattr(args, "debug", False):
        return "DEBUG"
    elif getattr(args, "quiet", False):
        return "WARNING"
    elif getattr(args, "verbose", False):
        return "DEBUG"
    else:
        return "INFO"


def load_cli_config(args: argparse.Namespace) -> Config | None:
    """Find and load the configuration, reporting problems to the user.

    Returns:
        The loaded Config, or None if no usable configuration was found
    """
    try:
        config_path = find_config_file(getattr(args, "config", None))
        if config_path is None:
            print("No configuration file found.")
            print("Create one with: ramdisk-sync config init -o FILE")
            return None

        logger.debug("Loading configuration from: %s", config_path)
        config, warnings = load_config(config_path)
    except ConfigurationError as e:
        logger.error("Configuration error: %s", e)
        return None

    for warning in warnings:
        logger.warning("Config: %s", warning)
    return config


def setup_outputs(config: Config) -> None:
    """Attach the optional log file and transaction log from the config."""
    gc = config.global_config
    if gc.log_file:
        try:
            add_file_handler(gc.log_file)
        except OSError as e:
            logger.warning("Cannot open log file %s: %s", gc.log_file, e)
    if gc.transaction_log:
        try:
            set_transaction_log(gc.transaction_log)
        except OSError as e:
            logger.warning(
                "Cannot open transaction log %s: %s", gc.transaction_log, e
            )


def init_logging(args: argparse.Namespace) -> None:
    """Set up console logging from the verbosity flags."""
    create_logger(get_log_level(args))
