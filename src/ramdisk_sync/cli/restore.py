"""Restore command: bring a backup back onto the working volume."""

import argparse
import logging
import time

from .. import __util__
from ..config import ConfigurationError
from ..core.mirror import choose_mirror
from ..core.registry import resolve_destinations
from ..core.resolver import (
    NotFoundError,
    RestoreOptions,
    list_available_snapshots,
    resolve_restore_source,
)
from ..core.restore import RestoreError, restore_volume
from .common import init_logging, load_cli_config, setup_outputs
from .sync import wait_for_source

logger = logging.getLogger(__name__)


def execute_restore(args: argparse.Namespace) -> int:
    """Execute the restore command.

    Args:
        args: Parsed command line arguments

    Returns:
        Exit code (0 for success, non-zero for failure)
    """
    init_logging(args)

    config = load_cli_config(args)
    if config is None:
        return 1
    gc = config.global_config

    try:
        destinations = resolve_destinations(config)
        mirror = choose_mirror(gc.mirror_tool)
    except ConfigurationError as e:
        logger.error("Configuration error: %s", e)
        return 1

    if getattr(args, "list", False):
        _print_available(
            list_available_snapshots(destinations, timestamp_format=gc.timestamp_format)
        )
        return 0

    setup_outputs(config)

    options = RestoreOptions(
        destination_name=getattr(args, "from_destination", None),
        version=getattr(args, "version", None),
        latest_version=getattr(args, "latest", False),
    )
    try:
        source = resolve_restore_source(
            destinations, options, timestamp_format=gc.timestamp_format
        )
    except NotFoundError as e:
        logger.error("%s", e)
        _print_available(e.available)
        return 1

    target = getattr(args, "target", None)
    if not target:
        target = gc.source
        wait_for_source(config)

    logger.info(__util__.log_heading(f"Restore started at {time.ctime()}"))
    try:
        restore_volume(
            source,
            target,
            mirror,
            exclude_dirs=gc.exclude_dirs,
            exclude_files=gc.exclude_files,
            threads=gc.mirror_threads,
            dry_run=getattr(args, "dry_run", False),
        )
    except RestoreError as e:
        logger.error("%s", e)
        return 1

    logger.info(__util__.log_heading(f"Restore finished at {time.ctime()}"))
    return 0


def _print_available(available: dict[str, list[str]]) -> None:
    """Print known version snapshots per reachable destination."""
    if not available:
        print("No reachable destinations.")
        return

    print("Available versions:")
    for name, versions in available.items():
        print(f"  {name}:")
        if not versions:
            print("    (no versions)")
        for version in versions:
            print(f"    {version}")
