"""List command: Show version snapshots per destination."""

import argparse
import json
import logging

from .. import __util__
from ..config import ConfigurationError
from ..core.registry import is_destination_present, resolve_destinations
from ..core.rotation import list_snapshots
from .common import init_logging, load_cli_config

logger = logging.getLogger(__name__)


def execute_list(args: argparse.Namespace) -> int:
    """Execute the list command.

    Args:
        args: Parsed command line arguments

    Returns:
        Exit code
    """
    init_logging(args)

    config = load_cli_config(args)
    if config is None:
        return 1

    try:
        destinations = resolve_destinations(config)
    except ConfigurationError as e:
        logger.error("Configuration error: %s", e)
        return 1

    fmt = config.global_config.timestamp_format
    with_sizes = getattr(args, "sizes", False)
    listing = []
    for dest in destinations:
        entry = {
            "destination": dest.name,
            "path": str(dest.path),
            "reachable": is_destination_present(dest),
            "versions": [],
        }
        if entry["reachable"]:
            # Newest first
            for snap in reversed(list_snapshots(dest, fmt, with_sizes=with_sizes)):
                entry["versions"].append(
                    {
                        "name": snap.name,
                        "timestamp": snap.timestamp.isoformat(),
                        "size_bytes": snap.size_bytes,
                    }
                )
        listing.append(entry)

    if getattr(args, "json", False):
        print(json.dumps(listing, indent=2))
        return 0

    for entry in listing:
        print(f"{entry['destination']}: {entry['path']}")
        if not entry["reachable"]:
            print("  (not reachable)")
        elif not entry["versions"]:
            print("  (no versions)")
        for version in entry["versions"]:
            size = ""
            if with_sizes:
                size = f"  {__util__.format_size(version['size_bytes'])}"
            print(f"  {version['name']}{size}")
        print("")

    return 0
