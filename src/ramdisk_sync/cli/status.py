"""Status command: Show destination health and recent activity."""

import argparse
import logging
from pathlib import Path

from .. import __util__
from ..config import ConfigurationError
from ..core.registry import is_destination_present, resolve_destinations
from ..core.rotation import list_snapshots
from ..transaction import get_transaction_stats, read_transaction_log
from .common import init_logging, load_cli_config

logger = logging.getLogger(__name__)


def execute_status(args: argparse.Namespace) -> int:
    """Execute the status command.

    Shows reachability, live mirror size and version counts per destination,
    plus transaction statistics when a transaction log is configured.

    Args:
        args: Parsed command line arguments

    Returns:
        Exit code (0 if at least one destination is reachable)
    """
    init_logging(args)

    config = load_cli_config(args)
    if config is None:
        return 1
    gc = config.global_config

    try:
        destinations = resolve_destinations(config)
    except ConfigurationError as e:
        logger.error("Configuration error: %s", e)
        return 1

    print("ramdisk-sync Status")
    print("=" * 60)
    source_state = "present" if Path(gc.source).is_dir() else "missing"
    print(f"Source: {gc.source} ({source_state})")
    print(
        f"Destinations: {len(destinations)} enabled, "
        f"mode {'parallel' if gc.parallel else 'sequential'}, "
        f"interval {gc.sync_interval_minutes} min"
    )
    print("")

    reachable = 0
    for dest in destinations:
        print(f"Destination: {dest.name} (priority {dest.priority})")
        print(f"  Path: {dest.path}")
        if not is_destination_present(dest):
            print("  Status: not reachable")
            print("")
            continue

        reachable += 1
        mirror = dest.live_mirror_path
        if mirror.is_dir():
            size = __util__.format_size(__util__.dir_size(mirror))
            print(f"  Live mirror: {size}")
        else:
            print("  Live mirror: (not synced yet)")

        snapshots = list_snapshots(dest, gc.timestamp_format)
        print(f"  Versions: {len(snapshots)} (keep {dest.retention_count})")
        if snapshots:
            print(f"  Latest: {snapshots[-1].name}")
        print("")

    if gc.transaction_log:
        _print_transactions(
            gc.transaction_log,
            show_recent=getattr(args, "transactions", False),
            limit=getattr(args, "limit", 10),
        )

    print("=" * 60)
    if reachable == len(destinations):
        print("Overall: All destinations reachable")
    elif reachable:
        print(f"Overall: {reachable} of {len(destinations)} destinations reachable")
    else:
        print("Overall: No destination reachable")

    return 0 if reachable else 1


def _print_transactions(path: str, show_recent: bool, limit: int) -> None:
    stats = get_transaction_stats(path)
    syncs = stats["syncs"]
    dests = stats["destinations"]
    print("Activity:")
    print(f"  Last sync: {stats['last_sync'] or 'never'}")
    print(
        f"  Syncs: {syncs['completed']} completed, {syncs['partial']} partial, "
        f"{syncs['failed']} failed"
    )
    print(
        f"  Destinations: {dests['completed']} completed, {dests['failed']} failed, "
        f"{dests['timeout']} timed out, {dests['unreachable']} unreachable"
    )
    print("")

    if not show_recent:
        return

    print(f"Recent transactions (last {limit}):")
    for record in read_transaction_log(path, limit=limit):
        parts = [
            record.get("timestamp", "?")[:19],
            record.get("action", "?"),
            record.get("status", "?"),
        ]
        if "destination" in record:
            parts.append(record["destination"])
        if "snapshot" in record:
            parts.append(record["snapshot"])
        if "error" in record:
            parts.append(f"error: {record['error']}")
        print("  " + "  ".join(parts))
    print("")
