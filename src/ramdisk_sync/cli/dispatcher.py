"""CLI dispatcher: argument parsing and routing to command modules."""

import argparse
import sys
from typing import Callable

from .common import add_verbosity_args, create_global_parser
from .sync import SYNC_REASONS


def create_subcommand_parser() -> argparse.ArgumentParser:
    """Create the main argument parser with subcommands."""
    parser = argparse.ArgumentParser(
        prog="ramdisk-sync",
        description="Mirror a volatile working volume to several backup destinations",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )

    add_verbosity_args(parser)

    parser.add_argument(
        "-V",
        "--version",
        dest="show_version",
        action="store_true",
        help="Show version and exit",
    )

    parser.add_argument(
        "-c",
        "--config",
        metavar="FILE",
        help="Path to configuration file",
    )

    # Lets -v, -q and --debug follow the command too
    global_parser = create_global_parser()

    subparsers = parser.add_subparsers(
        dest="command",
        title="commands",
        description="Available commands (use 'command --help' for details)",
    )

    # sync command
    sync_parser = subparsers.add_parser(
        "sync",
        parents=[global_parser],
        help="Run one sync pass to all destinations",
        description="Mirror the source volume and rotate version snapshots",
    )
    sync_parser.add_argument(
        "--reason",
        choices=SYNC_REASONS,
        default="manual",
        help="What triggered this sync (default: manual)",
    )
    mode_group = sync_parser.add_mutually_exclusive_group()
    mode_group.add_argument(
        "--sequential",
        action="store_true",
        help="Sync destinations one at a time (overrides config)",
    )
    mode_group.add_argument(
        "--parallel",
        action="store_true",
        help="Sync all destinations at once (overrides config)",
    )
    sync_parser.add_argument(
        "--no-version",
        action="store_true",
        help="Do not create a version snapshot after syncing",
    )
    sync_parser.add_argument(
        "--timeout",
        type=int,
        metavar="SECONDS",
        help="Per destination timeout, 0 for none (overrides config)",
    )
    sync_parser.add_argument(
        "--allow-empty",
        action="store_true",
        help="Mirror even if the source volume is empty",
    )
    sync_parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Show what would be done without making changes",
    )
    sync_parser.add_argument(
        "--json",
        action="store_true",
        help="Print the sync report as JSON",
    )

    # restore command
    restore_parser = subparsers.add_parser(
        "restore",
        parents=[global_parser],
        help="Restore the working volume from a backup",
        description=(
            "Restore from the first reachable destination in priority order "
            "that has the requested backup"
        ),
    )
    restore_parser.add_argument(
        "--from",
        dest="from_destination",
        metavar="NAME",
        help="Prefer this destination (falls back to all if unknown)",
    )
    version_group = restore_parser.add_mutually_exclusive_group()
    version_group.add_argument(
        "--version",
        metavar="TIMESTAMP",
        help="Restore this exact version snapshot",
    )
    version_group.add_argument(
        "--latest",
        action="store_true",
        help="Restore the most recent version snapshot instead of the live mirror",
    )
    restore_parser.add_argument(
        "--target",
        metavar="PATH",
        help="Restore into PATH instead of the configured source",
    )
    restore_parser.add_argument(
        "--list",
        action="store_true",
        help="List available versions per destination and exit",
    )
    restore_parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Show what would be restored without copying",
    )

    # list command
    list_parser = subparsers.add_parser(
        "list",
        parents=[global_parser],
        help="Show version snapshots",
        description="List version snapshots of every destination",
    )
    list_parser.add_argument(
        "--sizes",
        action="store_true",
        help="Compute the size of each version",
    )
    list_parser.add_argument(
        "--json",
        action="store_true",
        help="Output in JSON format",
    )

    # status command
    status_parser = subparsers.add_parser(
        "status",
        parents=[global_parser],
        help="Show destination status and statistics",
        description="Display reachability, mirror sizes, version counts and activity",
    )
    status_parser.add_argument(
        "-t",
        "--transactions",
        action="store_true",
        help="Show recent transaction history",
    )
    status_parser.add_argument(
        "-n",
        "--limit",
        type=int,
        default=10,
        metavar="N",
        help="Number of transactions to show (default: 10)",
    )

    # config command with subcommands
    config_parser = subparsers.add_parser(
        "config",
        parents=[global_parser],
        help="Configuration management",
        description="Validate or initialize configuration",
    )
    config_subs = config_parser.add_subparsers(dest="config_action")

    config_subs.add_parser(
        "validate",
        parents=[global_parser],
        help="Validate configuration file",
    )

    init_parser = config_subs.add_parser(
        "init",
        parents=[global_parser],
        help="Generate example configuration",
    )
    init_parser.add_argument(
        "-o",
        "--output",
        metavar="FILE",
        help="Output file (default: stdout)",
    )

    # watch command
    watch_parser = subparsers.add_parser(
        "watch",
        parents=[global_parser],
        help="Sync periodically until stopped",
        description=(
            "Sync every sync_interval_minutes; on SIGTERM or Ctrl+C run a "
            "final shutdown sync and exit"
        ),
    )
    watch_parser.add_argument(
        "--once",
        action="store_true",
        help="Run a single periodic pass and exit",
    )

    return parser


def run_subcommand(args: argparse.Namespace) -> int:
    """Run the specified subcommand.

    Args:
        args: Parsed arguments

    Returns:
        Exit code
    """
    from .. import __version__

    if args.show_version:
        print(f"ramdisk-sync {__version__}")
        return 0

    if not args.command:
        print("No command specified. Use --help for usage information.")
        return 1

    handlers: dict[str, Callable] = {
        "sync": cmd_sync,
        "restore": cmd_restore,
        "list": cmd_list,
        "status": cmd_status,
        "config": cmd_config,
        "watch": cmd_watch,
    }

    handler = handlers.get(args.command)
    if handler:
        return handler(args)
    else:
        print(f"Unknown command: {args.command}")
        return 1


def cmd_sync(args: argparse.Namespace) -> int:
    """Execute sync command."""
    from .sync import execute_sync

    return execute_sync(args)


def cmd_restore(args: argparse.Namespace) -> int:
    """Execute restore command."""
    from .restore import execute_restore

    return execute_restore(args)


def cmd_list(args: argparse.Namespace) -> int:
    """Execute list command."""
    from .list_cmd import execute_list

    return execute_list(args)


def cmd_status(args: argparse.Namespace) -> int:
    """Execute status command."""
    from .status import execute_status

    return execute_status(args)


def cmd_config(args: argparse.Namespace) -> int:
    """Execute config command."""
    from .config_cmd import execute_config

    return execute_config(args)


def cmd_watch(args: argparse.Namespace) -> int:
    """Execute watch command."""
    from .watch import execute_watch

    return execute_watch(args)


def main(argv: list[str] | None = None) -> int:
    """Main entry point for ramdisk-sync CLI.

    Args:
        argv: Command line arguments (defaults to sys.argv[1:])

    Returns:
        Exit code
    """
    if argv is None:
        argv = sys.argv[1:]

    parser = create_subcommand_parser()
    args = parser.parse_args(argv)

    return run_subcommand(args)
