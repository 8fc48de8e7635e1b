"""Sync command: mirror the working volume to every configured destination."""

import argparse
import json
import logging
from dataclasses import replace
from pathlib import Path
from typing import Optional

from ..__util__ import wait_until
from ..config import Config, ConfigurationError
from ..core.mirror import Mirror, choose_mirror
from ..core.orchestrator import SyncMode, SyncOrchestrator
from ..core.registry import Destination, is_destination_present, resolve_destinations
from ..core.report import SyncReport
from ..core.rotation import list_snapshots
from .common import init_logging, load_cli_config, setup_outputs

logger = logging.getLogger(__name__)

SYNC_REASONS = ("manual", "periodic", "mount", "unmount", "shutdown")


def build_orchestrator(
    config: Config,
    mirror: Optional[Mirror] = None,
    allow_empty_source: bool = False,
) -> SyncOrchestrator:
    """Create an orchestrator wired to the configured mirror tool."""
    gc = config.global_config
    return SyncOrchestrator(
        mirror=mirror or choose_mirror(gc.mirror_tool),
        source=gc.source,
        exclude_dirs=gc.exclude_dirs,
        exclude_files=gc.exclude_files,
        threads=gc.mirror_threads,
        timestamp_format=gc.timestamp_format,
        allow_empty_source=allow_empty_source,
    )


def wait_for_source(config: Config) -> bool:
    """Wait up to source_wait_seconds for the working volume to appear."""
    gc = config.global_config
    source = Path(gc.source)
    if source.is_dir():
        return True

    logger.info(
        "Waiting up to %ds for source volume %s ...", gc.source_wait_seconds, source
    )
    if wait_until(source.is_dir, gc.source_wait_seconds):
        return True
    logger.warning("Source volume %s did not appear", source)
    return False


def run_pass(
    config: Config,
    destinations: list[Destination],
    reason: str = "manual",
    mode: Optional[SyncMode] = None,
    timeout: Optional[float] = None,
    create_version: Optional[bool] = None,
    orchestrator: Optional[SyncOrchestrator] = None,
) -> SyncReport:
    """Run one sync pass with config defaults for anything not given."""
    gc = config.global_config
    if mode is None:
        mode = SyncMode.PARALLEL if gc.parallel else SyncMode.SEQUENTIAL
    if timeout is None:
        timeout = gc.sync_timeout_seconds
    if create_version is None:
        create_version = gc.create_versions

    wait_for_source(config)
    orchestrator = orchestrator or build_orchestrator(config)
    return orchestrator.run_sync(
        destinations,
        mode=mode,
        timeout=timeout,
        create_version=create_version,
        reason=reason,
    )


def execute_sync(args: argparse.Namespace) -> int:
    """Execute the sync command.

    Args:
        args: Parsed command line arguments

    Returns:
        Exit code (0 when enough destinations succeeded, 1 otherwise)
    """
    init_logging(args)

    config = load_cli_config(args)
    if config is None:
        return 1

    try:
        destinations = resolve_destinations(config)
        orchestrator = build_orchestrator(
            config, allow_empty_source=getattr(args, "allow_empty", False)
        )
    except ConfigurationError as e:
        logger.error("Configuration error: %s", e)
        return 1

    timeout = getattr(args, "timeout", None)
    if timeout is not None:
        # --timeout overrides every destination's configured deadline
        destinations = [replace(d, timeout=timeout) for d in destinations]

    if getattr(args, "dry_run", False):
        return _dry_run(config, destinations)

    setup_outputs(config)

    mode = None
    if getattr(args, "sequential", False):
        mode = SyncMode.SEQUENTIAL
    elif getattr(args, "parallel", False):
        mode = SyncMode.PARALLEL

    create_version = None
    if getattr(args, "no_version", False):
        create_version = False

    report = run_pass(
        config,
        destinations,
        reason=getattr(args, "reason", None) or "manual",
        mode=mode,
        timeout=timeout,
        create_version=create_version,
        orchestrator=orchestrator,
    )

    if getattr(args, "json", False):
        print(json.dumps(report.to_dict(), indent=2))

    min_successful = config.global_config.min_successful
    if report.meets_quorum(min_successful):
        return 0
    if report.success:
        logger.error(
            "Only %d of %d required destination(s) succeeded",
            report.succeeded,
            min_successful,
        )
    return 1


def _dry_run(config: Config, destinations: list[Destination]) -> int:
    """Show what would be done without making changes."""
    gc = config.global_config
    print("Dry run mode - showing what would be done:")
    print("")
    print(f"Source: {gc.source}")
    print(f"Mirror tool: {gc.mirror_tool} (threads: {gc.mirror_threads})")
    print(f"Mode: {'parallel' if gc.parallel else 'sequential'}")
    print("")

    for dest in destinations:
        present = is_destination_present(dest)
        print(f"Destination: {dest.name} (priority {dest.priority})")
        print(f"  Live mirror: {dest.live_mirror_path}")
        print(f"  Reachable: {'yes' if present else 'no, would be skipped'}")
        timeout = gc.sync_timeout_seconds if dest.timeout is None else dest.timeout
        print(f"  Timeout: {f'{timeout}s' if timeout > 0 else 'none'}")
        if gc.create_versions:
            existing = len(list_snapshots(dest, gc.timestamp_format)) if present else 0
            print(
                f"  Versions: {dest.versions_path} "
                f"(keep {dest.retention_count}, {existing} existing)"
            )
        print("")

    return 0
