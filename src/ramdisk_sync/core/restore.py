"""Core restore operations: copy a resolved backup back onto the working volume.

Used after the volatile volume was recreated empty (reboot, crash) or to roll
the volume back to an older version snapshot.
"""

import logging
import time
from pathlib import Path
from typing import TYPE_CHECKING, Optional, Sequence

from .. import __util__
from ..transaction import log_transaction
from .lease import DestinationLease, LeaseBusy
from .mirror import Mirror, MirrorError, MirrorResult

if TYPE_CHECKING:
    from .resolver import RestoreSource

logger = logging.getLogger(__name__)


class RestoreError(Exception):
    """Error during restore operation."""

    pass


def validate_restore_target(target: Path | str, source_path: Path | str) -> Path:
    """Check that ``target`` can receive a restore from ``source_path``.

    Raises:
        RestoreError: If the target is unusable or overlaps the source
    """
    target = Path(target).resolve()
    source_path = Path(source_path).resolve()

    if target == source_path or source_path in target.parents:
        raise RestoreError(
            f"Restore target {target} lies inside the backup {source_path}"
        )
    if target in source_path.parents:
        raise RestoreError(
            f"Backup {source_path} lies inside the restore target {target}"
        )
    if target.exists() and not target.is_dir():
        raise RestoreError(f"Restore target {target} is not a directory")
    return target


def restore_volume(
    source: "RestoreSource",
    target: Path | str,
    mirror: Mirror,
    exclude_dirs: Sequence[str] = (),
    exclude_files: Sequence[str] = (),
    threads: Optional[int] = None,
    dry_run: bool = False,
) -> Optional[MirrorResult]:
    """Mirror a resolved backup source onto the working volume.

    The source destination's lease is held for the whole copy; a sync pass
    reaching that destination meanwhile fails it as busy.

    Args:
        source: Result of resolve_restore_source()
        target: The working volume to restore into
        mirror: Mirror adapter
        exclude_dirs: Directory names passed through to the mirror tool
        exclude_files: File patterns passed through to the mirror tool
        threads: Parallelism hint for the mirror tool
        dry_run: Only log what would be restored

    Returns:
        MirrorResult of the copy, or None for a dry run

    Raises:
        RestoreError: If the target is unusable, the source destination is
            busy or the copy failed
    """
    target = validate_restore_target(target, source.path)
    label = source.version or "live mirror"

    logger.info(
        "Restoring %s (%s) from '%s' into %s",
        source.path,
        label,
        source.destination_name,
        target,
    )
    logger.info(
        "  Backup size: %s, last modified %s",
        __util__.format_size(source.size_bytes),
        source.last_modified.strftime("%Y-%m-%d %H:%M:%S"),
    )

    if dry_run:
        logger.info("Dry run: nothing copied")
        return None

    start = time.monotonic()
    lease = None
    if source.destination is not None:
        lease = DestinationLease(source.destination)
    try:
        if lease is not None:
            lease.acquire()
        result = mirror.mirror(
            source.path, target, exclude_dirs, exclude_files, threads
        )
    except (LeaseBusy, MirrorError) as e:
        error = str(e)
    else:
        error = None if result.success else (result.detail or result.exit_class.value)
    finally:
        if lease is not None:
            lease.release()

    duration = time.monotonic() - start
    if error is not None:
        log_transaction(
            action="restore",
            status="failed",
            destination=source.destination_name,
            source=str(source.path),
            snapshot=source.version,
            duration_seconds=duration,
            error=error,
            details={"target": str(target)},
        )
        logger.error("Restore from '%s' failed: %s", source.destination_name, error)
        raise RestoreError(
            f"Restore from '{source.destination_name}' failed: {error}"
        )

    log_transaction(
        action="restore",
        status="completed",
        destination=source.destination_name,
        source=str(source.path),
        snapshot=source.version,
        size_bytes=result.resulting_size_bytes,
        duration_seconds=duration,
        details={"target": str(target), "exit_class": result.exit_class.value},
    )
    logger.info(
        "Restored %s into %s (%.1fs, %s)",
        label,
        target,
        duration,
        __util__.format_size(result.resulting_size_bytes),
    )
    if result.detail:
        logger.warning("Restore finished with warnings: %s", result.detail)
    return result
