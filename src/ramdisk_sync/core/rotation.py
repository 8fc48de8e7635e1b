"""Snapshot rotation: timestamped copies of a destination's live mirror.

Layout below a destination root::

    <root>/current/                  live mirror
    <root>/versions/20260101-120000  version snapshot
    <root>/versions/.partial-...     copy in progress, never listed

Snapshot names are produced with the configured timestamp format, so a
plain name sort is a chronological sort. Same-second collisions get a
``_01``, ``_02`` ... suffix, which still sorts after the bare name.
"""

import logging
import re
import shutil
import time
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Callable, Optional

from .. import __util__
from ..transaction import log_transaction
from .registry import Destination

logger = logging.getLogger(__name__)

DEFAULT_TIMESTAMP_FORMAT = "%Y%m%d-%H%M%S"
PARTIAL_PREFIX = ".partial-"

_SUFFIX_RE = re.compile(r"^(?P<stamp>.+?)(?:_(?P<seq>\d{2,}))?$")


class RotationError(Exception):
    """A version snapshot could not be created."""

    pass


@dataclass(frozen=True)
class VersionSnapshot:
    """An immutable, timestamped copy of a live mirror."""

    destination_name: str
    name: str
    path: Path
    timestamp: datetime
    size_bytes: Optional[int] = None

    def __str__(self) -> str:
        return f"{self.destination_name}:{self.name}"


def parse_snapshot_name(
    name: str, timestamp_format: str = DEFAULT_TIMESTAMP_FORMAT
) -> Optional[datetime]:
    """Return the timestamp encoded in a snapshot name, or None."""
    if name.startswith("."):
        return None
    try:
        return datetime.strptime(name, timestamp_format)
    except ValueError:
        pass
    match = _SUFFIX_RE.match(name)
    if match and match.group("seq"):
        try:
            return datetime.strptime(match.group("stamp"), timestamp_format)
        except ValueError:
            return None
    return None


def list_snapshots(
    destination: Destination,
    timestamp_format: str = DEFAULT_TIMESTAMP_FORMAT,
    with_sizes: bool = False,
) -> list[VersionSnapshot]:
    """List the version snapshots of a destination, oldest first.

    Directories whose names do not parse as timestamps are ignored.
    """
    versions = destination.versions_path
    if not versions.is_dir():
        return []

    snapshots = []
    for entry in versions.iterdir():
        if not entry.is_dir():
            continue
        stamp = parse_snapshot_name(entry.name, timestamp_format)
        if stamp is None:
            continue
        snapshots.append(
            VersionSnapshot(
                destination_name=destination.name,
                name=entry.name,
                path=entry,
                timestamp=stamp,
                size_bytes=__util__.dir_size(entry) if with_sizes else None,
            )
        )

    snapshots.sort(key=lambda s: s.name)
    return snapshots


def _unique_name(versions: Path, base: str) -> str:
    name = base
    seq = 0
    while (versions / name).exists():
        seq += 1
        name = f"{base}_{seq:02d}"
    return name


def rotate(
    destination: Destination,
    live_mirror_path: Path,
    timestamp_format: str = DEFAULT_TIMESTAMP_FORMAT,
    clock: Optional[Callable[[], datetime]] = None,
) -> VersionSnapshot:
    """Snapshot the live mirror, then prune beyond the retention count.

    Must only be called right after a successful sync of this destination,
    while its lease is held.

    Args:
        destination: Destination owning the live mirror
        live_mirror_path: The freshly synced live mirror
        timestamp_format: strftime format used for the snapshot name
        clock: Returns "now"; injectable for tests

    Returns:
        The created VersionSnapshot

    Raises:
        RotationError: If the snapshot could not be created. Nothing is
            pruned in that case.
    """
    live_mirror_path = Path(live_mirror_path)
    if not live_mirror_path.is_dir():
        raise RotationError(f"Live mirror {live_mirror_path} does not exist")

    now = clock() if clock else datetime.now()
    versions = destination.versions_path
    start = time.monotonic()
    partial = None

    try:
        versions.mkdir(parents=True, exist_ok=True)
        name = _unique_name(versions, now.strftime(timestamp_format))
        partial = versions / f"{PARTIAL_PREFIX}{name}"
        final = versions / name

        logger.info("Creating version %s for %s ...", name, destination.name)
        shutil.copytree(live_mirror_path, partial, symlinks=True)
        partial.rename(final)
    except (OSError, shutil.Error) as e:
        if partial is not None and partial.exists():
            shutil.rmtree(partial, ignore_errors=True)
        log_transaction(
            action="snapshot",
            status="failed",
            destination=destination.name,
            source=str(live_mirror_path),
            error=str(e),
        )
        raise RotationError(
            f"Could not create version snapshot for '{destination.name}': {e}"
        ) from e

    size = __util__.dir_size(final)
    snapshot = VersionSnapshot(
        destination_name=destination.name,
        name=name,
        path=final,
        timestamp=parse_snapshot_name(name, timestamp_format) or now,
        size_bytes=size,
    )
    log_transaction(
        action="snapshot",
        status="created",
        destination=destination.name,
        source=str(live_mirror_path),
        snapshot=name,
        size_bytes=size,
        duration_seconds=time.monotonic() - start,
    )
    logger.info("Created version %s (%s)", snapshot, __util__.format_size(size))

    prune_snapshots(destination, timestamp_format)
    return snapshot


def prune_snapshots(
    destination: Destination,
    timestamp_format: str = DEFAULT_TIMESTAMP_FORMAT,
) -> list[str]:
    """Delete the oldest snapshots beyond the destination's retention count.

    A snapshot that cannot be deleted is logged and skipped; it is retried
    by the next rotation.

    Returns:
        Names of the snapshots actually deleted
    """
    snapshots = list_snapshots(destination, timestamp_format)
    # Newest first: the first retention_count entries survive
    ordered = sorted(snapshots, key=lambda s: s.name, reverse=True)
    excess = ordered[destination.retention_count :]

    if not excess:
        logger.debug(
            "%s: %d version(s), keeping up to %d",
            destination.name,
            len(snapshots),
            destination.retention_count,
        )
        return []

    deleted = []
    for snap in excess:
        try:
            shutil.rmtree(snap.path)
        except OSError as e:
            logger.warning("Failed to delete old version %s: %s", snap, e)
            log_transaction(
                action="snapshot",
                status="failed",
                destination=destination.name,
                snapshot=snap.name,
                error=f"delete: {e}",
            )
            continue
        logger.info("Deleted old version %s", snap)
        log_transaction(
            action="snapshot",
            status="deleted",
            destination=destination.name,
            snapshot=snap.name,
        )
        deleted.append(snap.name)

    return deleted
