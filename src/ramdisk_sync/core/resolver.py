"""Source resolver: pick the backup a restore should read from.

Destinations are tried in priority order and the first one that yields an
existing path wins, even if a lower-priority destination holds something
newer. Priority is a strict preference, never a freshness comparison.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Callable, Optional, Sequence

from .. import __util__
from .registry import Destination, UnreachableDestination, ensure_reachable
from .registry import is_destination_present
from .restore import RestoreError
from .rotation import DEFAULT_TIMESTAMP_FORMAT, list_snapshots

logger = logging.getLogger(__name__)


class NotFoundError(RestoreError):
    """No candidate destination yielded a restorable path.

    Attributes:
        available: Snapshot names per reachable destination, newest first
    """

    def __init__(self, message: str, available: Optional[dict[str, list[str]]] = None):
        super().__init__(message)
        self.available = available or {}


@dataclass(frozen=True)
class RestoreOptions:
    """What to restore.

    ``version`` selects an exact snapshot and wins over ``latest_version``.
    With neither set the live mirror is used.
    """

    destination_name: Optional[str] = None
    version: Optional[str] = None
    latest_version: bool = False


@dataclass(frozen=True)
class RestoreSource:
    """A resolved, existing restore source."""

    destination_name: str
    path: Path
    size_bytes: int
    last_modified: datetime
    version: Optional[str] = None
    destination: Optional[Destination] = field(
        default=None, compare=False, repr=False
    )


def _candidates(
    destinations: Sequence[Destination], name: Optional[str]
) -> list[Destination]:
    if not name:
        return list(destinations)
    wanted = name.casefold()
    matches = [d for d in destinations if d.name.casefold() == wanted]
    if matches:
        return matches
    logger.warning(
        "No enabled destination named '%s'; trying all destinations", name
    )
    return list(destinations)


def _candidate_path(
    destination: Destination, options: RestoreOptions, timestamp_format: str
) -> tuple[Optional[Path], Optional[str]]:
    """Return the path a destination offers for ``options`` and its version."""
    if options.version:
        version = options.version
        if Path(version).name != version or version.startswith("."):
            logger.warning("Ignoring invalid version name '%s'", version)
            return None, None
        return destination.versions_path / version, version

    if options.latest_version:
        snapshots = list_snapshots(destination, timestamp_format)
        if not snapshots:
            return None, None
        latest = snapshots[-1]
        return latest.path, latest.name

    return destination.live_mirror_path, None


def resolve_restore_source(
    destinations: Sequence[Destination],
    options: Optional[RestoreOptions] = None,
    is_present: Callable[[Destination], bool] = is_destination_present,
    timestamp_format: str = DEFAULT_TIMESTAMP_FORMAT,
) -> RestoreSource:
    """Find the restore source for ``options``.

    Args:
        destinations: Enabled destinations in priority order
        options: Destination filter, version and latest selection
        is_present: Presence probe for a destination's backing storage
        timestamp_format: Snapshot naming format

    Returns:
        The first existing RestoreSource in priority order

    Raises:
        NotFoundError: If no reachable destination has a matching path
    """
    options = options or RestoreOptions()
    tried = []

    for dest in _candidates(destinations, options.destination_name):
        try:
            ensure_reachable(dest, is_present)
        except UnreachableDestination as e:
            logger.info("Skipping %s", e)
            tried.append(f"{dest.name}: unreachable")
            continue

        path, version = _candidate_path(dest, options, timestamp_format)
        if path is None or not path.is_dir():
            what = version or ("latest version" if options.latest_version else "mirror")
            logger.debug("%s has no %s", dest.name, what)
            tried.append(f"{dest.name}: no {what}")
            continue

        source = RestoreSource(
            destination_name=dest.name,
            path=path,
            size_bytes=__util__.dir_size(path),
            last_modified=datetime.fromtimestamp(path.stat().st_mtime),
            version=version,
            destination=dest,
        )
        logger.info(
            "Restore source: %s (%s)", source.path, version or "live mirror"
        )
        return source

    available = list_available_snapshots(destinations, is_present, timestamp_format)
    summary = "; ".join(tried) if tried else "no destinations configured"
    raise NotFoundError(f"No restore source found ({summary})", available)


def list_available_snapshots(
    destinations: Sequence[Destination],
    is_present: Callable[[Destination], bool] = is_destination_present,
    timestamp_format: str = DEFAULT_TIMESTAMP_FORMAT,
) -> dict[str, list[str]]:
    """Snapshot names per reachable destination, newest first.

    Only enumerates; never selects. Unreachable destinations are left out.
    """
    available: dict[str, list[str]] = {}
    for dest in destinations:
        if not is_present(dest):
            continue
        names = [s.name for s in list_snapshots(dest, timestamp_format)]
        available[dest.name] = list(reversed(names))
    return available
