"""Destination registry: turn configuration into an ordered destination list.

The registry is rebuilt from configuration on every invocation; nothing is
cached between runs.
"""

import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Optional

from ..config import Config, ConfigurationError

logger = logging.getLogger(__name__)

LEGACY_DESTINATION_NAME = "Primary"


class UnreachableDestination(Exception):
    """The backing drive or mount point of a destination is not present."""

    def __init__(self, destination: "Destination") -> None:
        self.destination = destination
        super().__init__(
            f"Destination '{destination.name}' is not reachable ({destination.path})"
        )


@dataclass(frozen=True)
class Destination:
    """A resolved, validated backup target.

    Attributes:
        name: Unique name among enabled destinations
        path: Destination root directory
        enabled: Always True for destinations handed out by the registry
        priority: Lower is preferred on restore
        retention_count: Number of version snapshots to keep (>= 1)
        mount_point: Optional mount point used as presence probe
        mirror_dirname: Directory name of the live mirror below ``path``
        versions_dirname: Directory name holding version snapshots
        timeout: Mirror deadline in seconds, 0 for none, None to use the
            deadline given to the sync pass
    """

    name: str
    path: Path
    enabled: bool = True
    priority: int = 1
    retention_count: int = 5
    mount_point: Optional[Path] = None
    mirror_dirname: str = "current"
    versions_dirname: str = "versions"
    timeout: Optional[float] = None

    def __post_init__(self):
        if self.retention_count < 1:
            raise ConfigurationError(
                f"Destination '{self.name}': retention must be >= 1, "
                f"got {self.retention_count}"
            )

    @property
    def live_mirror_path(self) -> Path:
        return self.path / self.mirror_dirname

    @property
    def versions_path(self) -> Path:
        return self.path / self.versions_dirname


def resolve_destinations(config: Config) -> list[Destination]:
    """Build the ordered list of destinations for one invocation.

    Without multi-destination mode a single synthetic "Primary" destination
    is built from the legacy ``backup_path``. Otherwise enabled destinations
    are sorted by ascending priority; equal priorities keep declaration order.

    Raises:
        ConfigurationError: If no destination remains or two enabled
            destinations share a name.
    """
    gc = config.global_config

    if not gc.multi_destination:
        if not gc.backup_path:
            raise ConfigurationError(
                "No backup destination configured: set 'backup_path' or "
                "enable multi_destination"
            )
        logger.debug("Single destination mode: %s", gc.backup_path)
        return [
            Destination(
                name=LEGACY_DESTINATION_NAME,
                path=Path(gc.backup_path).expanduser(),
                priority=1,
                retention_count=gc.keep_backup_copies,
                mount_point=(
                    Path(gc.backup_mount_point).expanduser()
                    if gc.backup_mount_point
                    else None
                ),
                mirror_dirname=gc.mirror_dir,
                versions_dirname=gc.versions_dir,
                timeout=gc.sync_timeout_seconds,
            )
        ]

    enabled = config.get_enabled_destinations()
    if not enabled:
        raise ConfigurationError("No enabled backup destinations configured")

    # Restore matches names case-insensitively
    seen: set[str] = set()
    for dest in enabled:
        key = dest.name.casefold()
        if key in seen:
            raise ConfigurationError(f"Duplicate destination name: '{dest.name}'")
        seen.add(key)

    # sorted() is stable, so ties keep declaration order
    ordered = sorted(enabled, key=lambda d: d.priority)

    destinations = [
        Destination(
            name=d.name,
            path=Path(d.path).expanduser(),
            enabled=True,
            priority=d.priority,
            retention_count=config.get_effective_retention(d),
            mount_point=Path(d.mount_point).expanduser() if d.mount_point else None,
            mirror_dirname=gc.mirror_dir,
            versions_dirname=gc.versions_dir,
            timeout=config.get_effective_timeout(d),
        )
        for d in ordered
    ]

    logger.debug(
        "Resolved destinations: %s",
        ", ".join(f"{d.name}(p{d.priority})" for d in destinations),
    )
    return destinations


def is_destination_present(destination: Destination) -> bool:
    """Default presence probe for a destination's backing storage.

    With a configured mount point, that mount point must be mounted; an empty
    mount directory left behind by an unplugged drive does not count.
    Otherwise the parent of the destination root must exist; the root itself
    is created on first sync.
    """
    if destination.mount_point is not None:
        return os.path.ismount(destination.mount_point)
    return destination.path.parent.is_dir()


def ensure_reachable(
    destination: Destination,
    is_present: Callable[[Destination], bool] = is_destination_present,
) -> None:
    """Raise UnreachableDestination unless the destination is present."""
    if not is_present(destination):
        raise UnreachableDestination(destination)
