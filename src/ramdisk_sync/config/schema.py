"""Configuration schema definitions using dataclasses.

Defines the structure for TOML configuration with sensible defaults.
"""

from dataclasses import dataclass, field
from typing import Optional

DEFAULT_EXCLUDE_DIRS = ["$RECYCLE.BIN", "System Volume Information", "lost+found"]
DEFAULT_EXCLUDE_FILES = ["*.tmp", "Thumbs.db", "desktop.ini"]


@dataclass
class DestinationConfig:
    """Backup destination configuration.

    Attributes:
        name: Unique, human readable name (e.g. "Primary", "NAS")
        path: Root directory of the destination
        enabled: Whether this destination takes part in sync and restore
        priority: Lower values are tried first on restore
        keep_backup_copies: Versions to keep (None = global default)
        mount_point: Optional mount point whose presence gates the destination
        sync_timeout_seconds: Deadline for this destination (None = global)
    """

    name: str
    path: str
    enabled: bool = True
    priority: int = 1
    keep_backup_copies: Optional[int] = None
    mount_point: Optional[str] = None
    sync_timeout_seconds: Optional[int] = None


@dataclass
class GlobalConfig:
    """Global configuration settings.

    Attributes:
        source: The volatile working volume to protect
        backup_path: Single destination used when multi-destination mode is off
        backup_mount_point: Mount point gating backup_path, if any
        multi_destination: Use the [[destinations]] list instead of backup_path
        keep_backup_copies: Default number of version snapshots per destination
        sync_interval_minutes: Period of the watch loop
        sync_timeout_seconds: Default per destination deadline (0 = none)
        parallel: Mirror all destinations concurrently
        min_successful: Destinations that must succeed for a pass to count
        create_versions: Take a version snapshot after every successful sync
        mirror_tool: External mirror implementation ("rsync" or "robocopy")
        mirror_threads: Parallelism hint passed to the mirror tool
        mirror_dir: Name of the live mirror directory below a destination
        versions_dir: Name of the version snapshot directory below a destination
        timestamp_format: strftime format of snapshot names, must sort by time
        source_wait_seconds: How long to wait for the source volume to appear
        exclude_dirs: Directory names never mirrored
        exclude_files: File patterns never mirrored
        log_file: Path to log file (None for no file logging)
        transaction_log: Path to JSON-lines transaction log (None to disable)
    """

    source: str = ""
    backup_path: Optional[str] = None
    backup_mount_point: Optional[str] = None
    multi_destination: bool = False
    keep_backup_copies: int = 5
    sync_interval_minutes: int = 15
    sync_timeout_seconds: int = 1800
    parallel: bool = True
    min_successful: int = 1
    create_versions: bool = True
    mirror_tool: str = "rsync"
    mirror_threads: int = 8
    mirror_dir: str = "current"
    versions_dir: str = "versions"
    timestamp_format: str = "%Y%m%d-%H%M%S"
    source_wait_seconds: int = 30
    exclude_dirs: list[str] = field(default_factory=lambda: list(DEFAULT_EXCLUDE_DIRS))
    exclude_files: list[str] = field(
        default_factory=lambda: list(DEFAULT_EXCLUDE_FILES)
    )
    log_file: Optional[str] = None
    transaction_log: Optional[str] = None


@dataclass
class Config:
    """Root configuration object.

    Attributes:
        global_config: Global settings
        destinations: Declared backup destinations, in file order
    """

    global_config: GlobalConfig = field(default_factory=GlobalConfig)
    destinations: list[DestinationConfig] = field(default_factory=list)

    def get_effective_retention(self, destination: DestinationConfig) -> int:
        """Get the number of versions to keep for a destination.

        Destination-specific retention overrides the global default.
        """
        if destination.keep_backup_copies is not None:
            return destination.keep_backup_copies
        return self.global_config.keep_backup_copies

    def get_effective_timeout(self, destination: DestinationConfig) -> int:
        """Get the mirror deadline in seconds for a destination (0 = none)."""
        if destination.sync_timeout_seconds is not None:
            return destination.sync_timeout_seconds
        return self.global_config.sync_timeout_seconds

    def get_enabled_destinations(self) -> list[DestinationConfig]:
        """Get list of enabled destinations, in declaration order."""
        return [d for d in self.destinations if d.enabled]
