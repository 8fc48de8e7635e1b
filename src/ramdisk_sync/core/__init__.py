"""Core sync and restore operations for ramdisk-sync.

Destination resolution, mirror invocation, snapshot rotation, the sync
orchestrator and restore source resolution, organized into focused modules.
"""

from .lease import DestinationLease, LeaseBusy
from .mirror import (
    ExitClass,
    Mirror,
    MirrorError,
    MirrorResult,
    RobocopyMirror,
    RsyncMirror,
    choose_mirror,
    classify_exit_code,
)
from .orchestrator import SyncMode, SyncOrchestrator
from .registry import (
    Destination,
    UnreachableDestination,
    ensure_reachable,
    is_destination_present,
    resolve_destinations,
)
from .report import DestinationState, SyncOutcome, SyncReport
from .resolver import (
    NotFoundError,
    RestoreOptions,
    RestoreSource,
    list_available_snapshots,
    resolve_restore_source,
)
from .restore import RestoreError, restore_volume, validate_restore_target
from .rotation import (
    RotationError,
    VersionSnapshot,
    list_snapshots,
    prune_snapshots,
    rotate,
)

__all__ = [
    "Destination",
    "DestinationLease",
    "DestinationState",
    "ExitClass",
    "LeaseBusy",
    "Mirror",
    "MirrorError",
    "MirrorResult",
    "NotFoundError",
    "RestoreError",
    "RestoreOptions",
    "RestoreSource",
    "RobocopyMirror",
    "RotationError",
    "RsyncMirror",
    "SyncMode",
    "SyncOrchestrator",
    "SyncOutcome",
    "SyncReport",
    "UnreachableDestination",
    "VersionSnapshot",
    "choose_mirror",
    "classify_exit_code",
    "ensure_reachable",
    "is_destination_present",
    "list_available_snapshots",
    "list_snapshots",
    "prune_snapshots",
    "resolve_destinations",
    "resolve_restore_source",
    "restore_volume",
    "rotate",
    "validate_restore_target",
]
