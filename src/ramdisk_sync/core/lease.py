"""Per-destination lease guarding the live mirror and its snapshots.

Interleaved mirror and rotate runs on one destination have no defined merge
semantics, so a pass must hold the destination's lease from the first
mirror byte until its rotation is done.
"""

import logging

from filelock import FileLock, Timeout

from .registry import Destination

logger = logging.getLogger(__name__)

LOCK_FILE_NAME = ".ramdisk-sync.lock"


class LeaseBusy(Exception):
    """Another sync pass holds the destination."""

    pass


class DestinationLease:
    """Exclusive, non-blocking lock on one destination root."""

    def __init__(self, destination: Destination) -> None:
        self.destination = destination
        self.lock_path = destination.path / LOCK_FILE_NAME
        self._lock = FileLock(self.lock_path, timeout=0)

    def acquire(self) -> "DestinationLease":
        """Take the lease, creating the destination root if needed.

        Raises:
            LeaseBusy: If the lease is held elsewhere
        """
        self.destination.path.mkdir(parents=True, exist_ok=True)
        try:
            self._lock.acquire()
        except Timeout:
            raise LeaseBusy(
                f"Destination '{self.destination.name}' is busy "
                f"(lock held on {self.lock_path})"
            )
        logger.debug("Acquired lease on %s", self.lock_path)
        return self

    def release(self) -> None:
        if self._lock.is_locked:
            self._lock.release()
            logger.debug("Released lease on %s", self.lock_path)

    @property
    def held(self) -> bool:
        return self._lock.is_locked

    def __enter__(self) -> "DestinationLease":
        return self.acquire()

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.release()
