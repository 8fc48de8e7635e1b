"""ramdisk-sync: ramdisk_sync/__util__.py
Small helpers shared by the core and the CLI.
"""

import logging
import os
import time
from pathlib import Path
from typing import Callable

logger = logging.getLogger(__name__)


def log_heading(caption: str) -> str:
    """Formatted heading for logging output sections."""
    return f"{'-' * 10} {caption} {'-' * 40}"


def format_size(size_bytes: int | None) -> str:
    """Human readable size, e.g. 1.5 GiB."""
    if size_bytes is None:
        return "unknown"
    if abs(size_bytes) < 1024:
        return f"{size_bytes} B"
    size = float(size_bytes)
    for unit in ("KiB", "MiB", "GiB"):
        size /= 1024.0
        if abs(size) < 1024.0:
            return f"{size:.1f} {unit}"
    return f"{size / 1024.0:.1f} TiB"


def dir_size(path: Path | str) -> int:
    """Total size in bytes of all regular files below path.

    Symlinks are not followed. Files that disappear while walking are
    ignored.
    """
    total = 0
    for root, _dirs, files in os.walk(path, onerror=None):
        for name in files:
            try:
                st = os.lstat(os.path.join(root, name))
            except OSError:
                continue
            total += st.st_size
    return total


def wait_until(
    predicate: Callable[[], bool],
    timeout: float,
    initial_delay: float = 0.5,
    max_delay: float = 5.0,
    backoff: float = 2.0,
    sleep: Callable[[float], None] = time.sleep,
    clock: Callable[[], float] = time.monotonic,
) -> bool:
    """Poll predicate until it holds or timeout seconds have passed.

    The delay between attempts grows by ``backoff`` up to ``max_delay`` and is
    clipped so the total wait never exceeds ``timeout``.

    Returns:
        True if the predicate became true, False on timeout.
    """
    deadline = clock() + max(timeout, 0)
    delay = initial_delay
    attempt = 0

    while True:
        attempt += 1
        if predicate():
            if attempt > 1:
                logger.debug("Condition met after %d attempt(s)", attempt)
            return True

        remaining = deadline - clock()
        if remaining <= 0:
            logger.debug("Gave up waiting after %d attempt(s)", attempt)
            return False

        sleep(min(delay, remaining))
        delay = min(delay * backoff, max_delay)
