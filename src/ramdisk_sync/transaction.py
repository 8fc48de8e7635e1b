"""Transaction log: append-only JSON-lines record of sync, rotation and restore events.

Each line is one JSON object with at least ``timestamp``, ``pid``, ``action``
and ``status``. The log is the structured reporting sink next to the console
and file loggers.
"""

import json
import logging
import os
import threading
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

logger = logging.getLogger(__name__)

_log_path: Path | None = None
_lock = threading.Lock()


def set_transaction_log(path: Path | str | None) -> None:
    """Set (or clear with None) the transaction log location."""
    global _log_path

    if path is None:
        _log_path = None
        return

    _log_path = Path(path)
    _log_path.parent.mkdir(parents=True, exist_ok=True)


def get_transaction_log() -> Path | None:
    """Return the active transaction log path, if any."""
    return _log_path


def log_transaction(
    action: str,
    status: str,
    destination: str | None = None,
    source: str | None = None,
    snapshot: str | None = None,
    size_bytes: int | None = None,
    duration_seconds: float | None = None,
    error: str | None = None,
    details: dict[str, Any] | None = None,
) -> None:
    """Append a record to the transaction log.

    Does nothing while no log path is set. Write failures are logged and
    never raised; losing an audit line must not fail a backup.
    """
    path = _log_path
    if path is None:
        return

    record: dict[str, Any] = {
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "pid": os.getpid(),
        "action": action,
        "status": status,
    }
    optional = {
        "destination": destination,
        "source": source,
        "snapshot": snapshot,
        "size_bytes": size_bytes,
        "duration_seconds": (
            round(duration_seconds, 3) if duration_seconds is not None else None
        ),
        "error": error,
        "details": details,
    }
    record.update({k: v for k, v in optional.items() if v is not None})

    try:
        with _lock, open(path, "a", encoding="utf-8") as f:
            f.write(json.dumps(record, sort_keys=True) + "\n")
    except OSError as e:
        logger.warning("Could not write transaction log %s: %s", path, e)


def read_transaction_log(
    path: Path | str | None = None,
    limit: int | None = None,
    action_filter: str | None = None,
    status_filter: str | None = None,
) -> list[dict[str, Any]]:
    """Read records from the transaction log, newest first.

    Lines that are empty or not valid JSON are skipped.
    """
    log_path = Path(path) if path is not None else _log_path
    if log_path is None or not log_path.exists():
        return []

    records = []
    with open(log_path, encoding="utf-8") as f:
        for line in f:
            line = line.strip()
            if not line:
                continue
            try:
                record = json.loads(line)
            except json.JSONDecodeError:
                continue
            if action_filter and record.get("action") != action_filter:
                continue
            if status_filter and record.get("status") != status_filter:
                continue
            records.append(record)

    records.reverse()
    if limit is not None:
        records = records[:limit]
    return records


def get_transaction_stats(path: Path | str | None = None) -> dict[str, Any]:
    """Summarize the transaction log as counts per action and status."""
    records = read_transaction_log(path)
    stats: dict[str, Any] = {
        "total_records": len(records),
        "syncs": {"completed": 0, "partial": 0, "failed": 0},
        "destinations": {"completed": 0, "failed": 0, "timeout": 0, "unreachable": 0},
        "snapshots": {"created": 0, "deleted": 0, "failed": 0},
        "restores": {"completed": 0, "failed": 0},
        "last_sync": None,
    }

    buckets = {
        "sync": "syncs",
        "destination_sync": "destinations",
        "snapshot": "snapshots",
        "restore": "restores",
    }
    for record in records:
        bucket = buckets.get(record.get("action", ""))
        if bucket is None:
            continue
        status = record.get("status", "")
        if status in stats[bucket]:
            stats[bucket][status] += 1
        if bucket == "syncs" and stats["last_sync"] is None:
            stats["last_sync"] = record.get("timestamp")

    return stats
