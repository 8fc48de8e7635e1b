"""Sync report: per-destination outcomes and the pass/fail summary."""

import logging
import time
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Optional

from .. import __util__
from .mirror import ExitClass
from .rotation import VersionSnapshot

logger = logging.getLogger(__name__)


class DestinationState(Enum):
    """Per-destination state within one sync pass."""

    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"
    TIMED_OUT = "timed_out"
    UNREACHABLE = "unreachable"

    @property
    def is_final(self) -> bool:
        return self not in (DestinationState.PENDING, DestinationState.RUNNING)


@dataclass
class SyncOutcome:
    """Result of one sync attempt against one destination."""

    destination_name: str
    state: DestinationState
    exit_class: ExitClass
    elapsed_seconds: float = 0.0
    resulting_size_bytes: Optional[int] = None
    error_detail: Optional[str] = None
    snapshot: Optional[VersionSnapshot] = None
    rotation_warning: Optional[str] = None

    @property
    def success(self) -> bool:
        return self.state is DestinationState.COMPLETED

    def to_dict(self) -> dict[str, Any]:
        return {
            "destination": self.destination_name,
            "state": self.state.value,
            "exit_class": self.exit_class.value,
            "success": self.success,
            "elapsed_seconds": round(self.elapsed_seconds, 3),
            "resulting_size_bytes": self.resulting_size_bytes,
            "error": self.error_detail,
            "snapshot": self.snapshot.name if self.snapshot else None,
            "rotation_warning": self.rotation_warning,
        }


@dataclass
class SyncReport:
    """Aggregate of all outcomes of one sync pass.

    A pass succeeds when at least one destination completed; it never
    requires all of them.
    """

    reason: str = "manual"
    mode: str = "parallel"
    started_at: datetime = field(default_factory=datetime.now)
    duration_seconds: float = 0.0
    outcomes: list[SyncOutcome] = field(default_factory=list)
    _start: float = field(default_factory=time.monotonic, repr=False)

    def add(self, outcome: SyncOutcome) -> None:
        self.outcomes.append(outcome)

    def finish(self) -> "SyncReport":
        self.duration_seconds = time.monotonic() - self._start
        return self

    @property
    def attempted(self) -> int:
        return len(self.outcomes)

    @property
    def succeeded(self) -> int:
        return sum(1 for o in self.outcomes if o.success)

    @property
    def failed(self) -> int:
        return self.attempted - self.succeeded

    @property
    def success(self) -> bool:
        return self.succeeded >= 1

    @property
    def partial(self) -> bool:
        return self.success and self.succeeded < self.attempted

    @property
    def total_size_bytes(self) -> int:
        return sum(o.resulting_size_bytes or 0 for o in self.outcomes if o.success)

    def meets_quorum(self, min_successful: int = 1) -> bool:
        """True if at least ``min_successful`` destinations completed."""
        return self.succeeded >= max(min_successful, 1)

    def outcome_for(self, name: str) -> Optional[SyncOutcome]:
        for outcome in self.outcomes:
            if outcome.destination_name == name:
                return outcome
        return None

    @property
    def status(self) -> str:
        if not self.success:
            return "failed"
        return "partial" if self.partial else "completed"

    def to_dict(self) -> dict[str, Any]:
        return {
            "reason": self.reason,
            "mode": self.mode,
            "started_at": self.started_at.isoformat(timespec="seconds"),
            "duration_seconds": round(self.duration_seconds, 3),
            "attempted": self.attempted,
            "succeeded": self.succeeded,
            "status": self.status,
            "success": self.success,
            "total_size_bytes": self.total_size_bytes,
            "outcomes": [o.to_dict() for o in self.outcomes],
        }


def log_outcome(outcome: SyncOutcome) -> None:
    """Log one destination outcome at a severity matching its state."""
    name = outcome.destination_name
    if outcome.state is DestinationState.COMPLETED:
        level = logging.INFO
        if outcome.exit_class is ExitClass.WARNING or outcome.rotation_warning:
            level = logging.WARNING
        logger.log(
            level,
            "[%s] %s in %.1fs (%s)%s",
            name,
            outcome.exit_class.value,
            outcome.elapsed_seconds,
            __util__.format_size(outcome.resulting_size_bytes),
            f", version {outcome.snapshot.name}" if outcome.snapshot else "",
        )
        if outcome.error_detail:
            logger.warning("[%s] %s", name, outcome.error_detail)
        if outcome.rotation_warning:
            logger.warning("[%s] %s", name, outcome.rotation_warning)
    elif outcome.state is DestinationState.UNREACHABLE:
        logger.warning("[%s] skipped: %s", name, outcome.error_detail or "unreachable")
    else:
        logger.error(
            "[%s] %s after %.1fs: %s",
            name,
            outcome.state.value,
            outcome.elapsed_seconds,
            outcome.error_detail or outcome.exit_class.value,
        )


def log_report(report: SyncReport) -> None:
    """Log the summary line of a finished pass."""
    summary = (
        f"Sync ({report.reason}, {report.mode}) finished in "
        f"{report.duration_seconds:.1f}s: {report.succeeded}/{report.attempted} "
        f"destination(s) succeeded, {__util__.format_size(report.total_size_bytes)}"
    )
    if not report.success:
        logger.error("%s", summary)
    elif report.partial:
        logger.warning("%s (partial)", summary)
    else:
        logger.info("%s", summary)
