"""Sync orchestrator: one sync pass across all destinations.

Each destination moves through

    PENDING -> RUNNING -> COMPLETED | FAILED | TIMED_OUT | UNREACHABLE

independently of its siblings. Mirror calls run on worker threads; the
orchestrator itself only starts them, waits on them against per-destination
deadlines and schedules snapshot rotation once a destination's mirror has
completed. A destination that fails, hangs or disappears never aborts the
others.
"""

import logging
import threading
import time
from concurrent.futures import FIRST_COMPLETED, Future, ThreadPoolExecutor, wait
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Callable, Optional, Sequence

from .. import __util__
from ..transaction import log_transaction
from .lease import DestinationLease, LeaseBusy
from .mirror import ExitClass, Mirror, MirrorError
from .registry import (
    Destination,
    UnreachableDestination,
    ensure_reachable,
    is_destination_present,
)
from .report import DestinationState, SyncOutcome, SyncReport, log_outcome, log_report
from .rotation import DEFAULT_TIMESTAMP_FORMAT, RotationError, rotate

logger = logging.getLogger(__name__)


class SyncMode(Enum):
    """How destinations are processed within one pass."""

    SEQUENTIAL = "sequential"
    PARALLEL = "parallel"


@dataclass
class _Run:
    """Bookkeeping for one destination during one pass."""

    destination: Destination
    state: DestinationState = DestinationState.PENDING
    cancel: threading.Event = field(default_factory=threading.Event)
    lease: Optional[DestinationLease] = None
    future: Optional[Future] = None
    started: float = 0.0
    timeout: Optional[float] = None
    deadline: Optional[float] = None
    outcome: Optional[SyncOutcome] = None

    @property
    def name(self) -> str:
        return self.destination.name


class SyncOrchestrator:
    """Drive mirror and rotation for a set of destinations.

    Args:
        mirror: Mirror adapter used for every destination
        source: The working volume to back up
        exclude_dirs: Directory names passed through to the mirror tool
        exclude_files: File patterns passed through to the mirror tool
        threads: Parallelism hint for the mirror tool
        is_present: Presence probe for a destination's backing storage
        timestamp_format: Snapshot naming format
        clock: Returns "now" for snapshot names; injectable for tests
        allow_empty_source: Mirror even when the source volume is empty
    """

    def __init__(
        self,
        mirror: Mirror,
        source: Path | str,
        exclude_dirs: Sequence[str] = (),
        exclude_files: Sequence[str] = (),
        threads: Optional[int] = None,
        is_present: Callable[[Destination], bool] = is_destination_present,
        timestamp_format: str = DEFAULT_TIMESTAMP_FORMAT,
        clock: Optional[Callable[[], datetime]] = None,
        allow_empty_source: bool = False,
    ) -> None:
        self.mirror = mirror
        self.source = Path(source)
        self.exclude_dirs = list(exclude_dirs)
        self.exclude_files = list(exclude_files)
        self.threads = threads
        self.is_present = is_present
        self.timestamp_format = timestamp_format
        self.clock = clock
        self.allow_empty_source = allow_empty_source

    def run_sync(
        self,
        destinations: Sequence[Destination],
        mode: SyncMode | str = SyncMode.PARALLEL,
        timeout: Optional[float] = None,
        create_version: bool = True,
        reason: str = "manual",
    ) -> SyncReport:
        """Run one sync pass.

        Args:
            destinations: Ordered destinations from the registry
            mode: Sequential or parallel processing
            timeout: Deadline in seconds for destinations without their own
                timeout, measured from each destination's own start (None or
                <= 0 disables it)
            create_version: Rotate a version snapshot after each success
            reason: What triggered the pass (manual, periodic, unmount, ...)

        Returns:
            SyncReport with one outcome per destination, in registry order
        """
        mode = SyncMode(mode)
        report = SyncReport(reason=reason, mode=mode.value)
        runs = [_Run(destination=d) for d in destinations]

        logger.info(__util__.log_heading(f"Sync ({reason}) started at {time.ctime()}"))
        logger.info(
            "Source: %s, %d destination(s), %s mode",
            self.source,
            len(runs),
            mode.value,
        )

        source_problem = self._check_source()
        if source_problem:
            logger.error("%s", source_problem)
            for run in runs:
                self._set_outcome(
                    run, DestinationState.FAILED, ExitClass.ERROR, source_problem
                )
                self._complete(run)
        elif runs:
            # Room for every mirror plus every rotation so nothing queues
            # behind a mirror that ignores cancellation
            executor = ThreadPoolExecutor(
                max_workers=2 * len(runs), thread_name_prefix="ramdisk-sync"
            )
            try:
                if mode is SyncMode.SEQUENTIAL:
                    self._run_sequential(runs, executor, timeout, create_version)
                else:
                    self._run_parallel(runs, executor, timeout, create_version)
            finally:
                for run in runs:
                    run.cancel.set()
                    self._release(run)
                executor.shutdown(wait=False, cancel_futures=True)

        for run in runs:
            report.add(run.outcome)
        report.finish()

        log_report(report)
        log_transaction(
            action="sync",
            status=report.status,
            source=str(self.source),
            size_bytes=report.total_size_bytes,
            duration_seconds=report.duration_seconds,
            details={
                "reason": reason,
                "mode": mode.value,
                "attempted": report.attempted,
                "succeeded": report.succeeded,
            },
        )
        return report

    # Scheduling

    def _run_sequential(self, runs, executor, timeout, create_version) -> None:
        for run in runs:
            if not self._prepare(run):
                continue
            self._start(run, executor, timeout)

            remaining = None
            if run.deadline is not None:
                remaining = max(0.0, run.deadline - time.monotonic())
            done, _ = wait([run.future], timeout=remaining)

            if run.future in done:
                self._finish_mirror(run)
                if run.state is DestinationState.COMPLETED and create_version:
                    self._rotate(run)
            else:
                self._expire(run)
            self._complete(run)

    def _run_parallel(self, runs, executor, timeout, create_version) -> None:
        active = [run for run in runs if self._prepare(run)]
        for run in active:
            self._start(run, executor, timeout)

        mirrors: dict[Future, _Run] = {run.future: run for run in active}
        rotations: dict[Future, _Run] = {}

        while mirrors or rotations:
            now = time.monotonic()
            for fut, run in list(mirrors.items()):
                expired = run.deadline is not None and now >= run.deadline
                if expired and not fut.done():
                    del mirrors[fut]
                    self._expire(run)
                    self._complete(run)

            if not mirrors and not rotations:
                break

            deadlines = [r.deadline for r in mirrors.values() if r.deadline is not None]
            wait_for = max(0.0, min(deadlines) - now) if deadlines else None
            done, _ = wait(
                list(mirrors) + list(rotations),
                timeout=wait_for,
                return_when=FIRST_COMPLETED,
            )

            for fut in done:
                if fut in mirrors:
                    run = mirrors.pop(fut)
                    self._finish_mirror(run)
                    if run.state is DestinationState.COMPLETED and create_version:
                        rotations[executor.submit(self._rotate, run)] = run
                    else:
                        self._complete(run)
                else:
                    run = rotations.pop(fut)
                    self._complete(run)

    # Per destination steps

    def _check_source(self) -> Optional[str]:
        """Return why the source must not be mirrored, or None."""
        if not self.source.is_dir():
            return f"Source volume {self.source} is not present; nothing synced"
        if not self.allow_empty_source and not any(self.source.iterdir()):
            return (
                f"Source volume {self.source} is empty; refusing to mirror "
                "an empty volume over existing backups"
            )
        return None

    def _prepare(self, run: _Run) -> bool:
        """Presence check and lease; False if the destination is done already."""
        try:
            ensure_reachable(run.destination, self.is_present)
        except UnreachableDestination as e:
            self._set_outcome(
                run, DestinationState.UNREACHABLE, ExitClass.UNREACHABLE, str(e)
            )
            self._complete(run)
            return False

        lease = DestinationLease(run.destination)
        try:
            lease.acquire()
        except (LeaseBusy, OSError) as e:
            self._set_outcome(run, DestinationState.FAILED, ExitClass.ERROR, str(e))
            self._complete(run)
            return False

        run.lease = lease
        return True

    def _start(self, run: _Run, executor: ThreadPoolExecutor, timeout) -> None:
        run.state = DestinationState.RUNNING
        run.started = time.monotonic()
        run.timeout = run.destination.timeout
        if run.timeout is None:
            run.timeout = timeout
        if run.timeout is not None and run.timeout > 0:
            run.deadline = run.started + run.timeout

        target = run.destination.live_mirror_path
        logger.info("[%s] Mirroring %s -> %s", run.name, self.source, target)
        run.future = executor.submit(
            self.mirror.mirror,
            self.source,
            target,
            self.exclude_dirs,
            self.exclude_files,
            self.threads,
            run.cancel,
        )

    def _finish_mirror(self, run: _Run) -> None:
        elapsed = time.monotonic() - run.started
        try:
            result = run.future.result()
        except MirrorError as e:
            self._set_outcome(
                run, DestinationState.FAILED, ExitClass.ERROR, str(e), elapsed
            )
            return
        except Exception as e:
            logger.debug("Mirror exception details:", exc_info=True)
            self._set_outcome(
                run,
                DestinationState.FAILED,
                ExitClass.ERROR,
                f"Unexpected mirror error: {e}",
                elapsed,
            )
            return

        if result.exit_class is ExitClass.TIMEOUT:
            state = DestinationState.TIMED_OUT
        elif result.success:
            state = DestinationState.COMPLETED
        else:
            state = DestinationState.FAILED

        detail = result.detail or None
        if state is DestinationState.FAILED and not detail:
            detail = f"{self.mirror.name} exited with code {result.exit_code}"

        self._set_outcome(
            run, state, result.exit_class, detail, elapsed, result.resulting_size_bytes
        )

    def _expire(self, run: _Run) -> None:
        """Deadline passed: cancel the mirror and record the timeout."""
        run.cancel.set()
        self._set_outcome(
            run,
            DestinationState.TIMED_OUT,
            ExitClass.TIMEOUT,
            f"Exceeded {run.timeout}s timeout; mirror cancelled",
            time.monotonic() - run.started,
        )

    def _rotate(self, run: _Run) -> None:
        """Create a version snapshot; failures only ever become warnings."""
        try:
            run.outcome.snapshot = rotate(
                run.destination,
                run.destination.live_mirror_path,
                self.timestamp_format,
                self.clock,
            )
        except RotationError as e:
            run.outcome.rotation_warning = str(e)
        except Exception as e:
            logger.debug("Rotation exception details:", exc_info=True)
            run.outcome.rotation_warning = f"Unexpected rotation error: {e}"

    def _set_outcome(
        self,
        run: _Run,
        state: DestinationState,
        exit_class: ExitClass,
        detail: Optional[str] = None,
        elapsed: float = 0.0,
        size: Optional[int] = None,
    ) -> None:
        run.state = state
        run.outcome = SyncOutcome(
            destination_name=run.name,
            state=state,
            exit_class=exit_class,
            elapsed_seconds=elapsed,
            resulting_size_bytes=size,
            error_detail=detail,
        )

    def _complete(self, run: _Run) -> None:
        """Release the destination and report its outcome."""
        self._release(run)
        outcome = run.outcome
        log_outcome(outcome)
        log_transaction(
            action="destination_sync",
            status={
                DestinationState.COMPLETED: "completed",
                DestinationState.TIMED_OUT: "timeout",
                DestinationState.UNREACHABLE: "unreachable",
            }.get(outcome.state, "failed"),
            destination=run.name,
            source=str(self.source),
            snapshot=outcome.snapshot.name if outcome.snapshot else None,
            size_bytes=outcome.resulting_size_bytes,
            duration_seconds=outcome.elapsed_seconds,
            error=outcome.error_detail if not outcome.success else None,
            details={"exit_class": outcome.exit_class.value},
        )

    @staticmethod
    def _release(run: _Run) -> None:
        if run.lease is not None:
            run.lease.release()
            run.lease = None
