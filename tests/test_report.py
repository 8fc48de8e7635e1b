"""Tests for sync report aggregation and logging."""

import logging

from ramdisk_sync.core.mirror import ExitClass
from ramdisk_sync.core.report import (
    DestinationState,
    SyncOutcome,
    SyncReport,
    log_outcome,
    log_report,
)


def _outcome(name, state, exit_class=None, size=None, **kwargs):
    if exit_class is None:
        exit_class = {
            DestinationState.COMPLETED: ExitClass.CHANGED,
            DestinationState.TIMED_OUT: ExitClass.TIMEOUT,
            DestinationState.UNREACHABLE: ExitClass.UNREACHABLE,
        }.get(state, ExitClass.ERROR)
    return SyncOutcome(
        destination_name=name,
        state=state,
        exit_class=exit_class,
        resulting_size_bytes=size,
        **kwargs,
    )


def _report(*outcomes):
    report = SyncReport()
    for outcome in outcomes:
        report.add(outcome)
    return report.finish()


class TestDestinationState:
    """Tests for DestinationState."""

    def test_final_states(self):
        """Test only terminal states are final."""
        assert not DestinationState.PENDING.is_final
        assert not DestinationState.RUNNING.is_final
        for state in (
            DestinationState.COMPLETED,
            DestinationState.FAILED,
            DestinationState.TIMED_OUT,
            DestinationState.UNREACHABLE,
        ):
            assert state.is_final


class TestSyncReport:
    """Tests for SyncReport aggregation."""

    def test_all_completed(self):
        """Test a fully successful pass."""
        report = _report(
            _outcome("A", DestinationState.COMPLETED, size=100),
            _outcome("B", DestinationState.COMPLETED, size=50),
        )
        assert report.attempted == 2
        assert report.succeeded == 2
        assert report.failed == 0
        assert report.success
        assert not report.partial
        assert report.status == "completed"
        assert report.total_size_bytes == 150

    def test_one_success_is_enough(self):
        """Test overall success needs only one completed destination."""
        report = _report(
            _outcome("A", DestinationState.FAILED),
            _outcome("B", DestinationState.TIMED_OUT),
            _outcome("C", DestinationState.COMPLETED, size=10),
        )
        assert report.success
        assert report.partial
        assert report.status == "partial"
        assert report.failed == 2

    def test_nothing_completed(self):
        """Test a pass without any completed destination fails."""
        report = _report(
            _outcome("A", DestinationState.UNREACHABLE),
            _outcome("B", DestinationState.FAILED),
        )
        assert not report.success
        assert report.status == "failed"
        assert report.total_size_bytes == 0

    def test_empty_report_fails(self):
        """Test an empty report is not a success."""
        assert not _report().success

    def test_failed_sizes_not_counted(self):
        """Test only completed destinations contribute to the size."""
        report = _report(
            _outcome("A", DestinationState.COMPLETED, size=10),
            _outcome("B", DestinationState.FAILED, size=99),
        )
        assert report.total_size_bytes == 10

    def test_quorum(self):
        """Test meets_quorum against a minimum count."""
        report = _report(
            _outcome("A", DestinationState.COMPLETED),
            _outcome("B", DestinationState.COMPLETED),
            _outcome("C", DestinationState.FAILED),
        )
        assert report.meets_quorum(1)
        assert report.meets_quorum(2)
        assert not report.meets_quorum(3)
        # A quorum below one still needs a success
        assert not _report(_outcome("A", DestinationState.FAILED)).meets_quorum(0)

    def test_outcome_for(self):
        """Test outcome lookup by destination name."""
        a = _outcome("A", DestinationState.COMPLETED)
        report = _report(a)
        assert report.outcome_for("A") is a
        assert report.outcome_for("Z") is None

    def test_duration_measured(self):
        """Test finish() records a duration."""
        assert _report().duration_seconds >= 0.0

    def test_to_dict(self):
        """Test the JSON shape of a report."""
        report = _report(
            _outcome(
                "A",
                DestinationState.FAILED,
                error_detail="boom",
            ),
        )
        data = report.to_dict()
        assert data["status"] == "failed"
        assert data["success"] is False
        assert data["reason"] == "manual"
        assert data["outcomes"] == [
            {
                "destination": "A",
                "state": "failed",
                "exit_class": "error",
                "success": False,
                "elapsed_seconds": 0.0,
                "resulting_size_bytes": None,
                "error": "boom",
                "snapshot": None,
                "rotation_warning": None,
            }
        ]


class TestLogging:
    """Tests for severity of logged outcomes."""

    def _levels(self, caplog, outcome):
        caplog.clear()
        with caplog.at_level(logging.DEBUG, logger="ramdisk_sync.core.report"):
            log_outcome(outcome)
        return {r.levelno for r in caplog.records}

    def test_clean_completion_is_info(self, caplog):
        """Test a clean completion logs at info."""
        levels = self._levels(caplog, _outcome("A", DestinationState.COMPLETED))
        assert levels == {logging.INFO}

    def test_completion_with_warning(self, caplog):
        """Test warnings and rotation warnings log at warning."""
        levels = self._levels(
            caplog,
            _outcome("A", DestinationState.COMPLETED, exit_class=ExitClass.WARNING),
        )
        assert levels == {logging.WARNING}

        levels = self._levels(
            caplog,
            _outcome(
                "A", DestinationState.COMPLETED, rotation_warning="disk full"
            ),
        )
        assert logging.WARNING in levels

    def test_unreachable_is_warning(self, caplog):
        """Test an unreachable destination logs at warning."""
        levels = self._levels(caplog, _outcome("A", DestinationState.UNREACHABLE))
        assert levels == {logging.WARNING}

    def test_failures_are_errors(self, caplog):
        """Test failed and timed out destinations log at error."""
        assert self._levels(caplog, _outcome("A", DestinationState.FAILED)) == {
            logging.ERROR
        }
        assert self._levels(caplog, _outcome("A", DestinationState.TIMED_OUT)) == {
            logging.ERROR
        }

    def test_summary_severity(self, caplog):
        """Test the summary line follows the pass status."""
        with caplog.at_level(logging.INFO, logger="ramdisk_sync.core.report"):
            log_report(_report(_outcome("A", DestinationState.COMPLETED)))
            log_report(
                _report(
                    _outcome("A", DestinationState.COMPLETED),
                    _outcome("B", DestinationState.FAILED),
                )
            )
            log_report(_report(_outcome("A", DestinationState.FAILED)))

        assert [r.levelno for r in caplog.records] == [
            logging.INFO,
            logging.WARNING,
            logging.ERROR,
        ]
        assert "1/2" in caplog.records[1].getMessage()
