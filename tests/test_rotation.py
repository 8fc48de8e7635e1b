"""Tests for snapshot rotation."""

import shutil
from datetime import datetime
from unittest.mock import patch

import pytest

from ramdisk_sync.core.rotation import (
    PARTIAL_PREFIX,
    RotationError,
    list_snapshots,
    parse_snapshot_name,
    prune_snapshots,
    rotate,
)
from ramdisk_sync.transaction import read_transaction_log, set_transaction_log


def _clock(*stamps):
    """Return a clock yielding the given datetimes in order."""
    it = iter(stamps)
    return lambda: next(it)


@pytest.fixture
def synced(make_destination, make_tree):
    """A destination whose live mirror holds a couple of files."""
    dest = make_destination("Primary", retention=3)
    make_tree(dest.live_mirror_path, {"a.txt": "alpha", "sub/b.txt": "beta"})
    return dest


class TestParseSnapshotName:
    """Tests for parse_snapshot_name."""

    def test_plain_name(self):
        """Test a plain timestamp parses."""
        assert parse_snapshot_name("20260101-120000") == datetime(2026, 1, 1, 12, 0, 0)

    def test_collision_suffix(self):
        """Test a collision suffix is accepted."""
        assert parse_snapshot_name("20260101-120000_01") == datetime(2026, 1, 1, 12)

    @pytest.mark.parametrize(
        "name", ["current", "notes", ".partial-20260101-120000", "2026-01-01"]
    )
    def test_foreign_names(self, name):
        """Test names that are not snapshots are rejected."""
        assert parse_snapshot_name(name) is None

    def test_custom_format(self):
        """Test a custom timestamp format."""
        assert parse_snapshot_name("2026-01-01_12.00", "%Y-%m-%d_%H.%M") == datetime(
            2026, 1, 1, 12, 0
        )


class TestRotate:
    """Tests for rotate."""

    def test_creates_snapshot(self, synced):
        """Test the live mirror is copied into a timestamped snapshot."""
        snap = rotate(
            synced,
            synced.live_mirror_path,
            clock=_clock(datetime(2026, 1, 1, 12, 0, 0)),
        )

        assert snap.name == "20260101-120000"
        assert snap.path == synced.versions_path / "20260101-120000"
        assert (snap.path / "a.txt").read_text() == "alpha"
        assert (snap.path / "sub" / "b.txt").read_text() == "beta"
        assert snap.size_bytes == len("alpha") + len("beta")
        assert snap.destination_name == "Primary"
        assert str(snap) == "Primary:20260101-120000"

    def test_snapshot_is_independent_copy(self, synced):
        """Test later changes to the live mirror do not touch the snapshot."""
        snap = rotate(synced, synced.live_mirror_path)
        (synced.live_mirror_path / "a.txt").write_text("changed")
        assert (snap.path / "a.txt").read_text() == "alpha"

    def test_same_second_collision(self, synced):
        """Test two rotations within one second get distinct names."""
        stamp = datetime(2026, 1, 1, 12, 0, 0)
        first = rotate(synced, synced.live_mirror_path, clock=_clock(stamp))
        second = rotate(synced, synced.live_mirror_path, clock=_clock(stamp))

        assert first.name == "20260101-120000"
        assert second.name == "20260101-120000_01"
        names = [s.name for s in list_snapshots(synced)]
        assert names == ["20260101-120000", "20260101-120000_01"]

    def test_missing_live_mirror(self, make_destination):
        """Test rotation requires an existing live mirror."""
        dest = make_destination("Primary")
        with pytest.raises(RotationError, match="does not exist"):
            rotate(dest, dest.live_mirror_path)

    def test_copy_failure_cleans_up_and_skips_prune(self, synced):
        """Test a failed copy leaves no partial snapshot and prunes nothing."""
        synced.versions_path.mkdir(parents=True)
        for i in range(5):
            (synced.versions_path / f"2025010{i + 1}-000000").mkdir()

        def failing_copytree(src, dst, **kwargs):
            dst.mkdir()
            (dst / "half").write_text("x")
            raise OSError("No space left on device")

        with patch("ramdisk_sync.core.rotation.shutil.copytree", failing_copytree):
            with pytest.raises(RotationError, match="No space left"):
                rotate(synced, synced.live_mirror_path)

        leftovers = [p.name for p in synced.versions_path.iterdir()]
        assert not any(name.startswith(PARTIAL_PREFIX) for name in leftovers)
        assert len(list_snapshots(synced)) == 5

    def test_prunes_after_success(self, synced):
        """Test retention is applied after a successful snapshot."""
        for second in range(5):
            rotate(
                synced,
                synced.live_mirror_path,
                clock=_clock(datetime(2026, 1, 1, 12, 0, second)),
            )

        names = [s.name for s in list_snapshots(synced)]
        assert names == ["20260101-120002", "20260101-120003", "20260101-120004"]

    def test_transactions_recorded(self, synced, tmp_path):
        """Test creation and deletion are written to the transaction log."""
        log_path = tmp_path / "tx.jsonl"
        set_transaction_log(log_path)

        for second in range(4):
            rotate(
                synced,
                synced.live_mirror_path,
                clock=_clock(datetime(2026, 1, 1, 12, 0, second)),
            )

        created = read_transaction_log(log_path, status_filter="created")
        deleted = read_transaction_log(log_path, status_filter="deleted")
        assert len(created) == 4
        assert [r["snapshot"] for r in deleted] == ["20260101-120000"]
        assert all(r["action"] == "snapshot" for r in created + deleted)


class TestListSnapshots:
    """Tests for list_snapshots."""

    def test_empty_when_no_versions_dir(self, make_destination):
        """Test a destination without versions lists nothing."""
        assert list_snapshots(make_destination("Primary")) == []

    def test_ignores_foreign_entries(self, synced):
        """Test partial copies, files and foreign directories are ignored."""
        versions = synced.versions_path
        versions.mkdir(parents=True)
        (versions / "20260102-000000").mkdir()
        (versions / "20260101-000000").mkdir()
        (versions / f"{PARTIAL_PREFIX}20260103-000000").mkdir()
        (versions / "scratch").mkdir()
        (versions / "20260104-000000").write_text("not a directory")

        names = [s.name for s in list_snapshots(synced)]
        assert names == ["20260101-000000", "20260102-000000"]

    def test_sizes_on_request(self, synced):
        """Test sizes are only computed when asked for."""
        rotate(synced, synced.live_mirror_path)
        assert list_snapshots(synced)[0].size_bytes is None
        assert list_snapshots(synced, with_sizes=True)[0].size_bytes == 9


class TestPruneSnapshots:
    """Tests for prune_snapshots."""

    def _make_versions(self, dest, count):
        dest.versions_path.mkdir(parents=True)
        names = [f"2026010{i + 1}-000000" for i in range(count)]
        for name in names:
            (dest.versions_path / name).mkdir()
        return names

    def test_keeps_newest(self, make_destination):
        """Test the newest retention_count snapshots survive."""
        dest = make_destination("Primary", retention=2)
        names = self._make_versions(dest, 5)

        deleted = prune_snapshots(dest)

        assert sorted(deleted) == names[:3]
        assert [s.name for s in list_snapshots(dest)] == names[3:]

    def test_nothing_to_prune(self, make_destination):
        """Test nothing is deleted within retention."""
        dest = make_destination("Primary", retention=5)
        names = self._make_versions(dest, 3)

        assert prune_snapshots(dest) == []
        assert [s.name for s in list_snapshots(dest)] == names

    def test_retention_of_one(self, make_destination):
        """Test retention of one keeps only the newest snapshot."""
        dest = make_destination("Secondary", retention=1)
        names = self._make_versions(dest, 3)

        prune_snapshots(dest)
        assert [s.name for s in list_snapshots(dest)] == [names[-1]]

    def test_failed_delete_is_skipped(self, make_destination):
        """Test a snapshot that cannot be deleted does not stop pruning."""
        dest = make_destination("Primary", retention=1)
        names = self._make_versions(dest, 3)
        real_rmtree = shutil.rmtree

        def flaky_rmtree(path, *args, **kwargs):
            if path.name == names[0]:
                raise PermissionError("in use")
            return real_rmtree(path, *args, **kwargs)

        with patch("ramdisk_sync.core.rotation.shutil.rmtree", flaky_rmtree):
            deleted = prune_snapshots(dest)

        assert deleted == [names[1]]
        assert [s.name for s in list_snapshots(dest)] == [names[0], names[2]]
