"""Pytest configuration and shared fixtures."""

from pathlib import Path

import pytest

from ramdisk_sync.core.registry import Destination
from ramdisk_sync.transaction import set_transaction_log


@pytest.fixture(autouse=True)
def reset_transaction_log():
    """Make sure no test leaks an active transaction log into the next."""
    set_transaction_log(None)
    yield
    set_transaction_log(None)


@pytest.fixture
def tmp_config_dir(tmp_path):
    """Create a temporary config directory."""
    config_dir = tmp_path / "config"
    config_dir.mkdir()
    return config_dir


@pytest.fixture
def sample_config_toml():
    """Return a sample valid multi-destination TOML configuration string."""
    return """
[global]
source = "/mnt/ramdisk"
multi_destination = true
keep_backup_copies = 5
sync_interval_minutes = 10
sync_timeout_seconds = 600
parallel = true
mirror_tool = "robocopy"
mirror_threads = 16
exclude_dirs = ["$RECYCLE.BIN", "System Volume Information"]
exclude_files = ["*.tmp"]

[[destinations]]
name = "Secondary"
path = "/mnt/nas/ramdisk"
priority = 2
keep_backup_copies = 1
mount_point = "/mnt/nas"

[[destinations]]
name = "Primary"
path = "/mnt/usb1/ramdisk"
priority = 1
keep_backup_copies = 2

[[destinations]]
name = "Archive"
path = "/mnt/archive/ramdisk"
enabled = false
priority = 3
"""


@pytest.fixture
def minimal_config_toml():
    """Return a minimal valid single-destination TOML configuration string."""
    return """
[global]
source = "/mnt/ramdisk"
backup_path = "/mnt/backup/ramdisk"
"""


@pytest.fixture
def source_volume(tmp_path):
    """A small non-empty working volume."""
    source = tmp_path / "ramdisk"
    (source / "projects").mkdir(parents=True)
    (source / "notes.txt").write_text("remember the milk\n")
    (source / "projects" / "main.py").write_text("print('hello')\n")
    return source


@pytest.fixture
def make_destination(tmp_path):
    """Factory for destinations rooted below tmp_path."""

    def _make(name: str, priority: int = 1, retention: int = 5) -> Destination:
        drive = tmp_path / "drives" / name.lower()
        drive.mkdir(parents=True, exist_ok=True)
        return Destination(
            name=name,
            path=drive / "ramdisk-backup",
            priority=priority,
            retention_count=retention,
        )

    return _make


@pytest.fixture
def make_tree():
    """Factory creating files (relative path -> content) below a root."""

    def _make(root: Path, files: dict[str, str]) -> Path:
        for rel, content in files.items():
            target = root / rel
            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_text(content)
        return root

    return _make
