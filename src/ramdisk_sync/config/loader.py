"""TOML configuration loading and validation.

Handles config file discovery, parsing, and validation with helpful error messages.
"""

import tomllib
from pathlib import Path
from typing import Any

from .schema import Config, DestinationConfig, GlobalConfig

MIRROR_TOOLS = ("rsync", "robocopy")


class ConfigurationError(Exception):
    """Configuration loading or validation error."""

    pass


# Config file search paths in priority order
CONFIG_PATHS = [
    Path.home() / ".config" / "ramdisk-sync" / "config.toml",
    Path("/etc/ramdisk-sync/config.toml"),
]


def find_config_file(explicit_path: str | None = None) -> Path | None:
    """Find configuration file.

    Args:
        explicit_path: Explicitly specified config path (highest priority)

    Returns:
        Path to config file, or None if not found
    """
    if explicit_path:
        path = Path(explicit_path)
        if path.exists():
            return path
        raise ConfigurationError(f"Config file not found: {explicit_path}")

    for path in CONFIG_PATHS:
        if path.exists():
            return path

    return None


def _get_int(
    data: dict[str, Any], key: str, default: int, minimum: int | None = None
) -> int:
    """Read an integer option and enforce a lower bound."""
    value = data.get(key, default)
    # bool is an int subclass, reject it explicitly
    if isinstance(value, bool) or not isinstance(value, int):
        raise ConfigurationError(f"'{key}' must be an integer, got {value!r}")
    if minimum is not None and value < minimum:
        raise ConfigurationError(f"'{key}' must be >= {minimum}, got {value}")
    return value


def _get_bool(data: dict[str, Any], key: str, default: bool) -> bool:
    """Read a boolean option; quoted strings like "false" are rejected."""
    value = data.get(key, default)
    if not isinstance(value, bool):
        raise ConfigurationError(f"'{key}' must be true or false, got {value!r}")
    return value


def _get_str_list(data: dict[str, Any], key: str, default: list[str]) -> list[str]:
    value = data.get(key, default)
    if not isinstance(value, list) or not all(isinstance(v, str) for v in value):
        raise ConfigurationError(f"'{key}' must be a list of strings")
    return list(value)


def _parse_destination(data: dict[str, Any]) -> DestinationConfig:
    """Parse destination configuration from dict."""
    if "name" not in data:
        raise ConfigurationError("Destination missing required 'name' field")
    if "path" not in data:
        raise ConfigurationError(
            f"Destination '{data['name']}' missing required 'path' field"
        )

    keep = None
    if "keep_backup_copies" in data:
        keep = _get_int(data, "keep_backup_copies", 1, minimum=1)

    timeout = None
    if "sync_timeout_seconds" in data:
        timeout = _get_int(data, "sync_timeout_seconds", 0, minimum=0)

    return DestinationConfig(
        name=str(data["name"]),
        path=str(data["path"]),
        enabled=_get_bool(data, "enabled", True),
        priority=_get_int(data, "priority", 1),
        keep_backup_copies=keep,
        mount_point=data.get("mount_point"),
        sync_timeout_seconds=timeout,
    )


def _parse_global(data: dict[str, Any]) -> GlobalConfig:
    """Parse global configuration from dict."""
    defaults = GlobalConfig()

    source = data.get("source")
    if not source:
        raise ConfigurationError("Missing required 'source' in [global]")

    mirror_tool = data.get("mirror_tool", defaults.mirror_tool)
    if mirror_tool not in MIRROR_TOOLS:
        raise ConfigurationError(
            f"Unknown mirror tool '{mirror_tool}'. "
            f"Valid choices: {', '.join(MIRROR_TOOLS)}"
        )

    return GlobalConfig(
        source=str(source),
        backup_path=data.get("backup_path"),
        backup_mount_point=data.get("backup_mount_point"),
        multi_destination=_get_bool(data, "multi_destination", False),
        keep_backup_copies=_get_int(
            data, "keep_backup_copies", defaults.keep_backup_copies, minimum=1
        ),
        sync_interval_minutes=_get_int(
            data, "sync_interval_minutes", defaults.sync_interval_minutes, minimum=1
        ),
        sync_timeout_seconds=_get_int(
            data, "sync_timeout_seconds", defaults.sync_timeout_seconds, minimum=0
        ),
        parallel=_get_bool(data, "parallel", defaults.parallel),
        min_successful=_get_int(
            data, "min_successful", defaults.min_successful, minimum=1
        ),
        create_versions=_get_bool(data, "create_versions", defaults.create_versions),
        mirror_tool=mirror_tool,
        mirror_threads=_get_int(
            data, "mirror_threads", defaults.mirror_threads, minimum=1
        ),
        mirror_dir=data.get("mirror_dir", defaults.mirror_dir),
        versions_dir=data.get("versions_dir", defaults.versions_dir),
        timestamp_format=data.get("timestamp_format", defaults.timestamp_format),
        source_wait_seconds=_get_int(
            data, "source_wait_seconds", defaults.source_wait_seconds, minimum=0
        ),
        exclude_dirs=_get_str_list(data, "exclude_dirs", defaults.exclude_dirs),
        exclude_files=_get_str_list(data, "exclude_files", defaults.exclude_files),
        log_file=data.get("log_file"),
        transaction_log=data.get("transaction_log"),
    )


def _validate_config(config: Config) -> list[str]:
    """Validate configuration and return list of warnings."""
    warnings = []
    gc = config.global_config

    if gc.multi_destination:
        if not config.destinations:
            warnings.append(
                "Multi-destination mode is on but no destinations are configured"
            )
        elif not config.get_enabled_destinations():
            warnings.append("All destinations are disabled")

        # Check for duplicate destination paths
        paths = [d.path for d in config.get_enabled_destinations()]
        if len(paths) != len(set(paths)):
            warnings.append("Enabled destinations have duplicate paths")

        if gc.min_successful > len(config.get_enabled_destinations()):
            warnings.append(
                f"min_successful={gc.min_successful} exceeds the number of "
                "enabled destinations; every sync will be reported as failed"
            )
    elif not gc.backup_path:
        warnings.append("No 'backup_path' set and multi-destination mode is off")
    elif config.destinations:
        warnings.append(
            "Destinations are declared but ignored because multi_destination is off"
        )

    if not gc.timestamp_format.startswith("%Y"):
        warnings.append(
            f"timestamp_format '{gc.timestamp_format}' may not sort chronologically"
        )

    if gc.mirror_dir == gc.versions_dir:
        warnings.append("mirror_dir and versions_dir are the same directory")

    return warnings


def load_config(path: Path | str) -> tuple[Config, list[str]]:
    """Load and validate configuration from TOML file.

    Args:
        path: Path to configuration file

    Returns:
        Tuple of (Config object, list of warnings)

    Raises:
        ConfigurationError: If config is invalid or cannot be parsed
    """
    path = Path(path)

    try:
        with open(path, "rb") as f:
            data = tomllib.load(f)
    except tomllib.TOMLDecodeError as e:
        raise ConfigurationError(f"Invalid TOML syntax: {e}")
    except OSError as e:
        raise ConfigurationError(f"Cannot read config file: {e}")

    global_config = _parse_global(data.get("global", {}))

    destinations = []
    for dest_data in data.get("destinations", []):
        destinations.append(_parse_destination(dest_data))

    config = Config(global_config=global_config, destinations=destinations)

    # Validate and collect warnings
    warnings = _validate_config(config)

    return config, warnings


def generate_example_config() -> str:
    """Generate example configuration file content."""
    return """# ramdisk-sync configuration
# See documentation for full options

[global]
source = "/mnt/ramdisk"
multi_destination = true
keep_backup_copies = 5        # Versions per destination unless overridden
sync_interval_minutes = 15    # Period of 'ramdisk-sync watch'
sync_timeout_seconds = 1800   # Per destination, 0 disables the deadline
parallel = true               # Mirror all destinations at once
create_versions = true
mirror_tool = "rsync"         # or "robocopy"
mirror_threads = 8
# log_file = "/var/log/ramdisk-sync.log"
# transaction_log = "/var/log/ramdisk-sync.jsonl"

exclude_dirs = ["$RECYCLE.BIN", "System Volume Information", "lost+found"]
exclude_files = ["*.tmp", "Thumbs.db", "desktop.ini"]

# Legacy single destination, used when multi_destination = false.
# Set backup_mount_point when backup_path lives on a removable drive,
# otherwise the empty mount directory of an unplugged drive still counts
# as present and the sync writes into it.
# backup_path = "/mnt/backup/ramdisk"
# backup_mount_point = "/mnt/backup"

# mount_point gates a destination on its drive being mounted. Always set it
# for removable drives and network shares. sync_timeout_seconds overrides the
# global deadline for one destination.

[[destinations]]
name = "Primary"
path = "/mnt/usb1/ramdisk-backup"
priority = 1
keep_backup_copies = 3
mount_point = "/mnt/usb1"

[[destinations]]
name = "Secondary"
path = "/mnt/nas/ramdisk-backup"
priority = 2
keep_backup_copies = 1
mount_point = "/mnt/nas"
sync_timeout_seconds = 3600   # Slow network share

# Disabled destinations are ignored for both sync and restore
# [[destinations]]
# name = "Archive"
# path = "/mnt/archive/ramdisk-backup"
# enabled = false
# priority = 3
"""
