"""Config command: Configuration management."""

import argparse
import logging

from ..config import ConfigurationError, find_config_file, load_config
from ..config.loader import CONFIG_PATHS, generate_example_config
from ..core.registry import resolve_destinations
from .common import init_logging

logger = logging.getLogger(__name__)


def execute_config(args: argparse.Namespace) -> int:
    """Execute the config command.

    Args:
        args: Parsed command line arguments

    Returns:
        Exit code
    """
    init_logging(args)

    action = getattr(args, "config_action", None)

    if action == "validate":
        return _validate_config(args)
    elif action == "init":
        return _init_config(args)
    else:
        print("Usage: ramdisk-sync config <validate|init>")
        return 1


def _validate_config(args: argparse.Namespace) -> int:
    """Validate configuration file."""
    try:
        config_path = find_config_file(getattr(args, "config", None))
        if config_path is None:
            print("No configuration file found.")
            print("Searched locations:")
            for path in CONFIG_PATHS:
                print(f"  {path}")
            return 1

        print(f"Validating: {config_path}")
        config, warnings = load_config(config_path)
        destinations = resolve_destinations(config)

    except ConfigurationError as e:
        print(f"Configuration error: {e}")
        return 1

    if warnings:
        print("")
        print("Warnings:")
        for warning in warnings:
            print(f"  - {warning}")

    gc = config.global_config
    print("")
    print("Configuration is valid.")
    print(f"  Source: {gc.source}")
    print(f"  Mirror tool: {gc.mirror_tool}")
    print(f"  Destinations: {len(destinations)} active")
    for dest in destinations:
        print(
            f"    {dest.priority}. {dest.name} -> {dest.path} "
            f"(keep {dest.retention_count})"
        )

    return 0


def _init_config(args: argparse.Namespace) -> int:
    """Generate example configuration."""
    content = generate_example_config()

    output = getattr(args, "output", None)
    if output:
        try:
            with open(output, "w") as f:
                f.write(content)
            print(f"Example configuration written to: {output}")
        except OSError as e:
            print(f"Error writing file: {e}")
            return 1
    else:
        print(content)

    return 0
