# pyright: standard

"""ramdisk-sync: ramdisk_sync/__logger__.py
A common logger for displaying through rich.
"""

import logging
from pathlib import Path

from rich.console import Console
from rich.logging import RichHandler

# Initialize basic console and handler
cons = Console(stderr=True)
rich_handler = RichHandler(console=cons, show_path=False)

FILE_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"


def create_logger(level: str | int = logging.INFO) -> None:
    """Helper function to setup console logging at the requested level."""
    # pylint: disable=global-statement
    global cons, rich_handler

    cons = Console(stderr=True)
    rich_handler = RichHandler(console=cons, show_path=False)
    rich_handler.setLevel(level)

    logging.basicConfig(
        format="%(message)s",
        datefmt="%H:%M:%S",
        level=level,
        handlers=[rich_handler],
        force=True,
    )


def add_file_handler(
    path: Path | str, level: str | int = logging.DEBUG
) -> logging.Handler:
    """Mirror all log records into a plain text file.

    The parent directory is created if needed. Rotation of the file is left
    to the system (logrotate or similar).
    """
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)

    handler = logging.FileHandler(path, encoding="utf-8")
    handler.setLevel(level)
    handler.setFormatter(logging.Formatter(FILE_FORMAT, datefmt="%Y-%m-%d %H:%M:%S"))

    root = logging.getLogger()
    root.addHandler(handler)
    # The root level gates the file handler too
    if root.level > handler.level:
        root.setLevel(handler.level)
    return handler
