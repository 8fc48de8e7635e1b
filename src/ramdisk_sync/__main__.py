"""ramdisk-sync: ramdisk_sync/__main__.py."""

import sys

from .cli.dispatcher import main as cli_main


def main(argv: list[str] | None = None) -> int:
    """Console script entry point."""
    try:
        return cli_main(argv)
    except KeyboardInterrupt:
        print("\nInterrupted")
        return 130


if __name__ == "__main__":
    sys.exit(main())
