"""Command line interface for ramdisk-sync."""
