"""Watch command: periodic sync loop with a final sync on shutdown."""

import argparse
import logging
import signal
import threading
from pathlib import Path
from typing import Optional

from ..config import Config, ConfigurationError, find_config_file, load_config
from ..core.orchestrator import SyncOrchestrator
from ..core.registry import Destination, resolve_destinations
from ..core.report import SyncReport
from .common import init_logging, load_cli_config, setup_outputs
from .sync import build_orchestrator, run_pass

logger = logging.getLogger(__name__)


class Watcher:
    """Run a sync pass every interval until stopped, then one last pass.

    The stop request is a threading.Event, so signal handlers and tests can
    end the loop the same way. A pass that is already running is allowed to
    finish before the shutdown pass starts.

    With a ``config_path`` the configuration and destination list are read
    again before every pass. A file that no longer loads leaves the previous
    configuration in use.
    """

    def __init__(
        self,
        config: Config,
        destinations: list[Destination],
        orchestrator: Optional[SyncOrchestrator] = None,
        stop: Optional[threading.Event] = None,
        config_path: Optional[Path | str] = None,
    ) -> None:
        self.config = config
        self.destinations = destinations
        self.config_path = config_path
        self._own_orchestrator = orchestrator is None
        self.orchestrator = orchestrator or build_orchestrator(config)
        self.stop = stop or threading.Event()
        self.interval = config.global_config.sync_interval_minutes * 60
        self.passes = 0

    def request_stop(self, signum=None, frame=None) -> None:
        if signum is not None:
            logger.info("Received signal %d, finishing up", signum)
        self.stop.set()

    def reload(self) -> bool:
        """Re-read the configuration file.

        Returns:
            True if the new configuration is in use
        """
        if self.config_path is None:
            return False
        try:
            config, warnings = load_config(self.config_path)
            destinations = resolve_destinations(config)
            orchestrator = None
            if self._own_orchestrator:
                orchestrator = build_orchestrator(config)
        except ConfigurationError as e:
            logger.warning(
                "Configuration error, keeping previous destinations: %s", e
            )
            return False

        for warning in warnings:
            logger.debug("Config: %s", warning)
        self.config = config
        self.destinations = destinations
        if orchestrator is not None:
            self.orchestrator = orchestrator
        self.interval = config.global_config.sync_interval_minutes * 60
        logger.debug(
            "Reloaded configuration: %s", ", ".join(d.name for d in destinations)
        )
        return True

    def _sync(self, reason: str) -> SyncReport:
        self.reload()
        self.passes += 1
        return run_pass(
            self.config,
            self.destinations,
            reason=reason,
            orchestrator=self.orchestrator,
        )

    def _exit_code(self, report: SyncReport) -> int:
        min_successful = self.config.global_config.min_successful
        return 0 if report.meets_quorum(min_successful) else 1

    def run(self, once: bool = False) -> int:
        """Loop until stopped.

        Returns:
            Exit code of the last pass
        """
        if once:
            return self._exit_code(self._sync("periodic"))

        logger.info(
            "Watching: syncing every %d minute(s), stop with Ctrl+C or SIGTERM",
            self.config.global_config.sync_interval_minutes,
        )
        while not self.stop.is_set():
            report = self._sync("periodic")
            if not report.success:
                logger.warning("Periodic sync failed; retrying at the next interval")
            self.stop.wait(self.interval)

        logger.info("Running final sync before shutdown")
        return self._exit_code(self._sync("shutdown"))


def execute_watch(args: argparse.Namespace) -> int:
    """Execute the watch command.

    Args:
        args: Parsed command line arguments

    Returns:
        Exit code of the final sync pass
    """
    init_logging(args)

    config = load_cli_config(args)
    if config is None:
        return 1

    try:
        destinations = resolve_destinations(config)
        watcher = Watcher(
            config,
            destinations,
            config_path=find_config_file(getattr(args, "config", None)),
        )
    except ConfigurationError as e:
        logger.error("Configuration error: %s", e)
        return 1

    setup_outputs(config)

    if getattr(args, "once", False):
        return watcher.run(once=True)

    previous = {
        sig: signal.signal(sig, watcher.request_stop)
        for sig in (signal.SIGTERM, signal.SIGINT)
    }
    try:
        return watcher.run()
    finally:
        for sig, handler in previous.items():
            signal.signal(sig, handler)
