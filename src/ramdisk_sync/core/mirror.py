"""Mirror invoker: run an external directory-mirror tool and classify its outcome.

The copy itself (diffing, retries on locked files, attribute preservation)
is the external tool's job. This module only builds the command line,
supervises the process, honours cancellation and maps the exit status onto
a small set of classes:

    ok       nothing needed copying
    changed  files were copied, no errors
    warning  some files were skipped or mismatched, the rest succeeded
    error    hard failure

Anything below ``error`` counts as a successful sync for that destination.
"""

import logging
import re
import subprocess
import threading
import time
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Optional, Sequence

from .. import __util__
from ..config import ConfigurationError

logger = logging.getLogger(__name__)

# Seconds between checks of the cancel token while the tool runs
POLL_INTERVAL = 0.25


class MirrorError(Exception):
    """The mirror tool could not be started or failed hard."""

    pass


class ExitClass(Enum):
    """Classification of one mirror attempt."""

    OK = "ok"
    CHANGED = "changed"
    WARNING = "warning"
    ERROR = "error"
    TIMEOUT = "timeout"
    UNREACHABLE = "unreachable"

    @property
    def is_success(self) -> bool:
        return self in (ExitClass.OK, ExitClass.CHANGED, ExitClass.WARNING)


def classify_exit_code(code: int) -> ExitClass:
    """Classify a robocopy style exit code.

    0 = no changes, 1-3 = changes copied, 4-7 = mismatches or extra files,
    8 and above = at least one copy failed. Negative codes (killed by a
    signal) are errors.
    """
    if code < 0 or code >= 8:
        return ExitClass.ERROR
    if code == 0:
        return ExitClass.OK
    if code <= 3:
        return ExitClass.CHANGED
    return ExitClass.WARNING


@dataclass
class MirrorResult:
    """Structured outcome of one mirror call."""

    exit_class: ExitClass
    exit_code: Optional[int] = None
    elapsed_seconds: float = 0.0
    resulting_size_bytes: Optional[int] = None
    detail: str = ""

    @property
    def success(self) -> bool:
        return self.exit_class.is_success


class Mirror:
    """Generic external mirror tool.

    Subclasses provide the command line and the exit classification.
    """

    name = "generic"
    executable = ""

    def mirror(
        self,
        source: Path | str,
        target: Path | str,
        exclude_dirs: Sequence[str] = (),
        exclude_files: Sequence[str] = (),
        threads: Optional[int] = None,
        cancel: Optional[threading.Event] = None,
    ) -> MirrorResult:
        """Make ``target`` an exact replica of ``source``.

        Args:
            source: Directory to copy from
            target: Directory to mirror into (created if missing)
            exclude_dirs: Directory names to skip, passed through verbatim
            exclude_files: File patterns to skip, passed through verbatim
            threads: Parallelism hint for tools that support it
            cancel: When set, the running tool is killed and the result is
                classified as ``timeout``

        Returns:
            MirrorResult

        Raises:
            MirrorError: If the tool cannot be started
        """
        source = Path(source)
        target = Path(target)
        target.mkdir(parents=True, exist_ok=True)

        cmd = self._build_command(source, target, exclude_dirs, exclude_files, threads)
        logger.debug("Executing: %s", " ".join(cmd))

        start = time.monotonic()
        try:
            proc = subprocess.Popen(
                cmd,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
                text=True,
                errors="replace",
            )
        except OSError as e:
            raise MirrorError(f"Cannot start {self.name}: {e}") from e

        stdout, stderr, cancelled = self._supervise(proc, cancel)
        elapsed = time.monotonic() - start

        if cancelled:
            logger.warning(
                "%s -> %s: %s cancelled after %.1fs", source, target, self.name, elapsed
            )
            return MirrorResult(
                exit_class=ExitClass.TIMEOUT,
                exit_code=proc.returncode,
                elapsed_seconds=elapsed,
                detail=f"{self.name} cancelled",
            )

        exit_class = self._classify(proc.returncode, stdout)
        detail = ""
        if exit_class not in (ExitClass.OK, ExitClass.CHANGED):
            detail = _tail(stderr) or _tail(stdout)

        size = None
        if exit_class.is_success:
            size = __util__.dir_size(target)

        logger.debug(
            "%s exited with %s (%s) in %.1fs",
            self.name,
            proc.returncode,
            exit_class.value,
            elapsed,
        )
        return MirrorResult(
            exit_class=exit_class,
            exit_code=proc.returncode,
            elapsed_seconds=elapsed,
            resulting_size_bytes=size,
            detail=detail,
        )

    @staticmethod
    def _supervise(
        proc: subprocess.Popen, cancel: Optional[threading.Event]
    ) -> tuple[str, str, bool]:
        """Wait for the process, killing it when the cancel token is set."""
        while True:
            try:
                stdout, stderr = proc.communicate(timeout=POLL_INTERVAL)
                return stdout or "", stderr or "", False
            except subprocess.TimeoutExpired:
                if cancel is not None and cancel.is_set():
                    proc.kill()
                    stdout, stderr = proc.communicate()
                    return stdout or "", stderr or "", True

    def _build_command(
        self,
        source: Path,
        target: Path,
        exclude_dirs: Sequence[str],
        exclude_files: Sequence[str],
        threads: Optional[int],
    ) -> list[str]:
        raise NotImplementedError

    def _classify(self, returncode: int, stdout: str) -> ExitClass:
        return classify_exit_code(returncode)

    def __repr__(self) -> str:
        return f"{type(self).__name__}()"


class RsyncMirror(Mirror):
    """Mirror through ``rsync -a --delete``."""

    name = "rsync"
    executable = "rsync"

    # Partial transfer due to error, partial transfer due to vanished files
    WARNING_CODES = frozenset({23, 24})

    _STAT_PATTERNS = (
        re.compile(r"Number of regular files transferred:\s*([\d,]+)"),
        re.compile(r"Number of files transferred:\s*([\d,]+)"),
        re.compile(r"Number of deleted files:\s*([\d,]+)"),
    )

    def _build_command(self, source, target, exclude_dirs, exclude_files, threads):
        cmd = [self.executable, "-a", "--delete", "--stats"]
        for name in exclude_dirs:
            cmd.append(f"--exclude={name}/")
        for pattern in exclude_files:
            cmd.append(f"--exclude={pattern}")
        if threads:
            logger.debug("rsync ignores the parallelism hint (%d)", threads)
        # Trailing slash: copy the contents, not the directory itself
        cmd.extend([f"{source}/", f"{target}/"])
        return cmd

    def _classify(self, returncode, stdout):
        if returncode == 0:
            return ExitClass.CHANGED if self._count_changes(stdout) else ExitClass.OK
        if returncode in self.WARNING_CODES:
            return ExitClass.WARNING
        return ExitClass.ERROR

    @classmethod
    def _count_changes(cls, stdout: str) -> int:
        total = 0
        for pattern in cls._STAT_PATTERNS:
            match = pattern.search(stdout)
            if match:
                total += int(match.group(1).replace(",", ""))
        return total


class RobocopyMirror(Mirror):
    """Mirror through ``robocopy /MIR``; exit codes are classified directly."""

    name = "robocopy"
    executable = "robocopy"

    def _build_command(self, source, target, exclude_dirs, exclude_files, threads):
        cmd = [self.executable, str(source), str(target), "/MIR", "/R:2", "/W:5"]
        if threads:
            cmd.append(f"/MT:{threads}")
        cmd.extend(["/NP", "/NFL", "/NDL"])
        if exclude_dirs:
            cmd.append("/XD")
            cmd.extend(exclude_dirs)
        if exclude_files:
            cmd.append("/XF")
            cmd.extend(exclude_files)
        return cmd


MIRRORS: dict[str, type[Mirror]] = {
    RsyncMirror.name: RsyncMirror,
    RobocopyMirror.name: RobocopyMirror,
}


def choose_mirror(name: str) -> Mirror:
    """Return a mirror adapter by tool name."""
    try:
        return MIRRORS[name]()
    except KeyError:
        raise ConfigurationError(
            f"Unknown mirror tool '{name}'. Valid choices: {', '.join(MIRRORS)}"
        )


def _tail(text: str, lines: int = 5) -> str:
    return "\n".join(text.strip().splitlines()[-lines:])
