"""Utility functions for the upgrade guard."""
import logging
import os
import shutil
import signal
import sys
import tempfile
from contextlib import contextmanager
from pathlib import Path
from typing import Iterable, Iterator

from upgrade_guard.errors import MissingCommandError


def command_exists(command: str) -> bool:
    """Check if a command exists in the system PATH."""
    return shutil.which(command) is not None


def require_commands(commands: Iterable[str]) -> None:
    """Fail on the first command that is not installed."""
    for command in commands:
        if not command_exists(command):
            raise MissingCommandError(command)


def is_root() -> bool:
    """Check if the script is running as root."""
    return os.geteuid() == 0


def get_real_user() -> str:
    """Get the real username (handles sudo)."""
    return os.environ.get('SUDO_USER', os.environ.get('USER', ''))


def log(message: str = "") -> None:
    """Print a plain report line."""
    print(message)


def log_info(message: str) -> None:
    """Log an informational message."""
    print(f"[INFO] {message}")


def log_action(message: str) -> None:
    """Log an action being performed."""
    print(f"  -> {message}")


def log_warn(message: str) -> None:
    """Log a recoverable problem to stderr."""
    print(f"WARN: {message}", file=sys.stderr)


def log_error(message: str) -> None:
    """Log a fatal problem to stderr."""
    print(f"ERROR: {message}", file=sys.stderr)


def setup_logging(verbose: bool = False) -> None:
    """Setup logging configuration."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )
    # sh logs every process it spawns at DEBUG
    logging.getLogger("sh").setLevel(logging.WARNING)


def _exit_on_signal(signum, frame):
    raise SystemExit(128 + signum)


@contextmanager
def work_dir() -> Iterator[Path]:
    """Scratch directory that is removed on exit, on errors and on SIGTERM/SIGHUP."""
    handled = (signal.SIGTERM, signal.SIGHUP)
    previous = {signum: signal.signal(signum, _exit_on_signal) for signum in handled}
    try:
        with tempfile.TemporaryDirectory(prefix="upgrade-guard-") as path:
            yield Path(path)
    finally:
        for signum, handler in previous.items():
            signal.signal(signum, handler)
