"""Re-run the tool under sudo when a mode needs root."""
import os
import sys
from pathlib import Path
from typing import List, Sequence

from upgrade_guard.config import Mode
from upgrade_guard.errors import ElevationError
from upgrade_guard.utils import is_root, log_info

# Everything except the read-only status report writes to /Library or /Applications
_ELEVATED_MODES = {Mode.APPLY, Mode.UNDO, Mode.UNINSTALL_PROFILE, Mode.PROFILE_ONLY}


def needs_elevation(mode: Mode) -> bool:
    return mode in _ELEVATED_MODES


def elevation_command(argv: Sequence[str]) -> List[str]:
    """Build the ``sudo`` command line that repeats this invocation.

    The entry script is resolved to an absolute path so the re-run does not
    depend on the working directory. When started as ``python -m`` we repeat
    that form instead, since ``__main__.py`` cannot run on its own.
    """
    program = Path(sys.argv[0]).resolve() if sys.argv and sys.argv[0] else None
    if program is not None and program.is_file() and program.name != "__main__.py":
        return ["sudo", str(program)] + list(argv)
    return ["sudo", sys.executable, "-m", "upgrade_guard"] + list(argv)


def ensure_elevated(mode: Mode, argv: Sequence[str]) -> None:
    """Replace this process with a sudo re-run if ``mode`` needs root.

    Returns only when no elevation is needed; otherwise the exit status of the
    whole run is the one of the sudo child.
    """
    if not needs_elevation(mode) or is_root():
        return

    command = elevation_command(argv)
    log_info("Re-running with sudo (admin password may be required)...")
    sys.stdout.flush()
    try:
        os.execvp(command[0], command)
    except OSError as e:
        raise ElevationError(f"Could not re-run with sudo: {e}") from e
