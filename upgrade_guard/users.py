"""Figure out whose preferences and Downloads folder we touch."""
from dataclasses import dataclass
from pathlib import Path
from typing import Iterator

from upgrade_guard.config import FIRST_LOCAL_UID
from upgrade_guard.errors import UserResolutionError
from upgrade_guard.macos import Directory
from upgrade_guard.utils import get_real_user


@dataclass(frozen=True)
class TargetUser:
    name: str
    home: Path

    @property
    def downloads(self) -> Path:
        return self.home / "Downloads"


def resolve_console_user(directory: Directory, console_only: bool = False) -> str:
    """Return the user logged into the GUI session.

    When nobody (or only root) owns the console we fall back to the invoking
    user, so running the tool over ssh with sudo still targets a real account.
    ``console_only`` turns that fallback off for headless setups where guessing
    would pick the wrong account.
    """
    user = directory.console_user()
    if user and user != "root":
        return user
    if console_only:
        raise UserResolutionError("No GUI console user is logged in (--console-only given).")

    user = get_real_user()
    if not user:
        raise UserResolutionError("Unable to determine target user.")
    return user


def resolve_home(directory: Directory, user: str) -> Path:
    """Look up ``user``'s home directory in the directory service."""
    home = directory.home_directory(user)
    if not home:
        raise UserResolutionError(f"Unable to determine home directory for user: {user} (dscl lookup failed)")
    return Path(home)


def resolve_target(directory: Directory, user: str) -> TargetUser:
    return TargetUser(name=user, home=resolve_home(directory, user))


def list_local_users(directory: Directory) -> Iterator[str]:
    """Yield local account names with uid >= 501, in directory order."""
    for name, uid in directory.user_ids():
        if uid.isdigit() and int(uid) >= FIRST_LOCAL_UID:
            yield name
