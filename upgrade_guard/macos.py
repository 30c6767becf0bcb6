"""Thin wrappers around the macOS command-line tools the guard drives.

Every external command family sits behind a small protocol so the steps can be
exercised against in-memory fakes. The real implementations below shell out
through ``sh`` and turn any failure into ``CommandFailed``.
"""
import logging
import os
import pwd
from dataclasses import dataclass
from pathlib import Path
from typing import Iterator, Optional, Protocol, Tuple, Union

import sh

from upgrade_guard.errors import CommandFailed

logger = logging.getLogger(__name__)

PROFILES = "/usr/bin/profiles"


def _is_current_user(user: str) -> bool:
    uid = os.geteuid()
    if uid == 0:
        return False
    try:
        return pwd.getpwuid(uid).pw_name == user
    except KeyError:
        return False


def run(*args: Union[str, Path], user: Optional[str] = None) -> str:
    """Run a command and return its stdout.

    With ``user`` set the command runs as that account through ``sudo -u``,
    unless we already are that (non-root) user.
    """
    argv = [str(arg) for arg in args]
    if user is not None and not _is_current_user(user):
        argv = ["sudo", "-u", user] + argv
    logger.debug("Running: %s", " ".join(argv))
    try:
        return str(sh.Command(argv[0])(*argv[1:]))
    except sh.CommandNotFound as e:
        raise CommandFailed(argv[0], "command not found") from e
    except sh.ErrorReturnCode as e:
        stderr = e.stderr.decode(errors="replace").strip() if e.stderr else ""
        raise CommandFailed(" ".join(argv), stderr or f"exit code {e.exit_code}") from e


class PreferenceStore(Protocol):
    def read(self, domain: str, key: str, user: Optional[str] = None) -> Optional[str]:  # pragma: no cover - protocol
        ...

    def write_bool(self, domain: str, key: str, value: bool) -> None:  # pragma: no cover - protocol
        ...

    def write_date(self, domain: str, key: str, value: str, user: Optional[str] = None) -> None:  # pragma: no cover - protocol
        ...

    def delete(self, domain: str, key: str, user: Optional[str] = None) -> None:  # pragma: no cover - protocol
        ...

    def reload(self) -> None:  # pragma: no cover - protocol
        ...


class UpdateScheduler(Protocol):
    def enable_schedule(self) -> None:  # pragma: no cover - protocol
        ...

    def schedule(self) -> str:  # pragma: no cover - protocol
        ...


class ProfileRegistry(Protocol):
    def installed(self) -> str:  # pragma: no cover - protocol
        ...

    def install(self, path: Path) -> None:  # pragma: no cover - protocol
        ...

    def remove(self, identifier: str) -> None:  # pragma: no cover - protocol
        ...


class Directory(Protocol):
    def console_user(self) -> Optional[str]:  # pragma: no cover - protocol
        ...

    def home_directory(self, user: str) -> Optional[str]:  # pragma: no cover - protocol
        ...

    def user_ids(self) -> Iterator[Tuple[str, str]]:  # pragma: no cover - protocol
        ...


class System(Protocol):
    def product_name(self) -> Optional[str]:  # pragma: no cover - protocol
        ...

    def product_version(self) -> Optional[str]:  # pragma: no cover - protocol
        ...

    def lint_plist(self, path: Path) -> bool:  # pragma: no cover - protocol
        ...

    def open(self, target: Union[str, Path], user: Optional[str] = None) -> None:  # pragma: no cover - protocol
        ...


class Defaults:
    """Preference reads and writes through ``defaults``."""

    def read(self, domain: str, key: str, user: Optional[str] = None) -> Optional[str]:
        try:
            return run("defaults", "read", domain, key, user=user).strip()
        except CommandFailed:
            return None

    def write_bool(self, domain: str, key: str, value: bool) -> None:
        run("defaults", "write", domain, key, "-bool", "true" if value else "false")

    def write_date(self, domain: str, key: str, value: str, user: Optional[str] = None) -> None:
        run("defaults", "write", domain, key, "-date", value, user=user)

    def delete(self, domain: str, key: str, user: Optional[str] = None) -> None:
        run("defaults", "delete", domain, key, user=user)

    def reload(self) -> None:
        """Make cfprefsd drop its cached copies."""
        run("killall", "-HUP", "cfprefsd")


class SoftwareUpdate:
    """The ``softwareupdate`` scheduler."""

    def enable_schedule(self) -> None:
        run("softwareupdate", "--schedule", "on")

    def schedule(self) -> str:
        return run("softwareupdate", "--schedule").strip()


class Profiles:
    """The configuration profile registry behind ``/usr/bin/profiles``."""

    def installed(self) -> str:
        return run(PROFILES, "show", "-type", "configuration")

    def install(self, path: Path) -> None:
        run(PROFILES, "install", "-type", "configuration", "-path", path)

    def remove(self, identifier: str) -> None:
        run(PROFILES, "remove", "-identifier", identifier)


class DirectoryService:
    """Local user lookups through ``dscl`` and the console device."""

    def console_user(self) -> Optional[str]:
        try:
            return run("stat", "-f%Su", "/dev/console").strip() or None
        except CommandFailed:
            return None

    def home_directory(self, user: str) -> Optional[str]:
        try:
            output = run("dscl", ".", "-read", f"/Users/{user}", "NFSHomeDirectory")
        except CommandFailed:
            return None
        # "NFSHomeDirectory: /Users/alice", or the value on the next line when it has spaces
        lines = iter(output.splitlines())
        for line in lines:
            if line.startswith("NFSHomeDirectory:"):
                home = line.split(":", 1)[1].strip() or next(lines, "").strip()
                return home or None
        return None

    def user_ids(self) -> Iterator[Tuple[str, str]]:
        output = run("dscl", ".", "-list", "/Users", "UniqueID")
        for line in output.splitlines():
            parts = line.split()
            if len(parts) >= 2:
                yield parts[0], parts[-1]


class SystemInfo:
    """``sw_vers``, ``plutil`` and ``open``."""

    def product_name(self) -> Optional[str]:
        try:
            return run("sw_vers", "-productName").strip() or None
        except CommandFailed:
            return None

    def product_version(self) -> Optional[str]:
        try:
            return run("sw_vers", "-productVersion").strip() or None
        except CommandFailed:
            return None

    def lint_plist(self, path: Path) -> bool:
        try:
            run("plutil", "-lint", path)
        except CommandFailed:
            return False
        return True

    def open(self, target: Union[str, Path], user: Optional[str] = None) -> None:
        run("open", target, user=user)


@dataclass
class MacOS:
    """The set of OS capabilities one run works with."""
    defaults: PreferenceStore
    updates: UpdateScheduler
    profiles: ProfileRegistry
    directory: Directory
    system: System

    @classmethod
    def live(cls) -> "MacOS":
        return cls(
            defaults=Defaults(),
            updates=SoftwareUpdate(),
            profiles=Profiles(),
            directory=DirectoryService(),
            system=SystemInfo(),
        )
