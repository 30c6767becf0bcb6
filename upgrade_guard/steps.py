"""Guard workflow: one fixed sequence of steps per mode."""
from pathlib import Path
from typing import Callable, Dict, List, Optional

from upgrade_guard.config import (
    APPLICATIONS_DIR,
    EXPECTED_MAJOR,
    EXPECTED_RELEASE,
    UPDATES_DIR,
    Mode,
    RunConfig,
)
from upgrade_guard.installers import purge_installer_and_cache
from upgrade_guard.macos import MacOS
from upgrade_guard.policy import configure_updates, suppress_for_users, unsuppress_for_users
from upgrade_guard.profile import generate_profile, remove_profile
from upgrade_guard.results import StepResult
from upgrade_guard.status import on_expected_major, os_version, show_status
from upgrade_guard.users import list_local_users, resolve_console_user, resolve_target
from upgrade_guard.utils import log, log_info, log_warn, work_dir


class Invocation:
    """State shared by the steps of one invocation."""

    def __init__(self, config: RunConfig, macos: MacOS, console_user: str, scratch: Path):
        self.config = config
        self.macos = macos
        self.console_user = console_user
        self.scratch = scratch

    def target_users(self):
        if self.config.all_users:
            return list_local_users(self.macos.directory)
        return [self.console_user]

    def make_profile(self) -> StepResult:
        target = resolve_target(self.macos.directory, self.console_user)
        return generate_profile(target, self.config.deferral_days, self.macos.system, self.macos.profiles, self.scratch)


def run_status(invocation: Invocation) -> List[StepResult]:
    show_status(invocation.macos, invocation.console_user, APPLICATIONS_DIR, UPDATES_DIR)
    return []


def run_undo(invocation: Invocation) -> List[StepResult]:
    log_info("Undo: removing only MajorOSUserNotificationDate nag suppression.")
    return [unsuppress_for_users(invocation.macos.defaults, invocation.target_users())]


def run_profile_only(invocation: Invocation) -> List[StepResult]:
    return [invocation.make_profile()]


def run_uninstall_profile(invocation: Invocation) -> List[StepResult]:
    return [remove_profile(invocation.macos.profiles)]


def run_apply(invocation: Invocation) -> List[StepResult]:
    config = invocation.config
    if not on_expected_major(os_version(invocation.macos.system)):
        log_warn(f"You are not on macOS {EXPECTED_MAJOR}.x ({EXPECTED_RELEASE}). Continuing anyway.")

    results = [
        configure_updates(invocation.macos.defaults, invocation.macos.updates, config.auto_install),
        purge_installer_and_cache(config.upgrade_name, APPLICATIONS_DIR, UPDATES_DIR),
    ]

    if config.all_users:
        log_info("Applying nag suppression for ALL local users (UID >= 501)...")
    results.append(suppress_for_users(invocation.macos.defaults, invocation.target_users(), config.notification_date))

    if config.make_profile:
        results.append(invocation.make_profile())
    else:
        log_info("Skipping deferral profile (--no-profile).")

    log()
    log("Quick status:")
    show_status(invocation.macos, invocation.console_user, APPLICATIONS_DIR, UPDATES_DIR)
    return results


HANDLERS: Dict[Mode, Callable[[Invocation], List[StepResult]]] = {
    Mode.APPLY: run_apply,
    Mode.STATUS: run_status,
    Mode.UNDO: run_undo,
    Mode.PROFILE_ONLY: run_profile_only,
    Mode.UNINSTALL_PROFILE: run_uninstall_profile,
}


def run(config: RunConfig, macos: Optional[MacOS] = None) -> List[StepResult]:
    """Execute ``config.mode`` and return the results of the steps it ran."""
    macos = macos or MacOS.live()
    console_user = resolve_console_user(macos.directory, config.console_only)
    with work_dir() as scratch:
        return HANDLERS[config.mode](Invocation(config, macos, console_user, scratch))
