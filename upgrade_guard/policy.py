"""Software Update preferences and the per-user major-upgrade nag."""
from typing import Iterable

from upgrade_guard.config import NAG_KEY, SYSTEM_UPDATE_DOMAIN, USER_UPDATE_DOMAIN
from upgrade_guard.errors import CommandFailed
from upgrade_guard.macos import PreferenceStore, UpdateScheduler
from upgrade_guard.results import StepResult
from upgrade_guard.utils import log_info, log_action


def policy_values(auto_install: bool) -> dict:
    """System-wide keys we set, in the order we set them."""
    return {
        "AutomaticCheckEnabled": True,
        "AutomaticDownload": True,
        "AutomaticallyInstallMacOSUpdates": auto_install,
        "ConfigDataInstall": True,
        "CriticalUpdateInstall": True,
    }


def configure_updates(defaults: PreferenceStore, updates: UpdateScheduler, auto_install: bool) -> StepResult:
    """Keep point and security updates flowing.

    Each write stands alone: the preference store may refuse single keys
    depending on OS version or MDM policy, so a refusal only warns.
    """
    result = StepResult("configure_updates")
    log_info(f"Configuring Software Update settings (updates ON; auto-install={str(auto_install).lower()})...")

    try:
        updates.enable_schedule()
    except CommandFailed as e:
        result.warn(f"Could not enable the Software Update schedule: {e}")

    for key, value in policy_values(auto_install).items():
        try:
            defaults.write_bool(SYSTEM_UPDATE_DOMAIN, key, value)
        except CommandFailed as e:
            result.warn(f"Failed to set {key}: {e}")
        else:
            log_action(f"{key} = {str(value).lower()}")
            result.changed = True

    try:
        defaults.reload()
    except CommandFailed:
        # Nothing to reload when cfprefsd is not running
        pass
    return result


def suppress_nag(defaults: PreferenceStore, user: str, date: str, result: StepResult) -> None:
    log_info(f"Suppressing major-upgrade notification for user: {user}")
    try:
        defaults.write_date(USER_UPDATE_DOMAIN, NAG_KEY, date, user=user)
    except CommandFailed as e:
        result.warn(f"Failed to set {NAG_KEY} for {user}: {e}")
    else:
        result.changed = True


def unsuppress_nag(defaults: PreferenceStore, user: str, result: StepResult) -> None:
    log_info(f"Removing major-upgrade notification suppression for user: {user}")
    if defaults.read(USER_UPDATE_DOMAIN, NAG_KEY, user=user) is None:
        log_action("Not set, nothing to remove.")
        return
    try:
        defaults.delete(USER_UPDATE_DOMAIN, NAG_KEY, user=user)
    except CommandFailed as e:
        result.warn(f"Failed to remove {NAG_KEY} for {user}: {e}")
    else:
        result.changed = True


def suppress_for_users(defaults: PreferenceStore, users: Iterable[str], date: str) -> StepResult:
    """Set the nag date for every user; one failure never stops the rest."""
    result = StepResult("suppress_nag")
    try:
        for user in users:
            suppress_nag(defaults, user, date, result)
    except CommandFailed as e:
        result.warn(f"Could not list local users: {e}")
    return result


def unsuppress_for_users(defaults: PreferenceStore, users: Iterable[str]) -> StepResult:
    result = StepResult("unsuppress_nag")
    try:
        for user in users:
            unsuppress_nag(defaults, user, result)
    except CommandFailed as e:
        result.warn(f"Could not list local users: {e}")
    return result
