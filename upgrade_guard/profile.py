"""The "defer major upgrades only" configuration profile.

The generated profile carries one ``com.apple.applicationaccess`` payload that
turns on the major-upgrade deferral for N days and explicitly leaves minor OS
and app update deferral off, so point and security releases keep arriving.
"""
import plistlib
import shutil
import time
import uuid
from dataclasses import dataclass, field
from pathlib import Path

from upgrade_guard.config import (
    PAYLOAD_IDENTIFIER,
    PROFILE_IDENTIFIER,
    PROFILES_PANE_URL,
    validate_days,
)
from upgrade_guard.errors import CommandFailed, ProfileWriteError
from upgrade_guard.macos import ProfileRegistry, System
from upgrade_guard.results import StepResult
from upgrade_guard.users import TargetUser
from upgrade_guard.utils import log, log_info, log_action

RESTRICTIONS_PAYLOAD_TYPE = "com.apple.applicationaccess"
PAYLOAD_DISPLAY_NAME = "Defer Major macOS Upgrades"

# Give System Settings a moment to register the opened profile before switching panes
OPEN_DELAY_SECONDS = 2


def _new_uuid() -> str:
    return str(uuid.uuid4()).upper()


@dataclass(frozen=True)
class DeferralProfile:
    deferral_days: int
    profile_uuid: str = field(default_factory=_new_uuid)
    payload_uuid: str = field(default_factory=_new_uuid)
    profile_identifier: str = PROFILE_IDENTIFIER
    payload_identifier: str = PAYLOAD_IDENTIFIER

    @property
    def display_name(self) -> str:
        return f"{PAYLOAD_DISPLAY_NAME} ({self.deferral_days} days)"


def build_profile(days) -> DeferralProfile:
    """Validate ``days`` and create a profile with fresh UUIDs."""
    return DeferralProfile(deferral_days=validate_days(days))


def restrictions_payload(profile: DeferralProfile) -> dict:
    return {
        "PayloadType": RESTRICTIONS_PAYLOAD_TYPE,
        "PayloadVersion": 1,
        "PayloadIdentifier": profile.payload_identifier,
        "PayloadUUID": profile.payload_uuid,
        "PayloadEnabled": True,
        "PayloadDisplayName": PAYLOAD_DISPLAY_NAME,
        "PayloadScope": "System",
        # Major upgrades only
        "forceDelayedMajorSoftwareUpdates": True,
        "enforcedSoftwareUpdateMajorOSDeferredInstallDelay": profile.deferral_days,
        # Minor OS and app updates must not be held back
        "forceDelayedSoftwareUpdates": False,
        "forceDelayedAppSoftwareUpdates": False,
    }


def render_profile(profile: DeferralProfile) -> bytes:
    """Serialize ``profile`` as an XML .mobileconfig document."""
    document = {
        "PayloadContent": [restrictions_payload(profile)],
        "PayloadType": "Configuration",
        "PayloadVersion": 1,
        "PayloadIdentifier": profile.profile_identifier,
        "PayloadUUID": profile.profile_uuid,
        "PayloadDisplayName": profile.display_name,
        "PayloadOrganization": "Local",
    }
    return plistlib.dumps(document, fmt=plistlib.FMT_XML)


def profile_path(target: TargetUser, days: int) -> Path:
    return target.downloads / f"defer-major-upgrades-{days}days.mobileconfig"


def _open_for_approval(system: System, target: TargetUser, path: Path, result: StepResult) -> None:
    log_action("CLI install not available, opening for manual approval...")
    try:
        system.open(path, user=target.name)
    except CommandFailed:
        result.warn(f"Could not open the profile automatically. Open it manually: {path}")
    time.sleep(OPEN_DELAY_SECONDS)
    try:
        system.open(PROFILES_PANE_URL, user=target.name)
    except CommandFailed:
        pass

    log()
    log("Profile install reminder:")
    log("  System Settings → (Profile Downloaded / Device Management / Profiles) → Install")
    log("  Then return to System Settings → General → Software Update.")


def generate_profile(
    target: TargetUser,
    days,
    system: System,
    profiles: ProfileRegistry,
    scratch: Path,
) -> StepResult:
    """Render, lint, save and install the deferral profile for ``target``.

    Installing through ``profiles`` is attempted first; recent macOS refuses
    unsigned profiles from the command line, in which case the file is opened
    in System Settings for the user to approve.
    """
    profile = build_profile(days)
    result = StepResult("generate_profile")
    out = profile_path(target, profile.deferral_days)

    log_info(f"Generating deferral profile (major upgrades only, {profile.deferral_days} days) at:")
    log_action(str(out))

    draft = scratch / "profile.mobileconfig"
    try:
        draft.write_bytes(render_profile(profile))
    except OSError as e:
        raise ProfileWriteError(f"Failed to write profile draft to {draft}: {e}") from e

    if system.lint_plist(draft):
        log_action("Profile validated (plutil -lint OK).")
    else:
        result.warn("Profile did not validate with plutil. It may still work, but review the file.")

    try:
        out.parent.mkdir(parents=True, exist_ok=True)
        shutil.copyfile(draft, out)
    except OSError as e:
        raise ProfileWriteError(f"Failed to write profile to {out}: {e}") from e
    result.changed = True

    try:
        shutil.chown(out, user=target.name)
    except (LookupError, OSError) as e:
        result.warn(f"Could not hand {out} over to {target.name}: {e}")

    try:
        profiles.install(out)
    except CommandFailed:
        _open_for_approval(system, target, out, result)
    else:
        log_action("Profile installed via CLI. Verify in System Settings → Profiles.")
    return result


def is_installed(profiles: ProfileRegistry, identifier: str = PROFILE_IDENTIFIER) -> bool:
    try:
        return identifier in profiles.installed()
    except CommandFailed:
        return False


def remove_profile(profiles: ProfileRegistry, identifier: str = PROFILE_IDENTIFIER) -> StepResult:
    result = StepResult("remove_profile")
    log_info(f"Removing deferral profile (identifier: {identifier})...")
    if not is_installed(profiles, identifier):
        log_action(f"Profile not found (identifier: {identifier}). Nothing to remove.")
        return result
    try:
        profiles.remove(identifier)
    except CommandFailed as e:
        result.warn(f"Failed to remove profile ({e}). Try removing it manually in System Settings → Profiles.")
    else:
        log_action("Profile removed.")
        result.changed = True
    return result
