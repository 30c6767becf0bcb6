"""Remove downloaded major-upgrade installers and the update download cache."""
import plistlib
import shutil
from pathlib import Path
from typing import List
from xml.parsers.expat import ExpatError

from upgrade_guard.config import APPLICATIONS_DIR, INSTALLER_GLOB, UPDATES_DIR
from upgrade_guard.results import StepResult
from upgrade_guard.utils import log_info, log_action


def find_installers(applications_dir: Path = APPLICATIONS_DIR) -> List[Path]:
    """All ``Install macOS*.app`` bundles, whatever release they carry."""
    return sorted(path for path in applications_dir.glob(INSTALLER_GLOB) if path.is_dir())


def display_name(bundle: Path) -> str:
    """CFBundleDisplayName of an app bundle, or '' if it cannot be read."""
    try:
        with open(bundle / "Contents" / "Info.plist", "rb") as f:
            info = plistlib.load(f)
    except (OSError, ValueError, ExpatError):
        return ""
    name = info.get("CFBundleDisplayName", "") if isinstance(info, dict) else ""
    return name if isinstance(name, str) else ""


def matches_upgrade(bundle: Path, upgrade_name: str) -> bool:
    combined = f"{bundle.name} {display_name(bundle)}"
    return upgrade_name.lower() in combined.lower()


def purge_installers(upgrade_name: str, applications_dir: Path = APPLICATIONS_DIR) -> StepResult:
    result = StepResult("purge_installers")
    found = False
    for bundle in find_installers(applications_dir):
        if not matches_upgrade(bundle, upgrade_name):
            continue
        found = True
        log_action(f"Removing: {bundle}")
        try:
            shutil.rmtree(bundle)
        except OSError as e:
            result.warn(f"Failed to remove {bundle} (check permissions/SIP): {e}")
        else:
            result.changed = True
    if not found:
        log_action(f"No {upgrade_name} installer app found in {applications_dir}.")
    return result


def clear_update_cache(updates_dir: Path = UPDATES_DIR) -> StepResult:
    """Empty ``updates_dir`` but keep the directory itself."""
    result = StepResult("clear_update_cache")
    if not updates_dir.is_dir():
        log_action(f"{updates_dir} does not exist (nothing to clear).")
        return result

    failed = []
    for entry in updates_dir.iterdir():
        try:
            if entry.is_dir() and not entry.is_symlink():
                shutil.rmtree(entry)
            else:
                entry.unlink()
        except OSError:
            failed.append(entry.name)
        else:
            result.changed = True

    if failed:
        result.warn(f"Could not fully clear {updates_dir} (some files may be protected/locked): {', '.join(failed)}")
    else:
        log_action(f"Cleared: {updates_dir}/*")
    return result


def purge_installer_and_cache(
    upgrade_name: str,
    applications_dir: Path = APPLICATIONS_DIR,
    updates_dir: Path = UPDATES_DIR,
) -> StepResult:
    log_info(f"Purging any downloaded {upgrade_name} installer + clearing {updates_dir} cache...")
    installers = purge_installers(upgrade_name, applications_dir)
    cache = clear_update_cache(updates_dir)
    return StepResult(
        "purge_installer_and_cache",
        warnings=installers.warnings + cache.warnings,
        changed=installers.changed,
    )
