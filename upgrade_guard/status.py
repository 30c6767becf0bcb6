"""Read-only report of everything the guard touches."""
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional

from upgrade_guard.config import (
    APPLICATIONS_DIR,
    EXPECTED_MAJOR,
    EXPECTED_RELEASE,
    NAG_KEY,
    POLICY_KEYS,
    SYSTEM_UPDATE_DOMAIN,
    UPDATES_DIR,
    USER_UPDATE_DOMAIN,
)
from upgrade_guard.errors import CommandFailed
from upgrade_guard.installers import find_installers
from upgrade_guard.macos import MacOS, System
from upgrade_guard.utils import log, log_warn

UNSET = "<unset>"


def os_version(system: System) -> str:
    return system.product_version() or "unknown"


def major_of(version: str) -> str:
    """Leading component of a version string, kept as text ("unknown" stays "unknown")."""
    return version.split(".", 1)[0]


def on_expected_major(version: str) -> bool:
    return major_of(version) == EXPECTED_MAJOR


@dataclass
class StatusReport:
    product_name: str
    product_version: str
    console_user: str
    schedule: Optional[str] = None
    preferences: Dict[str, Optional[str]] = field(default_factory=dict)
    nag_date: Optional[str] = None
    installers: List[str] = field(default_factory=list)
    update_cache: Optional[List[str]] = None

    @property
    def major(self) -> str:
        return major_of(self.product_version)

    @property
    def on_expected_major(self) -> bool:
        return on_expected_major(self.product_version)


def _list_dir(path: Path) -> Optional[List[str]]:
    if not path.is_dir():
        return None
    try:
        return sorted(entry.name for entry in path.iterdir())
    except OSError:
        return []


def collect_status(
    macos: MacOS,
    console_user: str,
    applications_dir: Path = APPLICATIONS_DIR,
    updates_dir: Path = UPDATES_DIR,
) -> StatusReport:
    """Gather the current state without changing anything."""
    try:
        schedule = macos.updates.schedule()
    except CommandFailed:
        schedule = None

    return StatusReport(
        product_name=macos.system.product_name() or "macOS",
        product_version=os_version(macos.system),
        console_user=console_user,
        schedule=schedule,
        preferences={key: macos.defaults.read(SYSTEM_UPDATE_DOMAIN, key) for key in POLICY_KEYS},
        nag_date=macos.defaults.read(USER_UPDATE_DOMAIN, NAG_KEY, user=console_user),
        installers=[path.name for path in find_installers(applications_dir)],
        update_cache=_list_dir(updates_dir),
    )


def format_status(report: StatusReport, updates_dir: Path = UPDATES_DIR) -> List[str]:
    lines = [
        "=== Status ===",
        f"OS: {report.product_name} {report.product_version} (major {report.major})",
    ]
    if report.on_expected_major:
        lines.append(f"Detected: {EXPECTED_RELEASE} ({EXPECTED_MAJOR}.x)")

    lines += ["", "Software Update schedule:"]
    if report.schedule is not None:
        lines.append(f"  {report.schedule}")

    lines += ["", "System-wide SoftwareUpdate prefs (subset):"]
    for key, value in report.preferences.items():
        lines.append(f"  {key} = {UNSET if value is None else value}")

    lines += [
        "",
        f"User nag suppression ({NAG_KEY}) for console user: {report.console_user}",
        f"  {UNSET if report.nag_date is None else report.nag_date}",
    ]

    lines += ["", "Installers in /Applications matching 'Install macOS*.app':"]
    lines += [f"  {name}" for name in report.installers] or ["  <none>"]

    lines += ["", f"{updates_dir} contents:"]
    if report.update_cache is None:
        lines.append(f"  <no {updates_dir} directory>")
    else:
        lines += [f"  {name}" for name in report.update_cache] or ["  <empty>"]
    return lines


def show_status(
    macos: MacOS,
    console_user: str,
    applications_dir: Path = APPLICATIONS_DIR,
    updates_dir: Path = UPDATES_DIR,
) -> StatusReport:
    report = collect_status(macos, console_user, applications_dir, updates_dir)
    if not report.on_expected_major:
        log_warn(f"Not on macOS {EXPECTED_MAJOR}.x ({EXPECTED_RELEASE}). The guard still may work, but it was written for {EXPECTED_RELEASE}.")
    if report.schedule is None:
        log_warn("Could not query softwareupdate schedule.")
    for line in format_status(report, updates_dir):
        log(line)
    return report
