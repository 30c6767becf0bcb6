"""Run configuration and the fixed values the tool works against."""
import re
from dataclasses import dataclass
from enum import Enum
from pathlib import Path

from upgrade_guard.errors import ValidationError


# Release we want to stay on, and the one we want to keep away
EXPECTED_MAJOR = "15"
EXPECTED_RELEASE = "Sequoia"
DEFAULT_UPGRADE_NAME = "Tahoe"

DEFAULT_NOTIFICATION_DATE = "2035-01-01 00:00:00 +0000"
DEFAULT_DEFERRAL_DAYS = 90
MIN_DEFERRAL_DAYS = 1
MAX_DEFERRAL_DAYS = 90

DATE_PATTERN = re.compile(r"^\d{4}-\d{2}-\d{2} \d{2}:\d{2}:\d{2} [+-]\d{4}$")

PROFILE_IDENTIFIER = "local.defer-major-upgrades.profile"
PAYLOAD_IDENTIFIER = "local.defer-major-upgrades.restrictions"

SYSTEM_UPDATE_DOMAIN = "/Library/Preferences/com.apple.SoftwareUpdate"
USER_UPDATE_DOMAIN = "com.apple.SoftwareUpdate"
NAG_KEY = "MajorOSUserNotificationDate"
POLICY_KEYS = (
    "AutomaticCheckEnabled",
    "AutomaticDownload",
    "AutomaticallyInstallMacOSUpdates",
    "ConfigDataInstall",
    "CriticalUpdateInstall",
)

APPLICATIONS_DIR = Path("/Applications")
INSTALLER_GLOB = "Install macOS*.app"
UPDATES_DIR = Path("/Library/Updates")

PROFILES_PANE_URL = "x-apple.systempreferences:com.apple.preferences.configurationprofiles"

# First uid handed out to regular local accounts
FIRST_LOCAL_UID = 501

REQUIRED_COMMANDS = (
    "sw_vers",
    "defaults",
    "softwareupdate",
    "plutil",
    "dscl",
    "stat",
    "open",
    "killall",
    "sudo",
)


class Mode(str, Enum):
    APPLY = "apply"
    STATUS = "status"
    UNDO = "undo"
    UNINSTALL_PROFILE = "uninstall_profile"
    PROFILE_ONLY = "profile_only"


@dataclass(frozen=True)
class RunConfig:
    """Everything the command line decided, fixed for the rest of the run."""
    mode: Mode = Mode.APPLY
    auto_install: bool = True
    make_profile: bool = True
    all_users: bool = False
    deferral_days: int = DEFAULT_DEFERRAL_DAYS
    notification_date: str = DEFAULT_NOTIFICATION_DATE
    upgrade_name: str = DEFAULT_UPGRADE_NAME
    console_only: bool = False
    verbose: bool = False

    def __post_init__(self):
        validate_days(self.deferral_days)
        validate_date(self.notification_date)


def validate_days(value) -> int:
    """Return ``value`` as an int in the allowed deferral range, or raise."""
    message = f"--days must be an integer between {MIN_DEFERRAL_DAYS} and {MAX_DEFERRAL_DAYS}."
    if isinstance(value, str):
        if not re.fullmatch(r"[0-9]+", value):
            raise ValidationError(message)
        value = int(value)
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValidationError(message)
    if not MIN_DEFERRAL_DAYS <= value <= MAX_DEFERRAL_DAYS:
        raise ValidationError(message)
    return value


def validate_date(value: str) -> str:
    """Check ``value`` looks like ``YYYY-MM-DD HH:MM:SS +0000``."""
    if not isinstance(value, str) or not DATE_PATTERN.match(value):
        raise ValidationError(f"Invalid --date format: '{value}' (expected 'YYYY-MM-DD HH:MM:SS +0000')")
    return value
