"""Tests for Software Update preferences and nag suppression."""
import pytest

from upgrade_guard.config import NAG_KEY, SYSTEM_UPDATE_DOMAIN, USER_UPDATE_DOMAIN
from upgrade_guard.policy import (
    configure_updates,
    policy_values,
    suppress_for_users,
    unsuppress_for_users,
)
from upgrade_guard.errors import CommandFailed
from upgrade_guard.results import Severity
from fakes import FakeDefaults, FakeSoftwareUpdate

DATE = "2035-01-01 00:00:00 +0000"


class TestConfigureUpdates:
    """Tests for the system-wide update policy."""

    @pytest.mark.parametrize("auto_install", [True, False])
    def test_writes_every_key(self, auto_install):
        """Test all five keys are written with auto-install from the caller."""
        defaults = FakeDefaults()
        updates = FakeSoftwareUpdate()

        result = configure_updates(defaults, updates, auto_install)

        assert updates.enabled is True
        assert [w[2] for w in defaults.writes] == list(policy_values(auto_install))
        assert ((SYSTEM_UPDATE_DOMAIN, None, "AutomaticallyInstallMacOSUpdates", auto_install)
                in defaults.writes)
        assert (SYSTEM_UPDATE_DOMAIN, None, "CriticalUpdateInstall", True) in defaults.writes
        assert (SYSTEM_UPDATE_DOMAIN, None, "ConfigDataInstall", True) in defaults.writes
        assert defaults.reloads == 1
        assert result.severity is Severity.OK

    def test_one_rejected_key_does_not_stop_the_rest(self, capsys):
        """Test a refused write only warns."""
        defaults = FakeDefaults()
        defaults.failing_keys.add("AutomaticDownload")

        result = configure_updates(defaults, FakeSoftwareUpdate(), True)

        written = [w[2] for w in defaults.writes]
        assert "AutomaticDownload" not in written
        assert written == ["AutomaticCheckEnabled", "AutomaticallyInstallMacOSUpdates",
                           "ConfigDataInstall", "CriticalUpdateInstall"]
        assert result.severity is Severity.WARNING
        assert "WARN: Failed to set AutomaticDownload" in capsys.readouterr().err

    def test_schedule_failure_warns(self):
        """Test softwareupdate refusing the schedule is advisory."""
        result = configure_updates(FakeDefaults(), FakeSoftwareUpdate(broken=True), True)

        assert len(result.warnings) == 1
        assert "schedule" in result.warnings[0]


class TestNagSuppression:
    """Tests for MajorOSUserNotificationDate."""

    def test_suppress_console_user(self):
        """Test the date is written in the user's own domain."""
        defaults = FakeDefaults()

        result = suppress_for_users(defaults, ["alice"], DATE)

        assert defaults.read(USER_UPDATE_DOMAIN, NAG_KEY, user="alice") == DATE
        assert result.changed is True

    def test_all_users_continue_after_failure(self):
        """Test one user's failure does not stop the others."""
        defaults = FakeDefaults()
        defaults.failing_users.add("bob")

        result = suppress_for_users(defaults, iter(["alice", "bob", "carol"]), DATE)

        assert defaults.read(USER_UPDATE_DOMAIN, NAG_KEY, user="alice") == DATE
        assert defaults.read(USER_UPDATE_DOMAIN, NAG_KEY, user="bob") is None
        assert defaults.read(USER_UPDATE_DOMAIN, NAG_KEY, user="carol") == DATE
        assert len(result.warnings) == 1
        assert "bob" in result.warnings[0]

    def test_unsuppress_removes_key(self):
        """Test undo deletes the key for the user."""
        defaults = FakeDefaults({(USER_UPDATE_DOMAIN, "alice", NAG_KEY): DATE})

        result = unsuppress_for_users(defaults, ["alice"])

        assert defaults.read(USER_UPDATE_DOMAIN, NAG_KEY, user="alice") is None
        assert result.changed is True

    def test_unsuppress_twice_is_quiet(self):
        """Test deleting an absent key is not an error."""
        defaults = FakeDefaults({(USER_UPDATE_DOMAIN, "alice", NAG_KEY): DATE})

        unsuppress_for_users(defaults, ["alice"])
        result = unsuppress_for_users(defaults, ["alice"])

        assert result.severity is Severity.OK
        assert result.changed is False

    def test_unsuppress_continues_after_failure(self):
        """Test a failing delete warns and moves on."""
        defaults = FakeDefaults({
            (USER_UPDATE_DOMAIN, "alice", NAG_KEY): DATE,
            (USER_UPDATE_DOMAIN, "bob", NAG_KEY): DATE,
        })
        defaults.failing_users.add("alice")

        result = unsuppress_for_users(defaults, ["alice", "bob"])

        assert defaults.read(USER_UPDATE_DOMAIN, NAG_KEY, user="bob") is None
        assert len(result.warnings) == 1

    @pytest.mark.parametrize("apply_to", [
        lambda defaults, users: suppress_for_users(defaults, users, DATE),
        unsuppress_for_users,
    ])
    def test_user_listing_failure_warns(self, apply_to):
        """Test a failing user enumeration is a warning, not an abort."""
        def users():
            yield "alice"
            raise CommandFailed("dscl . -list /Users UniqueID", "eDSPermissionError")

        defaults = FakeDefaults({(USER_UPDATE_DOMAIN, "alice", NAG_KEY): DATE})

        result = apply_to(defaults, users())

        assert result.severity is Severity.WARNING
        assert "Could not list local users" in result.warnings[-1]
