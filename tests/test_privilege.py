"""Tests for sudo re-execution."""
import sys

import pytest
from unittest.mock import patch

from upgrade_guard.config import Mode
from upgrade_guard.errors import ElevationError
from upgrade_guard.privilege import elevation_command, ensure_elevated, needs_elevation


@pytest.mark.parametrize("mode, expected", [
    (Mode.APPLY, True),
    (Mode.UNDO, True),
    (Mode.UNINSTALL_PROFILE, True),
    (Mode.PROFILE_ONLY, True),
    (Mode.STATUS, False),
])
def test_needs_elevation(mode, expected):
    """Test only the read-only status mode runs unprivileged."""
    assert needs_elevation(mode) is expected


class TestElevationCommand:
    """Tests for building the sudo command line."""

    def test_entry_script_is_resolved(self, tmp_path, monkeypatch):
        """Test the entry script is repeated by absolute, symlink-free path."""
        script = tmp_path / "bin" / "upgrade-guard"
        script.parent.mkdir()
        script.write_text("#!/usr/bin/env python3\n")
        link = tmp_path / "guard-link"
        link.symlink_to(script)
        monkeypatch.chdir(tmp_path)
        monkeypatch.setattr(sys, "argv", ["guard-link", "--days", "30"])

        command = elevation_command(["--days", "30"])

        assert command == ["sudo", str(script.resolve()), "--days", "30"]

    def test_module_invocation(self, tmp_path, monkeypatch):
        """Test python -m runs are repeated as python -m."""
        main = tmp_path / "__main__.py"
        main.write_text("")
        monkeypatch.setattr(sys, "argv", [str(main), "--undo"])

        command = elevation_command(["--undo"])

        assert command == ["sudo", sys.executable, "-m", "upgrade_guard", "--undo"]


class TestEnsureElevated:
    """Tests for the re-exec decision."""

    @patch('upgrade_guard.privilege.os.execvp')
    @patch('upgrade_guard.privilege.is_root', return_value=False)
    def test_status_never_escalates(self, mock_is_root, mock_execvp):
        """Test status runs as whoever called it."""
        ensure_elevated(Mode.STATUS, ["--status"])
        mock_execvp.assert_not_called()

    @patch('upgrade_guard.privilege.os.execvp')
    @patch('upgrade_guard.privilege.is_root', return_value=True)
    def test_already_root(self, mock_is_root, mock_execvp):
        """Test nothing happens when already root."""
        ensure_elevated(Mode.APPLY, [])
        mock_execvp.assert_not_called()

    @patch('upgrade_guard.privilege.elevation_command', return_value=["sudo", "/opt/bin/upgrade-guard", "--undo"])
    @patch('upgrade_guard.privilege.os.execvp')
    @patch('upgrade_guard.privilege.is_root', return_value=False)
    def test_reexecs_under_sudo(self, mock_is_root, mock_execvp, mock_command, capsys):
        """Test the whole command line is handed to sudo."""
        ensure_elevated(Mode.UNDO, ["--undo"])

        mock_command.assert_called_once_with(["--undo"])
        mock_execvp.assert_called_once_with("sudo", ["sudo", "/opt/bin/upgrade-guard", "--undo"])
        assert "Re-running with sudo" in capsys.readouterr().out

    @patch('upgrade_guard.privilege.os.execvp', side_effect=FileNotFoundError("sudo"))
    @patch('upgrade_guard.privilege.is_root', return_value=False)
    def test_exec_failure_is_fatal(self, mock_is_root, mock_execvp):
        """Test a failed re-exec aborts the run."""
        with pytest.raises(ElevationError, match="sudo"):
            ensure_elevated(Mode.APPLY, [])
