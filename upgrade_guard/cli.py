"""CLI interface for the upgrade guard."""
import sys
from typing import Dict, List, Optional

import typer
from typer.core import TyperGroup

from . import privilege
from . import steps
from . import utils
from .config import (
    DEFAULT_DEFERRAL_DAYS,
    DEFAULT_NOTIFICATION_DATE,
    DEFAULT_UPGRADE_NAME,
    MAX_DEFERRAL_DAYS,
    MIN_DEFERRAL_DAYS,
    REQUIRED_COMMANDS,
    Mode,
    RunConfig,
    validate_date,
    validate_days,
)
from .errors import GuardError, ValidationError

MODE_KEY = "upgrade_guard.mode"
MODES = {mode.value: mode for mode in Mode}


def last_mode(args: List[str], params) -> Optional[Mode]:
    """Return the mode named by the last mode flag in ``args``, repeats included."""
    flags: Dict[str, Mode] = {}
    takes_value = set()
    for param in params:
        if param.name in MODES:
            flags.update((opt, MODES[param.name]) for opt in param.opts)
        elif not getattr(param, "is_flag", True):
            takes_value.update(param.opts)

    mode = None
    tokens = iter(args)
    for token in tokens:
        if token == "--":
            break
        if token in takes_value:
            next(tokens, None)
        elif token in flags:
            mode = flags[token]
    return mode


class GuardGroup(TyperGroup):
    """Callback group that remembers which mode flag came last."""

    def parse_args(self, ctx, args):
        mode = last_mode(args, self.get_params(ctx))
        if mode is not None:
            ctx.meta[MODE_KEY] = mode
        return super().parse_args(ctx, args)


def _check_days(value: str) -> int:
    try:
        return validate_days(value)
    except ValidationError as e:
        raise typer.BadParameter(str(e))


def _check_date(value: str) -> str:
    try:
        return validate_date(value)
    except ValidationError as e:
        raise typer.BadParameter(str(e))


def guard(
    ctx: typer.Context,
    apply: bool = typer.Option(False, "--apply", help="Apply changes (default)"),
    status: bool = typer.Option(False, "--status", help="Show current status (no changes)"),
    undo: bool = typer.Option(
        False, "--undo",
        help="Remove only the nag-suppression key (MajorOSUserNotificationDate) for the targeted user(s)",
    ),
    uninstall_profile: bool = typer.Option(
        False, "--uninstall-profile", help="Remove the deferral profile installed by this tool",
    ),
    profile_only: bool = typer.Option(
        False, "--profile-only", help="Only generate/open the deferral profile (no other changes)",
    ),
    manual: bool = typer.Option(
        False, "--manual", help="Keep updates enabled, but do NOT auto-install macOS updates",
    ),
    no_profile: bool = typer.Option(
        False, "--no-profile", help="Skip generating/opening the major-upgrade deferral profile",
    ),
    days: str = typer.Option(
        str(DEFAULT_DEFERRAL_DAYS), "--days", callback=_check_days, metavar="N",
        help=f"Deferral days for the profile ({MIN_DEFERRAL_DAYS}..{MAX_DEFERRAL_DAYS})",
    ),
    date: str = typer.Option(
        DEFAULT_NOTIFICATION_DATE, "--date", callback=_check_date, metavar="'YYYY-MM-DD HH:MM:SS +0000'",
        help="Date for MajorOSUserNotificationDate",
    ),
    all_users: bool = typer.Option(False, "--all-users", help="Apply nag suppression to all local users (UID >= 501)"),
    upgrade_name: str = typer.Option(
        DEFAULT_UPGRADE_NAME, "--upgrade-name", envvar="UPGRADE_GUARD_UPGRADE_NAME",
        help="Name of the major upgrade whose installer is purged",
    ),
    console_only: bool = typer.Option(
        False, "--console-only", help="Never fall back to the invoking user when no GUI user is logged in",
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable verbose output"),
):
    """Stay on the current macOS release: keep point updates, hide and defer the next major upgrade."""
    utils.setup_logging(verbose)

    try:
        config = RunConfig(
            mode=ctx.meta.get(MODE_KEY, Mode.APPLY),
            auto_install=not manual,
            make_profile=not no_profile,
            all_users=all_users,
            deferral_days=days,
            notification_date=date,
            upgrade_name=upgrade_name,
            console_only=console_only,
            verbose=verbose,
        )
        utils.require_commands(REQUIRED_COMMANDS)
        privilege.ensure_elevated(config.mode, sys.argv[1:])
        results = steps.run(config)
    except GuardError as e:
        utils.log_error(str(e))
        raise typer.Exit(1)

    warnings = sum(len(result.warnings) for result in results)
    if warnings:
        typer.echo(f"⚠️  Done with {warnings} warning(s); see WARN lines above.")
    elif config.mode is not Mode.STATUS:
        typer.echo("✅ Done.")


app = typer.Typer(
    name="upgrade-guard",
    help="Keep macOS point updates flowing while holding back the next major upgrade.",
    add_completion=False,
    invoke_without_command=True,
    cls=GuardGroup,
    callback=guard,
    context_settings={"help_option_names": ["-h", "--help"]},
)


if __name__ == "__main__":
    app()
