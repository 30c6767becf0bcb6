"""Fatal error types for the upgrade guard."""


class GuardError(Exception):
    """Base class for errors that abort the whole run."""
    pass


class ValidationError(GuardError):
    """Raised when a user-supplied value is out of range or malformed."""
    pass


class MissingCommandError(GuardError):
    """Raised when a required system command is not on PATH."""

    def __init__(self, command: str):
        self.command = command
        super().__init__(f"Missing required command: {command}")


class UserResolutionError(GuardError):
    """Raised when the target user or their home directory cannot be determined."""
    pass


class ProfileWriteError(GuardError):
    """Raised when the generated profile cannot be written to its destination."""
    pass


class ElevationError(GuardError):
    """Raised when the process cannot be re-run under sudo."""
    pass


class CommandFailed(GuardError):
    """Raised by the OS wrappers when an external command fails.

    Callers decide whether this is fatal; most steps downgrade it to a warning.
    """

    def __init__(self, command: str, detail: str = ""):
        self.command = command
        self.detail = detail
        message = f"{command} failed"
        if detail:
            message = f"{message}: {detail}"
        super().__init__(message)
