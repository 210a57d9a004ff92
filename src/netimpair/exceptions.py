"""
Custom exceptions for the netimpair package.

Failed tc/ip commands are reported as StepOutcome records, not raised.
These exceptions cover configuration and usage errors.
"""


class NetImpairError(Exception):
    """Base exception for all netimpair errors."""

    pass


class SudoNotAvailableError(NetImpairError):
    """
    Raised when sudo access is required but not available.

    Impairment rules require root privileges to execute tc/ip commands.
    Configure passwordless sudo for tc/ip commands, run as root, or
    disable sudo with --no-sudo when already privileged.
    """

    def __init__(self, message: str = "Sudo access is required for network impairment"):
        super().__init__(message)


class CommandFailedError(NetImpairError):
    """
    Raised by StepOutcome.raise_for_status() when a step did not succeed.

    This may indicate insufficient permissions, invalid parameters,
    or missing kernel modules.
    """

    def __init__(self, command: str, returncode: int, stderr: str = ""):
        self.command = command
        self.returncode = returncode
        self.stderr = stderr
        message = f"Command failed (exit {returncode}): {command}"
        if stderr:
            message += f"\nStderr: {stderr}"
        super().__init__(message)


class InvalidProfileError(NetImpairError):
    """Raised when an impairment value is out of range or not a number."""

    def __init__(self, field: str, value, reason: str = ""):
        self.field = field
        self.value = value
        message = f"Invalid value for {field}: {value!r}"
        if reason:
            message += f" ({reason})"
        super().__init__(message)


class ProfileNotFoundError(NetImpairError):
    """
    Raised when a requested named profile is not found.

    Check that the profile name is correct and the profiles file
    has been loaded properly.
    """

    def __init__(self, profile_name: str):
        self.profile_name = profile_name
        super().__init__(f"Impairment profile not found: {profile_name}")


class ProfileLoadError(NetImpairError):
    """
    Raised when profile configuration file cannot be loaded.

    Check that the file exists, is valid YAML, and has the expected structure.
    """

    def __init__(self, path: str, reason: str = ""):
        self.path = path
        message = f"Failed to load profiles from: {path}"
        if reason:
            message += f" ({reason})"
        super().__init__(message)


class ConfigLoadError(NetImpairError):
    """Raised when the interface configuration file cannot be loaded."""

    def __init__(self, path: str, reason: str = ""):
        self.path = path
        message = f"Failed to load configuration from: {path}"
        if reason:
            message += f" ({reason})"
        super().__init__(message)


class InvalidTransitionError(NetImpairError):
    """Raised when the menu receives an event its current state does not accept."""

    def __init__(self, state, event: str):
        self.state = state
        self.event = event
        super().__init__(f"Event '{event}' is not valid in state {state.value}")


class LogFileError(NetImpairError):
    """Raised when the activity log file cannot be opened for appending."""

    def __init__(self, path: str, reason: str = ""):
        self.path = path
        message = f"Cannot open activity log: {path}"
        if reason:
            message += f" ({reason})"
        super().__init__(message)
