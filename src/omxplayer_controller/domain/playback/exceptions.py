"""Playback-specific exceptions for error handling."""

from typing import Any, Optional


class PlayerError(Exception):
    """Base exception for playback control operations."""

    pass


class PlayerStateError(PlayerError):
    """Raised when an operation is not allowed in the controller's current state."""

    pass


class LaunchError(PlayerError):
    """Raised when the player process or its input conduit cannot be set up."""

    def __init__(self, command: str, message: Optional[str] = None):
        self.command = command
        super().__init__(message or f"Failed to launch player: {command}")


class ControlTimeoutError(PlayerError):
    """Raised when the control channel never became responsive after launch."""

    def __init__(self, attempts: int, last_error: Optional[BaseException] = None):
        self.attempts = attempts
        self.last_error = last_error
        super().__init__(
            f"Control channel not ready after {attempts} attempts: {last_error}"
        )


class CommandError(PlayerError):
    """Raised when a remote control command fails or is rejected."""

    def __init__(self, command: str, cause: Any = None):
        self.command = command
        self.cause = cause
        super().__init__(f"Remote command '{command}' failed: {cause}")


class ProcessClosedError(PlayerError):
    """Describes a player process that exited with a non-zero status."""

    def __init__(self, returncode: Optional[int], stderr: str = ""):
        self.returncode = returncode
        self.stderr = stderr
        super().__init__(f"Player process exited with status {returncode}")
