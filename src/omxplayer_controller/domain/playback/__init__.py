"""Playback domain - omxplayer process control over D-Bus.

This domain handles:
- Launching omxplayer behind a FIFO-fed stdin
- Probing the D-Bus control channel until it answers
- Sampling progress and firing position triggers
- Lifecycle events for subscribers (opened, ready, progress, ...)
"""

# Controller
from .controller import (
    ControllerState,
    OpenResult,
    PlaybackController,
)

# Errors
from .exceptions import (
    CommandError,
    ControlTimeoutError,
    LaunchError,
    PlayerError,
    PlayerStateError,
    ProcessClosedError,
)

# Collaborators
from .launcher import LaunchResult, ProcessExit, ProcessLauncher, build_command
from .prober import ProbeResult, wait_for_control
from .remote import DBusRemoteControl, RemoteControl
from .sampler import ProgressSample, ProgressSampler

# Settings and triggers
from .settings import AudioOutput, PlaybackSettings, build_settings
from .triggers import PositionTrigger

__all__ = [
    # Controller
    "ControllerState",
    "OpenResult",
    "PlaybackController",
    # Errors
    "CommandError",
    "ControlTimeoutError",
    "LaunchError",
    "PlayerError",
    "PlayerStateError",
    "ProcessClosedError",
    # Collaborators
    "LaunchResult",
    "ProcessExit",
    "ProcessLauncher",
    "build_command",
    "ProbeResult",
    "wait_for_control",
    "DBusRemoteControl",
    "RemoteControl",
    "ProgressSample",
    "ProgressSampler",
    # Settings and triggers
    "AudioOutput",
    "PlaybackSettings",
    "build_settings",
    "PositionTrigger",
]
