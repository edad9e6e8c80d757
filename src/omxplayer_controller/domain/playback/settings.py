"""
Playback settings and defaults for the omxplayer controller.

Settings are frozen once built; the controller swaps in a new instance
(via dataclasses.replace) for the few runtime-derived flags.
"""

from dataclasses import dataclass, fields, replace
from enum import Enum
from typing import Any, Mapping, Optional

from dbus_next.validators import is_bus_name_valid

# Readiness probing: fixed period between status queries
CONTROL_CHECK_INTERVAL_MS = 200

# Probing gives up once the attempt count exceeds this
CONTROL_CHECK_MAX_ATTEMPTS = 25

# Default progress sample period
PROGRESS_INTERVAL_MS = 1000

# The control channel reports positions and durations in microseconds
MICROS_PER_MS = 1000


class AudioOutput(str, Enum):
    """Audio output route passed to omxplayer's -o flag."""

    HDMI = "hdmi"
    LOCAL = "local"
    BOTH = "both"


@dataclass(frozen=True)
class PlaybackSettings:
    """Effective configuration of a single playback session."""

    layer: int = 1
    dbus_id: str = "org.mpris.MediaPlayer2.omxplayer"
    audio_output: AudioOutput = AudioOutput.HDMI
    background_color: str = "0xff000000"
    no_background_color: bool = False
    loop: bool = False
    test_mode_only: bool = False
    progress_interval_ms: int = PROGRESS_INTERVAL_MS

    def validate(self) -> None:
        """Validate setting values.

        Raises:
            ValueError: If a setting is out of range or has the wrong type
        """
        if not isinstance(self.layer, int) or isinstance(self.layer, bool):
            raise ValueError(f"layer must be an integer, got {self.layer!r}")
        if not isinstance(self.dbus_id, str) or not is_bus_name_valid(self.dbus_id):
            raise ValueError(f"dbus_id must be a valid D-Bus bus name, got {self.dbus_id!r}")
        if self.progress_interval_ms <= 0:
            raise ValueError(
                f"progress_interval_ms must be > 0, got {self.progress_interval_ms}"
            )
        if not self.no_background_color and not self.background_color:
            raise ValueError(
                "background_color is required unless no_background_color is set"
            )


# Keys a caller may pass at construction time
OVERRIDABLE_KEYS = frozenset(
    {"layer", "dbus_id", "audio_output", "background_color", "no_background_color", "loop"}
)


def build_settings(options: Optional[Mapping[str, Any]] = None) -> PlaybackSettings:
    """Merge caller options over the defaults (shallow, key by key).

    Args:
        options: Construction-time overrides; only OVERRIDABLE_KEYS are accepted

    Returns:
        Validated PlaybackSettings

    Raises:
        ValueError: On unknown or non-overridable keys, or invalid values
    """
    overrides = dict(options or {})

    rejected = set(overrides) - OVERRIDABLE_KEYS
    if rejected:
        known = {f.name for f in fields(PlaybackSettings)}
        unknown = rejected - known
        if unknown:
            raise ValueError(f"Unknown playback options: {sorted(unknown)}")
        raise ValueError(f"Playback options cannot be overridden: {sorted(rejected)}")

    if "audio_output" in overrides:
        try:
            overrides["audio_output"] = AudioOutput(overrides["audio_output"])
        except ValueError:
            valid = [o.value for o in AudioOutput]
            raise ValueError(
                f"Invalid audio_output {overrides['audio_output']!r}. "
                f"Valid outputs are: {valid}"
            ) from None

    settings = replace(PlaybackSettings(), **overrides)
    settings.validate()
    return settings
