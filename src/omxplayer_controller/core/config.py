"""
Configuration management for omxplayer-controller
"""

import os
import tomllib
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Optional

from dbus_next.validators import is_bus_name_valid
from loguru import logger

VALID_AUDIO_OUTPUTS = {"hdmi", "local", "both"}


@dataclass
class PlayerConfig:
    """Construction options for the playback controller."""

    layer: int = 1
    dbus_id: str = "org.mpris.MediaPlayer2.omxplayer"
    audio_output: str = "hdmi"
    background_color: str = "0xff000000"
    no_background_color: bool = False
    loop: bool = False

    def validate(self) -> None:
        """Validate player configuration values.

        Raises:
            ValueError: If configuration values are invalid
        """
        if self.audio_output not in VALID_AUDIO_OUTPUTS:
            raise ValueError(
                f"Invalid audio output: {self.audio_output}. "
                f"Valid outputs are: {sorted(VALID_AUDIO_OUTPUTS)}"
            )
        if not is_bus_name_valid(self.dbus_id):
            raise ValueError(f"Invalid dbus_id: {self.dbus_id!r}")

    def to_options(self) -> dict[str, Any]:
        """Options dict accepted by PlaybackController."""
        return {
            "layer": self.layer,
            "dbus_id": self.dbus_id,
            "audio_output": self.audio_output,
            "background_color": self.background_color,
            "no_background_color": self.no_background_color,
            "loop": self.loop,
        }


@dataclass
class LoggingConfig:
    """Configuration for logging."""

    level: str = "INFO"  # DEBUG, INFO, WARNING, ERROR, CRITICAL
    log_file: Optional[str] = None  # default: ~/.local/share/omxplayer-controller/omxplayer-controller.log
    max_file_size_mb: int = 10
    backup_count: int = 5
    console_output: bool = False


@dataclass
class Config:
    """Main configuration object."""

    player: PlayerConfig = field(default_factory=PlayerConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)


def get_config_dir() -> Path:
    """Get the configuration directory path."""
    config_home = os.environ.get("XDG_CONFIG_HOME")
    if config_home:
        return Path(config_home) / "omxplayer-controller"
    return Path.home() / ".config" / "omxplayer-controller"


def get_config_path() -> Path:
    """Get the main configuration file path.

    Checks the current working directory first, then the XDG config dir.
    """
    local_config = Path.cwd() / "config.toml"
    if local_config.exists():
        return local_config
    return get_config_dir() / "config.toml"


def get_data_dir() -> Path:
    """Get the data directory path."""
    data_home = os.environ.get("XDG_DATA_HOME")
    if data_home:
        return Path(data_home) / "omxplayer-controller"
    return Path.home() / ".local" / "share" / "omxplayer-controller"


def create_default_config() -> str:
    """Create a default configuration TOML content."""
    return """
# omxplayer-controller configuration

[player]
# Display layer (higher layers draw on top)
layer = 1

# D-Bus name; must be unique per concurrently running player
dbus_id = "org.mpris.MediaPlayer2.omxplayer"

# Audio output: hdmi, local or both
audio_output = "hdmi"

# Background colour behind the video (0xAARRGGBB)
background_color = "0xff000000"

# Disable the background entirely (ignores background_color)
no_background_color = false

# Loop the file
loop = false

[logging]
# Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
level = "INFO"

# Custom log file path
# log_file = "/path/to/omxplayer-controller.log"

# Maximum log file size in MB before rotation
max_file_size_mb = 10

# Number of rotated log files to keep
backup_count = 5

# Also log to stderr
console_output = false
""".strip()


def load_config(config_path: Optional[Path] = None) -> Config:
    """Load configuration from a TOML file, falling back to defaults.

    Args:
        config_path: Explicit file to read (default: get_config_path())

    Returns:
        Parsed Config; sections or keys that are missing keep their defaults
    """
    path = config_path or get_config_path()
    config = Config()

    if not path.exists():
        logger.debug(f"No configuration at {path}, using defaults")
        return config

    try:
        with open(path, "rb") as f:
            toml_data = tomllib.load(f)
    except (OSError, tomllib.TOMLDecodeError) as e:
        logger.warning(f"Could not read configuration {path}: {e}. Using defaults.")
        return config

    if "player" in toml_data:
        player_data = toml_data["player"]
        config.player = PlayerConfig(
            layer=player_data.get("layer", config.player.layer),
            dbus_id=player_data.get("dbus_id", config.player.dbus_id),
            audio_output=player_data.get("audio_output", config.player.audio_output),
            background_color=player_data.get(
                "background_color", config.player.background_color
            ),
            no_background_color=player_data.get(
                "no_background_color", config.player.no_background_color
            ),
            loop=player_data.get("loop", config.player.loop),
        )
        try:
            config.player.validate()
        except ValueError as e:
            logger.warning(f"Invalid player configuration: {e}. Using defaults.")
            config.player = PlayerConfig()

    if "logging" in toml_data:
        logging_data = toml_data["logging"]
        log_file = logging_data.get("log_file")
        if log_file:
            log_file = str(Path(log_file).expanduser())
        config.logging = LoggingConfig(
            level=logging_data.get("level", config.logging.level).upper(),
            log_file=log_file,
            max_file_size_mb=logging_data.get(
                "max_file_size_mb", config.logging.max_file_size_mb
            ),
            backup_count=logging_data.get("backup_count", config.logging.backup_count),
            console_output=logging_data.get(
                "console_output", config.logging.console_output
            ),
        )

    return config
