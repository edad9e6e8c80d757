"""Core infrastructure layer - no playback dependencies.

This module provides foundation-level services:
- Configuration management (TOML)
- Logging setup (loguru)
"""

# Configuration
from .config import (
    Config,
    LoggingConfig,
    PlayerConfig,
    create_default_config,
    get_config_dir,
    get_config_path,
    get_data_dir,
    load_config,
)

# Logging
from .logging import get_log_file_path, setup_logging, setup_logging_from_config

__all__ = [
    # Config
    "Config",
    "LoggingConfig",
    "PlayerConfig",
    "create_default_config",
    "get_config_dir",
    "get_config_path",
    "get_data_dir",
    "load_config",
    # Logging
    "get_log_file_path",
    "setup_logging",
    "setup_logging_from_config",
]
