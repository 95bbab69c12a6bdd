"""Configuration module -- exports Settings, load_config, the window profiles and a module-level singleton."""

from chromafm.config.loader import load_config
from chromafm.config.settings import Settings
from chromafm.config.window_profiles import (
    DEFAULT_WINDOW_PROFILES,
    LAST_RESORT_WINDOW_WEIGHTS,
    WindowProfile,
    build_window_profiles,
)

settings = Settings()

__all__ = [
    "DEFAULT_WINDOW_PROFILES",
    "LAST_RESORT_WINDOW_WEIGHTS",
    "Settings",
    "WindowProfile",
    "build_window_profiles",
    "load_config",
    "settings",
]
