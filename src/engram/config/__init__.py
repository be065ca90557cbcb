"""Configuration and logging."""

from engram.config.logging import configure_logging
from engram.config.settings import MemorySettings, Settings, settings

__all__ = [
    "MemorySettings",
    "Settings",
    "settings",
    "configure_logging",
]
