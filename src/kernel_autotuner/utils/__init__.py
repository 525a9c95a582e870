"""Shared logging and settings helpers."""

from .logger import configure_logging, get_logger
from .settings import TunerSettings, get_settings, reset_settings

__all__ = [
    "TunerSettings",
    "configure_logging",
    "get_logger",
    "get_settings",
    "reset_settings",
]
