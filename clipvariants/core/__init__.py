"""Core module for configuration, logging and metrics."""

from clipvariants.core.config import Settings, settings
from clipvariants.core.logging import setup_logging, get_correlation_id

__all__ = [
    "Settings",
    "settings",
    "setup_logging",
    "get_correlation_id",
]
