"""Core modules for the birthday bot."""

from .config import BOT_NAME, BOT_VERSION, PACKAGE_DIR, PROJECT_DIR, BotSettings, get_settings
from .health_server import HealthCheckServer
from .logging import setup_logging

__all__ = [
    # Config
    "BotSettings",
    "get_settings",
    "BOT_NAME",
    "BOT_VERSION",
    # Paths
    "PACKAGE_DIR",
    "PROJECT_DIR",
    # Services
    "HealthCheckServer",
    # Logging
    "setup_logging",
]
