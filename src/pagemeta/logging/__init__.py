"""Logging helpers for Pagemeta."""

from .setup import LOGGER_NAME, configure_from_settings, configure_logging

__all__ = ["LOGGER_NAME", "configure_from_settings", "configure_logging"]
