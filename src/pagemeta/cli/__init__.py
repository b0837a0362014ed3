"""Command line interface for Pagemeta."""

from .app import app

__all__ = ["app"]
