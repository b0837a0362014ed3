"""Configuration utilities for Pagemeta."""

from .loader import (
    CacheSettings,
    Config,
    HeadSettings,
    ManifestSettings,
    RenderSettings,
    load_config,
)

__all__ = [
    "CacheSettings",
    "Config",
    "HeadSettings",
    "ManifestSettings",
    "RenderSettings",
    "load_config",
]
