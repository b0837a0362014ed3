"""Error taxonomy for Pagemeta."""

from __future__ import annotations


class PagemetaError(Exception):
    """Base class for errors raised by Pagemeta."""


class ExtractionFailure(PagemetaError):
    """Raised when the metadata renderer fails for a page."""

    def __init__(self, message: str, *, identifier: str | None = None) -> None:
        super().__init__(message)
        self.identifier = identifier


class ManifestMalformed(PagemetaError):
    """Raised when the client asset manifest cannot be read or has the wrong shape."""


class CacheCapacityMisconfigured(PagemetaError, ValueError):
    """Raised when a fragment cache is built with an invalid capacity."""
