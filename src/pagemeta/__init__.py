"""Pagemeta: cached document metadata fragments for server-rendered pages."""

from __future__ import annotations

import tomllib
from functools import lru_cache
from importlib import metadata
from pathlib import Path

from pagemeta.core import FragmentCache, FragmentRecord, build_fragment_cache, compose
from pagemeta.errors import (
    CacheCapacityMisconfigured,
    ExtractionFailure,
    ManifestMalformed,
    PagemetaError,
)
from pagemeta.hints import AssetDescriptor, AssetManifest, ResourceHints, generate_hints
from pagemeta.metadata import HeadExtractor, MetadataContext, MetadataExtractor

_DISTRIBUTION = "pagemeta"


def _pyproject_version(start: Path) -> str | None:
    for candidate in (start, *start.parents):
        pyproject = candidate / "pyproject.toml"
        if not pyproject.is_file():
            continue
        try:
            with pyproject.open("rb") as handle:
                project = tomllib.load(handle).get("project")
        except (OSError, tomllib.TOMLDecodeError):  # pragma: no cover - filesystem errors
            return None
        if not isinstance(project, dict) or project.get("name") != _DISTRIBUTION:
            return None
        version = project.get("version")
        if isinstance(version, str) and version.strip():
            return version.strip()
        return None
    return None


@lru_cache(maxsize=1)
def get_version() -> str:
    """Return the Pagemeta version.

    A source checkout reads `[project].version` from `pyproject.toml`; an installed package falls
    back to the distribution metadata generated from the same file.
    """

    version = _pyproject_version(Path(__file__).resolve().parent)
    if version is not None:
        return version

    try:
        return metadata.version(_DISTRIBUTION)
    except metadata.PackageNotFoundError as exc:  # pragma: no cover - occurs in dev
        raise RuntimeError("Unable to determine Pagemeta version.") from exc


__all__ = [
    "AssetDescriptor",
    "AssetManifest",
    "CacheCapacityMisconfigured",
    "ExtractionFailure",
    "FragmentCache",
    "FragmentRecord",
    "HeadExtractor",
    "ManifestMalformed",
    "MetadataContext",
    "MetadataExtractor",
    "PagemetaError",
    "ResourceHints",
    "build_fragment_cache",
    "compose",
    "generate_hints",
    "get_version",
]
