"""Resource hints derived from the client asset manifest."""

from .generator import EMPTY_HINTS, AssetDescriptor, ResourceHints, generate_hints
from .manifest import (
    DEFAULT_PUBLIC_PATH,
    AssetManifest,
    ManifestLoader,
    ManifestProvider,
    StaticManifest,
)
from .predicates import HintPredicate, always, resolve_predicate

__all__ = [
    "DEFAULT_PUBLIC_PATH",
    "EMPTY_HINTS",
    "AssetDescriptor",
    "AssetManifest",
    "HintPredicate",
    "ManifestLoader",
    "ManifestProvider",
    "ResourceHints",
    "StaticManifest",
    "always",
    "generate_hints",
    "resolve_predicate",
]
