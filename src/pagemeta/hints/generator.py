"""Resource hint generation from the client asset manifest."""

from __future__ import annotations

from collections.abc import Iterator, Mapping, Sequence
from dataclasses import dataclass, field
from typing import Any

from pagemeta.hints.manifest import AssetManifest
from pagemeta.hints.predicates import HintPredicate, always

PRELOAD_TEMPLATE = '<link rel="preload" href="{href}" as="script" />'
PREFETCH_TEMPLATE = '<link rel="prefetch" href="{href}" />'


@dataclass(frozen=True, slots=True)
class AssetDescriptor:
    """A preloadable file, shaped like the bundle renderer's preload file entries.

    Only script chunks are modelled, and query strings are left in place.
    """

    file: str
    file_without_query: str
    asset_type: str = "script"
    extension: str = "js"


@dataclass(frozen=True, slots=True)
class ResourceHints:
    """Preload and prefetch tags for one manifest, in manifest order."""

    preload_tags: tuple[str, ...] = ()
    prefetch_tags: tuple[str, ...] = ()
    manifest: AssetManifest | None = field(default=None, compare=False, repr=False)
    should_preload: HintPredicate = field(default=always, compare=False, repr=False)

    @property
    def text(self) -> str:
        return "".join(self.preload_tags) + "".join(self.prefetch_tags)

    def preload_files(self) -> Iterator[AssetDescriptor]:
        """Yield preload descriptors, re-deriving them from the manifest on every call."""

        if self.manifest is None:
            return
        for file in _ordered(self.manifest.initial):
            if self.should_preload(file):
                yield AssetDescriptor(file=file, file_without_query=file)


EMPTY_HINTS = ResourceHints()


def generate_hints(
    manifest: AssetManifest | Mapping[str, Any] | None,
    preload: HintPredicate | None = None,
    prefetch: HintPredicate | None = None,
    *,
    enabled: bool = True,
) -> ResourceHints:
    """Build preload tags for ``initial`` files and prefetch tags for ``async`` files."""

    if manifest is None or not enabled:
        return EMPTY_HINTS
    if not isinstance(manifest, AssetManifest):
        manifest = AssetManifest.from_mapping(manifest)

    should_preload = preload or always
    should_prefetch = prefetch or always
    public_path = manifest.public_path

    preload_tags = tuple(
        PRELOAD_TEMPLATE.format(href=f"{public_path}{file}")
        for file in _ordered(manifest.initial)
        if should_preload(file)
    )
    prefetch_tags = tuple(
        PREFETCH_TEMPLATE.format(href=f"{public_path}{file}")
        for file in _ordered(manifest.async_files)
        if should_prefetch(file)
    )
    return ResourceHints(
        preload_tags=preload_tags,
        prefetch_tags=prefetch_tags,
        manifest=manifest,
        should_preload=should_preload,
    )


def _ordered(files: Sequence[str] | Any) -> tuple[str, ...]:
    if not isinstance(files, (list, tuple)):
        return ()
    return tuple(files)
