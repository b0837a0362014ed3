"""Build a fragment cache from configuration."""

from __future__ import annotations

import logging

from pagemeta.config import Config
from pagemeta.core.cache import FragmentCache, HeadResolver
from pagemeta.hints import (
    AssetManifest,
    HintPredicate,
    ManifestLoader,
    ManifestProvider,
    StaticManifest,
    resolve_predicate,
)
from pagemeta.metadata import HeadExtractor, MetadataExtractor


def build_fragment_cache(
    config: Config,
    *,
    extractor: MetadataExtractor | None = None,
    manifest: AssetManifest | ManifestProvider | None = None,
    should_preload: HintPredicate | None = None,
    should_prefetch: HintPredicate | None = None,
    head_resolver: HeadResolver | None = None,
    logger: logging.Logger | None = None,
) -> FragmentCache:
    """Create the process-wide fragment cache.

    Explicit arguments take precedence over configuration: an in-memory ``manifest`` replaces
    ``manifest.path``/``manifest.url`` and predicate callables replace the configured import
    paths. Raises ``CacheCapacityMisconfigured`` for an invalid ``cache.capacity``.
    """

    cache_logger = logger or logging.getLogger("pagemeta.core.cache")

    provider: ManifestProvider
    if manifest is None:
        provider = ManifestLoader.from_settings(config.manifest, logger=cache_logger)
    elif isinstance(manifest, AssetManifest):
        provider = StaticManifest(manifest)
    else:
        provider = manifest

    cache = FragmentCache(
        extractor=extractor or HeadExtractor(),
        head=config.head,
        manifest=provider,
        should_preload=resolve_predicate(should_preload or config.render.should_preload),
        should_prefetch=resolve_predicate(should_prefetch or config.render.should_prefetch),
        resource_hints=config.render.resource_hints,
        capacity=config.cache.capacity,
        normalize_keys=config.cache.normalize_keys,
        render_timeout=config.cache.render_timeout_seconds,
        head_resolver=head_resolver,
        logger=cache_logger,
    )
    cache_logger.debug(
        "Fragment cache ready: capacity=%s resource_hints=%s normalize_keys=%s",
        cache.capacity if cache.capacity is not None else "unbounded",
        cache.resource_hints,
        cache.normalize_keys,
    )
    return cache
