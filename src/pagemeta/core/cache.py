"""Bounded LRU cache of composed fragments with per-key request coalescing."""

from __future__ import annotations

import asyncio
import logging
from collections import OrderedDict
from collections.abc import Callable
from dataclasses import dataclass, field
from urllib.parse import urldefrag

from pagemeta.config import HeadSettings
from pagemeta.core.composer import FragmentRecord, compose
from pagemeta.errors import CacheCapacityMisconfigured, ExtractionFailure, ManifestMalformed
from pagemeta.hints import (
    EMPTY_HINTS,
    HintPredicate,
    ManifestProvider,
    ResourceHints,
    StaticManifest,
    always,
    generate_hints,
)
from pagemeta.metadata import MetadataContext, MetadataExtractor

DEFAULT_IDENTIFIER = "/"

HeadResolver = Callable[[str], HeadSettings]


@dataclass(slots=True)
class CacheStats:
    """Counters describing cache behaviour since construction."""

    hits: int = 0
    misses: int = 0
    coalesced: int = 0
    evictions: int = 0
    failures: int = 0


@dataclass(slots=True)
class FragmentCache:
    """Render and cache document fragments per page identifier.

    A miss starts one shared task per identifier. Concurrent callers for the same identifier await
    that task instead of starting their own, and a caller that gives up (cancellation or timeout)
    leaves the task running so it still populates the cache.
    """

    extractor: MetadataExtractor
    head: HeadSettings = field(default_factory=HeadSettings)
    manifest: ManifestProvider = field(default_factory=StaticManifest)
    should_preload: HintPredicate = always
    should_prefetch: HintPredicate = always
    resource_hints: bool = True
    capacity: int | None = None
    normalize_keys: bool = False
    render_timeout: float | None = None
    head_resolver: HeadResolver | None = None
    logger: logging.Logger = field(default_factory=lambda: logging.getLogger(__name__))
    _entries: OrderedDict[str, FragmentRecord] = field(
        default_factory=OrderedDict, init=False, repr=False
    )
    _inflight: dict[str, asyncio.Task[FragmentRecord]] = field(
        default_factory=dict, init=False, repr=False
    )
    _detached: set[asyncio.Task[FragmentRecord]] = field(
        default_factory=set, init=False, repr=False
    )
    _stats: CacheStats = field(default_factory=CacheStats, init=False, repr=False)

    def __post_init__(self) -> None:
        capacity = self.capacity
        if capacity is not None and (
            isinstance(capacity, bool) or not isinstance(capacity, int) or capacity < 1
        ):
            raise CacheCapacityMisconfigured(
                f"Cache capacity must be a positive integer or None, got {capacity!r}"
            )

    @property
    def stats(self) -> CacheStats:
        return self._stats

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, identifier: object) -> bool:
        return isinstance(identifier, str) and self.key_for(identifier) in self._entries

    def key_for(self, identifier: str) -> str:
        """Return the cache key used for ``identifier``."""

        if self.normalize_keys:
            return urldefrag(identifier)[0] or DEFAULT_IDENTIFIER
        return identifier

    def peek(self, identifier: str) -> FragmentRecord | None:
        """Return a stored record without touching its recency."""

        return self._entries.get(self.key_for(identifier))

    def invalidate(self, identifier: str) -> bool:
        """Drop the record for ``identifier``.

        An in-flight computation for the key still resolves for its current waiters but is not
        stored; the next ``render`` starts afresh.
        """

        key = self.key_for(identifier)
        removed = self._entries.pop(key, None) is not None
        task = self._inflight.pop(key, None)
        if task is not None:
            self._detach(task)
        if removed or task is not None:
            self.logger.debug("Invalidated fragments for %s", key)
        return removed

    def clear(self) -> None:
        self._entries.clear()
        for task in self._inflight.values():
            self._detach(task)
        self._inflight.clear()

    def _detach(self, task: asyncio.Task[FragmentRecord]) -> None:
        # The event loop only holds tasks weakly; keep detached renders alive until they finish.
        if task.done():
            return
        self._detached.add(task)
        task.add_done_callback(self._detached.discard)

    async def render(
        self, identifier: str = DEFAULT_IDENTIFIER, *, timeout: float | None = None
    ) -> FragmentRecord:
        """Return the fragments for ``identifier``, computing them on a miss.

        Raises ``ExtractionFailure`` when the metadata renderer fails (nothing is stored) and
        ``TimeoutError`` when ``timeout`` elapses first (the computation keeps running).
        """

        key = self.key_for(identifier)
        record = self._entries.get(key)
        if record is not None:
            self._entries.move_to_end(key)
            self._stats.hits += 1
            self.logger.debug("Fragment cache hit for %s", key)
            return record

        task = self._inflight.get(key)
        if task is None:
            self._stats.misses += 1
            self.logger.debug("Fragment cache miss for %s", key)
            task = asyncio.create_task(self._populate(key), name=f"pagemeta-render:{key}")
            task.add_done_callback(_retrieve_exception)
            self._inflight[key] = task
        else:
            self._stats.coalesced += 1
            self.logger.debug("Joining in-flight fragment render for %s", key)

        effective_timeout = timeout if timeout is not None else self.render_timeout
        waiter = asyncio.shield(task)
        if effective_timeout is None:
            return await waiter
        try:
            return await asyncio.wait_for(waiter, timeout=effective_timeout)
        except TimeoutError:
            self.logger.warning(
                "Fragment render for %s exceeded %.2fs; computation continues in background.",
                key,
                effective_timeout,
            )
            raise

    async def _populate(self, key: str) -> FragmentRecord:
        current = asyncio.current_task()
        try:
            record, degraded = await self._build(key)
        finally:
            owned = self._inflight.get(key) is current
            if owned:
                del self._inflight[key]
        if owned and not degraded:
            self._store(key, record)
        elif owned:
            self.logger.debug("Not caching fragments for %s: rendered without resource hints", key)
        return record

    async def _build(self, key: str) -> tuple[FragmentRecord, bool]:
        context, (hints, degraded) = await asyncio.gather(
            self._extract(key), self._resolve_hints()
        )
        return compose(context, hints), degraded

    async def _extract(self, key: str) -> MetadataContext:
        config = self.head_resolver(key) if self.head_resolver is not None else self.head
        try:
            return await self.extractor.extract(config)
        except ExtractionFailure as exc:
            self._record_failure(key, exc)
            if exc.identifier is None:
                exc.identifier = key
            raise
        except Exception as exc:
            self._record_failure(key, exc)
            raise ExtractionFailure(
                f"Metadata extraction failed for {key}: {exc}", identifier=key
            ) from exc

    async def _resolve_hints(self) -> tuple[ResourceHints, bool]:
        """Return the hints and whether they were dropped because the manifest failed."""

        if not self.resource_hints:
            return EMPTY_HINTS, False
        try:
            manifest = await self.manifest.load()
        except ManifestMalformed as exc:
            self.logger.warning("Resource hints disabled for this render: %s", exc)
            return EMPTY_HINTS, True
        hints = generate_hints(
            manifest,
            self.should_preload,
            self.should_prefetch,
            enabled=self.resource_hints,
        )
        return hints, False

    def _store(self, key: str, record: FragmentRecord) -> None:
        self._entries[key] = record
        self._entries.move_to_end(key)
        if self.capacity is None:
            return
        while len(self._entries) > self.capacity:
            evicted, _ = self._entries.popitem(last=False)
            self._stats.evictions += 1
            self.logger.debug("Evicted fragments for %s", evicted)

    def _record_failure(self, key: str, exc: BaseException) -> None:
        self._stats.failures += 1
        self.logger.warning("Metadata extraction failed for %s: %s", key, exc)


def _retrieve_exception(task: asyncio.Task[FragmentRecord]) -> None:
    # Waiters receive the failure themselves; an abandoned task must not warn on collection.
    if not task.cancelled():
        task.exception()
