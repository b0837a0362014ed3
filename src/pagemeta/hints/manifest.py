"""Client asset manifest model and loaders."""

from __future__ import annotations

import asyncio
import json
import logging
from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Protocol

import httpx
from tenacity import (
    AsyncRetrying,
    RetryError,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential_jitter,
)

from pagemeta.config import ManifestSettings
from pagemeta.errors import ManifestMalformed

DEFAULT_PUBLIC_PATH = "/_nuxt/"

logger = logging.getLogger(__name__)


class TransientManifestError(Exception):
    """Raised for retryable manifest fetch failures."""


@dataclass(frozen=True, slots=True)
class AssetManifest:
    """Build-time catalogue of client bundles."""

    public_path: str = DEFAULT_PUBLIC_PATH
    initial: tuple[str, ...] = ()
    async_files: tuple[str, ...] = ()

    @classmethod
    def from_mapping(cls, data: Any) -> AssetManifest:
        """Build a manifest from the bundler's JSON document.

        Missing or wrong-shaped ``initial``/``async`` entries degrade to empty sequences; only a
        document that is not an object at all is rejected.
        """

        if not isinstance(data, Mapping):
            raise ManifestMalformed(
                f"Client manifest must be a JSON object, got {type(data).__name__}"
            )
        public_path = data.get("publicPath")
        if not isinstance(public_path, str) or not public_path:
            public_path = DEFAULT_PUBLIC_PATH
        return cls(
            public_path=public_path,
            initial=_file_list(data.get("initial"), "initial"),
            async_files=_file_list(data.get("async"), "async"),
        )


def _file_list(value: Any, name: str) -> tuple[str, ...]:
    if value is None:
        return ()
    if not isinstance(value, (list, tuple)):
        logger.debug("Manifest field %r is not a list (%s); ignoring.", name, type(value).__name__)
        return ()
    return tuple(item for item in value if isinstance(item, str) and item)


class ManifestProvider(Protocol):
    """Source of the client asset manifest."""

    async def load(self) -> AssetManifest | None:
        """Return the manifest, or None when no manifest is available."""


@dataclass(frozen=True, slots=True)
class StaticManifest:
    """Provider for a manifest already held in memory."""

    manifest: AssetManifest | None = None

    async def load(self) -> AssetManifest | None:
        return self.manifest


@dataclass(slots=True)
class ManifestLoader:
    """Load the manifest once from a JSON file or an HTTP(S) URL."""

    path: Path | None = None
    url: str | None = None
    timeout: float = 10.0
    max_retries: int = 3
    backoff_min_seconds: float = 0.5
    backoff_max_seconds: float = 10.0
    backoff_multiplier: float = 2.0
    logger: logging.Logger = field(default_factory=lambda: logger)
    _manifest: AssetManifest | None = field(default=None, init=False, repr=False)
    _lock: asyncio.Lock = field(default_factory=asyncio.Lock, init=False, repr=False)

    def __post_init__(self) -> None:
        if self.path is not None and self.url is not None:
            raise ValueError("ManifestLoader accepts either 'path' or 'url', not both")

    @classmethod
    def from_settings(
        cls, settings: ManifestSettings, *, logger: logging.Logger | None = None
    ) -> ManifestLoader:
        """Create a loader from ``ManifestSettings``."""

        options: dict[str, Any] = {
            "path": settings.path,
            "url": settings.url,
            "timeout": settings.timeout_seconds,
            "max_retries": settings.max_retries,
            "backoff_min_seconds": settings.backoff_min_seconds,
            "backoff_max_seconds": settings.backoff_max_seconds,
            "backoff_multiplier": settings.backoff_multiplier,
        }
        if logger is not None:
            options["logger"] = logger
        return cls(**options)

    @property
    def configured(self) -> bool:
        return self.path is not None or self.url is not None

    async def load(self) -> AssetManifest | None:
        """Return the parsed manifest, reading it on first use.

        Raises ``ManifestMalformed`` when the document cannot be obtained or parsed; the failure is
        not remembered, so a later call tries again.
        """

        if self._manifest is not None or not self.configured:
            return self._manifest

        async with self._lock:
            if self._manifest is None:
                payload = await self._read_payload()
                manifest = AssetManifest.from_mapping(_decode(payload, self._location))
                self.logger.info(
                    "Loaded client manifest from %s: initial=%s async=%s public_path=%s",
                    self._location,
                    len(manifest.initial),
                    len(manifest.async_files),
                    manifest.public_path,
                )
                self._manifest = manifest
        return self._manifest

    @property
    def _location(self) -> str:
        return str(self.path) if self.path is not None else str(self.url)

    async def _read_payload(self) -> str:
        if self.path is not None:
            try:
                return await asyncio.to_thread(self.path.read_text, encoding="utf-8")
            except OSError as exc:
                raise ManifestMalformed(f"Unable to read client manifest {self.path}: {exc}") from exc
        return await self._fetch()

    async def _fetch(self) -> str:
        retry_policy = AsyncRetrying(
            stop=stop_after_attempt(self.max_retries or 1),
            wait=wait_exponential_jitter(
                initial=self.backoff_min_seconds,
                max=self.backoff_max_seconds,
                exp_base=self.backoff_multiplier,
            ),
            retry=retry_if_exception_type(TransientManifestError),
            reraise=False,
        )
        try:
            async for attempt in retry_policy:
                with attempt:
                    return await self._fetch_once()
        except RetryError as exc:
            last = exc.last_attempt
            error = last.exception() if last else exc
            raise ManifestMalformed(
                f"Unable to fetch client manifest {self.url} after "
                f"{last.attempt_number if last else 0} attempt(s): {error}"
            ) from exc
        raise ManifestMalformed(f"Unable to fetch client manifest {self.url}")  # pragma: no cover

    async def _fetch_once(self) -> str:
        url = str(self.url)
        try:
            async with httpx.AsyncClient(follow_redirects=True, timeout=self.timeout) as client:
                response = await client.get(url)
        except httpx.TimeoutException as exc:
            raise TransientManifestError(f"Timeout fetching {url}: {exc}") from exc
        except httpx.HTTPError as exc:
            raise TransientManifestError(f"HTTP error for {url}: {exc}") from exc

        if response.status_code >= 500:
            self.logger.debug("Manifest fetch %s returned HTTP %s; retrying.", url, response.status_code)
            raise TransientManifestError(f"HTTP {response.status_code} for {url}")
        if response.status_code >= 400:
            raise ManifestMalformed(f"HTTP {response.status_code} for client manifest {url}")
        return response.text


def _decode(payload: str, location: str) -> Any:
    try:
        return json.loads(payload)
    except json.JSONDecodeError as exc:
        raise ManifestMalformed(f"Client manifest {location} is not valid JSON: {exc}") from exc
