"""Metadata extraction from the application head configuration."""

from __future__ import annotations

import asyncio
import json
from collections.abc import Mapping
from dataclasses import dataclass
from html import escape
from typing import Any, Protocol

from pydantic import ValidationError

from pagemeta.config import HeadSettings
from pagemeta.errors import ExtractionFailure
from pagemeta.metadata.context import (
    HEAD_ATTRIBUTE,
    SSR_ATTRIBUTE,
    AttributeGroup,
    MetadataContext,
    RenderedTag,
    TagGroup,
)

TAG_ID_KEY = "hid"
TITLE_PLACEHOLDER = "%s"

_SELF_CLOSING = frozenset({"base", "meta", "link"})
_CONTENT_KEYS = {
    "meta": (),
    "link": (),
    "style": ("cssText", "innerHTML"),
    "script": ("innerHTML",),
    "noscript": ("innerHTML",),
}
_RESERVED_KEYS = frozenset({"body", "once", "skip", "json"})
_JSON_ESCAPES = {"<": "\\u003c", ">": "\\u003e", "&": "\\u0026"}


class MetadataExtractor(Protocol):
    """Interface for head renderers."""

    async def extract(self, config: HeadSettings) -> MetadataContext:
        """Render the head configuration into a metadata context."""


@dataclass(slots=True)
class HeadExtractor:
    """Render head configuration to tag strings without a browser or component tree."""

    attribute: str = HEAD_ATTRIBUTE
    ssr_attribute: str = SSR_ATTRIBUTE
    tag_id_key: str = TAG_ID_KEY

    async def extract(self, config: HeadSettings | Mapping[str, Any]) -> MetadataContext:
        await asyncio.sleep(0)
        return self.build(config)

    def build(self, config: HeadSettings | Mapping[str, Any]) -> MetadataContext:
        """Synchronous variant of :meth:`extract`."""

        settings = _coerce_settings(config)
        return MetadataContext(
            html_attrs=self._attributes(settings.html_attrs, ssr_marker=self.ssr_attribute),
            body_attrs=self._attributes(settings.body_attrs),
            meta=self._tags("meta", settings.meta),
            title=self._title(settings),
            link=self._tags("link", settings.link),
            style=self._tags("style", settings.style),
            script=self._tags("script", settings.script),
            noscript=self._tags("noscript", settings.noscript),
        )

    def _attributes(
        self, values: Mapping[str, Any], *, ssr_marker: str | None = None
    ) -> AttributeGroup:
        pairs: list[tuple[str, str | None]] = []
        for name, value in values.items():
            if value is None or value is False:
                continue
            pairs.append((str(name), None if value is True else str(value)))
        return AttributeGroup(attributes=tuple(pairs), marker=self.attribute, ssr_marker=ssr_marker)

    def _title(self, settings: HeadSettings) -> TagGroup:
        # A <title> is always emitted; an unset title renders as "" inside the template.
        title = settings.title or ""
        if settings.title_template:
            title = settings.title_template.replace(TITLE_PLACEHOLDER, title)
        markup = f'<title {self.attribute}="true">{escape(title, quote=False)}</title>'
        return TagGroup(tags=(RenderedTag(markup),))

    def _tags(self, kind: str, entries: list[Any]) -> TagGroup:
        rendered: list[RenderedTag] = []
        for index, entry in enumerate(entries):
            if not isinstance(entry, Mapping):
                raise ExtractionFailure(
                    f"head.{kind}[{index}] must be a mapping, got {type(entry).__name__}"
                )
            if entry.get("skip"):
                continue
            rendered.append(
                RenderedTag(markup=self._tag(kind, entry), body=bool(entry.get("body")))
            )
        return TagGroup(tags=tuple(rendered))

    def _tag(self, kind: str, entry: Mapping[str, Any]) -> str:
        content_keys = _CONTENT_KEYS[kind]
        parts = [f'{self.attribute}="true"']
        for key, value in entry.items():
            if key in _RESERVED_KEYS or key in content_keys:
                continue
            if value is None or value is False:
                continue
            name = f"data-{key}" if key == self.tag_id_key else str(key)
            if value is True:
                parts.append(name)
            else:
                parts.append(f'{name}="{escape(str(value), quote=True)}"')

        opening = f"<{kind} {' '.join(parts)}"
        if kind in _SELF_CLOSING:
            return f"{opening}/>"
        return f"{opening}>{_content(kind, entry, content_keys)}</{kind}>"


def _content(kind: str, entry: Mapping[str, Any], content_keys: tuple[str, ...]) -> str:
    if kind == "script" and "json" in entry:
        encoded = json.dumps(entry["json"], separators=(",", ":"))
        for char, replacement in _JSON_ESCAPES.items():
            encoded = encoded.replace(char, replacement)
        return encoded
    for key in content_keys:
        value = entry.get(key)
        if value is not None:
            return str(value)
    return ""


def _coerce_settings(config: HeadSettings | Mapping[str, Any]) -> HeadSettings:
    if isinstance(config, HeadSettings):
        return config
    try:
        return HeadSettings.model_validate(dict(config))
    except (ValidationError, TypeError) as exc:
        raise ExtractionFailure(f"Invalid head configuration: {exc}") from exc
