"""Structured metadata produced by a head renderer for one page."""

from __future__ import annotations

from dataclasses import dataclass, field
from html import escape

HEAD_ATTRIBUTE = "data-n-head"
SSR_ATTRIBUTE = "data-n-head-ssr"


@dataclass(frozen=True, slots=True)
class RenderedTag:
    """A serialized tag and where it belongs in the document."""

    markup: str
    body: bool = False


@dataclass(frozen=True, slots=True)
class TagGroup:
    """Ordered tags of one kind (meta, link, script, ...)."""

    tags: tuple[RenderedTag, ...] = ()

    def text(self, *, body: bool = False) -> str:
        """Concatenate the tags placed in ``<head>`` (default) or at the end of ``<body>``."""

        return "".join(tag.markup for tag in self.tags if tag.body is body)

    def __len__(self) -> int:
        return len(self.tags)


@dataclass(frozen=True, slots=True)
class AttributeGroup:
    """Attributes destined for the ``<html>`` or ``<body>`` element."""

    attributes: tuple[tuple[str, str | None], ...] = ()
    marker: str = HEAD_ATTRIBUTE
    ssr_marker: str | None = None

    def text(self) -> str:
        parts: list[str] = []
        if self.ssr_marker:
            parts.append(self.ssr_marker)
        for name, value in self.attributes:
            parts.append(name if value is None else f'{name}="{escape(value, quote=True)}"')
        watched = ",".join(name for name, _ in self.attributes)
        parts.append(f'{self.marker}="{watched}"')
        return " ".join(parts)


@dataclass(frozen=True, slots=True)
class MetadataContext:
    """Immutable metadata for one page, grouped the way the document shell consumes it."""

    html_attrs: AttributeGroup = field(default_factory=lambda: AttributeGroup(ssr_marker=SSR_ATTRIBUTE))
    body_attrs: AttributeGroup = field(default_factory=AttributeGroup)
    meta: TagGroup = field(default_factory=TagGroup)
    title: TagGroup = field(default_factory=TagGroup)
    link: TagGroup = field(default_factory=TagGroup)
    style: TagGroup = field(default_factory=TagGroup)
    script: TagGroup = field(default_factory=TagGroup)
    noscript: TagGroup = field(default_factory=TagGroup)
