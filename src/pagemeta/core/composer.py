"""Compose metadata and resource hints into cacheable document fragments."""

from __future__ import annotations

from collections.abc import Iterator
from dataclasses import dataclass, field

from pagemeta.hints import EMPTY_HINTS, AssetDescriptor, ResourceHints
from pagemeta.metadata import MetadataContext


@dataclass(frozen=True, slots=True)
class FragmentRecord:
    """Strings spliced into the document shell for one page."""

    html_attrs: str
    body_attrs: str
    head: str
    body_scripts: str
    resource_hints: str
    hints: ResourceHints = field(default=EMPTY_HINTS, compare=False, repr=False)

    def preload_files(self) -> Iterator[AssetDescriptor]:
        return self.hints.preload_files()

    def as_template_vars(self) -> dict[str, str]:
        """Return the fragments keyed by their document template placeholders."""

        return {
            "HTML_ATTRS": self.html_attrs,
            "BODY_ATTRS": self.body_attrs,
            "HEAD": self.head,
            "BODY_SCRIPTS": self.body_scripts,
            "RESOURCE_HINTS": self.resource_hints,
        }


def compose(context: MetadataContext, hints: ResourceHints | str = EMPTY_HINTS) -> FragmentRecord:
    """Merge a metadata context with resource hints.

    ``head`` is meta, title, link, style, script and noscript (head placement) in that order,
    followed by the hint tags; ``body_scripts`` holds the body-placed scripts then noscripts.
    """

    if isinstance(hints, str):
        hint_text, source = hints, EMPTY_HINTS
    else:
        hint_text, source = hints.text, hints

    head = (
        context.meta.text()
        + context.title.text()
        + context.link.text()
        + context.style.text()
        + context.script.text()
        + context.noscript.text()
    )
    if hint_text:
        head += hint_text

    return FragmentRecord(
        html_attrs=context.html_attrs.text(),
        body_attrs=context.body_attrs.text(),
        head=head,
        body_scripts=context.script.text(body=True) + context.noscript.text(body=True),
        resource_hints=hint_text,
        hints=source,
    )
