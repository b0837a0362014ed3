"""Metadata extraction for Pagemeta."""

from .context import AttributeGroup, MetadataContext, RenderedTag, TagGroup
from .extractor import HeadExtractor, MetadataExtractor

__all__ = [
    "AttributeGroup",
    "HeadExtractor",
    "MetadataContext",
    "MetadataExtractor",
    "RenderedTag",
    "TagGroup",
]
