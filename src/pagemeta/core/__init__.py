"""Fragment composition and caching for Pagemeta."""

from .cache import CacheStats, FragmentCache
from .composer import FragmentRecord, compose
from .factory import build_fragment_cache

__all__ = ["CacheStats", "FragmentCache", "FragmentRecord", "build_fragment_cache", "compose"]
