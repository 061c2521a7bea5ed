"""Injected caches for hierarchy metadata."""

from tariffnav.caching.memory import ChapterCache, TTLCache

__all__ = ["ChapterCache", "TTLCache"]
