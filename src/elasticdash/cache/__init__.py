"""Caching layer for remotely fetched resources."""

from .resource import (
    CacheEntry,
    CachedResult,
    CacheStatus,
    Fetcher,
    ResourceCache,
    ResourceKey,
)

__all__ = [
    "CacheEntry",
    "CachedResult",
    "CacheStatus",
    "Fetcher",
    "ResourceCache",
    "ResourceKey",
]
