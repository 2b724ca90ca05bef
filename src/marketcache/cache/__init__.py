"""
Cache module for the two-tier marketplace response cache.

Provides a bounded in-memory LRU tier, a persistent file tier, and a
manager that combines them with namespace TTL policies and fetch-through.
"""

from marketcache.cache.base import CacheEntry, CacheTier
from marketcache.cache.file import FileCache
from marketcache.cache.manager import CacheLookup, CacheManager, CleanupResult
from marketcache.cache.memory import MemoryCache
from marketcache.cache.namespaces import (
    DEFAULT_POLICY,
    NAMESPACE_POLICIES,
    NamespacePolicy,
    resolve_policy,
)

__all__ = [
    "CacheEntry",
    "CacheLookup",
    "CacheManager",
    "CacheTier",
    "CleanupResult",
    "DEFAULT_POLICY",
    "FileCache",
    "MemoryCache",
    "NAMESPACE_POLICIES",
    "NamespacePolicy",
    "resolve_policy",
]
