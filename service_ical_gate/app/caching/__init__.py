"""
Gate caching package.

Holds the token cache consulted before every remote validation. Reads check
freshness themselves; the background sweep only reclaims memory.
"""

from .expiring_cache import CacheEntry, ExpiringCache, TokenCache

__all__ = [
    "CacheEntry",
    "ExpiringCache",
    "TokenCache",
]
