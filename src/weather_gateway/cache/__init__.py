"""Response caching for upstream lookups."""

from weather_gateway.cache.fingerprint import canonical_query, canonicalize, fingerprint
from weather_gateway.cache.response_cache import (
    CacheCategory,
    CacheEntry,
    CacheTTLs,
    ResponseCache,
)

__all__ = [
    "canonical_query",
    "canonicalize",
    "fingerprint",
    "CacheCategory",
    "CacheEntry",
    "CacheTTLs",
    "ResponseCache",
]
