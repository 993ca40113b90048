# Cache module - Bounded in-memory response cache
# Explicit instances, injected where needed; no process-wide singleton

from .response_cache import (
    ResponseCache, CacheEntry, CacheStats,
    DEFAULT_TTL_SECONDS, DEFAULT_MAX_SIZE, MISSING,
)
from .keys import RequestDescriptor, build_cache_key, canonicalize_params, param_pairs

__all__ = [
    "ResponseCache",
    "CacheEntry",
    "CacheStats",
    "DEFAULT_TTL_SECONDS",
    "DEFAULT_MAX_SIZE",
    "MISSING",
    "RequestDescriptor",
    "build_cache_key",
    "canonicalize_params",
    "param_pairs",
]
