"""Displacement Atlas cache tiers."""

from displacementatlas.cache.diagnostics import CacheDiagnostics
from displacementatlas.cache.tiered_cache import CacheSource, TieredCache

__all__ = [
    "CacheDiagnostics",
    "CacheSource",
    "TieredCache",
]
