"""
Asset cache with in-flight import deduplication.
"""

from .asset_cache import AssetCache, CacheStats, ImportResult

__all__ = [
    "AssetCache",
    "CacheStats",
    "ImportResult",
]
