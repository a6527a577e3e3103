"""Result caches implementing the ``CacheStrategy`` protocol."""

from __future__ import annotations

from typing import Optional

from cleanread.cache.memory_cache import MemoryCache
from cleanread.cache.sqlite_cache import SQLiteCache
from cleanread.cache.tiered_cache import TieredCache
from cleanread.config.config import CacheConfig
from cleanread.protocols import CacheStrategy


def create_cache(config: CacheConfig) -> Optional[CacheStrategy]:
    """Build the cache backend named by ``config.backend``; ``None`` disables caching."""
    if config.backend == "none":
        return None
    if config.backend == "memory":
        return MemoryCache(max_size=config.max_size, default_ttl=config.default_ttl_seconds)
    if config.backend == "sqlite":
        return SQLiteCache(db_path=config.db_path, default_ttl=config.default_ttl_seconds)
    if config.backend == "tiered":
        return TieredCache(
            MemoryCache(max_size=config.max_size, default_ttl=config.default_ttl_seconds),
            SQLiteCache(db_path=config.db_path, default_ttl=config.default_ttl_seconds),
        )
    raise ValueError(f"Unknown cache backend: {config.backend}")


__all__ = ["MemoryCache", "SQLiteCache", "TieredCache", "create_cache"]
