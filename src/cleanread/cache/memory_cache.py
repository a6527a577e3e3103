"""
In-memory result cache with per-entry TTL and least-accessed eviction.
"""

from __future__ import annotations

import asyncio
import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional

import structlog

from cleanread.protocols import ExtractedContent

logger = structlog.get_logger(__name__)


@dataclass
class CacheEntry:
    value: ExtractedContent
    stored_at: float
    ttl: float
    access_count: int = 0

    def is_expired(self, now: float) -> bool:
        return now - self.stored_at > self.ttl


class MemoryCache:
    """
    Bounded dictionary cache.

    When full, the entry with the fewest reads is evicted; ties go to the
    oldest entry. Expired entries read as misses and are removed on access.
    """

    def __init__(
        self,
        max_size: int = 100,
        default_ttl: float = 3600.0,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if max_size < 1:
            raise ValueError("max_size must be at least 1")
        if default_ttl <= 0:
            raise ValueError("default_ttl must be positive")
        self.max_size = max_size
        self.default_ttl = default_ttl
        self._clock = clock
        self._entries: Dict[str, CacheEntry] = {}
        self._lock = asyncio.Lock()
        self._hits = 0
        self._misses = 0

    async def get(self, key: str) -> Optional[ExtractedContent]:
        async with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                self._misses += 1
                return None
            if entry.is_expired(self._clock()):
                del self._entries[key]
                self._misses += 1
                logger.debug("Cache entry expired", key=key)
                return None
            entry.access_count += 1
            self._hits += 1
            return entry.value

    async def set(self, key: str, value: ExtractedContent, ttl: Optional[float] = None) -> None:
        async with self._lock:
            if key not in self._entries and len(self._entries) >= self.max_size:
                self._evict()
            self._entries[key] = CacheEntry(
                value=value,
                stored_at=self._clock(),
                ttl=ttl if ttl is not None else self.default_ttl,
            )

    async def has(self, key: str) -> bool:
        async with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return False
            if entry.is_expired(self._clock()):
                del self._entries[key]
                return False
            return True

    async def delete(self, key: str) -> None:
        async with self._lock:
            self._entries.pop(key, None)

    async def clear(self) -> None:
        async with self._lock:
            self._entries.clear()
            self._hits = 0
            self._misses = 0

    async def size(self) -> int:
        async with self._lock:
            return len(self._entries)

    def _evict(self) -> None:
        victim = min(self._entries.items(), key=lambda item: (item[1].access_count, item[1].stored_at))[0]
        del self._entries[victim]
        logger.debug("Cache entry evicted", key=victim)

    def get_stats(self) -> Dict[str, Any]:
        now = self._clock()
        lookups = self._hits + self._misses
        return {
            "size": len(self._entries),
            "max_size": self.max_size,
            "hits": self._hits,
            "misses": self._misses,
            "hit_rate": self._hits / lookups if lookups else 0.0,
            "entries": [
                {"key": key, "access_count": entry.access_count, "age_seconds": now - entry.stored_at}
                for key, entry in self._entries.items()
            ],
        }
