"""
Two-level cache: a memory layer in front of a persistent layer.
"""

from __future__ import annotations

from typing import Any, Dict, Optional

import structlog

from cleanread.cache.memory_cache import MemoryCache
from cleanread.cache.sqlite_cache import SQLiteCache
from cleanread.protocols import ExtractedContent

logger = structlog.get_logger(__name__)


class TieredCache:
    """
    Reads check memory first, then the persistent layer; persistent hits are
    promoted into memory. Writes go to both layers.
    """

    def __init__(self, memory: MemoryCache, persistent: SQLiteCache) -> None:
        self.memory = memory
        self.persistent = persistent

    async def get(self, key: str) -> Optional[ExtractedContent]:
        value = await self.memory.get(key)
        if value is not None:
            return value

        entry = await self.persistent.get_with_expiry(key)
        if entry is None:
            return None

        value, expires_at = entry
        # Promoted copies expire together with the persistent row
        remaining = self.persistent.remaining_ttl(expires_at)
        if remaining > 0:
            await self.memory.set(key, value, remaining)
            logger.debug("Promoted persistent cache hit", key=key, ttl=remaining)
        return value

    async def set(self, key: str, value: ExtractedContent, ttl: Optional[float] = None) -> None:
        await self.memory.set(key, value, ttl)
        await self.persistent.set(key, value, ttl)

    async def has(self, key: str) -> bool:
        return await self.memory.has(key) or await self.persistent.has(key)

    async def delete(self, key: str) -> None:
        await self.memory.delete(key)
        await self.persistent.delete(key)

    async def clear(self) -> None:
        await self.memory.clear()
        await self.persistent.clear()

    async def size(self) -> int:
        """Number of entries in the memory layer."""
        return await self.memory.size()

    async def get_stats(self) -> Dict[str, Any]:
        return {"memory": self.memory.get_stats(), "persistent": await self.persistent.get_stats()}

    async def close(self) -> None:
        await self.persistent.close()
