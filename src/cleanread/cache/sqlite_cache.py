"""
Persistent result cache backed by SQLite through aiosqlite.

Entries are stored as JSON (``ExtractedContent.to_dict``) with an absolute
expiry timestamp. Wall-clock time is used so entries survive restarts.
"""

from __future__ import annotations

import asyncio
import json
import time
from pathlib import Path
from typing import Any, Callable, Dict, Optional, Tuple, Union

import aiosqlite
import structlog

from cleanread.protocols import ExtractedContent

logger = structlog.get_logger(__name__)


class SQLiteCache:
    """Cache persisted in a single SQLite table."""

    def __init__(
        self,
        db_path: Union[str, Path] = Path("./data/cleanread_cache.db"),
        default_ttl: float = 3600.0,
        clock: Callable[[], float] = time.time,
    ) -> None:
        if default_ttl <= 0:
            raise ValueError("default_ttl must be positive")
        self.db_path = Path(db_path)
        self.default_ttl = default_ttl
        self._clock = clock
        self._db: Optional[aiosqlite.Connection] = None
        self._init_lock: Optional[asyncio.Lock] = None

    async def initialize(self) -> None:
        """Open the database and create the schema."""
        if self._db is not None:
            return
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self._db = await aiosqlite.connect(self.db_path)

        await self._db.execute(
            """
            CREATE TABLE IF NOT EXISTS extraction_cache (
                cache_key TEXT PRIMARY KEY,
                payload TEXT NOT NULL,
                stored_at REAL NOT NULL,
                expires_at REAL NOT NULL
            )
        """
        )
        await self._db.execute(
            """
            CREATE INDEX IF NOT EXISTS idx_cache_expires
            ON extraction_cache(expires_at)
        """
        )
        await self._db.commit()
        logger.info("SQLite cache initialized", db_path=str(self.db_path))

    async def _connection(self) -> aiosqlite.Connection:
        if self._init_lock is None:
            self._init_lock = asyncio.Lock()
        async with self._init_lock:
            if self._db is None:
                await self.initialize()
        assert self._db is not None
        return self._db

    async def get(self, key: str) -> Optional[ExtractedContent]:
        entry = await self.get_with_expiry(key)
        return entry[0] if entry is not None else None

    async def get_with_expiry(self, key: str) -> Optional[Tuple[ExtractedContent, float]]:
        """Live entry together with its absolute expiry timestamp."""
        db = await self._connection()
        async with db.execute(
            "SELECT payload, expires_at FROM extraction_cache WHERE cache_key = ?", (key,)
        ) as cursor:
            row = await cursor.fetchone()
        if row is None:
            return None

        payload, expires_at = row
        if self._clock() > expires_at:
            await self.delete(key)
            return None

        try:
            return ExtractedContent.from_dict(json.loads(payload)), expires_at
        except (ValueError, KeyError, TypeError) as e:
            logger.warning("Dropping unreadable cache entry", key=key, error=str(e), error_type=type(e).__name__)
            await self.delete(key)
            return None

    async def set(self, key: str, value: ExtractedContent, ttl: Optional[float] = None) -> None:
        db = await self._connection()
        now = self._clock()
        expires_at = now + (ttl if ttl is not None else self.default_ttl)
        await db.execute(
            """
            INSERT OR REPLACE INTO extraction_cache (cache_key, payload, stored_at, expires_at)
            VALUES (?, ?, ?, ?)
        """,
            (key, json.dumps(value.to_dict(), ensure_ascii=False), now, expires_at),
        )
        await db.commit()

    async def has(self, key: str) -> bool:
        db = await self._connection()
        async with db.execute("SELECT expires_at FROM extraction_cache WHERE cache_key = ?", (key,)) as cursor:
            row = await cursor.fetchone()
        if row is None:
            return False
        if self._clock() > row[0]:
            await self.delete(key)
            return False
        return True

    async def delete(self, key: str) -> None:
        db = await self._connection()
        await db.execute("DELETE FROM extraction_cache WHERE cache_key = ?", (key,))
        await db.commit()

    async def clear(self) -> None:
        db = await self._connection()
        await db.execute("DELETE FROM extraction_cache")
        await db.commit()

    async def size(self) -> int:
        db = await self._connection()
        async with db.execute("SELECT COUNT(*) FROM extraction_cache WHERE expires_at >= ?", (self._clock(),)) as cursor:
            row = await cursor.fetchone()
        return int(row[0]) if row else 0

    async def purge_expired(self) -> int:
        """Delete every expired row and return how many were removed."""
        db = await self._connection()
        cursor = await db.execute("DELETE FROM extraction_cache WHERE expires_at < ?", (self._clock(),))
        await db.commit()
        return cursor.rowcount

    def remaining_ttl(self, expires_at: float) -> float:
        return expires_at - self._clock()

    async def get_stats(self) -> Dict[str, Any]:
        return {"db_path": str(self.db_path), "size": await self.size(), "default_ttl": self.default_ttl}

    async def close(self) -> None:
        if self._db is not None:
            await self._db.close()
            self._db = None
            logger.info("SQLite cache closed", db_path=str(self.db_path))
