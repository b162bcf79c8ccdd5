from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
import sqlite3
import time

from loguru import logger


@dataclass
class CacheResult:
    value: str | None
    hit: bool


@dataclass
class CacheStats:
    hits: int = 0
    misses: int = 0
    writes: int = 0


class ResponseCache:
    """SQLite-backed store of raw generation responses keyed by prompt hash."""

    def __init__(self, enabled: bool, backend: str, base_dir: Path, ttl_seconds: int):
        self.enabled = enabled
        self.backend = backend
        self.ttl_seconds = ttl_seconds
        self.stats = CacheStats()
        self._conn: sqlite3.Connection | None = None

        if not enabled:
            return

        if backend != "sqlite":
            logger.warning("Unsupported cache backend {}; generation cache disabled", backend)
            self.enabled = False
            return

        cache_path = (base_dir / "generation_cache.sqlite").resolve()
        cache_path.parent.mkdir(parents=True, exist_ok=True)
        self._conn = sqlite3.connect(cache_path)
        self._conn.execute(
            """
            CREATE TABLE IF NOT EXISTS generation_cache (
                key TEXT PRIMARY KEY,
                task_type TEXT NOT NULL,
                value TEXT NOT NULL,
                created_at REAL NOT NULL
            );
            """
        )
        self._conn.commit()
        removed = self.purge_expired()
        if removed:
            logger.debug("Purged {} expired generation cache entries", removed)

    @classmethod
    def disabled(cls) -> "ResponseCache":
        return cls(False, "none", Path("."), ttl_seconds=0)

    def _expired(self, created_at: float) -> bool:
        return self.ttl_seconds > 0 and (time.time() - created_at) > self.ttl_seconds

    def get(self, key: str) -> CacheResult:
        if not self.enabled or not self._conn:
            return CacheResult(value=None, hit=False)

        row = self._conn.execute("SELECT value, created_at FROM generation_cache WHERE key = ?", (key,)).fetchone()
        if not row or self._expired(float(row[1])):
            if row:
                self.delete(key)
            self.stats.misses += 1
            return CacheResult(value=None, hit=False)

        self.stats.hits += 1
        return CacheResult(value=str(row[0]), hit=True)

    def set(self, key: str, value: str, *, task_type: str = "-") -> None:
        if not self.enabled or not self._conn:
            return
        self._conn.execute(
            "INSERT OR REPLACE INTO generation_cache (key, task_type, value, created_at) VALUES (?, ?, ?, ?)",
            (key, task_type, value, time.time()),
        )
        self._conn.commit()
        self.stats.writes += 1

    def delete(self, key: str) -> None:
        if not self.enabled or not self._conn:
            return
        self._conn.execute("DELETE FROM generation_cache WHERE key = ?", (key,))
        self._conn.commit()

    def purge_expired(self) -> int:
        if not self.enabled or not self._conn or self.ttl_seconds <= 0:
            return 0
        cursor = self._conn.execute(
            "DELETE FROM generation_cache WHERE created_at < ?",
            (time.time() - self.ttl_seconds,),
        )
        self._conn.commit()
        return int(cursor.rowcount or 0)

    def close(self) -> None:
        if self._conn:
            self._conn.close()
            self._conn = None
