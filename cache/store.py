"""
cache/store.py -- SQLite-backed cache for external catalog lookups.

Avoids repeating Open Opus calls for works many users share by storing the
resolved title/composer locally with a configurable TTL (default 7 days).
Only successful lookups are stored; a failed lookup is simply absent.

Usage:
    cache = CatalogCache()
    data = cache.get("1234")   # returns dict or None
    cache.set("1234", {"title": "Cello Suite No. 1", "composer": "Johann Sebastian Bach"})
    cache.purge_expired()      # call periodically to trim old entries
"""

import json
import sqlite3
import threading
import time
from pathlib import Path
from typing import Optional, Union

_DEFAULT_DB = Path(__file__).parent / "sheetshelf_catalog.db"
_DEFAULT_TTL = 60 * 60 * 24 * 7  # 7 days in seconds

_DDL = """
CREATE TABLE IF NOT EXISTS catalog_cache (
    external_id TEXT PRIMARY KEY,
    data        TEXT NOT NULL,
    cached_at   REAL NOT NULL
);
"""


class CatalogCache:
    def __init__(self, db_path: Union[Path, str] = _DEFAULT_DB, ttl: int = _DEFAULT_TTL) -> None:
        self.ttl = ttl
        # Enrichment looks works up from a thread pool; one connection is
        # shared and serialized by _lock.
        self._lock = threading.Lock()
        self._conn = sqlite3.connect(db_path, check_same_thread=False)
        self._conn.execute("PRAGMA journal_mode=WAL")
        self._conn.execute(_DDL)
        self._conn.commit()

    def get(self, external_id: str) -> Optional[dict]:
        """Return cached data for external_id if it exists and hasn't expired."""
        with self._lock:
            row = self._conn.execute(
                "SELECT data, cached_at FROM catalog_cache WHERE external_id = ?",
                (external_id,),
            ).fetchone()
        if row is None:
            return None
        data, cached_at = row
        if time.time() - cached_at > self.ttl:
            self._delete(external_id)
            return None
        return json.loads(data)

    def set(self, external_id: str, data: dict) -> None:
        """Store data for external_id, replacing any existing entry."""
        with self._lock:
            self._conn.execute(
                "INSERT OR REPLACE INTO catalog_cache (external_id, data, cached_at) VALUES (?, ?, ?)",
                (external_id, json.dumps(data), time.time()),
            )
            self._conn.commit()

    def purge_expired(self) -> int:
        """Delete all entries older than TTL. Returns number of rows removed."""
        cutoff = time.time() - self.ttl
        with self._lock:
            cursor = self._conn.execute("DELETE FROM catalog_cache WHERE cached_at < ?", (cutoff,))
            self._conn.commit()
        return cursor.rowcount

    def _delete(self, external_id: str) -> None:
        with self._lock:
            self._conn.execute("DELETE FROM catalog_cache WHERE external_id = ?", (external_id,))
            self._conn.commit()

    def close(self) -> None:
        self._conn.close()
