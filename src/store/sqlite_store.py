# src/store/sqlite_store.py
"""SQLite-based durable store (STORE_BACKEND=sqlite).

Uses stdlib sqlite3, no external dependency. Records are stored as JSON with
the lookup columns (fingerprint, tier, expiry) pulled out and indexed.
Queries run in a worker thread under one connection lock.
"""

from __future__ import annotations

import asyncio
import logging
import sqlite3
import threading
from datetime import date, datetime
from pathlib import Path

from pawmatch.cache.models import CacheEntry
from pawmatch.core.models import (
    EnrichmentTier,
    Embedding,
    StoredEnrichment,
    UsageRecord,
    tier_rank,
)
from pawmatch.store.base_store import BaseDurableStore

logger = logging.getLogger(__name__)

_SCHEMA = """
CREATE TABLE IF NOT EXISTS cache_entries (
    key TEXT PRIMARY KEY,
    category TEXT NOT NULL,
    data TEXT NOT NULL,
    expires_at TEXT
);
CREATE INDEX IF NOT EXISTS idx_cache_expires ON cache_entries(expires_at);

CREATE TABLE IF NOT EXISTS enrichments (
    item_id TEXT PRIMARY KEY,
    source TEXT NOT NULL,
    fingerprint TEXT NOT NULL,
    tier_rank INTEGER NOT NULL,
    data TEXT NOT NULL,
    updated_at TEXT DEFAULT CURRENT_TIMESTAMP
);
CREATE INDEX IF NOT EXISTS idx_enrichments_fp ON enrichments(fingerprint);

CREATE TABLE IF NOT EXISTS embeddings (
    item_id TEXT PRIMARY KEY,
    fingerprint TEXT NOT NULL,
    data TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS usage (
    day TEXT NOT NULL,
    model TEXT NOT NULL,
    request_count INTEGER NOT NULL DEFAULT 0,
    tokens_used INTEGER NOT NULL DEFAULT 0,
    estimated_cost REAL NOT NULL DEFAULT 0,
    PRIMARY KEY (day, model)
);
"""


class SqliteStore(BaseDurableStore):
    """SQLite-backed store for single-host deployments."""

    def __init__(self, db_path: Path | str) -> None:
        target = str(db_path)
        if target != ":memory:":
            path = Path(target).expanduser()
            path.parent.mkdir(parents=True, exist_ok=True)
            target = str(path)
        self._lock = threading.Lock()
        self._conn = sqlite3.connect(target, check_same_thread=False)
        self._conn.execute("PRAGMA journal_mode=WAL")
        self._conn.executescript(_SCHEMA)

    def _fetchone(self, query: str, params: tuple = ()) -> tuple | None:
        with self._lock:
            return self._conn.execute(query, params).fetchone()

    def _fetchall(self, query: str, params: tuple | list = ()) -> list[tuple]:
        with self._lock:
            return self._conn.execute(query, params).fetchall()

    def _write(self, query: str, params: tuple = ()) -> int:
        with self._lock:
            cursor = self._conn.execute(query, params)
            self._conn.commit()
        return cursor.rowcount

    async def is_available(self) -> bool:
        try:
            await asyncio.to_thread(self._fetchone, "SELECT 1")
            return True
        except sqlite3.Error as e:
            logger.warning("SQLite store unavailable: %s", e)
            return False

    # --- Cache entries ---

    async def get_cache_entry(self, key: str) -> CacheEntry | None:
        row = await asyncio.to_thread(
            self._fetchone, "SELECT data FROM cache_entries WHERE key = ?", (key,)
        )
        if row is None:
            return None
        return CacheEntry.model_validate_json(row[0])

    async def put_cache_entry(self, entry: CacheEntry) -> None:
        expires = entry.expires_at.isoformat() if entry.expires_at else None
        await asyncio.to_thread(
            self._write,
            """INSERT OR REPLACE INTO cache_entries (key, category, data, expires_at)
               VALUES (?, ?, ?, ?)""",
            (entry.key, entry.category, entry.model_dump_json(), expires),
        )

    async def delete_cache_entry(self, key: str) -> None:
        await asyncio.to_thread(self._write, "DELETE FROM cache_entries WHERE key = ?", (key,))

    async def delete_expired_cache_entries(self, now: datetime) -> int:
        # ISO strings compare correctly only within one timezone; entries are UTC
        return await asyncio.to_thread(
            self._write,
            "DELETE FROM cache_entries WHERE expires_at IS NOT NULL AND expires_at <= ?",
            (now.isoformat(),),
        )

    async def list_cache_entries(self) -> list[CacheEntry]:
        rows = await asyncio.to_thread(self._fetchall, "SELECT data FROM cache_entries")
        return [CacheEntry.model_validate_json(r[0]) for r in rows]

    # --- Enriched content ---

    async def get_enrichment(self, item_id: str) -> StoredEnrichment | None:
        row = await asyncio.to_thread(
            self._fetchone, "SELECT data FROM enrichments WHERE item_id = ?", (item_id,)
        )
        if row is None:
            return None
        return StoredEnrichment.model_validate_json(row[0])

    async def upsert_enrichment(self, record: StoredEnrichment) -> None:
        content = record.content
        await asyncio.to_thread(
            self._write,
            """INSERT INTO enrichments (item_id, source, fingerprint, tier_rank, data)
               VALUES (?, ?, ?, ?, ?)
               ON CONFLICT(item_id) DO UPDATE SET
                   source = excluded.source,
                   fingerprint = excluded.fingerprint,
                   tier_rank = excluded.tier_rank,
                   data = excluded.data,
                   updated_at = CURRENT_TIMESTAMP""",
            (
                record.item_id,
                record.source,
                content.fingerprint,
                tier_rank(content.enrichment_tier),
                record.model_dump_json(),
            ),
        )

    async def find_enrichment_by_fingerprint(
        self,
        fingerprint: str,
        exclude_item_id: str | None = None,
        min_tier: EnrichmentTier = "basic",
    ) -> StoredEnrichment | None:
        row = await asyncio.to_thread(
            self._fetchone,
            """SELECT data FROM enrichments
               WHERE fingerprint = ? AND item_id != ? AND tier_rank >= ?
               ORDER BY tier_rank DESC, updated_at ASC
               LIMIT 1""",
            (fingerprint, exclude_item_id or "", tier_rank(min_tier)),
        )
        if row is None:
            return None
        return StoredEnrichment.model_validate_json(row[0])

    async def list_enrichments(self) -> list[StoredEnrichment]:
        rows = await asyncio.to_thread(self._fetchall, "SELECT data FROM enrichments")
        return [StoredEnrichment.model_validate_json(r[0]) for r in rows]

    # --- Embeddings ---

    async def get_embedding(self, item_id: str) -> Embedding | None:
        row = await asyncio.to_thread(
            self._fetchone, "SELECT data FROM embeddings WHERE item_id = ?", (item_id,)
        )
        if row is None:
            return None
        return Embedding.model_validate_json(row[0])

    async def upsert_embedding(self, embedding: Embedding) -> None:
        await asyncio.to_thread(
            self._write,
            "INSERT OR REPLACE INTO embeddings (item_id, fingerprint, data) VALUES (?, ?, ?)",
            (embedding.item_id, embedding.fingerprint, embedding.model_dump_json()),
        )

    # --- Usage ---

    def _increment_usage(
        self, day: str, model: str, requests: int, tokens: int, cost: float
    ) -> tuple:
        with self._lock:
            self._conn.execute(
                """INSERT INTO usage (day, model, request_count, tokens_used, estimated_cost)
                   VALUES (?, ?, ?, ?, ?)
                   ON CONFLICT(day, model) DO UPDATE SET
                       request_count = request_count + excluded.request_count,
                       tokens_used = tokens_used + excluded.tokens_used,
                       estimated_cost = estimated_cost + excluded.estimated_cost""",
                (day, model, requests, tokens, cost),
            )
            self._conn.commit()
            return self._conn.execute(
                """SELECT request_count, tokens_used, estimated_cost FROM usage
                   WHERE day = ? AND model = ?""",
                (day, model),
            ).fetchone()

    async def increment_usage(
        self,
        day: date,
        model: str,
        requests: int,
        tokens: int,
        cost: float,
    ) -> UsageRecord:
        row = await asyncio.to_thread(
            self._increment_usage, day.isoformat(), model, requests, tokens, cost
        )
        return UsageRecord(
            date=day, model=model,
            request_count=row[0], tokens_used=row[1], estimated_cost=row[2],
        )

    async def list_usage(
        self, since: date, until: date | None = None
    ) -> list[UsageRecord]:
        query = (
            "SELECT day, model, request_count, tokens_used, estimated_cost "
            "FROM usage WHERE day >= ?"
        )
        params: list[str] = [since.isoformat()]
        if until is not None:
            query += " AND day <= ?"
            params.append(until.isoformat())
        query += " ORDER BY day, model"
        rows = await asyncio.to_thread(self._fetchall, query, params)
        return [
            UsageRecord(
                date=date.fromisoformat(r[0]), model=r[1],
                request_count=r[2], tokens_used=r[3], estimated_cost=r[4],
            )
            for r in rows
        ]

    async def delete_usage_before(self, day: date) -> int:
        return await asyncio.to_thread(
            self._write, "DELETE FROM usage WHERE day < ?", (day.isoformat(),)
        )

    def close(self) -> None:
        """Close the database connection."""
        self._conn.close()
