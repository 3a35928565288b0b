"""SQLite persistence for bot state.

Bots that must survive a restart (victim maps, already-alerted addresses)
save through a BotStore. All operations are async (aiosqlite).

Schema:
  - bot_state: JSON blob per key
  - alerted_addresses: addresses a bot has already raised a finding for
"""

from __future__ import annotations

import json
import time
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

import aiosqlite

from chainsentry.config import DEFAULT_CONFIG_DIR
from chainsentry.exceptions import DatabaseError

DEFAULT_DB_PATH = DEFAULT_CONFIG_DIR / "state.db"

_SCHEMA = """
CREATE TABLE IF NOT EXISTS schema_version (
    version INTEGER PRIMARY KEY
);

CREATE TABLE IF NOT EXISTS bot_state (
    key         TEXT PRIMARY KEY,
    value       TEXT NOT NULL,
    updated_at  TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS alerted_addresses (
    bot         TEXT NOT NULL,
    address     TEXT NOT NULL,
    alerted_at  REAL NOT NULL,
    UNIQUE(bot, address)
);

CREATE INDEX IF NOT EXISTS idx_alerted_bot ON alerted_addresses(bot, alerted_at);
"""

SCHEMA_VERSION = 1


class BotStore:
    """
    Async key/value and alerted-address store.

    Usage:
        store = BotStore(":memory:")
        await store.connect()
        victims = await store.load("pkc-victims", default={})
        await store.close()

    Or as async context manager:
        async with BotStore(path) as store:
            ...
    """

    def __init__(self, db_path: str = str(DEFAULT_DB_PATH)) -> None:
        self.db_path = db_path
        self._conn: aiosqlite.Connection | None = None

    async def connect(self) -> None:
        """Open DB connection and create tables."""
        path = self.db_path
        if path != ":memory:":
            path = str(Path(path).expanduser())
            Path(path).parent.mkdir(parents=True, exist_ok=True)

        try:
            self._conn = await aiosqlite.connect(path)
            self._conn.row_factory = aiosqlite.Row
            await self._conn.execute("PRAGMA journal_mode=WAL")
            await self._apply_schema()
        except Exception as e:
            raise DatabaseError(f"Failed to open state database: {e}") from e

    async def close(self) -> None:
        if self._conn:
            await self._conn.close()
            self._conn = None

    async def __aenter__(self) -> "BotStore":
        await self.connect()
        return self

    async def __aexit__(self, *args: Any) -> None:
        await self.close()

    # ──────────────────────────────────────────────────────────
    # Key/value state
    # ──────────────────────────────────────────────────────────

    async def load(self, key: str, default: Any = None) -> Any:
        """Return the JSON value stored under `key`, or `default`."""
        conn = self._require_conn()
        async with conn.execute("SELECT value FROM bot_state WHERE key = ?", (key,)) as cursor:
            row = await cursor.fetchone()
        if not row:
            return default
        try:
            return json.loads(row["value"])
        except ValueError as e:
            raise DatabaseError(f"Corrupt state for key {key!r}: {e}") from e

    async def persist(self, key: str, value: Any) -> None:
        """Store `value` (JSON-serialisable) under `key`, replacing any previous value."""
        conn = self._require_conn()
        try:
            await conn.execute(
                "INSERT OR REPLACE INTO bot_state (key, value, updated_at) VALUES (?, ?, ?)",
                (key, json.dumps(value), datetime.now(tz=timezone.utc).isoformat()),
            )
            await conn.commit()
        except (TypeError, aiosqlite.Error) as e:
            raise DatabaseError(f"Failed to persist state for key {key!r}: {e}") from e

    # ──────────────────────────────────────────────────────────
    # Alerted addresses
    # ──────────────────────────────────────────────────────────

    async def add_alerted(self, bot: str, address: str, alerted_at: float | None = None) -> None:
        conn = self._require_conn()
        await conn.execute(
            "INSERT OR REPLACE INTO alerted_addresses (bot, address, alerted_at) VALUES (?, ?, ?)",
            (bot, address.lower(), alerted_at if alerted_at is not None else time.time()),
        )
        await conn.commit()

    async def list_alerted(self, bot: str) -> list[str]:
        conn = self._require_conn()
        async with conn.execute(
            "SELECT address FROM alerted_addresses WHERE bot = ? ORDER BY alerted_at",
            (bot,),
        ) as cursor:
            return [row["address"] async for row in cursor]

    async def prune_alerted(self, bot: str, max_age_seconds: float) -> int:
        """Forget alerted addresses older than `max_age_seconds`. Returns number deleted."""
        conn = self._require_conn()
        async with conn.execute(
            "DELETE FROM alerted_addresses WHERE bot = ? AND alerted_at < ?",
            (bot, time.time() - max_age_seconds),
        ) as cursor:
            deleted = cursor.rowcount
        await conn.commit()
        return deleted

    # ──────────────────────────────────────────────────────────
    # Private helpers
    # ──────────────────────────────────────────────────────────

    def _require_conn(self) -> aiosqlite.Connection:
        if self._conn is None:
            raise DatabaseError("State database is not connected")
        return self._conn

    async def _apply_schema(self) -> None:
        conn = self._require_conn()
        await conn.executescript(_SCHEMA)
        await conn.execute(
            "INSERT OR IGNORE INTO schema_version (version) VALUES (?)",
            (SCHEMA_VERSION,),
        )
        await conn.commit()
