"""MemoryStore — per-user key/value facts via libsql.

Facts are upserted by (user_id, key).  Reads return every stored fact,
expired or not; callers that care about freshness check
``MemoryFact.is_expired()`` themselves.
"""

from __future__ import annotations

import json
import logging
from datetime import datetime
from typing import TYPE_CHECKING

from src.conversations.models import make_id, utc_now
from src.db import Database
from src.memory.models import MemoryFact, MemoryType

if TYPE_CHECKING:
    from pathlib import Path

    from pydantic import JsonValue

logger = logging.getLogger(__name__)

_CREATE_TABLE = """
CREATE TABLE IF NOT EXISTS ai_memory (
    id          TEXT PRIMARY KEY,
    user_id     TEXT NOT NULL,
    key         TEXT NOT NULL,
    value       TEXT NOT NULL,
    memory_type TEXT NOT NULL DEFAULT 'fact',
    expires_at  TEXT,
    created_at  TEXT NOT NULL,
    updated_at  TEXT NOT NULL,
    UNIQUE (user_id, key)
)
"""

_COLUMNS = "id, user_id, key, value, memory_type, expires_at, created_at, updated_at"


def _from_row(row: tuple) -> MemoryFact:
    return MemoryFact(
        id=row[0],
        user_id=row[1],
        key=row[2],
        value=json.loads(row[3]),
        memory_type=row[4],
        expires_at=row[5],
        created_at=row[6],
        updated_at=row[7],
    )


class MemoryStore:
    """Persists user memory facts in SQLite / Turso.

    Singleton accessed via ``MemoryStore.get()``.  Pass an explicit *db_path*
    for test isolation (e.g. ``tmp_path / "test.db"``).
    """

    _instance: MemoryStore | None = None

    def __init__(self, db_path: Path | None = None) -> None:
        self._db = Database(db_path, schema=(_CREATE_TABLE,))

    @classmethod
    def get(cls) -> MemoryStore:
        """Return the shared MemoryStore instance."""
        if cls._instance is None:
            cls._instance = cls()
        return cls._instance

    @classmethod
    def _reset(cls) -> None:
        """Reset the singleton (for testing)."""
        cls._instance = None

    # -- Read ------------------------------------------------------------------

    async def list_facts(self, user_id: str) -> list[MemoryFact]:
        """Return every fact for a user, newest first. No expiry filtering."""
        async with self._db.connect() as db:
            cursor = await db.execute(
                f"SELECT {_COLUMNS} FROM ai_memory WHERE user_id = ? "
                "ORDER BY created_at DESC, rowid DESC",
                (user_id,),
            )
            rows = await cursor.fetchall()
            return [_from_row(row) for row in rows]

    async def get_fact(self, user_id: str, key: str) -> MemoryFact | None:
        """Fetch one fact by key, or None if not found."""
        async with self._db.connect() as db:
            cursor = await db.execute(
                f"SELECT {_COLUMNS} FROM ai_memory WHERE user_id = ? AND key = ?",
                (user_id, key),
            )
            row = await cursor.fetchone()
            return _from_row(row) if row else None

    # -- Write -----------------------------------------------------------------

    async def set_fact(
        self,
        user_id: str,
        key: str,
        value: JsonValue,
        memory_type: MemoryType = "fact",
        expires_at: datetime | None = None,
    ) -> MemoryFact:
        """Insert or update a fact by key. Preserves the original id and created_at."""
        now = utc_now()
        expiry = expires_at.isoformat() if expires_at else None
        async with self._db.connect() as db:
            cursor = await db.execute(
                "SELECT id, created_at FROM ai_memory WHERE user_id = ? AND key = ?",
                (user_id, key),
            )
            existing = await cursor.fetchone()
            fact_id, created_at = existing if existing else (make_id(), now)

            fact = MemoryFact(
                id=fact_id,
                user_id=user_id,
                key=key,
                value=value,
                memory_type=memory_type,
                expires_at=expiry,
                created_at=created_at,
                updated_at=now,
            )
            await db.execute(
                f"INSERT OR REPLACE INTO ai_memory ({_COLUMNS}) VALUES (?, ?, ?, ?, ?, ?, ?, ?)",
                (
                    fact.id,
                    fact.user_id,
                    fact.key,
                    json.dumps(fact.value),
                    fact.memory_type,
                    fact.expires_at,
                    fact.created_at,
                    fact.updated_at,
                ),
            )
            await db.commit()
        logger.debug("Stored memory [%s] %s for %s", memory_type, key, user_id)
        return fact

    async def delete_fact(self, user_id: str, key: str) -> bool:
        """Delete a fact. Returns True if a row was removed."""
        async with self._db.connect() as db:
            cursor = await db.execute(
                "DELETE FROM ai_memory WHERE user_id = ? AND key = ?", (user_id, key)
            )
            await db.commit()
            return cursor.rowcount > 0
