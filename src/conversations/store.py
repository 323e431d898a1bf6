"""ConversationStore — CRUD for conversations and their messages via libsql."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from src.conversations.models import (
    KIND_TEXT,
    ROLE_ASSISTANT,
    ROLE_USER,
    Conversation,
    Message,
    make_id,
    utc_now,
)
from src.db import Database

if TYPE_CHECKING:
    from pathlib import Path

logger = logging.getLogger(__name__)

_CREATE_CONVERSATIONS = """
CREATE TABLE IF NOT EXISTS ai_conversations (
    id           TEXT PRIMARY KEY,
    user_id      TEXT,
    title        TEXT,
    context_type TEXT,
    created_at   TEXT NOT NULL,
    updated_at   TEXT NOT NULL
)
"""

_CREATE_MESSAGES = """
CREATE TABLE IF NOT EXISTS ai_messages (
    id              TEXT PRIMARY KEY,
    conversation_id TEXT NOT NULL REFERENCES ai_conversations(id),
    user_id         TEXT,
    role            TEXT NOT NULL,
    content         TEXT NOT NULL,
    message_type    TEXT NOT NULL DEFAULT 'text',
    metadata        TEXT NOT NULL DEFAULT '{}',
    created_at      TEXT NOT NULL
)
"""

_CREATE_MESSAGES_INDEX = """
CREATE INDEX IF NOT EXISTS idx_ai_messages_conversation
    ON ai_messages (conversation_id, created_at)
"""

_CONVERSATION_COLUMNS = "id, user_id, title, context_type, created_at, updated_at"
_MESSAGE_COLUMNS = (
    "id, conversation_id, user_id, role, content, message_type, metadata, created_at"
)


class ConversationStore:
    """Persists conversations and messages in SQLite / Turso.

    Singleton accessed via ``ConversationStore.get()``.  Pass an explicit
    *db_path* for test isolation (e.g. ``tmp_path / "test.db"``).

    Messages come back in transcript order: ascending ``created_at``, with
    insertion order breaking ties.
    """

    _instance: ConversationStore | None = None

    def __init__(self, db_path: Path | None = None) -> None:
        self._db = Database(
            db_path,
            schema=(_CREATE_CONVERSATIONS, _CREATE_MESSAGES, _CREATE_MESSAGES_INDEX),
        )

    @classmethod
    def get(cls) -> ConversationStore:
        """Return the shared ConversationStore instance."""
        if cls._instance is None:
            cls._instance = cls()
        return cls._instance

    @classmethod
    def _reset(cls) -> None:
        """Reset the singleton (for testing)."""
        cls._instance = None

    # -- Conversations ---------------------------------------------------------

    async def get_or_create(
        self,
        tag: str,
        user_id: str | None = None,
        title: str | None = None,
    ) -> Conversation:
        """Return the most recently updated conversation for *tag*, creating one if none exists."""
        async with self._db.connect() as db:
            cursor = await db.execute(
                f"""
                SELECT {_CONVERSATION_COLUMNS} FROM ai_conversations
                WHERE context_type = ? AND user_id IS ?
                ORDER BY updated_at DESC
                LIMIT 1
                """,
                (tag, user_id),
            )
            row = await cursor.fetchone()
            if row:
                return Conversation.from_row(row)

            conversation = Conversation(
                id=make_id(),
                user_id=user_id,
                title=title or "New Chat",
                context_type=tag,
            )
            await db.execute(
                f"INSERT INTO ai_conversations ({_CONVERSATION_COLUMNS}) VALUES (?, ?, ?, ?, ?, ?)",
                conversation.to_row(),
            )
            await db.commit()
            logger.info("Created %s conversation %s", tag, conversation.id)
            return conversation

    async def get_conversation(self, conversation_id: str) -> Conversation | None:
        """Fetch a conversation by ID, or None if not found."""
        async with self._db.connect() as db:
            cursor = await db.execute(
                f"SELECT {_CONVERSATION_COLUMNS} FROM ai_conversations WHERE id = ?",
                (conversation_id,),
            )
            row = await cursor.fetchone()
            return Conversation.from_row(row) if row else None

    async def list_conversations(self, tag: str | None = None) -> list[Conversation]:
        """Return conversations, most recently updated first."""
        async with self._db.connect() as db:
            if tag is None:
                cursor = await db.execute(
                    f"SELECT {_CONVERSATION_COLUMNS} FROM ai_conversations "
                    "ORDER BY updated_at DESC"
                )
            else:
                cursor = await db.execute(
                    f"SELECT {_CONVERSATION_COLUMNS} FROM ai_conversations "
                    "WHERE context_type = ? ORDER BY updated_at DESC",
                    (tag,),
                )
            rows = await cursor.fetchall()
            return [Conversation.from_row(row) for row in rows]

    async def touch(self, conversation_id: str, title_hint: str | None = None) -> None:
        """Bump updated_at and, when given, replace the title."""
        now = utc_now()
        async with self._db.connect() as db:
            if title_hint:
                await db.execute(
                    "UPDATE ai_conversations SET updated_at = ?, title = ? WHERE id = ?",
                    (now, title_hint, conversation_id),
                )
            else:
                await db.execute(
                    "UPDATE ai_conversations SET updated_at = ? WHERE id = ?",
                    (now, conversation_id),
                )
            await db.commit()

    # -- Messages --------------------------------------------------------------

    async def list_messages(self, conversation_id: str) -> list[Message]:
        """Return the full transcript, oldest first."""
        async with self._db.connect() as db:
            cursor = await db.execute(
                f"""
                SELECT {_MESSAGE_COLUMNS} FROM ai_messages
                WHERE conversation_id = ?
                ORDER BY created_at ASC, rowid ASC
                """,
                (conversation_id,),
            )
            rows = await cursor.fetchall()
            return [Message.from_row(row) for row in rows]

    async def recent_messages(self, conversation_id: str, limit: int) -> list[Message]:
        """Return the last *limit* messages, oldest first."""
        if limit <= 0:
            return []
        async with self._db.connect() as db:
            cursor = await db.execute(
                f"""
                SELECT {_MESSAGE_COLUMNS} FROM ai_messages
                WHERE conversation_id = ?
                ORDER BY created_at DESC, rowid DESC
                LIMIT ?
                """,
                (conversation_id, limit),
            )
            rows = await cursor.fetchall()
            return [Message.from_row(row) for row in reversed(rows)]

    async def append_user_message(
        self, conversation_id: str, text: str, user_id: str | None = None
    ) -> Message:
        """Persist a user turn."""
        message = _user_message(conversation_id, text, user_id)
        await self._insert(message)
        return message

    async def append_assistant_message(
        self,
        conversation_id: str,
        content: str,
        kind: str = KIND_TEXT,
        metadata: dict[str, Any] | None = None,
    ) -> Message:
        """Persist an assistant turn with its message kind and metadata."""
        message = _assistant_message(conversation_id, content, kind, metadata)
        await self._insert(message)
        return message

    async def append_exchange(
        self,
        conversation_id: str,
        user_text: str,
        content: str,
        kind: str = KIND_TEXT,
        metadata: dict[str, Any] | None = None,
        user_id: str | None = None,
    ) -> tuple[Message, Message]:
        """Persist a user turn and its reply in one transaction.

        Either both rows are written or neither is.
        """
        user_message = _user_message(conversation_id, user_text, user_id)
        assistant_message = _assistant_message(conversation_id, content, kind, metadata)
        await self._insert(user_message, assistant_message)
        return user_message, assistant_message

    async def clear_messages(self, conversation_id: str) -> int:
        """Delete every message in a conversation. Returns the count removed."""
        async with self._db.connect() as db:
            cursor = await db.execute(
                "DELETE FROM ai_messages WHERE conversation_id = ?", (conversation_id,)
            )
            await db.commit()
            removed = cursor.rowcount
            logger.info("Cleared %d messages from conversation %s", removed, conversation_id)
            return removed

    async def _insert(self, *messages: Message) -> None:
        async with self._db.connect() as db:
            try:
                for message in messages:
                    await db.execute(
                        f"INSERT INTO ai_messages ({_MESSAGE_COLUMNS}) "
                        "VALUES (?, ?, ?, ?, ?, ?, ?, ?)",
                        message.to_row(),
                    )
                await db.commit()
            except Exception:
                await db.rollback()
                raise
        for message in messages:
            logger.debug(
                "Stored %s %s message in %s",
                message.role,
                message.message_type,
                message.conversation_id,
            )


def _user_message(conversation_id: str, text: str, user_id: str | None) -> Message:
    return Message(
        id=make_id(),
        conversation_id=conversation_id,
        role=ROLE_USER,
        content=text,
        user_id=user_id,
    )


def _assistant_message(
    conversation_id: str, content: str, kind: str, metadata: dict[str, Any] | None
) -> Message:
    return Message(
        id=make_id(),
        conversation_id=conversation_id,
        role=ROLE_ASSISTANT,
        content=content,
        message_type=kind,
        metadata=dict(metadata or {}),
    )
