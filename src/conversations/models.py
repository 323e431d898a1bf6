"""Conversation and message records."""

from __future__ import annotations

import json
import uuid
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any

ROLE_USER = "user"
ROLE_ASSISTANT = "assistant"

KIND_TEXT = "text"
KIND_JSON = "json"


def utc_now() -> str:
    """Current time as an ISO 8601 UTC string."""
    return datetime.now(UTC).isoformat()


def make_id() -> str:
    """Generate a new record ID."""
    return uuid.uuid4().hex


@dataclass
class Conversation:
    """A thread of turns between one user and the assistant.

    Attributes:
        id: Unique identifier (UUID hex).
        user_id: Owner, or None for an anonymous/device-local thread.
        title: Display title.
        context_type: Classification tag, e.g. ``"intake"`` or ``"general"``.
        created_at: ISO 8601 timestamp.
        updated_at: ISO 8601 timestamp of the last exchange.
    """

    id: str
    user_id: str | None = None
    title: str | None = None
    context_type: str | None = None
    created_at: str = ""
    updated_at: str = ""

    def __post_init__(self) -> None:
        if not self.created_at:
            self.created_at = utc_now()
        if not self.updated_at:
            self.updated_at = self.created_at

    def to_row(self) -> tuple:
        return (
            self.id,
            self.user_id,
            self.title,
            self.context_type,
            self.created_at,
            self.updated_at,
        )

    @classmethod
    def from_row(cls, row: tuple) -> Conversation:
        return cls(
            id=row[0],
            user_id=row[1],
            title=row[2],
            context_type=row[3],
            created_at=row[4],
            updated_at=row[5],
        )


@dataclass
class Message:
    """One persisted turn. Immutable once written."""

    id: str
    conversation_id: str
    role: str
    content: str
    message_type: str = KIND_TEXT
    metadata: dict[str, Any] = field(default_factory=dict)
    user_id: str | None = None
    created_at: str = ""

    def __post_init__(self) -> None:
        if not self.created_at:
            self.created_at = utc_now()

    @property
    def is_json(self) -> bool:
        return self.message_type == KIND_JSON

    def to_api_message(self) -> dict[str, str]:
        """Role/content pair as sent to the model."""
        return {"role": self.role, "content": self.content}

    def to_row(self) -> tuple:
        return (
            self.id,
            self.conversation_id,
            self.user_id,
            self.role,
            self.content,
            self.message_type,
            json.dumps(self.metadata),
            self.created_at,
        )

    @classmethod
    def from_row(cls, row: tuple) -> Message:
        return cls(
            id=row[0],
            conversation_id=row[1],
            user_id=row[2],
            role=row[3],
            content=row[4],
            message_type=row[5] or KIND_TEXT,
            metadata=json.loads(row[6]) if row[6] else {},
            created_at=row[7],
        )
