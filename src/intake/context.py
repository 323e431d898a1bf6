"""Context assembly for the model call.

Builds the bounded, ordered slice of prior turns plus an optional one-line
memory hint. The hint is appended after the history and never persisted.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from src.config import settings

if TYPE_CHECKING:
    from src.conversations.store import ConversationStore
    from src.memory.models import MemoryFact
    from src.memory.store import MemoryStore

logger = logging.getLogger(__name__)


@dataclass
class AssembledContext:
    """Prior turns (and hint line) ready to follow the system instruction."""

    messages: list[dict[str, str]] = field(default_factory=list)
    history_count: int = 0
    memory_count: int = 0


def format_memory_hint(facts: list[MemoryFact], limit: int = 5) -> str:
    """``User hints: k=v, ...`` from at most *limit* facts, or "" when there are none."""
    if not facts:
        return ""
    pairs = [f"{fact.key}={fact.value_text()}" for fact in facts[:limit]]
    return f"User hints: {', '.join(pairs)}"


class ContextAssembler:
    """Reads history and memory, then trims and orders them for the model."""

    def __init__(
        self,
        conversations: ConversationStore,
        memory: MemoryStore,
        *,
        hint_limit: int | None = None,
        filter_expired: bool | None = None,
    ) -> None:
        self._conversations = conversations
        self._memory = memory
        self._hint_limit = hint_limit if hint_limit is not None else settings.memory_hint_limit
        self._filter_expired = (
            filter_expired if filter_expired is not None else settings.filter_expired_memories
        )

    async def load_facts(self, user_id: str | None) -> list[MemoryFact]:
        """Facts usable as hints for *user_id* (expired ones dropped unless disabled)."""
        if not user_id:
            return []
        facts = await self._memory.list_facts(user_id)
        if self._filter_expired:
            facts = [fact for fact in facts if not fact.is_expired()]
        return facts

    async def assemble(
        self,
        conversation_id: str,
        user_id: str | None = None,
        limit: int = 6,
    ) -> AssembledContext:
        """Return at most *limit* prior turns, oldest first, plus the hint line.

        JSON-contract replies go through as their raw stored text, so the model
        sees exactly what it produced earlier.
        """
        history, facts = await asyncio.gather(
            self._conversations.recent_messages(conversation_id, limit),
            self.load_facts(user_id),
        )

        messages = [msg.to_api_message() for msg in history]
        hint = format_memory_hint(facts, self._hint_limit)
        if hint:
            messages.append({"role": "system", "content": hint})

        logger.debug(
            "Context for %s: %d turns, %d facts", conversation_id, len(history), len(facts)
        )
        return AssembledContext(
            messages=messages,
            history_count=len(history),
            memory_count=len(facts),
        )
