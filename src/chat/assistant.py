"""General chat replies.

Unlike intake, replies are free text: the advisor persona plus remembered
facts go in the system prompt, the model answers in prose, and the user's
message is mined for new facts afterwards.
"""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING

from src.config import settings
from src.conversations.models import KIND_TEXT, ROLE_USER
from src.intake.service import STORE_ERROR_TEXT
from src.llm.client import ModelProxyError, complete_with_timeout
from src.llm.prompt import build_chat_system_prompt
from src.memory.automatic import extract_and_save

if TYPE_CHECKING:
    from src.conversations.models import Conversation, Message
    from src.conversations.store import ConversationStore
    from src.intake.context import ContextAssembler
    from src.llm.client import ModelClient
    from src.memory.store import MemoryStore

logger = logging.getLogger(__name__)

GENERAL_TAG = "general"
MODEL_ERROR_TEXT = "Sorry, I couldn't reach the assistant. Please try again."

TITLE_KEYWORDS = (
    ("passport", "Passport Application Help"),
    ("pan card", "PAN Card Assistance"),
    ("aadhaar", "Aadhaar Card Support"),
    ("gst", "GST Registration Help"),
    ("property", "Property Related Query"),
    ("tax", "Tax Related Help"),
    ("marriage", "Marriage Documentation"),
    ("education", "Education Related Query"),
)


def generate_title(messages: list[Message]) -> str:
    """Keyword title from the first user message, else its first few words."""
    if not messages:
        return "New Conversation"

    first = next((m.content for m in messages if m.role == ROLE_USER), "")
    lowered = first.lower()
    for keyword, title in TITLE_KEYWORDS:
        if keyword in lowered:
            return title

    title = " ".join(first.split()[:4])[:30].rstrip()
    if len(first) > 30:
        title += "..."
    return title


class ChatAssistant:
    """Free-text replies for the general assistant."""

    def __init__(
        self,
        conversations: ConversationStore,
        memory: MemoryStore,
        assembler: ContextAssembler,
        client: ModelClient,
    ) -> None:
        self._conversations = conversations
        self._memory = memory
        self._assembler = assembler
        self._client = client

    async def start(self, user_id: str | None = None) -> Conversation:
        return await self._conversations.get_or_create(
            GENERAL_TAG, user_id=user_id, title="New Chat"
        )

    async def reply(
        self, conversation_id: str, user_text: str, user_id: str | None = None
    ) -> Message:
        """Generate, persist, and return the assistant's reply.

        Model and store errors propagate. Fact extraction and retitling are
        best-effort.
        """
        history, facts = await asyncio.gather(
            self._conversations.recent_messages(conversation_id, settings.chat_window_size),
            self._assembler.load_facts(user_id),
        )
        messages = [
            {"role": "system", "content": build_chat_system_prompt(facts)},
            *(m.to_api_message() for m in history),
            {"role": "user", "content": user_text},
        ]

        response = await complete_with_timeout(
            self._client,
            messages,
            temperature=settings.chat_temperature,
            max_tokens=settings.chat_max_tokens,
            timeout=settings.llm_timeout_seconds,
        )

        _, saved = await self._conversations.append_exchange(
            conversation_id,
            user_text,
            response.text,
            kind=KIND_TEXT,
            metadata={
                "response_type": "conversational",
                "context_used": len(history),
                "memory_count": len(facts),
            },
            user_id=user_id,
        )

        if user_id:
            await extract_and_save(self._memory, user_id, user_text)
        await self._retitle(conversation_id)
        return saved

    async def respond(
        self, conversation_id: str, user_text: str, user_id: str | None = None
    ) -> str:
        """Reply as display text; failures become a user-facing apology."""
        try:
            saved = await self.reply(conversation_id, user_text, user_id=user_id)
        except ModelProxyError:
            logger.exception("Chat model call failed for %s", conversation_id)
            return MODEL_ERROR_TEXT
        except Exception:
            logger.exception("Chat turn failed for %s", conversation_id)
            return STORE_ERROR_TEXT
        return saved.content

    async def clear(self, conversation_id: str) -> int:
        return await self._conversations.clear_messages(conversation_id)

    async def _retitle(self, conversation_id: str) -> None:
        try:
            messages = await self._conversations.list_messages(conversation_id)
            await self._conversations.touch(conversation_id, generate_title(messages))
        except Exception:
            logger.exception("Failed to retitle conversation %s (non-fatal)", conversation_id)
