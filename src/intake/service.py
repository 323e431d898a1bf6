"""Intake turn pipeline.

One turn: assemble context → model call → contract parse/fallback →
safety override → persist the user and assistant messages together → touch
the conversation. Nothing is written until the model has answered, and the
two messages share one transaction, so a failed turn leaves the transcript as
it was and the caller can simply retry.
"""

from __future__ import annotations

import asyncio
import logging
import weakref
from dataclasses import dataclass
from typing import TYPE_CHECKING

from src.config import settings
from src.conversations.models import KIND_JSON
from src.intake.contract import StructuredReply, render_reply, render_stored
from src.intake.safety import SAFETY_SENTENCE, apply_safety_override
from src.llm.client import ModelProxyError

if TYPE_CHECKING:
    from src.conversations.models import Conversation, Message
    from src.conversations.store import ConversationStore
    from src.intake.context import ContextAssembler
    from src.intake.engine import ReplyContractEngine
    from src.intake.safety import SafetyLexicon

logger = logging.getLogger(__name__)

INTAKE_TAG = "intake"
INTAKE_TITLE = "Intake Assistant"

WELCOME_TEXT = "Understood. Tell me briefly what happened, when, and where."
PROXY_ERROR_TEXT = "Sorry, couldn't process that. Could you share what happened, when, and where?"
STORE_ERROR_TEXT = "Something went wrong saving your conversation. Please try again later."


@dataclass(frozen=True)
class TurnResult:
    """Everything a caller needs after one intake turn.

    Attributes:
        raw: Model output as persisted.
        parsed: Contract parse of ``raw`` (or the fallback), before the safety override.
        reply: The reply shown to the user.
        parsed_ok: Whether ``raw`` satisfied the contract.
        safety_override: Whether the emergency directive was prefixed.
        user_message: The persisted user turn.
        assistant_message: The persisted assistant turn.
        text: ``render_reply(reply)``.
    """

    raw: str
    parsed: StructuredReply
    reply: StructuredReply
    parsed_ok: bool
    safety_override: bool
    user_message: Message
    assistant_message: Message
    text: str


class IntakeService:
    """Runs intake turns against injected stores, engine, and safety lexicon.

    Turns on the same conversation are serialized with an in-process lock so
    their messages cannot interleave.
    """

    def __init__(
        self,
        conversations: ConversationStore,
        assembler: ContextAssembler,
        engine: ReplyContractEngine,
        lexicon: SafetyLexicon,
        *,
        window_size: int | None = None,
    ) -> None:
        self._conversations = conversations
        self._assembler = assembler
        self._engine = engine
        self._lexicon = lexicon
        self._window_size = window_size if window_size is not None else settings.intake_window_size
        self._locks: weakref.WeakValueDictionary[str, asyncio.Lock] = (
            weakref.WeakValueDictionary()
        )

    def _lock_for(self, conversation_id: str) -> asyncio.Lock:
        lock = self._locks.get(conversation_id)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[conversation_id] = lock
        return lock

    async def start(self, user_id: str | None = None) -> Conversation:
        """Reuse the user's latest intake conversation or open a new one."""
        return await self._conversations.get_or_create(
            INTAKE_TAG, user_id=user_id, title=INTAKE_TITLE
        )

    async def run_turn(
        self, conversation_id: str, user_text: str, user_id: str | None = None
    ) -> TurnResult:
        """Process one user turn.

        Raises:
            ModelProxyError: The model call failed or timed out. Nothing was persisted.
            Exception: Store errors propagate unchanged. Nothing was persisted.
        """
        async with self._lock_for(conversation_id):
            context = await self._assembler.assemble(
                conversation_id, user_id=user_id, limit=self._window_size
            )
            result = await self._engine.generate(context.messages, user_text)
            reply, fired = apply_safety_override(result.reply, user_text, self._lexicon)

            user_message, assistant_message = await self._conversations.append_exchange(
                conversation_id,
                user_text,
                result.raw,
                kind=KIND_JSON,
                metadata={
                    "response_type": "intake",
                    "parsed_ok": result.parsed_ok,
                    "context_used": context.history_count,
                    "safety_override": fired,
                    "lexicon_version": self._lexicon.version,
                },
                user_id=user_id,
            )
            await self._touch(conversation_id)

        logger.info(
            "Intake turn on %s: mode=%s parsed_ok=%s safety=%s",
            conversation_id,
            reply.mode,
            result.parsed_ok,
            fired,
        )
        return TurnResult(
            raw=result.raw,
            parsed=result.reply,
            reply=reply,
            parsed_ok=result.parsed_ok,
            safety_override=fired,
            user_message=user_message,
            assistant_message=assistant_message,
            text=render_reply(reply),
        )

    async def respond(
        self, conversation_id: str, user_text: str, user_id: str | None = None
    ) -> str:
        """Run a turn and return display text; failures become a user-facing apology."""
        try:
            result = await self.run_turn(conversation_id, user_text, user_id=user_id)
        except ModelProxyError:
            logger.exception("Intake model call failed for %s", conversation_id)
            return PROXY_ERROR_TEXT
        except Exception:
            logger.exception("Intake turn failed for %s", conversation_id)
            return STORE_ERROR_TEXT
        return result.text

    async def transcript(self, conversation_id: str) -> list[str]:
        """Rendered history as the user saw it, or the welcome line when empty."""
        messages = await self._conversations.list_messages(conversation_id)
        if not messages:
            return [WELCOME_TEXT]
        return [_render_message(m) for m in messages]

    async def clear(self, conversation_id: str) -> int:
        """Delete every message in the conversation."""
        async with self._lock_for(conversation_id):
            return await self._conversations.clear_messages(conversation_id)

    async def _touch(self, conversation_id: str) -> None:
        try:
            await self._conversations.touch(conversation_id, INTAKE_TITLE)
        except Exception:
            logger.exception("Failed to touch conversation %s (non-fatal)", conversation_id)


def _render_message(message: Message) -> str:
    """Display text for a stored turn, including the safety sentence the user was shown."""
    text = render_stored(message.content, message.message_type)
    if message.is_json and message.metadata.get("safety_override"):
        return f"{SAFETY_SENTENCE} {text}"
    return text
