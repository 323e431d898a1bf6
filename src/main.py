"""Console entry point for the intake and general chat assistants.

    python -m src.main --mode intake --user alice

Type a message and press enter; ``/clear`` empties the conversation and
``/quit`` (or EOF) exits.
"""

import argparse
import asyncio
import logging

from src.chat.assistant import ChatAssistant
from src.config import settings
from src.conversations.store import ConversationStore
from src.intake.context import ContextAssembler
from src.intake.engine import ReplyContractEngine
from src.intake.safety import load_lexicon
from src.intake.service import IntakeService
from src.llm.client import get_model_client
from src.memory.store import MemoryStore

logging.basicConfig(
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    level=getattr(logging, settings.log_level),
)
logger = logging.getLogger(__name__)


def build_intake_service() -> IntakeService:
    """Wire the intake pipeline from the shared stores and configured model client."""
    conversations = ConversationStore.get()
    assembler = ContextAssembler(conversations, MemoryStore.get())
    engine = ReplyContractEngine(get_model_client())
    return IntakeService(conversations, assembler, engine, load_lexicon())


def build_chat_assistant() -> ChatAssistant:
    conversations = ConversationStore.get()
    memory = MemoryStore.get()
    return ChatAssistant(
        conversations, memory, ContextAssembler(conversations, memory), get_model_client()
    )


async def _read_line(prompt: str) -> str | None:
    try:
        return await asyncio.to_thread(input, prompt)
    except EOFError:
        return None


async def run_intake(user_id: str | None) -> None:
    service = build_intake_service()
    conversation = await service.start(user_id)
    for line in await service.transcript(conversation.id):
        print(line)

    while (text := await _read_line("> ")) is not None:
        text = text.strip()
        if not text:
            continue
        if text == "/quit":
            break
        if text == "/clear":
            count = await service.clear(conversation.id)
            print(f"Cleared {count} messages. Starting fresh.")
            continue
        print(await service.respond(conversation.id, text, user_id=user_id))


async def run_chat(user_id: str | None) -> None:
    assistant = build_chat_assistant()
    conversation = await assistant.start(user_id)

    while (text := await _read_line("> ")) is not None:
        text = text.strip()
        if not text:
            continue
        if text == "/quit":
            break
        if text == "/clear":
            count = await assistant.clear(conversation.id)
            print(f"Cleared {count} messages. Starting fresh.")
            continue
        print(await assistant.respond(conversation.id, text, user_id=user_id))


def main() -> None:
    """Parse arguments and run the selected assistant until EOF."""
    parser = argparse.ArgumentParser(description="Citizen services assistant console")
    parser.add_argument("--mode", choices=("intake", "chat"), default="intake")
    parser.add_argument("--user", default=None, help="User ID for memory facts")
    args = parser.parse_args()

    logger.info("Starting %s assistant (backend=%s)", args.mode, settings.llm_backend)
    runner = run_intake if args.mode == "intake" else run_chat
    asyncio.run(runner(args.user))


if __name__ == "__main__":
    main()
