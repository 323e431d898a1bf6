"""Automatic memory extraction from user messages.

After each general-chat exchange, the user's message is scanned with simple
keyword rules for location, age, profession, and topics of interest. Matches
are upserted as memory facts. This is a heuristic, not NLP.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from typing import TYPE_CHECKING

from pydantic import JsonValue

from src.config import settings

if TYPE_CHECKING:
    from src.memory.models import MemoryType
    from src.memory.store import MemoryStore

logger = logging.getLogger(__name__)

LOCATION_KEYWORDS = ("live in", "based in", "located in", "from")
PROFESSION_KEYWORDS = ("work as", "employed as", "profession", "occupation", "job")
TOPICS = (
    "passport",
    "visa",
    "pan card",
    "aadhaar",
    "gst",
    "income tax",
    "property",
    "marriage",
    "divorce",
    "education",
    "scholarship",
)
TOPIC_TTL = timedelta(days=30)

_AGE_RE = re.compile(r"(\d+)\s*(?:years?\s*old|age)", re.IGNORECASE)


# -- Data structures ---------------------------------------------------------


@dataclass
class ExtractedFact:
    key: str
    value: JsonValue
    memory_type: MemoryType = "fact"
    expires_at: datetime | None = None


# -- Rules -------------------------------------------------------------------


def _words_after(text: str, keyword: str, count: int = 2) -> str:
    """The *count* words following *keyword* (matched on word boundaries)."""
    match = re.search(rf"\b{re.escape(keyword)}\b", text)
    if not match:
        return ""
    words = re.findall(r"[\w'-]+", text[match.end() :])
    return " ".join(words[:count])


def _first_phrase(text: str, keywords: tuple[str, ...]) -> str:
    for keyword in keywords:
        phrase = _words_after(text, keyword)
        if len(phrase) > 2:
            return phrase
    return ""


def extract_user_facts(text: str, now: datetime | None = None) -> list[ExtractedFact]:
    """Apply the keyword rules to one user message."""
    message = text.lower()
    now = now or datetime.now(UTC)
    facts: list[ExtractedFact] = []

    location = _first_phrase(message, LOCATION_KEYWORDS)
    if location:
        facts.append(ExtractedFact(key="location", value=location))

    age = _AGE_RE.search(message)
    if age:
        facts.append(ExtractedFact(key="age", value=int(age.group(1))))

    profession = _first_phrase(message, PROFESSION_KEYWORDS)
    if profession:
        facts.append(ExtractedFact(key="profession", value=profession))

    for topic in TOPICS:
        if topic in message:
            facts.append(
                ExtractedFact(
                    key=f"interested_in_{topic.replace(' ', '_')}",
                    value=True,
                    memory_type="context",
                    expires_at=now + TOPIC_TTL,
                )
            )

    return facts


# -- Main pipeline -----------------------------------------------------------


async def extract_and_save(store: MemoryStore, user_id: str, user_message: str) -> int:
    """Extract facts from *user_message* and upsert them. Returns the count saved.

    Failures are logged and skipped; extraction never blocks a reply.
    """
    if not settings.memory_extraction_enabled:
        return 0

    saved = 0
    for fact in extract_user_facts(user_message):
        try:
            await store.set_fact(
                user_id,
                fact.key,
                fact.value,
                memory_type=fact.memory_type,
                expires_at=fact.expires_at,
            )
            saved += 1
        except Exception:
            logger.exception("Failed to save memory %s (non-fatal)", fact.key)

    if saved:
        logger.info("Extracted %d memories from message", saved)
    return saved
