"""The intake reply contract: system instruction, parsing, fallback, and rendering.

The model is asked to answer with a small JSON object::

    {"mode": "ask" | "guide", "message": str, "question"?: str, "steps"?: [str]}

``parse_contract`` never raises. Anything that does not fit the shape is
replaced with ``FALLBACK_REPLY`` so the user always gets a well-formed reply.
"""

from __future__ import annotations

import json
import logging
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, StrictStr, ValidationError

logger = logging.getLogger(__name__)

MAX_RENDERED_STEPS = 3

SYSTEM_PROMPT = """You are a concise intake assistant.
Behavior:
- Keep replies short (1-2 sentences). Use plain language. No emojis.
- First, reflect understanding in at most 1 short sentence.
- If information is insufficient, ask exactly one focused question.
- If sufficient, give next steps in at most 3 short bullets.
- Prefer specifics: what happened, when, where, who, evidence, urgency.
- If emergency or danger: tell the user to contact local emergency services immediately.
- Ask for jurisdiction (city/country) only if relevant to guidance.
- No legal conclusions; provide procedural guidance only.
Output JSON only with: { "mode": "ask" | "guide", "message": string, "question"?: string, "steps"?: string[] }"""


class StructuredReply(BaseModel):
    """Parsed intake reply. ``ask`` carries a question, ``guide`` carries steps."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    mode: Literal["ask", "guide"]
    message: StrictStr = Field(min_length=1)
    question: StrictStr | None = None
    steps: list[StrictStr] | None = None


FALLBACK_REPLY = StructuredReply(
    mode="ask",
    message="Sorry, I didn't catch that.",
    question="Could you briefly share what happened, when, and where?",
)


def _load_object(text: str) -> object:
    """Decode JSON, falling back to the outermost ``{...}`` (e.g. inside markdown fences)."""
    try:
        return json.loads(text)
    except (ValueError, RecursionError):
        start = text.find("{")
        end = text.rfind("}") + 1
        if start < 0 or end <= start:
            raise
        return json.loads(text[start:end])


def try_parse_contract(text: str) -> StructuredReply | None:
    """Parse model output against the contract. Returns None when it does not fit."""
    try:
        data = _load_object(text)
    except (ValueError, RecursionError, TypeError):
        return None
    if not isinstance(data, dict):
        return None
    try:
        return StructuredReply.model_validate(data)
    except ValidationError:
        return None


def parse_contract(text: str) -> tuple[StructuredReply, bool]:
    """Parse model output, substituting ``FALLBACK_REPLY`` on failure.

    Returns:
        The reply and whether the model's own output was used.
    """
    reply = try_parse_contract(text)
    if reply is None:
        logger.warning("Model reply broke the intake contract; using fallback: %r", text[:200])
        return FALLBACK_REPLY, False
    return reply, True


def render_reply(reply: StructuredReply) -> str:
    """Flatten a reply into display text.

    ``ask``: message and question joined by a space.
    ``guide``: message followed by up to three numbered steps, one per line.
    """
    if reply.mode == "ask":
        return " ".join(part for part in (reply.message, reply.question) if part)
    steps = (reply.steps or [])[:MAX_RENDERED_STEPS]
    lines = [f"{i + 1}. {step}" for i, step in enumerate(steps)]
    return "\n".join(part for part in (reply.message, *lines) if part)


def render_stored(content: str, message_type: str) -> str:
    """Display text for a persisted message.

    JSON replies that still parse are rendered; anything else is shown as stored.
    """
    if message_type == "json":
        reply = try_parse_contract(content)
        if reply is not None:
            return render_reply(reply)
    return content
