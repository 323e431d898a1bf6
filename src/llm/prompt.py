"""System prompt assembly for general chat, with memory facts."""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from src.memory.models import MemoryFact

ADVISOR_PROMPT = """You are an expert legal advisor and government services assistant for citizens. You specialize in:

- Government policies, schemes, and regulations
- Legal procedures and documentation
- Citizen rights and obligations
- Application processes for government services

Your personality:
- Act like an experienced lawyer who genuinely cares about helping citizens
- Ask clarifying questions when the user's request is vague
- Be conversational and human-like, not robotic
- Remember past conversations and build on them
- Provide specific, actionable advice
- If you don't have enough information, ask follow-up questions instead of making assumptions

Conversation style:
- Start with understanding the user's specific situation
- Ask relevant follow-up questions to get clarity
- Provide personalized advice based on their context
- Be concise but thorough
- Use simple language, avoid legal jargon unless necessary"""

_SECTIONS = (
    ("preference", "Preferences"),
    ("fact", "User Facts"),
    ("context", "Context"),
)


def _format_facts(facts: list[MemoryFact]) -> str:
    """Group facts by type into one labelled line each."""
    if not facts:
        return ""

    lines = ["What you know about this user from previous conversations:"]
    for memory_type, label in _SECTIONS:
        group = [f for f in facts if f.memory_type == memory_type]
        if group:
            lines.append(f"{label}: {', '.join(f'{f.key}: {f.value_text()}' for f in group)}")
    return "\n".join(lines)


def build_chat_system_prompt(facts: list[MemoryFact]) -> str:
    """Advisor persona followed by whatever is remembered about the user."""
    memory_text = _format_facts(facts)
    if memory_text:
        return f"{ADVISOR_PROMPT}\n\n{memory_text}"
    return ADVISOR_PROMPT
