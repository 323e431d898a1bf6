"""Keyword-triggered safety override.

If the user's raw text mentions any harm indicator, the reply's message is
prefixed with a fixed directive to contact emergency services. This runs
after contract parsing, so the fallback reply is covered too, and it does
not depend on the model following instructions.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING

import yaml

from src.config import settings

if TYPE_CHECKING:
    from pathlib import Path

    from src.intake.contract import StructuredReply

logger = logging.getLogger(__name__)

SAFETY_SENTENCE = "If you are in immediate danger, contact local emergency services now."

DEFAULT_KEYWORDS = (
    "danger",
    "violence",
    "threat",
    "stalking",
    "attack",
    "bleeding",
    "suicide",
    "harassment",
    "kidnap",
    "assault",
    "rape",
)


@dataclass(frozen=True)
class SafetyLexicon:
    """A versioned set of lower-case harm keywords, matched as substrings."""

    keywords: frozenset[str]
    version: str = "builtin-1"

    @classmethod
    def default(cls) -> SafetyLexicon:
        return cls(keywords=frozenset(DEFAULT_KEYWORDS))

    @classmethod
    def from_yaml(cls, path: Path) -> SafetyLexicon:
        """Load ``{version: str, keywords: [str, ...]}`` from a YAML file."""
        data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
        if not isinstance(data, dict):
            raise ValueError(f"Safety lexicon {path} must be a mapping")
        raw = data.get("keywords") or []
        if not isinstance(raw, list):
            raise ValueError(f"Safety lexicon {path}: 'keywords' must be a list")
        keywords = frozenset(str(k).strip().lower() for k in raw if str(k).strip())
        if not keywords:
            raise ValueError(f"Safety lexicon {path} has no keywords")
        return cls(keywords=keywords, version=str(data.get("version", path.stem)))

    def matches(self, text: str) -> bool:
        lowered = text.lower()
        return any(keyword in lowered for keyword in self.keywords)


def load_lexicon() -> SafetyLexicon:
    """Lexicon from ``SAFETY_LEXICON_PATH``, or the built-in list when unset."""
    path = settings.get_safety_lexicon_path()
    if path is None:
        return SafetyLexicon.default()
    lexicon = SafetyLexicon.from_yaml(path)
    logger.info(
        "Safety lexicon %s loaded from %s (%d keywords)", lexicon.version, path, len(lexicon.keywords)
    )
    return lexicon


def apply_safety_override(
    reply: StructuredReply, user_text: str, lexicon: SafetyLexicon
) -> tuple[StructuredReply, bool]:
    """Prefix the safety sentence when *user_text* hits the lexicon.

    Only ``message`` changes. Returns the (possibly new) reply and whether it fired.
    """
    if not lexicon.matches(user_text):
        return reply, False
    logger.info("Safety keyword matched; prefixing emergency directive")
    updated = reply.model_copy(update={"message": f"{SAFETY_SENTENCE} {reply.message}"})
    return updated, True
