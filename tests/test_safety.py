"""Tests for the keyword-triggered safety override."""

from pathlib import Path

import pytest

from src.intake.contract import FALLBACK_REPLY, StructuredReply
from src.intake.safety import (
    DEFAULT_KEYWORDS,
    SAFETY_SENTENCE,
    SafetyLexicon,
    apply_safety_override,
    load_lexicon,
)


@pytest.fixture
def lexicon() -> SafetyLexicon:
    return SafetyLexicon.default()


class TestMatches:
    def test_default_keywords(self, lexicon: SafetyLexicon):
        assert lexicon.keywords == frozenset(DEFAULT_KEYWORDS)

    def test_case_insensitive(self, lexicon: SafetyLexicon):
        assert lexicon.matches("I was ASSAULTED last night")

    def test_substring_match(self, lexicon: SafetyLexicon):
        assert lexicon.matches("My neighbor has been threatening me for weeks.")

    def test_no_match(self, lexicon: SafetyLexicon):
        assert not lexicon.matches("My passport application is delayed")


class TestApplySafetyOverride:
    def test_prefixes_message(self, lexicon: SafetyLexicon):
        reply = StructuredReply(mode="ask", message="Got it.", question="When?")
        updated, fired = apply_safety_override(reply, "someone tried to attack me", lexicon)

        assert fired is True
        assert updated.message == f"{SAFETY_SENTENCE} Got it."
        assert updated.mode == "ask"
        assert updated.question == "When?"

    def test_leaves_steps_alone(self, lexicon: SafetyLexicon):
        reply = StructuredReply(mode="guide", message="Do this.", steps=["a", "b"])
        updated, _ = apply_safety_override(reply, "stalking", lexicon)
        assert updated.mode == "guide"
        assert updated.steps == ["a", "b"]
        assert updated.message.startswith(SAFETY_SENTENCE)

    def test_covers_fallback(self, lexicon: SafetyLexicon):
        updated, fired = apply_safety_override(FALLBACK_REPLY, "there was violence", lexicon)
        assert fired is True
        assert updated.message.startswith(SAFETY_SENTENCE)
        # The shared fallback object itself is untouched
        assert FALLBACK_REPLY.message == "Sorry, I didn't catch that."

    def test_no_match_returns_same_reply(self, lexicon: SafetyLexicon):
        reply = StructuredReply(mode="ask", message="Got it.", question="When?")
        updated, fired = apply_safety_override(reply, "lost my wallet", lexicon)
        assert fired is False
        assert updated is reply


class TestFromYaml:
    def test_loads_version_and_keywords(self, tmp_path: Path):
        path = tmp_path / "safety.yaml"
        path.write_text("version: '2026-10'\nkeywords:\n  - Fire\n  - flood\n", encoding="utf-8")

        lexicon = SafetyLexicon.from_yaml(path)
        assert lexicon.version == "2026-10"
        assert lexicon.keywords == frozenset({"fire", "flood"})
        assert lexicon.matches("There is a FIRE next door")
        assert not lexicon.matches("assault")

    def test_version_defaults_to_file_stem(self, tmp_path: Path):
        path = tmp_path / "lexicon-v3.yaml"
        path.write_text("keywords: [danger]\n", encoding="utf-8")
        assert SafetyLexicon.from_yaml(path).version == "lexicon-v3"

    def test_empty_keywords_rejected(self, tmp_path: Path):
        path = tmp_path / "safety.yaml"
        path.write_text("version: 1\nkeywords: []\n", encoding="utf-8")
        with pytest.raises(ValueError, match="no keywords"):
            SafetyLexicon.from_yaml(path)

    def test_non_mapping_rejected(self, tmp_path: Path):
        path = tmp_path / "safety.yaml"
        path.write_text("- danger\n", encoding="utf-8")
        with pytest.raises(ValueError, match="mapping"):
            SafetyLexicon.from_yaml(path)


class TestLoadLexicon:
    def test_builtin_when_unset(self, monkeypatch: pytest.MonkeyPatch):
        monkeypatch.setattr("src.config.settings.safety_lexicon_path", "")
        assert load_lexicon() == SafetyLexicon.default()

    def test_from_configured_path(self, monkeypatch: pytest.MonkeyPatch, tmp_path: Path):
        path = tmp_path / "safety.yaml"
        path.write_text("version: custom\nkeywords: [flood]\n", encoding="utf-8")
        monkeypatch.setattr("src.config.settings.safety_lexicon_path", str(path))

        lexicon = load_lexicon()
        assert lexicon.version == "custom"
        assert lexicon.keywords == frozenset({"flood"})


def test_shipped_lexicon_matches_builtin() -> None:
    path = Path(__file__).resolve().parent.parent / "config" / "safety_lexicon.yaml"
    lexicon = SafetyLexicon.from_yaml(path)
    assert lexicon.keywords == frozenset(DEFAULT_KEYWORDS)
    assert lexicon.version == "2026-10-01"
