"""Shared test fixtures."""

from pathlib import Path

import pytest

from src.conversations.store import ConversationStore
from src.memory.store import MemoryStore


@pytest.fixture(autouse=False)
def _no_turso(monkeypatch: pytest.MonkeyPatch) -> None:
    """Ensure tests use local file, not remote Turso."""
    monkeypatch.setattr("src.config.settings.turso_database_url", "")


@pytest.fixture
def conversations(tmp_path: Path, _no_turso) -> ConversationStore:
    """ConversationStore backed by a temp database."""
    return ConversationStore(db_path=tmp_path / "test.db")


@pytest.fixture
def memory(tmp_path: Path, _no_turso) -> MemoryStore:
    """MemoryStore sharing the same temp database."""
    return MemoryStore(db_path=tmp_path / "test.db")
