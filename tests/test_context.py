"""Tests for context assembly."""

from datetime import UTC, datetime, timedelta

from src.conversations.models import KIND_JSON
from src.conversations.store import ConversationStore
from src.intake.context import ContextAssembler, format_memory_hint
from src.memory.models import MemoryFact
from src.memory.store import MemoryStore


def _fact(key: str, value, **kwargs) -> MemoryFact:
    return MemoryFact(id=key, user_id="alice", key=key, value=value, **kwargs)


# -- format_memory_hint --------------------------------------------------------


def test_hint_empty_when_no_facts() -> None:
    assert format_memory_hint([]) == ""


def test_hint_formats_pairs() -> None:
    facts = [_fact("location", "pune"), _fact("age", 34), _fact("docs", {"pan": True})]
    assert format_memory_hint(facts) == 'User hints: location=pune, age=34, docs={"pan": true}'


def test_hint_caps_fact_count() -> None:
    facts = [_fact(f"k{i}", i) for i in range(8)]
    hint = format_memory_hint(facts, limit=5)
    assert hint == "User hints: k0=0, k1=1, k2=2, k3=3, k4=4"


# -- ContextAssembler ----------------------------------------------------------


async def test_window_keeps_most_recent_oldest_first(
    conversations: ConversationStore, memory: MemoryStore
) -> None:
    conversation = await conversations.get_or_create("intake")
    for i in range(20):
        await conversations.append_user_message(conversation.id, f"msg {i}")

    context = await ContextAssembler(conversations, memory).assemble(conversation.id, limit=6)

    assert context.history_count == 6
    assert [m["content"] for m in context.messages] == [f"msg {i}" for i in range(14, 20)]


async def test_empty_conversation(conversations: ConversationStore, memory: MemoryStore) -> None:
    conversation = await conversations.get_or_create("intake")
    context = await ContextAssembler(conversations, memory).assemble(conversation.id)
    assert context.messages == []
    assert context.history_count == 0


async def test_json_replies_passed_raw(
    conversations: ConversationStore, memory: MemoryStore
) -> None:
    conversation = await conversations.get_or_create("intake")
    raw = '{"mode":"ask","message":"Got it.","question":"Where?"}'
    await conversations.append_user_message(conversation.id, "I lost my passport")
    await conversations.append_assistant_message(conversation.id, raw, kind=KIND_JSON)

    context = await ContextAssembler(conversations, memory).assemble(conversation.id)
    assert context.messages == [
        {"role": "user", "content": "I lost my passport"},
        {"role": "assistant", "content": raw},
    ]


async def test_memory_hint_appended_after_history(
    conversations: ConversationStore, memory: MemoryStore
) -> None:
    conversation = await conversations.get_or_create("intake", user_id="alice")
    await conversations.append_user_message(conversation.id, "hello")
    await memory.set_fact("alice", "location", "pune")

    context = await ContextAssembler(conversations, memory).assemble(
        conversation.id, user_id="alice"
    )
    assert context.messages[-1] == {"role": "system", "content": "User hints: location=pune"}
    assert context.history_count == 1
    assert context.memory_count == 1


async def test_memory_hint_alone_for_empty_conversation(
    conversations: ConversationStore, memory: MemoryStore
) -> None:
    conversation = await conversations.get_or_create("intake", user_id="alice")
    await memory.set_fact("alice", "location", "pune")

    context = await ContextAssembler(conversations, memory).assemble(
        conversation.id, user_id="alice"
    )
    assert context.messages == [{"role": "system", "content": "User hints: location=pune"}]


async def test_hint_not_persisted(conversations: ConversationStore, memory: MemoryStore) -> None:
    conversation = await conversations.get_or_create("intake", user_id="alice")
    await memory.set_fact("alice", "location", "pune")

    await ContextAssembler(conversations, memory).assemble(conversation.id, user_id="alice")
    assert await conversations.list_messages(conversation.id) == []


async def test_no_user_no_hint(conversations: ConversationStore, memory: MemoryStore) -> None:
    conversation = await conversations.get_or_create("intake")
    await memory.set_fact("alice", "location", "pune")

    context = await ContextAssembler(conversations, memory).assemble(conversation.id)
    assert context.messages == []


async def test_expired_facts_filtered(
    conversations: ConversationStore, memory: MemoryStore
) -> None:
    conversation = await conversations.get_or_create("intake", user_id="alice")
    past = datetime.now(UTC) - timedelta(hours=1)
    await memory.set_fact("alice", "interested_in_visa", True, "context", expires_at=past)

    context = await ContextAssembler(conversations, memory, filter_expired=True).assemble(
        conversation.id, user_id="alice"
    )
    assert context.messages == []


async def test_expired_facts_kept_when_filter_disabled(
    conversations: ConversationStore, memory: MemoryStore
) -> None:
    conversation = await conversations.get_or_create("intake", user_id="alice")
    past = datetime.now(UTC) - timedelta(hours=1)
    await memory.set_fact("alice", "interested_in_visa", True, "context", expires_at=past)

    context = await ContextAssembler(conversations, memory, filter_expired=False).assemble(
        conversation.id, user_id="alice"
    )
    assert context.messages == [
        {"role": "system", "content": "User hints: interested_in_visa=true"}
    ]


# -- MemoryFact.is_expired -----------------------------------------------------


def test_is_expired() -> None:
    now = datetime(2026, 1, 1, tzinfo=UTC)
    assert not _fact("a", 1).is_expired(now)
    assert _fact("a", 1, expires_at="2025-12-31T00:00:00+00:00").is_expired(now)
    assert not _fact("a", 1, expires_at="2026-02-01T00:00:00+00:00").is_expired(now)
    # Naive timestamps are read as UTC
    assert _fact("a", 1, expires_at="2025-12-31T00:00:00").is_expired(now)
