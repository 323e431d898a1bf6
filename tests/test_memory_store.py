"""Tests for MemoryStore — per-user facts via libsql."""

import asyncio
from datetime import UTC, datetime, timedelta

from src.memory.store import MemoryStore


async def test_set_and_get(memory: MemoryStore) -> None:
    await memory.set_fact("alice", "location", "pune maharashtra")

    fact = await memory.get_fact("alice", "location")
    assert fact is not None
    assert fact.value == "pune maharashtra"
    assert fact.memory_type == "fact"
    assert fact.expires_at is None
    assert fact.created_at
    assert fact.updated_at


async def test_json_values_round_trip(memory: MemoryStore) -> None:
    await memory.set_fact("alice", "age", 34)
    await memory.set_fact("alice", "docs", {"aadhaar": True, "pan": ["ABC"]})

    assert (await memory.get_fact("alice", "age")).value == 34
    assert (await memory.get_fact("alice", "docs")).value == {"aadhaar": True, "pan": ["ABC"]}


async def test_upsert_preserves_identity(memory: MemoryStore) -> None:
    first = await memory.set_fact("alice", "profession", "teacher")
    await asyncio.sleep(0.01)
    second = await memory.set_fact("alice", "profession", "engineer", memory_type="preference")

    assert second.id == first.id
    assert second.created_at == first.created_at
    assert second.updated_at >= first.updated_at

    fact = await memory.get_fact("alice", "profession")
    assert fact.value == "engineer"
    assert fact.memory_type == "preference"
    assert len(await memory.list_facts("alice")) == 1


async def test_keys_are_per_user(memory: MemoryStore) -> None:
    await memory.set_fact("alice", "location", "pune")
    await memory.set_fact("bob", "location", "delhi")

    assert (await memory.get_fact("alice", "location")).value == "pune"
    assert [f.user_id for f in await memory.list_facts("bob")] == ["bob"]


async def test_list_facts_keeps_expired(memory: MemoryStore) -> None:
    past = datetime.now(UTC) - timedelta(days=1)
    await memory.set_fact("alice", "interested_in_visa", True, "context", expires_at=past)
    await memory.set_fact("alice", "location", "pune")

    facts = await memory.list_facts("alice")
    assert {f.key for f in facts} == {"interested_in_visa", "location"}
    expired = next(f for f in facts if f.key == "interested_in_visa")
    assert expired.is_expired()


async def test_get_missing(memory: MemoryStore) -> None:
    assert await memory.get_fact("alice", "nope") is None


async def test_list_empty(memory: MemoryStore) -> None:
    assert await memory.list_facts("nobody") == []


async def test_delete(memory: MemoryStore) -> None:
    await memory.set_fact("alice", "location", "pune")
    assert await memory.delete_fact("alice", "location") is True
    assert await memory.delete_fact("alice", "location") is False
    assert await memory.get_fact("alice", "location") is None


# -- Singleton -----------------------------------------------------------------


def test_singleton_get() -> None:
    MemoryStore._reset()
    try:
        assert MemoryStore.get() is MemoryStore.get()
    finally:
        MemoryStore._reset()


def test_singleton_reset() -> None:
    MemoryStore._reset()
    try:
        a = MemoryStore.get()
        MemoryStore._reset()
        assert MemoryStore.get() is not a
    finally:
        MemoryStore._reset()
