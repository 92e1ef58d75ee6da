from __future__ import annotations

import json

import pytest

from chatrelay.app.history.contracts import Turn
from chatrelay.app.history.kv_store import InMemoryKeyValueStore
from chatrelay.app.history.service import (
    append_exchange,
    decode_history,
    load_history,
    max_stored_turns,
    save_history,
)


def test_decode_history_coerces_non_array_to_empty() -> None:
    assert decode_history(None) == []
    assert decode_history('{"role": "user", "text": "hi"}') == []
    assert decode_history('"just a string"') == []
    assert decode_history("not json at all") == []


def test_decode_history_skips_malformed_entries() -> None:
    raw = json.dumps(
        [
            {"role": "user", "text": "hello"},
            {"role": "model"},
            "stray",
            {"role": "model", "text": "hi there"},
        ]
    )

    assert decode_history(raw) == [
        Turn(role="user", text="hello"),
        Turn(role="model", text="hi there"),
    ]


def test_append_exchange_keeps_bounded_window() -> None:
    history: list[Turn] = []
    for index in range(30):
        history = append_exchange(
            history,
            user_text=f"question {index}",
            model_text=f"answer {index}",
            max_messages=10,
        )
        assert len(history) <= max_stored_turns(10)

    assert len(history) == 22
    assert history[-2] == Turn(role="user", text="question 29")
    assert history[-1] == Turn(role="model", text="answer 29")
    assert history[0] == Turn(role="user", text="question 19")


@pytest.mark.asyncio
async def test_save_then_load_history_round_trips_through_store() -> None:
    store = InMemoryKeyValueStore()
    turns = [Turn(role="user", text="你好"), Turn(role="model", text="hello")]

    await save_history(store=store, session_id="s-1", turns=turns, ttl_seconds=60)

    assert await load_history(store=store, session_id="s-1") == turns
    assert await load_history(store=store, session_id="s-2") == []


@pytest.mark.asyncio
async def test_in_memory_store_expires_entries_after_ttl() -> None:
    now = [1000.0]
    store = InMemoryKeyValueStore(clock=lambda: now[0])

    await store.put("key", "value", expiration_ttl=30)
    now[0] = 1029.0
    assert await store.get("key") == "value"

    now[0] = 1030.0
    assert await store.get("key") is None


@pytest.mark.asyncio
async def test_in_memory_store_sweeps_abandoned_sessions_on_write() -> None:
    now = [0.0]
    store = InMemoryKeyValueStore(clock=lambda: now[0])

    for index in range(1000):
        await store.put(f"abandoned-{index}", "[]", expiration_ttl=10)
    await store.put("long-lived", "[]", expiration_ttl=5000)
    assert store.entry_count() == 1001

    now[0] = 1000.0
    await store.put("fresh", "[]", expiration_ttl=10)

    assert store.entry_count() == 2
    assert await store.get("long-lived") == "[]"
    assert await store.get("fresh") == "[]"
    assert await store.get("abandoned-0") is None


@pytest.mark.asyncio
async def test_in_memory_store_put_overwrites_whole_value() -> None:
    store = InMemoryKeyValueStore()

    await store.put("key", "first", expiration_ttl=60)
    await store.put("key", "second", expiration_ttl=60)

    assert await store.get("key") == "second"
