from __future__ import annotations

import json
import logging

from chatrelay.app.history.contracts import (
    MODEL_ROLE,
    USER_ROLE,
    KeyValueStore,
    Turn,
)

LOGGER = logging.getLogger(__name__)


def max_stored_turns(max_messages: int) -> int:
    return (max_messages + 1) * 2


def _deserialize_turn(payload: object) -> Turn | None:
    if not isinstance(payload, dict):
        return None
    role = payload.get("role")
    text = payload.get("text")
    if not isinstance(role, str) or not isinstance(text, str):
        return None
    return Turn(role=role, text=text)


def decode_history(raw: str | None) -> list[Turn]:
    if raw is None:
        return []
    try:
        payload = json.loads(raw)
    except ValueError:
        LOGGER.warning("Discarding stored history that is not valid JSON")
        return []
    if not isinstance(payload, list):
        return []
    return [turn for row in payload if (turn := _deserialize_turn(row))]


def encode_history(turns: list[Turn]) -> str:
    return json.dumps(
        [{"role": turn.role, "text": turn.text} for turn in turns],
        ensure_ascii=False,
    )


async def load_history(*, store: KeyValueStore, session_id: str) -> list[Turn]:
    return decode_history(await store.get(session_id))


async def save_history(
    *,
    store: KeyValueStore,
    session_id: str,
    turns: list[Turn],
    ttl_seconds: int,
) -> None:
    await store.put(session_id, encode_history(turns), expiration_ttl=ttl_seconds)


def append_exchange(
    history: list[Turn],
    *,
    user_text: str,
    model_text: str,
    max_messages: int,
) -> list[Turn]:
    updated = [
        *history,
        Turn(role=USER_ROLE, text=user_text),
        Turn(role=MODEL_ROLE, text=model_text),
    ]
    return updated[-max_stored_turns(max_messages) :]
