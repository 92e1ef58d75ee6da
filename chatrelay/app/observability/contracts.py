from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class RelayTrace:
    request_id: str
    provider: str | None
    status_code: int
    new_session: bool
    history_turns: int
    latency_ms: int
    history_persisted: bool
