from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol

USER_ROLE = "user"
MODEL_ROLE = "model"


@dataclass(frozen=True)
class Turn:
    role: str
    text: str


class KeyValueStore(Protocol):
    async def get(self, key: str) -> str | None: ...

    async def put(self, key: str, value: str, *, expiration_ttl: int) -> None: ...
