from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Protocol

from chatrelay.app.history.contracts import Turn
from chatrelay.core.config import ChatConfig


class ProviderKind(str, Enum):
    CHAT_COMPLETIONS = "chat_completions"
    GEMINI = "gemini"


@dataclass(frozen=True)
class UpstreamRequest:
    url: str
    headers: dict[str, str]
    body: dict[str, Any]


class ProviderAdapter(Protocol):
    kind: ProviderKind

    def build_request(
        self,
        *,
        config: ChatConfig,
        history: list[Turn],
        user_message: str,
        max_history_messages: int,
    ) -> UpstreamRequest: ...

    def extract_text(self, payload: object) -> str | None: ...
