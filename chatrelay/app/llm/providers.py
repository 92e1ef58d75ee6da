from __future__ import annotations

from dataclasses import dataclass

from chatrelay.app.history.contracts import Turn
from chatrelay.app.llm.contracts import ProviderAdapter, ProviderKind, UpstreamRequest
from chatrelay.app.llm.formatters import (
    build_chat_completion_messages,
    build_gemini_contents,
)
from chatrelay.core.config import ChatConfig

CHAT_COMPLETIONS_URL_HINTS = ("x.ai", "openai.com", "/chat/completions")


def classify_provider(api_url: str) -> ProviderKind:
    if any(hint in api_url for hint in CHAT_COMPLETIONS_URL_HINTS):
        return ProviderKind.CHAT_COMPLETIONS
    return ProviderKind.GEMINI


def _base_url(api_url: str) -> str:
    return api_url.removesuffix("/")


def _first(value: object) -> object:
    if isinstance(value, list) and value:
        return value[0]
    return None


def _field(value: object, name: str) -> object:
    if isinstance(value, dict):
        return value.get(name)
    return None


def _text_or_none(value: object) -> str | None:
    return value if isinstance(value, str) and value else None


@dataclass(frozen=True)
class ChatCompletionsAdapter:
    kind: ProviderKind = ProviderKind.CHAT_COMPLETIONS

    def build_request(
        self,
        *,
        config: ChatConfig,
        history: list[Turn],
        user_message: str,
        max_history_messages: int,
    ) -> UpstreamRequest:
        return UpstreamRequest(
            url=_base_url(config.api_url or ""),
            headers={
                "Content-Type": "application/json",
                "Authorization": f"Bearer {config.api_key}",
            },
            body={
                "messages": build_chat_completion_messages(
                    history,
                    user_message,
                    config.persona_prompt,
                    max_messages=max_history_messages,
                ),
                "model": config.model_name,
                "temperature": config.temperature,
                "stream": False,
            },
        )

    def extract_text(self, payload: object) -> str | None:
        choice = _first(_field(payload, "choices"))
        return _text_or_none(_field(_field(choice, "message"), "content"))


@dataclass(frozen=True)
class GeminiAdapter:
    kind: ProviderKind = ProviderKind.GEMINI

    def build_request(
        self,
        *,
        config: ChatConfig,
        history: list[Turn],
        user_message: str,
        max_history_messages: int,
    ) -> UpstreamRequest:
        url = (
            f"{_base_url(config.api_url or '')}/models/{config.model_name}"
            f":generateContent?key={config.api_key}"
        )
        return UpstreamRequest(
            url=url,
            headers={"Content-Type": "application/json"},
            body={
                "contents": build_gemini_contents(
                    history,
                    user_message,
                    max_messages=max_history_messages,
                ),
                "generationConfig": {"temperature": config.temperature},
            },
        )

    def extract_text(self, payload: object) -> str | None:
        candidate = _first(_field(payload, "candidates"))
        part = _first(_field(_field(candidate, "content"), "parts"))
        return _text_or_none(_field(part, "text"))


_ADAPTERS: dict[ProviderKind, ProviderAdapter] = {
    ProviderKind.CHAT_COMPLETIONS: ChatCompletionsAdapter(),
    ProviderKind.GEMINI: GeminiAdapter(),
}


def select_provider_adapter(api_url: str) -> ProviderAdapter:
    return _ADAPTERS[classify_provider(api_url)]


def normalize_reply_text(text: str) -> str:
    return text.lstrip()


def build_canonical_envelope(text: str) -> dict[str, object]:
    return {"candidates": [{"content": {"parts": [{"text": text}]}}]}
