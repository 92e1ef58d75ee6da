from __future__ import annotations

import pytest

from chatrelay.app.history.contracts import Turn
from chatrelay.app.llm.contracts import ProviderKind
from chatrelay.app.llm.providers import (
    ChatCompletionsAdapter,
    GeminiAdapter,
    build_canonical_envelope,
    classify_provider,
    normalize_reply_text,
    select_provider_adapter,
)
from chatrelay.core.config import ChatConfig


def _config(api_url: str, persona_prompt: str | None = None) -> ChatConfig:
    return ChatConfig(
        api_key="secret",
        api_url=api_url,
        model_name="grok-3",
        temperature=0.4,
        persona_prompt=persona_prompt,
    )


@pytest.mark.parametrize(
    ("api_url", "expected"),
    [
        ("https://api.x.ai/v1/chat/completions", ProviderKind.CHAT_COMPLETIONS),
        ("https://api.openai.com/v1/responses", ProviderKind.CHAT_COMPLETIONS),
        ("https://llm.internal/v1/chat/completions", ProviderKind.CHAT_COMPLETIONS),
        (
            "https://generativelanguage.googleapis.com/v1beta",
            ProviderKind.GEMINI,
        ),
        ("https://example.com/anything", ProviderKind.GEMINI),
    ],
)
def test_classify_provider_matches_url_hints(
    api_url: str, expected: ProviderKind
) -> None:
    assert classify_provider(api_url) == expected
    assert classify_provider(api_url) == classify_provider(api_url)


def test_select_provider_adapter_returns_variant_for_kind() -> None:
    assert isinstance(
        select_provider_adapter("https://api.x.ai/v1/chat/completions"),
        ChatCompletionsAdapter,
    )
    assert isinstance(
        select_provider_adapter("https://generativelanguage.googleapis.com/v1beta"),
        GeminiAdapter,
    )


def test_chat_completions_request_uses_bearer_auth_and_verbatim_url() -> None:
    request = ChatCompletionsAdapter().build_request(
        config=_config("https://api.x.ai/v1/chat/completions/", "Be kind."),
        history=[Turn(role="user", text="hi"), Turn(role="model", text="hey")],
        user_message="again",
        max_history_messages=10,
    )

    assert request.url == "https://api.x.ai/v1/chat/completions"
    assert request.headers["Authorization"] == "Bearer secret"
    assert request.body["model"] == "grok-3"
    assert request.body["temperature"] == 0.4
    assert request.body["stream"] is False
    assert request.body["messages"][0] == {"role": "system", "content": "Be kind."}
    assert request.body["messages"][-1] == {"role": "user", "content": "again"}


def test_gemini_request_appends_model_path_and_key() -> None:
    config = ChatConfig(
        api_key="g-key",
        api_url="https://generativelanguage.googleapis.com/v1beta/",
        model_name="gemini-2.5-flash",
        temperature=0.7,
        persona_prompt="ignored for gemini",
    )

    request = GeminiAdapter().build_request(
        config=config, history=[], user_message="hi", max_history_messages=10
    )

    assert request.url == (
        "https://generativelanguage.googleapis.com/v1beta/models/"
        "gemini-2.5-flash:generateContent?key=g-key"
    )
    assert "Authorization" not in request.headers
    assert request.body == {
        "contents": [{"role": "user", "parts": [{"text": "hi"}]}],
        "generationConfig": {"temperature": 0.7},
    }


def test_chat_completions_extract_text_reads_first_choice() -> None:
    payload = {"choices": [{"message": {"role": "assistant", "content": "\n\n Hi"}}]}

    assert ChatCompletionsAdapter().extract_text(payload) == "\n\n Hi"


def test_gemini_extract_text_reads_first_candidate_part() -> None:
    payload = {"candidates": [{"content": {"parts": [{"text": "Hello"}]}}]}

    assert GeminiAdapter().extract_text(payload) == "Hello"


@pytest.mark.parametrize(
    "payload",
    [
        {},
        {"choices": []},
        {"choices": [{"message": {}}]},
        {"choices": [{"message": {"content": ""}}]},
        {"choices": [{"message": {"content": None}}]},
        ["not", "a", "dict"],
    ],
)
def test_chat_completions_extract_text_handles_missing_paths(
    payload: object,
) -> None:
    assert ChatCompletionsAdapter().extract_text(payload) is None


def test_gemini_extract_text_handles_blocked_candidate() -> None:
    payload = {"candidates": [{"finishReason": "SAFETY"}]}

    assert GeminiAdapter().extract_text(payload) is None


def test_canonical_envelope_round_trips_chat_completions_reply() -> None:
    payload = {"choices": [{"message": {"content": "  \n Answer text\n"}}]}
    text = normalize_reply_text(ChatCompletionsAdapter().extract_text(payload) or "")

    envelope = build_canonical_envelope(text)

    assert envelope["candidates"][0]["content"]["parts"][0]["text"] == (
        "Answer text\n"
    )
    assert GeminiAdapter().extract_text(envelope) == "Answer text\n"
