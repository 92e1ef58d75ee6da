from __future__ import annotations

import pytest

CHAT_ENV_VARS = (
    "AI_API_KEY",
    "AI_API_URL",
    "AI_MODEL_NAME",
    "AI_TEMPERATURE",
    "AI_PERSONA_PROMPT",
    "HISTORY_BACKEND",
    "MAX_HISTORY_MESSAGES",
    "SESSION_COOKIE_NAME",
    "SESSION_TTL_SECONDS",
    "UPSTREAM_TIMEOUT_SECONDS",
)


@pytest.fixture(autouse=True)
def isolate_chat_environment(monkeypatch: pytest.MonkeyPatch) -> None:
    for name in CHAT_ENV_VARS:
        monkeypatch.delenv(name, raising=False)
