from __future__ import annotations

import math
import os
from dataclasses import dataclass

DEFAULT_MODEL_NAME = "gemini-2.5-flash"
DEFAULT_TEMPERATURE = 0.7
DEFAULT_SESSION_TTL_SECONDS = 3600 * 24 * 30


@dataclass(frozen=True)
class AppConfig:
    app_name: str
    app_version: str
    environment: str
    log_level: str
    session_cookie_name: str
    session_ttl_seconds: int
    max_history_messages: int
    upstream_timeout_seconds: float
    history_backend: str
    cloudflare_account_id: str | None
    cloudflare_api_token: str | None
    cloudflare_kv_namespace_id: str | None


@dataclass(frozen=True)
class ChatConfig:
    api_key: str | None
    api_url: str | None
    model_name: str
    temperature: float
    persona_prompt: str | None


def _read_optional_env(name: str) -> str | None:
    value = os.getenv(name)
    if not value:
        return None
    stripped = value.strip()
    return stripped if stripped else None


def _read_int_env(name: str, default: int) -> int:
    value = _read_optional_env(name)
    if value is None:
        return default
    try:
        parsed = int(value)
    except ValueError:
        return default
    return parsed if parsed > 0 else default


def _read_float_env(name: str, default: float) -> float:
    value = _read_optional_env(name)
    if value is None:
        return default
    try:
        parsed = float(value)
    except ValueError:
        return default
    return parsed if math.isfinite(parsed) and parsed > 0 else default


def resolve_temperature(raw: object) -> float:
    # Zero, non-finite and unparsable values all fall back to the default.
    try:
        parsed = float(raw)  # type: ignore[arg-type]
    except (TypeError, ValueError):
        return DEFAULT_TEMPERATURE
    if not math.isfinite(parsed) or not parsed:
        return DEFAULT_TEMPERATURE
    return parsed


def load_app_config() -> AppConfig:
    return AppConfig(
        app_name=os.getenv("APP_NAME", "chatrelay"),
        app_version=os.getenv("APP_VERSION", "0.1.0"),
        environment=os.getenv("APP_ENV", "development"),
        log_level=os.getenv("LOG_LEVEL", "INFO").upper().strip() or "INFO",
        session_cookie_name=os.getenv("SESSION_COOKIE_NAME", "chat_session_id"),
        session_ttl_seconds=_read_int_env(
            "SESSION_TTL_SECONDS", default=DEFAULT_SESSION_TTL_SECONDS
        ),
        max_history_messages=_read_int_env("MAX_HISTORY_MESSAGES", default=10),
        upstream_timeout_seconds=_read_float_env(
            "UPSTREAM_TIMEOUT_SECONDS", default=120.0
        ),
        history_backend=os.getenv("HISTORY_BACKEND", "memory").lower().strip()
        or "memory",
        cloudflare_account_id=_read_optional_env("CLOUDFLARE_ACCOUNT_ID"),
        cloudflare_api_token=_read_optional_env("CLOUDFLARE_API_TOKEN"),
        cloudflare_kv_namespace_id=_read_optional_env("CLOUDFLARE_KV_NAMESPACE_ID"),
    )


def load_chat_config() -> ChatConfig:
    return ChatConfig(
        api_key=_read_optional_env("AI_API_KEY"),
        api_url=_read_optional_env("AI_API_URL"),
        model_name=_read_optional_env("AI_MODEL_NAME") or DEFAULT_MODEL_NAME,
        temperature=resolve_temperature(_read_optional_env("AI_TEMPERATURE")),
        persona_prompt=_read_optional_env("AI_PERSONA_PROMPT"),
    )


class EnvironmentChatConfigSource:
    """Reads the chat configuration from the process environment on every call."""

    async def load(self) -> ChatConfig:
        return load_chat_config()
