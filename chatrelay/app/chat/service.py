from __future__ import annotations

import json
import logging
import time
from dataclasses import dataclass
from typing import Protocol
from uuid import uuid4

import httpx

from chatrelay.app.chat.contracts import (
    CanonicalResponse,
    ChatRequestBody,
    ConfigurationError,
    EmptyResponseError,
    MethodNotAllowedError,
    RelayError,
    RelayResponse,
    UnhandledException,
    UpstreamError,
)
from chatrelay.app.history.contracts import KeyValueStore, Turn
from chatrelay.app.history.service import append_exchange, load_history, save_history
from chatrelay.app.llm.contracts import UpstreamRequest
from chatrelay.app.llm.providers import (
    build_canonical_envelope,
    normalize_reply_text,
    select_provider_adapter,
)
from chatrelay.app.observability.contracts import RelayTrace
from chatrelay.app.observability.service import elapsed_ms, emit_relay_event
from chatrelay.app.session.service import (
    DEFAULT_COOKIE_NAME,
    build_session_cookie,
    resolve_session,
)
from chatrelay.core.config import DEFAULT_SESSION_TTL_SECONDS, ChatConfig

LOGGER = logging.getLogger(__name__)


class ChatConfigSource(Protocol):
    async def load(self) -> ChatConfig: ...


@dataclass
class _RelayProgress:
    request_id: str
    provider: str | None = None
    new_session: bool = False
    history_turns: int = 0
    history_persisted: bool = False


def parse_user_message(raw_body: bytes | str) -> str:
    try:
        body = ChatRequestBody.model_validate(json.loads(raw_body))
    except ValueError as exc:
        raise UnhandledException(exc) from exc
    return body.latest_user_text()


def upstream_error_detail(response: httpx.Response) -> str:
    try:
        payload = response.json()
    except ValueError:
        payload = None
    if isinstance(payload, list) and payload:
        payload = payload[0]
    error = payload.get("error") if isinstance(payload, dict) else None
    if isinstance(error, dict):
        message = error.get("message")
        if isinstance(message, str) and message:
            return message
    if isinstance(error, str) and error:
        return error
    return response.reason_phrase or f"HTTP {response.status_code}"


class ChatRelayService:
    """Relays one chat message to the configured AI provider.

    Each call runs the steps in order: method check, session resolution, body
    parsing, config and history loading, the upstream call, reply
    normalization and the history write. The first failing step decides the
    error response; nothing is retried.
    """

    def __init__(
        self,
        *,
        store: KeyValueStore,
        config_source: ChatConfigSource,
        cookie_name: str = DEFAULT_COOKIE_NAME,
        session_ttl_seconds: int = DEFAULT_SESSION_TTL_SECONDS,
        max_history_messages: int = 10,
        upstream_timeout_seconds: float = 120.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._store = store
        self._config_source = config_source
        self._cookie_name = cookie_name
        self._session_ttl_seconds = session_ttl_seconds
        self._max_history_messages = max_history_messages
        self._upstream_timeout_seconds = upstream_timeout_seconds
        self._transport = transport

    async def handle(
        self,
        *,
        method: str,
        cookie_header: str | None,
        raw_body: bytes | str,
    ) -> RelayResponse:
        started_at = time.perf_counter()
        progress = _RelayProgress(request_id=uuid4().hex)
        try:
            response = await self._relay(method, cookie_header, raw_body, progress)
        except RelayError as exc:
            response = RelayResponse(
                status_code=exc.status_code, payload=exc.to_payload()
            )
        except Exception as exc:
            LOGGER.error("Chat relay failed: %s", exc, exc_info=True)
            error = UnhandledException(exc)
            response = RelayResponse(
                status_code=error.status_code, payload=error.to_payload()
            )

        emit_relay_event(
            RelayTrace(
                request_id=progress.request_id,
                provider=progress.provider,
                status_code=response.status_code,
                new_session=progress.new_session,
                history_turns=progress.history_turns,
                latency_ms=elapsed_ms(started_at),
                history_persisted=progress.history_persisted,
            ),
            LOGGER,
        )
        return response

    async def _relay(
        self,
        method: str,
        cookie_header: str | None,
        raw_body: bytes | str,
        progress: _RelayProgress,
    ) -> RelayResponse:
        if method.upper() != "POST":
            raise MethodNotAllowedError()

        session = resolve_session(cookie_header, self._cookie_name)
        progress.new_session = session.is_new

        user_message = parse_user_message(raw_body)

        config = await self._config_source.load()
        if not config.api_key or not config.api_url:
            raise ConfigurationError()

        history = await load_history(store=self._store, session_id=session.session_id)
        progress.history_turns = len(history)

        adapter = select_provider_adapter(config.api_url)
        progress.provider = adapter.kind.value
        upstream_request = adapter.build_request(
            config=config,
            history=history,
            user_message=user_message,
            max_history_messages=self._max_history_messages,
        )
        payload = await self._call_upstream(upstream_request)

        raw_text = adapter.extract_text(payload)
        reply_text = normalize_reply_text(raw_text) if raw_text else ""
        if not reply_text:
            raise EmptyResponseError()

        progress.history_persisted = await self._persist_history(
            session.session_id, history, user_message, reply_text
        )

        envelope = CanonicalResponse.model_validate(
            build_canonical_envelope(reply_text)
        )
        set_cookie = None
        if session.is_new:
            set_cookie = build_session_cookie(
                session.session_id,
                max_age_seconds=self._session_ttl_seconds,
                cookie_name=self._cookie_name,
            )
        return RelayResponse(
            status_code=200, payload=envelope.model_dump(), set_cookie=set_cookie
        )

    async def _call_upstream(self, request: UpstreamRequest) -> object:
        async with httpx.AsyncClient(
            timeout=self._upstream_timeout_seconds,
            transport=self._transport,
            follow_redirects=True,
        ) as client:
            response = await client.post(
                request.url,
                headers=request.headers,
                content=json.dumps(request.body, ensure_ascii=False).encode("utf-8"),
            )
        if not response.is_success:
            raise UpstreamError(response.status_code, upstream_error_detail(response))
        return response.json()

    async def _persist_history(
        self,
        session_id: str,
        history: list[Turn],
        user_message: str,
        reply_text: str,
    ) -> bool:
        updated = append_exchange(
            history,
            user_text=user_message,
            model_text=reply_text,
            max_messages=self._max_history_messages,
        )
        try:
            await save_history(
                store=self._store,
                session_id=session_id,
                turns=updated,
                ttl_seconds=self._session_ttl_seconds,
            )
        except Exception:
            # The reply is still returned; only future context loses this exchange.
            LOGGER.warning(
                "History write failed for session %s", session_id, exc_info=True
            )
            return False
        return True
