from __future__ import annotations

import logging
from contextlib import asynccontextmanager

import httpx
from fastapi import FastAPI, Request
from fastapi.exception_handlers import http_exception_handler
from fastapi.responses import JSONResponse, Response
from starlette.exceptions import HTTPException as StarletteHTTPException

from chatrelay.app.chat.contracts import MethodNotAllowedError
from chatrelay.app.chat.service import ChatConfigSource, ChatRelayService
from chatrelay.app.history.contracts import KeyValueStore
from chatrelay.app.history.kv_store import CloudflareKVStore, InMemoryKeyValueStore
from chatrelay.core.config import (
    AppConfig,
    EnvironmentChatConfigSource,
    load_app_config,
)

LOGGER = logging.getLogger(__name__)

CHAT_METHODS = ["GET", "POST", "PUT", "PATCH", "DELETE", "HEAD", "OPTIONS"]


def build_history_store(config: AppConfig) -> KeyValueStore:
    if config.history_backend == "cloudflare":
        if (
            not config.cloudflare_account_id
            or not config.cloudflare_api_token
            or not config.cloudflare_kv_namespace_id
        ):
            raise ValueError(
                "HISTORY_BACKEND=cloudflare requires CLOUDFLARE_ACCOUNT_ID, "
                "CLOUDFLARE_API_TOKEN and CLOUDFLARE_KV_NAMESPACE_ID"
            )
        return CloudflareKVStore(
            account_id=config.cloudflare_account_id,
            namespace_id=config.cloudflare_kv_namespace_id,
            api_token=config.cloudflare_api_token,
        )
    if config.history_backend != "memory":
        LOGGER.warning(
            "Unknown HISTORY_BACKEND %r, using in-memory history",
            config.history_backend,
        )
    return InMemoryKeyValueStore()


def create_app(
    config: AppConfig | None = None,
    *,
    store: KeyValueStore | None = None,
    config_source: ChatConfigSource | None = None,
    transport: httpx.AsyncBaseTransport | None = None,
) -> FastAPI:
    app_config = config or load_app_config()
    relay = ChatRelayService(
        store=store if store is not None else build_history_store(app_config),
        config_source=(
            config_source
            if config_source is not None
            else EnvironmentChatConfigSource()
        ),
        cookie_name=app_config.session_cookie_name,
        session_ttl_seconds=app_config.session_ttl_seconds,
        max_history_messages=app_config.max_history_messages,
        upstream_timeout_seconds=app_config.upstream_timeout_seconds,
        transport=transport,
    )

    @asynccontextmanager
    async def lifespan(_app: FastAPI):
        LOGGER.info(
            "Starting %s %s (%s), history backend: %s",
            app_config.app_name,
            app_config.app_version,
            app_config.environment,
            app_config.history_backend,
        )
        yield

    app = FastAPI(
        title=app_config.app_name, version=app_config.app_version, lifespan=lifespan
    )
    app.state.relay = relay

    @app.exception_handler(StarletteHTTPException)
    async def method_not_allowed(
        request: Request, exc: StarletteHTTPException
    ) -> Response:
        # Methods the router does not know get the same body as the chat route.
        if exc.status_code == 405:
            error = MethodNotAllowedError()
            return JSONResponse(
                content=error.to_payload(),
                status_code=error.status_code,
                headers=exc.headers,
            )
        return await http_exception_handler(request, exc)

    @app.get("/health")
    async def health() -> dict[str, bool]:
        return {"ok": True}

    @app.api_route("/api/chat", methods=CHAT_METHODS)
    async def chat(request: Request) -> JSONResponse:
        raw_body = await request.body() if request.method == "POST" else b""
        result = await relay.handle(
            method=request.method,
            cookie_header=request.headers.get("cookie"),
            raw_body=raw_body,
        )
        headers = {"Set-Cookie": result.set_cookie} if result.set_cookie else None
        return JSONResponse(
            content=result.payload, status_code=result.status_code, headers=headers
        )

    return app
