from __future__ import annotations

import time
from dataclasses import dataclass, field
from typing import Callable
from urllib.parse import quote

import httpx

CLOUDFLARE_API_BASE = "https://api.cloudflare.com/client/v4"


@dataclass
class InMemoryKeyValueStore:
    """Process-local store; expired entries are dropped on read and swept on write."""

    clock: Callable[[], float] = time.monotonic
    _entries: dict[str, tuple[str, float]] = field(default_factory=dict)

    async def get(self, key: str) -> str | None:
        entry = self._entries.get(key)
        if entry is None:
            return None
        value, expires_at = entry
        if self.clock() >= expires_at:
            self._entries.pop(key, None)
            return None
        return value

    async def put(self, key: str, value: str, *, expiration_ttl: int) -> None:
        now = self.clock()
        self._entries[key] = (value, now + expiration_ttl)
        self._cleanup(now)

    def _cleanup(self, now: float) -> None:
        expired = [
            key
            for key, (_, expires_at) in self._entries.items()
            if now >= expires_at
        ]
        for key in expired:
            self._entries.pop(key, None)

    def entry_count(self) -> int:
        return len(self._entries)

    def clear(self) -> None:
        self._entries.clear()


@dataclass(frozen=True)
class CloudflareKVStore:
    account_id: str
    namespace_id: str
    api_token: str
    timeout_seconds: float = 20.0
    transport: httpx.AsyncBaseTransport | None = None

    def _value_url(self, key: str) -> str:
        return (
            f"{CLOUDFLARE_API_BASE}/accounts/{self.account_id}"
            f"/storage/kv/namespaces/{self.namespace_id}/values/{quote(key, safe='')}"
        )

    def _headers(self) -> dict[str, str]:
        return {"Authorization": f"Bearer {self.api_token}"}

    async def get(self, key: str) -> str | None:
        async with httpx.AsyncClient(
            timeout=self.timeout_seconds, transport=self.transport
        ) as client:
            response = await client.get(self._value_url(key), headers=self._headers())
        if response.status_code == 404:
            return None
        response.raise_for_status()
        return response.text

    async def put(self, key: str, value: str, *, expiration_ttl: int) -> None:
        async with httpx.AsyncClient(
            timeout=self.timeout_seconds, transport=self.transport
        ) as client:
            response = await client.put(
                self._value_url(key),
                params={"expiration_ttl": expiration_ttl},
                headers={**self._headers(), "Content-Type": "text/plain"},
                content=value.encode("utf-8"),
            )
        response.raise_for_status()
