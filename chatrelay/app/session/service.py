from __future__ import annotations

from uuid import uuid4

from chatrelay.app.session.contracts import SessionResolution

DEFAULT_COOKIE_NAME = "chat_session_id"


def parse_cookie_header(cookie_header: str | None) -> dict[str, str]:
    if not isinstance(cookie_header, str) or not cookie_header.strip():
        return {}
    cookies: dict[str, str] = {}
    for pair in cookie_header.split(";"):
        name, _, value = pair.strip().partition("=")
        name = name.strip()
        # First occurrence wins, matching how browsers order duplicates.
        if name and name not in cookies:
            cookies[name] = value.strip()
    return cookies


def read_session_cookie(
    cookie_header: str | None,
    cookie_name: str = DEFAULT_COOKIE_NAME,
) -> str | None:
    value = parse_cookie_header(cookie_header).get(cookie_name)
    return value if value else None


def mint_session_id() -> str:
    return str(uuid4())


def resolve_session(
    cookie_header: str | None,
    cookie_name: str = DEFAULT_COOKIE_NAME,
) -> SessionResolution:
    existing = read_session_cookie(cookie_header, cookie_name)
    if existing is not None:
        return SessionResolution(session_id=existing, is_new=False)
    return SessionResolution(session_id=mint_session_id(), is_new=True)


def build_session_cookie(
    session_id: str,
    *,
    max_age_seconds: int,
    cookie_name: str = DEFAULT_COOKIE_NAME,
) -> str:
    return (
        f"{cookie_name}={session_id}; Path=/; Max-Age={max_age_seconds}; "
        "HttpOnly; Secure; SameSite=Strict"
    )
