from __future__ import annotations

from dataclasses import dataclass

from pydantic import BaseModel, Field


class RelayError(Exception):
    status_code = 500

    def __init__(self, message: str, *, status_code: int | None = None) -> None:
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code

    def to_payload(self) -> dict[str, str]:
        return {"error": self.message}


class MethodNotAllowedError(RelayError):
    status_code = 405

    def __init__(self) -> None:
        super().__init__("Method Not Allowed")


class ConfigurationError(RelayError):
    def __init__(self) -> None:
        super().__init__(
            "AI API key or URL is not configured. Contact the administrator."
        )


class UpstreamError(RelayError):
    def __init__(self, status_code: int, detail: str) -> None:
        super().__init__(
            f"API error ({status_code}): {detail}", status_code=status_code
        )
        self.detail = detail


class EmptyResponseError(RelayError):
    def __init__(self) -> None:
        super().__init__("AI returned an empty response.")


class UnhandledException(RelayError):
    def __init__(self, cause: BaseException) -> None:
        super().__init__(f"System error: {cause}")


class MessagePart(BaseModel):
    text: str


class MessageContent(BaseModel):
    role: str | None = None
    parts: list[MessagePart] = Field(min_length=1)


class ChatRequestBody(BaseModel):
    contents: list[MessageContent] = Field(min_length=1)

    def latest_user_text(self) -> str:
        return self.contents[-1].parts[0].text


class CanonicalPart(BaseModel):
    text: str


class CanonicalContent(BaseModel):
    parts: list[CanonicalPart]


class CanonicalCandidate(BaseModel):
    content: CanonicalContent


class CanonicalResponse(BaseModel):
    candidates: list[CanonicalCandidate]


@dataclass(frozen=True)
class RelayResponse:
    status_code: int
    payload: dict[str, object]
    set_cookie: str | None = None
