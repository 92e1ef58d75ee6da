from __future__ import annotations

from chatrelay.app.history.contracts import USER_ROLE, Turn


def recent_turns(history: list[Turn], max_messages: int) -> list[Turn]:
    if max_messages <= 0:
        return []
    return history[-max_messages:]


def build_chat_completion_messages(
    history: list[Turn],
    user_message: str,
    persona_prompt: str | None,
    *,
    max_messages: int,
) -> list[dict[str, str]]:
    messages: list[dict[str, str]] = []
    if persona_prompt:
        messages.append({"role": "system", "content": persona_prompt})
    for turn in recent_turns(history, max_messages):
        messages.append(
            {
                "role": "user" if turn.role == USER_ROLE else "assistant",
                "content": turn.text,
            }
        )
    messages.append({"role": "user", "content": user_message})
    return messages


def build_gemini_contents(
    history: list[Turn],
    user_message: str,
    *,
    max_messages: int,
) -> list[dict[str, object]]:
    # Gemini requests carry no persona text.
    contents: list[dict[str, object]] = [
        {
            "role": "user" if turn.role == USER_ROLE else "model",
            "parts": [{"text": turn.text}],
        }
        for turn in recent_turns(history, max_messages)
    ]
    contents.append({"role": "user", "parts": [{"text": user_message}]})
    return contents
