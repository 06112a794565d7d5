"""Content builders for Matrix message formatting."""

from __future__ import annotations

from typing import Any


def _build_text_content(
    body: str,
    formatted_body: str | None = None,
    *,
    notice: bool = True,
) -> dict[str, Any]:
    content: dict[str, Any] = {
        "msgtype": "m.notice" if notice else "m.text",
        "body": body,
    }
    if formatted_body:
        content["format"] = "org.matrix.custom.html"
        content["formatted_body"] = formatted_body
    return content


def _build_reply_content(
    body: str,
    formatted_body: str | None,
    reply_to_event_id: str,
    *,
    notice: bool = True,
) -> dict[str, Any]:
    """Build content with m.relates_to for replies."""
    content = _build_text_content(body, formatted_body, notice=notice)
    content["m.relates_to"] = {
        "m.in_reply_to": {"event_id": reply_to_event_id},
    }
    return content


def build_message_content(
    body: str,
    *,
    formatted_body: str | None = None,
    reply_to_event_id: str | None = None,
    notice: bool = True,
) -> dict[str, Any]:
    """Content for a bot message; bots default to `m.notice` so other bots ignore it."""
    if reply_to_event_id is not None:
        return _build_reply_content(
            body, formatted_body, reply_to_event_id, notice=notice
        )
    return _build_text_content(body, formatted_body, notice=notice)
