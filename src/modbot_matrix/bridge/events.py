"""Turn raw Matrix room events into dispatchable messages."""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from ..logging import get_logger
from ..types import Message

logger = get_logger(__name__)

QUOTE_MARKER = "> "


def _event_timestamp(event: Mapping[str, Any]) -> int | None:
    value = event.get("origin_server_ts")
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, (float, str)):
        try:
            return int(value)
        except (ValueError, OverflowError):
            return None
    return None


def _is_reply(content: Mapping[str, Any]) -> bool:
    relates_to = content.get("m.relates_to")
    return isinstance(relates_to, Mapping) and "m.in_reply_to" in relates_to


def strip_reply_quote(body: str) -> str:
    """Drop the leading `> ` quote block (and blank lines) of a reply body."""
    lines = body.split("\n")
    start = 0
    while start < len(lines) and (
        lines[start].startswith(QUOTE_MARKER) or not lines[start].strip()
    ):
        start += 1
    return "\n".join(lines[start:])


def normalize_event(
    event: Mapping[str, Any],
    *,
    room_id: str,
    start_time: int,
    room_joined_at: Mapping[str, int],
    self_user_id: str,
) -> Message | None:
    """Return a `Message` for a new text command, or None to drop the event.

    Dropped: redacted events, anything older than the process start or the
    bot's join of the room, non-text messages, empty bodies and the bot's
    own messages. Reply quotes are removed before the body is trimmed.
    """
    content = event.get("content")
    if not isinstance(content, Mapping) or not content:
        return None

    timestamp = _event_timestamp(event)
    # missing or non-numeric timestamps drop the event instead of passing it
    if timestamp is None:
        logger.debug("matrix.event.no_timestamp", room_id=room_id)
        return None
    if timestamp < start_time:
        return None
    joined_at = room_joined_at.get(room_id)
    if joined_at is not None and timestamp < joined_at:
        return None

    if content.get("msgtype") != "m.text":
        return None

    body = content.get("body")
    if not isinstance(body, str) or not body:
        return None

    if _is_reply(content):
        body = strip_reply_quote(body)

    sender = event.get("sender")
    if not isinstance(sender, str) or sender == self_user_id:
        return None

    body = body.strip()
    if not body:
        return None

    return Message(body=body, sender=sender, room_id=room_id, raw_event=event)
