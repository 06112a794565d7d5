from __future__ import annotations

from typing import TYPE_CHECKING

from ...types import Message

if TYPE_CHECKING:
    from ...client.transport import MatrixTransport


async def reply(
    client: MatrixTransport,
    msg: Message,
    text: str,
    *,
    formatted: str | None = None,
) -> None:
    """Answer `msg` in its room as a threaded reply notice."""
    await client.send_text(
        msg.room_id,
        text,
        formatted=formatted,
        reply_to=msg.event_id,
    )
