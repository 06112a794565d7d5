"""Liveness check: `!ping` answers with a configurable reply."""

from __future__ import annotations

from typing import TYPE_CHECKING

from ..bridge.commands import parse_command, reply
from ..bridge.registry import BotModule
from ..config import BotConfig
from ..types import Extra, Message

if TYPE_CHECKING:
    from ..client.transport import MatrixTransport

help = "`!ping` checks that the bot is alive."

DEFAULT_REPLY = "pong!"


class PingModule:
    def __init__(self, reply_text: str = DEFAULT_REPLY) -> None:
        self.reply_text = reply_text

    async def init(self, config: BotConfig) -> None:
        value = config.module_config("ping").get("reply")
        if isinstance(value, str) and value.strip():
            self.reply_text = value.strip()
        else:
            self.reply_text = DEFAULT_REPLY

    async def handler(self, client: MatrixTransport, msg: Message, extra: Extra) -> None:
        command_id, _ = parse_command(msg.body)
        if command_id != "ping":
            return
        await reply(client, msg, self.reply_text)


def build() -> BotModule:
    ping = PingModule()
    return BotModule(name="ping", handler=ping.handler, init=ping.init, help=help)
