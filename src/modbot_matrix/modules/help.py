from __future__ import annotations

from typing import TYPE_CHECKING

from ..bridge.commands import parse_command, reply, split_command_args
from ..bridge.registry import normalize_module_name
from ..types import Extra, Message

if TYPE_CHECKING:
    from ..client.transport import MatrixTransport

help = "`!help` lists the modules; `!help <module>` explains one of them."


async def handler(client: MatrixTransport, msg: Message, extra: Extra) -> None:
    command_id, args_text = parse_command(msg.body)
    if command_id != "help":
        return
    tokens = split_command_args(args_text)
    if not tokens:
        await reply(
            client,
            msg,
            f"modules: {', '.join(extra.handler_names)}\n"
            "use `!help <module>` for details.",
        )
        return
    name = normalize_module_name(tokens[0])
    text = extra.help_messages.get(name)
    if text is None:
        await reply(
            client,
            msg,
            f"unknown module `{name}`.\navailable: `{', '.join(extra.handler_names)}`",
        )
        return
    await reply(client, msg, f"{name}: {text}")
