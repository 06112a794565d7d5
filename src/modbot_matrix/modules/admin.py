"""Room administration: switch modules on and off per room."""

from __future__ import annotations

from typing import TYPE_CHECKING

from ..bridge.commands import parse_command, reply, split_command_args
from ..bridge.dispatch import ADMIN_MODULE
from ..bridge.registry import normalize_module_name
from ..types import Extra, Message

if TYPE_CHECKING:
    from ..client.transport import MatrixTransport
    from ..room_settings import RoomSettingsStore

help = (
    "Room administration for the bot owner and room moderators. "
    "`!admin modules` shows which modules run here; "
    "`!admin enable <module>` and `!admin disable <module>` toggle them."
)

ADMIN_USAGE = (
    "usage: `!admin modules`, `!admin enable <module>`, or `!admin disable <module>`"
)
MODERATOR_POWER_LEVEL = 50


def _is_authorized(client: MatrixTransport, msg: Message, extra: Extra) -> bool:
    if extra.owner and msg.sender == extra.owner:
        return True
    return client.user_power_level(msg.room_id, msg.sender) >= MODERATOR_POWER_LEVEL


async def _handle_modules(
    client: MatrixTransport,
    msg: Message,
    extra: Extra,
    settings: RoomSettingsStore,
) -> None:
    lines = ["modules in this room:"]
    for name in extra.handler_names:
        if name == ADMIN_MODULE:
            lines.append(f"- {name}: enabled (always)")
            continue
        enabled = await settings.is_module_enabled(msg.room_id, name)
        lines.append(f"- {name}: {'enabled' if enabled else 'disabled'}")
    await reply(client, msg, "\n".join(lines))


async def _handle_toggle(
    client: MatrixTransport,
    msg: Message,
    extra: Extra,
    settings: RoomSettingsStore,
    *,
    tokens: tuple[str, ...],
    enabled: bool,
) -> None:
    if len(tokens) != 2:
        await reply(client, msg, ADMIN_USAGE)
        return
    name = normalize_module_name(tokens[1])
    if name not in extra.handler_names:
        await reply(
            client,
            msg,
            f"unknown module `{name}`.\navailable: `{', '.join(extra.handler_names)}`",
        )
        return
    if name == ADMIN_MODULE:
        text = (
            "the admin module is always enabled."
            if enabled
            else "the admin module cannot be disabled."
        )
        await reply(client, msg, text)
        return
    await settings.set_module_enabled(msg.room_id, name, enabled)
    state = "enabled" if enabled else "disabled"
    await reply(client, msg, f"module `{name}` {state} in this room.")


async def handler(client: MatrixTransport, msg: Message, extra: Extra) -> None:
    command_id, args_text = parse_command(msg.body)
    if command_id != ADMIN_MODULE:
        return
    if not _is_authorized(client, msg, extra):
        await reply(
            client, msg, "only the bot owner or room moderators can use `!admin`."
        )
        return
    if extra.settings is None:
        await reply(client, msg, "room settings store unavailable.")
        return

    tokens = split_command_args(args_text)
    action = tokens[0].lower() if tokens else "modules"

    if action in {"modules", "list"}:
        await _handle_modules(client, msg, extra, extra.settings)
        return
    if action in {"enable", "disable"}:
        await _handle_toggle(
            client,
            msg,
            extra,
            extra.settings,
            tokens=tokens,
            enabled=action == "enable",
        )
        return
    await reply(client, msg, ADMIN_USAGE)
