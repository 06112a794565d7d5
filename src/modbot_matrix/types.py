"""Core data types shared by the dispatcher and modules."""

from __future__ import annotations

from collections.abc import Awaitable, Callable, Mapping
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from .client.transport import MatrixTransport
    from .config import BotConfig
    from .room_settings import RoomSettingsStore

NO_HELP = "No help for this module."


@dataclass(frozen=True, slots=True)
class Message:
    """A room message accepted for dispatch."""

    body: str
    sender: str
    room_id: str
    raw_event: Mapping[str, Any]

    @property
    def event_id(self) -> str | None:
        value = self.raw_event.get("event_id")
        return value if isinstance(value, str) else None


@dataclass(frozen=True, slots=True)
class Extra:
    """Read-only bot state handed to every handler invocation."""

    handler_names: tuple[str, ...] = ()
    help_messages: Mapping[str, str] = field(
        default_factory=lambda: MappingProxyType({})
    )
    owner: str = ""
    log_level: str = "warn"
    settings: RoomSettingsStore | None = None


Handler = Callable[["MatrixTransport", Message, Extra], Awaitable[None]]
InitHook = Callable[["BotConfig"], Awaitable[None]]


@dataclass(frozen=True, slots=True)
class HandlerRegistration:
    module_name: str
    invoke: Handler
