"""Fan a message out to every enabled module handler."""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass, field, replace
from typing import TYPE_CHECKING, Protocol

from ..logging import get_logger
from ..types import Extra, HandlerRegistration, Message

if TYPE_CHECKING:
    from ..client.transport import MatrixTransport
    from ..room_settings import RoomSettingsStore

logger = get_logger(__name__)

ADMIN_MODULE = "admin"


class SettingsGate:
    """Per-room module switch; the admin module can never be switched off."""

    def __init__(self, store: RoomSettingsStore, *, default: bool = True) -> None:
        self._store = store
        self._default = default

    async def is_module_enabled(self, room_id: str, module_name: str) -> bool:
        if module_name == ADMIN_MODULE:
            return True
        return await self._store.is_module_enabled(
            room_id, module_name, default=self._default
        )


class DispatchPolicy(Protocol):
    async def invoke(
        self,
        registration: HandlerRegistration,
        client: MatrixTransport,
        message: Message,
        extra: Extra,
    ) -> bool: ...


class ContinueOnError:
    """Log a failing handler and let the remaining handlers run."""

    async def invoke(
        self,
        registration: HandlerRegistration,
        client: MatrixTransport,
        message: Message,
        extra: Extra,
    ) -> bool:
        try:
            await registration.invoke(client, message, extra)
        except Exception:
            logger.exception(
                "dispatch.handler_failed",
                module=registration.module_name,
                room_id=message.room_id,
                event_id=message.event_id,
            )
            return False
        return True


@dataclass(slots=True)
class Dispatcher:
    handlers: Sequence[HandlerRegistration]
    extra: Extra
    gate: SettingsGate
    policy: DispatchPolicy = field(default_factory=ContinueOnError)

    async def dispatch(self, client: MatrixTransport, message: Message) -> None:
        """Run handlers one after another, in registration order."""
        for registration in self.handlers:
            if registration.module_name != ADMIN_MODULE:
                enabled = await self.gate.is_module_enabled(
                    message.room_id, registration.module_name
                )
                if not enabled:
                    logger.debug(
                        "dispatch.module_disabled",
                        module=registration.module_name,
                        room_id=message.room_id,
                    )
                    continue
            await self.policy.invoke(
                registration, client, message, replace(self.extra)
            )
