"""Thin adapter over `nio.AsyncClient` exposing what the bot core needs."""

from __future__ import annotations

from collections.abc import Awaitable, Callable, Mapping
from typing import Any

import anyio
import nio
from anyio.abc import TaskGroup

from ..logging import get_logger
from .content_builders import build_message_content
from .identity import BotIdentity

logger = get_logger(__name__)

RoomJoinCallback = Callable[[str], Awaitable[None] | None]
RoomMessageCallback = Callable[[str, Mapping[str, Any]], Awaitable[None]]

DEFAULT_SYNC_TIMEOUT_MS = 30_000


class MatrixTransportError(Exception):
    """A Matrix API call returned an error response."""


def _check(response: Any, action: str) -> Any:
    if isinstance(response, nio.ErrorResponse):
        raise MatrixTransportError(f"{action} failed: {response}")
    return response


class MatrixTransport:
    """Room join/message subscriptions, presence and sending over matrix-nio."""

    def __init__(
        self,
        client: nio.AsyncClient,
        *,
        sync_timeout_ms: int = DEFAULT_SYNC_TIMEOUT_MS,
        autojoin: bool = True,
    ) -> None:
        self._client = client
        self._sync_timeout_ms = sync_timeout_ms
        self._sync_scope: anyio.CancelScope | None = None
        self._join_callbacks: list[RoomJoinCallback] = []
        self._message_callbacks: list[RoomMessageCallback] = []
        client.add_event_callback(self._on_member_event, nio.RoomMemberEvent)
        client.add_event_callback(
            self._on_message_event, (nio.RoomMessage, nio.RedactedEvent)
        )
        if autojoin:
            client.add_event_callback(self._on_invite_event, nio.InviteMemberEvent)

    @classmethod
    def create(
        cls, homeserver: str, access_token: str, identity: BotIdentity
    ) -> MatrixTransport:
        client = nio.AsyncClient(
            homeserver,
            identity.user_id,
            device_id=identity.device_id or None,
            config=nio.AsyncClientConfig(encryption_enabled=False),
        )
        client.user_id = identity.user_id
        client.access_token = access_token
        return cls(client)

    @property
    def user_id(self) -> str:
        return self._client.user_id

    @property
    def nio_client(self) -> nio.AsyncClient:
        return self._client

    def on_room_join(self, callback: RoomJoinCallback) -> None:
        self._join_callbacks.append(callback)

    def on_room_message(self, callback: RoomMessageCallback) -> None:
        self._message_callbacks.append(callback)

    async def start(self, task_group: TaskGroup) -> None:
        """Run the initial sync, then keep syncing in `task_group`."""
        await task_group.start(self._run_sync)
        logger.info("matrix.client.started", user_id=self.user_id)

    async def _run_sync(self, *, task_status=anyio.TASK_STATUS_IGNORED) -> None:
        with anyio.CancelScope() as scope:
            self._sync_scope = scope
            _check(
                await self._client.sync(timeout=0, full_state=True),
                "initial sync",
            )
            task_status.started()
            await self._client.sync_forever(timeout=self._sync_timeout_ms)

    def stop(self) -> None:
        if self._sync_scope is not None:
            self._sync_scope.cancel()
            self._sync_scope = None
            logger.info("matrix.client.stopped")

    async def close(self) -> None:
        await self._client.close()

    async def set_presence_status(
        self, state: str, message: str | None = None
    ) -> None:
        _check(await self._client.set_presence(state, message), "set_presence")

    async def get_presence_status(self) -> str:
        response = _check(
            await self._client.get_presence(self.user_id), "get_presence"
        )
        return str(response.presence)

    async def send_text(
        self,
        room_id: str,
        text: str,
        *,
        formatted: str | None = None,
        reply_to: str | None = None,
        notice: bool = True,
    ) -> str | None:
        content = build_message_content(
            text,
            formatted_body=formatted,
            reply_to_event_id=reply_to,
            notice=notice,
        )
        response = _check(
            await self._client.room_send(
                room_id,
                message_type="m.room.message",
                content=content,
            ),
            "room_send",
        )
        return getattr(response, "event_id", None)

    def user_power_level(self, room_id: str, user_id: str) -> int:
        room = self._client.rooms.get(room_id)
        if room is None:
            return 0
        return int(room.power_levels.get_user_level(user_id))

    async def _on_member_event(
        self, room: nio.MatrixRoom, event: nio.RoomMemberEvent
    ) -> None:
        if event.state_key != self.user_id:
            return
        if event.membership != "join" or event.prev_membership == "join":
            return
        for callback in self._join_callbacks:
            result = callback(room.room_id)
            if result is not None:
                await result

    async def _on_invite_event(
        self, room: nio.MatrixRoom, event: nio.InviteMemberEvent
    ) -> None:
        if event.state_key != self.user_id or event.membership != "invite":
            return
        response = await self._client.join(room.room_id)
        if isinstance(response, nio.ErrorResponse):
            logger.warning(
                "matrix.room.autojoin_failed",
                room_id=room.room_id,
                error=str(response),
            )
            return
        logger.info(
            "matrix.room.autojoined", room_id=room.room_id, inviter=event.sender
        )

    async def _on_message_event(self, room: nio.MatrixRoom, event: nio.Event) -> None:
        source = event.source if isinstance(event.source, dict) else {}
        # stop() cancels the sync loop; a dispatch already running finishes
        with anyio.CancelScope(shield=True):
            for callback in self._message_callbacks:
                await callback(room.room_id, source)
