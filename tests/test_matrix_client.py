"""Tests for the client package - nio adapter, identity and content builders."""

from __future__ import annotations

from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import anyio
import httpx
import nio
import pytest

from matrix_fixtures import BOT_USER_ID, ROOM_ID
from modbot_matrix.client.content_builders import build_message_content
from modbot_matrix.client.identity import BotIdentity, resolve_identity
from modbot_matrix.client.transport import MatrixTransport, MatrixTransportError
from modbot_matrix.config import ConfigError


def _nio_client() -> MagicMock:
    client = MagicMock()
    client.user_id = BOT_USER_ID
    client.rooms = {}
    return client


def _room(room_id: str = ROOM_ID) -> SimpleNamespace:
    return SimpleNamespace(room_id=room_id)


# --- content builders ---


def test_build_notice_content() -> None:
    assert build_message_content("hi") == {"msgtype": "m.notice", "body": "hi"}


def test_build_reply_content_with_html() -> None:
    content = build_message_content(
        "hi", formatted_body="<b>hi</b>", reply_to_event_id="$orig", notice=False
    )
    assert content == {
        "msgtype": "m.text",
        "body": "hi",
        "format": "org.matrix.custom.html",
        "formatted_body": "<b>hi</b>",
        "m.relates_to": {"m.in_reply_to": {"event_id": "$orig"}},
    }


# --- MatrixTransport tests ---


def test_transport_registers_nio_callbacks() -> None:
    client = _nio_client()

    MatrixTransport(client)

    filters = [call.args[1] for call in client.add_event_callback.call_args_list]
    assert nio.RoomMemberEvent in filters
    assert (nio.RoomMessage, nio.RedactedEvent) in filters
    assert nio.InviteMemberEvent in filters


def test_transport_without_autojoin() -> None:
    client = _nio_client()
    MatrixTransport(client, autojoin=False)
    filters = [call.args[1] for call in client.add_event_callback.call_args_list]
    assert nio.InviteMemberEvent not in filters


@pytest.mark.anyio
async def test_create_sets_identity() -> None:
    transport = MatrixTransport.create(
        "https://matrix.example.org", "secret", BotIdentity(BOT_USER_ID, "DEVICE")
    )
    try:
        assert transport.user_id == BOT_USER_ID
        assert transport.nio_client.access_token == "secret"
        assert transport.nio_client.device_id == "DEVICE"
    finally:
        await transport.close()


@pytest.mark.anyio
async def test_own_join_fires_room_join_callback() -> None:
    transport = MatrixTransport(_nio_client())
    joined: list[str] = []
    transport.on_room_join(joined.append)
    event = SimpleNamespace(
        state_key=BOT_USER_ID, membership="join", prev_membership="invite"
    )

    await transport._on_member_event(_room(), event)  # type: ignore[arg-type]

    assert joined == [ROOM_ID]


@pytest.mark.anyio
@pytest.mark.parametrize(
    ("state_key", "membership", "prev_membership"),
    [
        ("@alice:example.org", "join", None),
        (BOT_USER_ID, "leave", "join"),
        (BOT_USER_ID, "join", "join"),
    ],
)
async def test_other_member_events_are_ignored(
    state_key: str, membership: str, prev_membership: str | None
) -> None:
    transport = MatrixTransport(_nio_client())
    joined: list[str] = []
    transport.on_room_join(joined.append)
    event = SimpleNamespace(
        state_key=state_key, membership=membership, prev_membership=prev_membership
    )

    await transport._on_member_event(_room(), event)  # type: ignore[arg-type]

    assert joined == []


@pytest.mark.anyio
async def test_async_join_callback_is_awaited() -> None:
    transport = MatrixTransport(_nio_client())
    callback = AsyncMock()
    transport.on_room_join(callback)
    event = SimpleNamespace(state_key=BOT_USER_ID, membership="join", prev_membership=None)

    await transport._on_member_event(_room(), event)  # type: ignore[arg-type]

    callback.assert_awaited_once_with(ROOM_ID)


@pytest.mark.anyio
async def test_message_callback_receives_raw_source() -> None:
    transport = MatrixTransport(_nio_client())
    callback = AsyncMock()
    transport.on_room_message(callback)
    source = {"type": "m.room.message", "content": {"msgtype": "m.text", "body": "x"}}

    await transport._on_message_event(_room(), SimpleNamespace(source=source))  # type: ignore[arg-type]

    callback.assert_awaited_once_with(ROOM_ID, source)


@pytest.mark.anyio
async def test_invite_is_autojoined() -> None:
    client = _nio_client()
    client.join = AsyncMock(return_value=SimpleNamespace(room_id=ROOM_ID))
    transport = MatrixTransport(client)
    event = SimpleNamespace(
        state_key=BOT_USER_ID, membership="invite", sender="@alice:example.org"
    )

    await transport._on_invite_event(_room(), event)  # type: ignore[arg-type]

    client.join.assert_awaited_once_with(ROOM_ID)


@pytest.mark.anyio
async def test_invite_for_someone_else_is_ignored() -> None:
    client = _nio_client()
    client.join = AsyncMock()
    transport = MatrixTransport(client)
    event = SimpleNamespace(
        state_key="@alice:example.org", membership="invite", sender="@bob:example.org"
    )

    await transport._on_invite_event(_room(), event)  # type: ignore[arg-type]

    client.join.assert_not_awaited()


@pytest.mark.anyio
async def test_send_text_builds_reply_notice() -> None:
    client = _nio_client()
    client.room_send = AsyncMock(return_value=SimpleNamespace(event_id="$sent"))
    transport = MatrixTransport(client)

    event_id = await transport.send_text(ROOM_ID, "pong!", reply_to="$orig")

    assert event_id == "$sent"
    client.room_send.assert_awaited_once_with(
        ROOM_ID,
        message_type="m.room.message",
        content=build_message_content("pong!", reply_to_event_id="$orig"),
    )


@pytest.mark.anyio
async def test_send_text_error_raises() -> None:
    client = _nio_client()
    client.room_send = AsyncMock(return_value=nio.ErrorResponse("forbidden"))
    transport = MatrixTransport(client)

    with pytest.raises(MatrixTransportError, match="room_send"):
        await transport.send_text(ROOM_ID, "pong!")


@pytest.mark.anyio
async def test_presence_roundtrip() -> None:
    client = _nio_client()
    client.set_presence = AsyncMock(return_value=SimpleNamespace())
    client.get_presence = AsyncMock(return_value=SimpleNamespace(presence="offline"))
    transport = MatrixTransport(client)

    await transport.set_presence_status("offline", "bot exited")
    state = await transport.get_presence_status()

    client.set_presence.assert_awaited_once_with("offline", "bot exited")
    client.get_presence.assert_awaited_once_with(BOT_USER_ID)
    assert state == "offline"


@pytest.mark.anyio
async def test_get_presence_error_raises() -> None:
    client = _nio_client()
    client.get_presence = AsyncMock(return_value=nio.ErrorResponse("nope"))
    transport = MatrixTransport(client)

    with pytest.raises(MatrixTransportError):
        await transport.get_presence_status()


def test_user_power_level() -> None:
    client = _nio_client()
    levels = {"@mod:example.org": 50}
    client.rooms = {
        ROOM_ID: SimpleNamespace(
            power_levels=SimpleNamespace(get_user_level=lambda u: levels.get(u, 0))
        )
    }
    transport = MatrixTransport(client)

    assert transport.user_power_level(ROOM_ID, "@mod:example.org") == 50
    assert transport.user_power_level(ROOM_ID, "@alice:example.org") == 0
    assert transport.user_power_level("!unknown:example.org", "@mod:example.org") == 0


@pytest.mark.anyio
async def test_start_and_stop_sync_loop() -> None:
    client = _nio_client()
    client.sync = AsyncMock(return_value=SimpleNamespace())

    async def sync_forever(**kwargs) -> None:
        await anyio.sleep_forever()

    client.sync_forever = sync_forever
    transport = MatrixTransport(client)

    with anyio.fail_after(5):
        async with anyio.create_task_group() as task_group:
            await transport.start(task_group)
            client.sync.assert_awaited_once_with(timeout=0, full_state=True)
            transport.stop()


@pytest.mark.anyio
async def test_start_fails_on_initial_sync_error() -> None:
    client = _nio_client()
    client.sync = AsyncMock(return_value=nio.ErrorResponse("down"))
    transport = MatrixTransport(client)

    with pytest.raises(MatrixTransportError, match="initial sync"):
        await transport._run_sync()
    client.sync_forever.assert_not_called()


# --- identity tests ---


def _http(handler) -> httpx.AsyncClient:
    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


@pytest.mark.anyio
async def test_resolve_identity() -> None:
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(
            200, json={"user_id": BOT_USER_ID, "device_id": "DEVICE"}
        )

    async with _http(handler) as http:
        identity = await resolve_identity("https://hs.example.org/", "tok", http=http)

    assert identity == BotIdentity(user_id=BOT_USER_ID, device_id="DEVICE")
    assert str(seen[0].url) == "https://hs.example.org/_matrix/client/v3/account/whoami"
    assert seen[0].headers["Authorization"] == "Bearer tok"


@pytest.mark.anyio
async def test_resolve_identity_unauthorized() -> None:
    async with _http(lambda request: httpx.Response(401)) as http:
        with pytest.raises(ConfigError, match="401"):
            await resolve_identity("https://hs.example.org", "bad", http=http)


@pytest.mark.anyio
async def test_resolve_identity_without_user_id() -> None:
    async with _http(lambda request: httpx.Response(200, json={})) as http:
        with pytest.raises(ConfigError, match="user_id"):
            await resolve_identity("https://hs.example.org", "tok", http=http)
