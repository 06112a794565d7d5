"""Bot startup, event wiring and signal-driven shutdown."""

from __future__ import annotations

import signal
import time
from collections.abc import Awaitable, Callable, Mapping
from dataclasses import dataclass, field
from functools import partial
from pathlib import Path
from typing import Any

import anyio
from anyio.abc import TaskGroup

from ..client.identity import resolve_identity
from ..client.transport import MatrixTransport, MatrixTransportError
from ..config import DEFAULT_DATA_ROOT, load_config, resolve_storage_dir
from ..logging import get_logger, setup_logging
from ..room_settings import RoomSettingsStore, resolve_settings_path
from ..types import Extra
from .dispatch import Dispatcher, SettingsGate
from .events import normalize_event
from .registry import ModuleRegistry

logger = get_logger(__name__)

SHUTDOWN_SIGNALS = (signal.SIGINT, signal.SIGHUP, signal.SIGQUIT, signal.SIGTERM)
SHUTDOWN_GRACE_SECONDS = 1.0
PRESENCE_POLL_SECONDS = 11.0
MAX_PRESENCE_POLLS = 10

Sleep = Callable[[float], Awaitable[Any]]


def now_ms() -> int:
    return int(time.time() * 1000)


@dataclass(slots=True)
class AppContext:
    """Process-wide bot state, owned by `run_main_loop`.

    `client` is only set while the bot is running; shutdown clears it first
    so a second signal is a no-op.
    """

    dispatcher: Dispatcher
    client: MatrixTransport | None = None
    start_time: int | None = None
    room_joined_at: dict[str, int] = field(default_factory=dict)
    clock: Callable[[], int] = now_ms


def record_room_join(ctx: AppContext, room_id: str) -> None:
    ctx.room_joined_at[room_id] = ctx.clock()
    logger.info(
        "matrix.room.joined", room_id=room_id, joined_at=ctx.room_joined_at[room_id]
    )


async def handle_room_message(
    ctx: AppContext,
    client: MatrixTransport,
    room_id: str,
    event: Mapping[str, Any],
) -> None:
    logger.debug("matrix.event.received", room_id=room_id, raw_event=dict(event))
    if ctx.start_time is None:
        return
    msg = normalize_event(
        event,
        room_id=room_id,
        start_time=ctx.start_time,
        room_joined_at=ctx.room_joined_at,
        self_user_id=client.user_id,
    )
    if msg is None:
        return
    await ctx.dispatcher.dispatch(client, msg)


async def _startup_sequence(
    ctx: AppContext, client: MatrixTransport, task_group: TaskGroup
) -> None:
    ctx.start_time = ctx.clock()
    client.on_room_join(partial(record_room_join, ctx))
    client.on_room_message(partial(handle_room_message, ctx, client))
    await client.start(task_group)
    ctx.client = client
    await client.set_presence_status("online", "bot has been started")
    logger.info("startup.online", user_id=client.user_id, start_time=ctx.start_time)


async def _shutdown_sequence(
    ctx: AppContext,
    *,
    grace_seconds: float = SHUTDOWN_GRACE_SECONDS,
    poll_seconds: float = PRESENCE_POLL_SECONDS,
    max_polls: int = MAX_PRESENCE_POLLS,
    sleep: Sleep = anyio.sleep,
) -> bool:
    """Go offline and wait for the homeserver to agree.

    Returns False when there was no active client. The presence poll gives
    up after `max_polls` attempts and shutdown proceeds regardless.
    """
    if ctx.client is None:
        return False
    client = ctx.client
    ctx.client = None

    logger.info("shutdown.going_offline")
    client.stop()
    await sleep(grace_seconds)
    try:
        await client.set_presence_status("offline", "bot exited")
    except MatrixTransportError as exc:
        logger.warning("shutdown.set_presence_failed", error=str(exc))

    for attempt in range(1, max_polls + 1):
        try:
            presence = await client.get_presence_status()
        except MatrixTransportError as exc:
            logger.warning("shutdown.get_presence_failed", error=str(exc))
            presence = None
        if presence is not None and presence != "online":
            break
        logger.info("shutdown.waiting", presence=presence, attempt=attempt)
        await sleep(poll_seconds)
    else:
        logger.warning("shutdown.presence_still_online", polls=max_polls)

    logger.info("shutdown.done")
    return True


async def _watch_signals(ctx: AppContext, task_group: TaskGroup) -> None:
    with anyio.open_signal_receiver(*SHUTDOWN_SIGNALS) as signals:
        async for signum in signals:
            logger.info("shutdown.signal", signal=signal.Signals(signum).name)
            if await _shutdown_sequence(ctx):
                task_group.cancel_scope.cancel()
                return


async def run_main_loop(ctx: AppContext, client: MatrixTransport) -> None:
    try:
        async with anyio.create_task_group() as task_group:
            await _startup_sequence(ctx, client, task_group)
            task_group.start_soon(_watch_signals, ctx, task_group)
    finally:
        await client.close()


async def run_bot(
    config_path: str | Path,
    *,
    registry: ModuleRegistry | None = None,
    data_root: Path = DEFAULT_DATA_ROOT,
) -> int:
    """Load config and modules, connect, and run until a shutdown signal."""
    config = load_config(config_path)
    setup_logging(config.log_level)

    if registry is None:
        from ..modules import default_registry

        registry = default_registry()
    loaded = await registry.load(config)

    storage_dir = resolve_storage_dir(config_path, data_root)
    storage_dir.mkdir(parents=True, exist_ok=True)
    settings = RoomSettingsStore(resolve_settings_path(storage_dir))

    extra = Extra(
        handler_names=loaded.handler_names,
        help_messages=loaded.help_messages,
        owner=config.owner,
        log_level=config.log_level,
        settings=settings,
    )
    dispatcher = Dispatcher(
        handlers=loaded.handlers, extra=extra, gate=SettingsGate(settings)
    )

    identity = await resolve_identity(config.homeserver, config.access_token)
    client = MatrixTransport.create(config.homeserver, config.access_token, identity)
    await run_main_loop(AppContext(dispatcher=dispatcher), client)
    return 0
