from __future__ import annotations

from dataclasses import dataclass
from typing import Any

import httpx

from ..config import ConfigError
from ..logging import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True, slots=True)
class BotIdentity:
    user_id: str
    device_id: str


async def _whoami(
    homeserver: str,
    token: str,
    *,
    http: httpx.AsyncClient | None = None,
) -> dict[str, Any]:
    hs = homeserver.rstrip("/")
    owned = http is None
    client = http if http is not None else httpx.AsyncClient(timeout=20.0)
    try:
        response = await client.get(
            f"{hs}/_matrix/client/v3/account/whoami",
            headers={"Authorization": f"Bearer {token}"},
        )
    finally:
        if owned:
            await client.aclose()
    if response.status_code == 401:
        raise ConfigError("whoami unauthorized (401); check accessToken")
    response.raise_for_status()
    data = response.json()
    if not isinstance(data, dict):
        raise ConfigError("whoami returned non-object JSON")
    return data


async def resolve_identity(
    homeserver: str,
    token: str,
    *,
    http: httpx.AsyncClient | None = None,
) -> BotIdentity:
    """Ask the homeserver which user and device the access token belongs to."""
    who = await _whoami(homeserver, token, http=http)
    user_id = str(who.get("user_id") or "")
    device_id = str(who.get("device_id") or "")
    if not user_id:
        raise ConfigError("whoami returned no user_id")
    logger.info("matrix.identity.resolved", user_id=user_id, device_id=device_id)
    return BotIdentity(user_id=user_id, device_id=device_id)
