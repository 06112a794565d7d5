"""Per-room module enablement store."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path

from .state_store import JsonStateStore

STATE_VERSION = 1
STATE_FILENAME = "settings.json"


@dataclass
class _SettingsState:
    version: int
    rooms: dict[str, dict[str, bool]] = field(default_factory=dict)


def resolve_settings_path(storage_dir: Path) -> Path:
    return storage_dir / STATE_FILENAME


def _normalize_module_name(value: str | None) -> str | None:
    if value is None:
        return None
    value = value.strip().lower()
    return value or None


def _new_state() -> _SettingsState:
    return _SettingsState(version=STATE_VERSION, rooms={})


class RoomSettingsStore(JsonStateStore[_SettingsState]):
    """Store which modules are switched on or off in each room.

    Only explicit choices are stored; a module with no entry for a room
    falls back to the caller's default.
    """

    def __init__(self, path: Path) -> None:
        super().__init__(
            path,
            version=STATE_VERSION,
            state_type=_SettingsState,
            state_factory=_new_state,
            log_prefix="matrix.room_settings",
        )

    async def get_module_enabled(self, room_id: str, module_name: str) -> bool | None:
        module_key = _normalize_module_name(module_name)
        if module_key is None:
            return None
        async with self._lock:
            self._reload_locked_if_needed()
            room = self._state.rooms.get(room_id)
            if not isinstance(room, dict):
                return None
            value = room.get(module_key)
            if not isinstance(value, bool):
                return None
            return value

    async def is_module_enabled(
        self, room_id: str, module_name: str, *, default: bool = True
    ) -> bool:
        value = await self.get_module_enabled(room_id, module_name)
        return default if value is None else value

    async def set_module_enabled(
        self, room_id: str, module_name: str, enabled: bool | None
    ) -> None:
        module_key = _normalize_module_name(module_name)
        if module_key is None:
            return
        async with self._lock:
            self._reload_locked_if_needed()
            room = self._state.rooms.get(room_id)
            if enabled is None:
                if not isinstance(room, dict) or module_key not in room:
                    return
                room.pop(module_key, None)
                if not room:
                    self._state.rooms.pop(room_id, None)
                self._save_locked()
                return
            if not isinstance(room, dict):
                room = {}
                self._state.rooms[room_id] = room
            room[module_key] = bool(enabled)
            self._save_locked()

    async def clear_module(self, room_id: str, module_name: str) -> None:
        await self.set_module_enabled(room_id, module_name, None)

    async def room_overrides(self, room_id: str) -> dict[str, bool]:
        async with self._lock:
            self._reload_locked_if_needed()
            room = self._state.rooms.get(room_id)
            if not isinstance(room, dict):
                return {}
            return {
                name: value for name, value in room.items() if isinstance(value, bool)
            }
