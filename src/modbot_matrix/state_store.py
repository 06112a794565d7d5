"""Versioned JSON state file shared by the persistent stores."""

from __future__ import annotations

import json
from collections.abc import Callable
from dataclasses import asdict
from pathlib import Path
from typing import Any, Generic, TypeVar

import anyio

from .logging import get_logger

logger = get_logger(__name__)

T = TypeVar("T")


class JsonStateStore(Generic[T]):
    """Dataclass state persisted as JSON.

    Callers hold `_lock` around every access, call `_reload_locked_if_needed`
    before reading and `_save_locked` after mutating. The file is reloaded
    when its mtime or size changes, so a hand-edited file is picked up without a
    restart.
    """

    def __init__(
        self,
        path: Path,
        *,
        version: int,
        state_type: type[T],
        state_factory: Callable[[], T],
        log_prefix: str,
    ) -> None:
        self._path = path
        self._version = version
        self._state_type = state_type
        self._state_factory = state_factory
        self._log_prefix = log_prefix
        self._lock = anyio.Lock()
        self._loaded = False
        self._signature: tuple[int, int] | None = None
        self._state: T = state_factory()

    @property
    def path(self) -> Path:
        return self._path

    def _stat_signature(self) -> tuple[int, int] | None:
        try:
            stat = self._path.stat()
            return stat.st_mtime_ns, stat.st_size
        except FileNotFoundError:
            return None

    def _reload_locked_if_needed(self) -> None:
        signature = self._stat_signature()
        if self._loaded and signature == self._signature:
            return
        self._load_locked(signature)

    def _load_locked(self, signature: tuple[int, int] | None) -> None:
        self._loaded = True
        self._signature = signature
        if signature is None:
            self._state = self._state_factory()
            return
        try:
            payload = json.loads(self._path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as exc:
            logger.warning(
                f"{self._log_prefix}.load_failed",
                path=str(self._path),
                error=str(exc),
            )
            self._state = self._state_factory()
            return
        if not isinstance(payload, dict) or payload.get("version") != self._version:
            logger.warning(
                f"{self._log_prefix}.version_mismatch",
                path=str(self._path),
                expected=self._version,
            )
            self._state = self._state_factory()
            return
        try:
            self._state = self._state_type(**payload)
        except TypeError as exc:
            logger.warning(
                f"{self._log_prefix}.invalid_state",
                path=str(self._path),
                error=str(exc),
            )
            self._state = self._state_factory()

    def _save_locked(self) -> None:
        payload: dict[str, Any] = asdict(self._state)  # type: ignore[call-overload]
        self._path.parent.mkdir(parents=True, exist_ok=True)
        temp_path = self._path.with_suffix(f"{self._path.suffix}.tmp")
        temp_path.write_text(
            json.dumps(payload, indent=2, sort_keys=True), encoding="utf-8"
        )
        temp_path.replace(self._path)
        self._signature = self._stat_signature()
