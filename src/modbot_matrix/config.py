"""Bot configuration loading."""

from __future__ import annotations

import json
import os
from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path
from types import MappingProxyType
from typing import Any

from .logging import DEFAULT_LOG_LEVEL

DEFAULT_CONFIG_FILENAME = "config.json"
DEFAULT_DATA_ROOT = Path("data")
ACCESS_TOKEN_ENV = "MATRIX_ACCESS_TOKEN"


class ConfigError(Exception):
    """Raised when the bot configuration is missing or invalid."""


@dataclass(frozen=True, slots=True)
class BotConfig:
    homeserver: str
    access_token: str
    owner: str
    log_level: str = DEFAULT_LOG_LEVEL
    modules: Mapping[str, Mapping[str, Any]] = field(
        default_factory=lambda: MappingProxyType({})
    )
    path: Path | None = None

    def module_config(self, name: str) -> Mapping[str, Any]:
        value = self.modules.get(name)
        if not isinstance(value, Mapping):
            return {}
        return value


def _expand_path(s: str | Path) -> Path:
    return Path(os.path.expandvars(os.path.expanduser(str(s))))


def _env(name: str) -> str:
    return (os.environ.get(name) or "").strip()


def _read_raw_config(path: Path) -> dict[str, Any]:
    try:
        raw = path.read_text(encoding="utf-8")
    except OSError as exc:
        raise ConfigError(f"Cannot read config at {path}: {exc}") from exc
    if path.suffix == ".toml":
        import tomllib

        try:
            data = tomllib.loads(raw)
        except tomllib.TOMLDecodeError as exc:
            raise ConfigError(f"Invalid TOML in {path}: {exc}") from exc
    else:
        try:
            data = json.loads(raw)
        except json.JSONDecodeError as exc:
            raise ConfigError(f"Invalid JSON in {path}: {exc}") from exc
    if not isinstance(data, dict):
        raise ConfigError(f"{path} must contain an object/table")
    return data


def parse_config(data: Mapping[str, Any], *, path: Path | None = None) -> BotConfig:
    homeserver = str(data.get("homeserver") or "").strip().rstrip("/")
    access_token = str(data.get("accessToken") or "").strip() or _env(
        ACCESS_TOKEN_ENV
    )
    owner = str(data.get("owner") or "").strip()
    log_level = str(data.get("logLevel") or DEFAULT_LOG_LEVEL).strip().lower()

    if not homeserver:
        raise ConfigError("Missing homeserver")
    if not access_token:
        raise ConfigError(f"Missing accessToken (or env {ACCESS_TOKEN_ENV})")
    if not owner:
        raise ConfigError("Missing owner")

    modules = data.get("modules") or {}
    if not isinstance(modules, Mapping):
        raise ConfigError("modules must be an object/table keyed by module name")

    return BotConfig(
        homeserver=homeserver,
        access_token=access_token,
        owner=owner,
        log_level=log_level,
        modules=MappingProxyType(dict(modules)),
        path=path,
    )


def load_config(path: str | Path) -> BotConfig:
    cfg_path = _expand_path(path)
    if not cfg_path.is_file():
        raise ConfigError(f"Missing config at: {cfg_path}")
    return parse_config(_read_raw_config(cfg_path), path=cfg_path)


def resolve_storage_dir(
    config_path: str | Path, root: Path = DEFAULT_DATA_ROOT
) -> Path:
    """Per-config storage directory, e.g. `config-foo.json` -> `data/foo`."""
    name = Path(config_path).name
    for suffix in (".json", ".toml"):
        name = name.removesuffix(suffix)
    prefix = name.replace("config-", "") or "config"
    return root / prefix
