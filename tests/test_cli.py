"""Tests for the command-line entry point."""

from __future__ import annotations

import json
from pathlib import Path
from unittest.mock import AsyncMock, patch

import pytest

from modbot_matrix import cli


def test_help_exits_zero(capsys: pytest.CaptureFixture[str]) -> None:
    with pytest.raises(SystemExit) as exc_info:
        cli.main(["--help"])

    assert exc_info.value.code == 0
    assert "CONFIG" in capsys.readouterr().out


def test_short_help_exits_zero() -> None:
    with pytest.raises(SystemExit) as exc_info:
        cli.main(["-h"])
    assert exc_info.value.code == 0


def test_missing_config_reports_error(
    tmp_path: Path, capsys: pytest.CaptureFixture[str]
) -> None:
    code = cli.main([str(tmp_path / "absent.json")])

    assert code == 1
    assert "Missing config" in capsys.readouterr().err


def test_uses_first_config_only(tmp_path: Path) -> None:
    run_bot = AsyncMock(return_value=0)
    with patch.object(cli, "run_bot", run_bot):
        code = cli.main(["first.json", "second.json"])

    assert code == 0
    run_bot.assert_awaited_once_with("first.json")


def test_defaults_to_config_json() -> None:
    run_bot = AsyncMock(return_value=0)
    with patch.object(cli, "run_bot", run_bot):
        cli.main([])

    run_bot.assert_awaited_once_with("config.json")


def test_module_init_failure_reports_error(
    tmp_path: Path,
    monkeypatch: pytest.MonkeyPatch,
    capsys: pytest.CaptureFixture[str],
) -> None:
    config_path = tmp_path / "config.json"
    config_path.write_text(
        json.dumps(
            {
                "homeserver": "https://hs.example.org",
                "accessToken": "tok",
                "owner": "@owner:hs.example.org",
            }
        )
    )
    from modbot_matrix.bridge.registry import ModuleRegistry

    async def broken_init(config) -> None:
        raise RuntimeError("database offline")

    async def handler(client, msg, extra) -> None:
        return None

    registry = ModuleRegistry().add("weather", handler, init=broken_init)
    monkeypatch.chdir(tmp_path)

    with patch(
        "modbot_matrix.modules.default_registry", return_value=registry
    ):
        code = cli.main([str(config_path)])

    assert code == 1
    assert "weather" in capsys.readouterr().err


def test_unexpected_startup_error_reports_error(
    capsys: pytest.CaptureFixture[str],
) -> None:
    run_bot = AsyncMock(side_effect=PermissionError("data: permission denied"))
    with patch.object(cli, "run_bot", run_bot):
        code = cli.main(["config.json"])

    assert code == 1
    assert "Error in main: data: permission denied" in capsys.readouterr().err


def test_task_group_errors_are_unwrapped(
    capsys: pytest.CaptureFixture[str],
) -> None:
    error = ExceptionGroup(
        "unhandled errors in a TaskGroup",
        [ExceptionGroup("nested", [ConnectionError("homeserver unreachable")])],
    )
    with patch.object(cli, "run_bot", AsyncMock(side_effect=error)):
        code = cli.main(["config.json"])

    assert code == 1
    assert "Error in main: homeserver unreachable" in capsys.readouterr().err
