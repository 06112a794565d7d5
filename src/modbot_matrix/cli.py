"""Command-line entry point."""

from __future__ import annotations

import argparse
import sys
from collections.abc import Sequence

import anyio

from .bridge.runtime import run_bot
from .config import DEFAULT_CONFIG_FILENAME

DESCRIPTION = "Matrix bot dispatching room commands to its modules."
EPILOG = "CONFIG files are JSON configs based on config.json.example."


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="modbot",
        description=DESCRIPTION,
        epilog=EPILOG,
    )
    parser.add_argument(
        "configs",
        nargs="*",
        metavar="CONFIG",
        help=f"config file to run with (default: {DEFAULT_CONFIG_FILENAME}); "
        "only the first one is used",
    )
    return parser


def _leaf_errors(group: BaseExceptionGroup) -> list[BaseException]:
    errors: list[BaseException] = []
    for exc in group.exceptions:
        if isinstance(exc, BaseExceptionGroup):
            errors.extend(_leaf_errors(exc))
        else:
            errors.append(exc)
    return errors


def main(argv: Sequence[str] | None = None) -> int:
    args = _build_parser().parse_args(argv)
    config_path = args.configs[0] if args.configs else DEFAULT_CONFIG_FILENAME

    # startup failures inside the task group arrive wrapped in an ExceptionGroup
    try:
        return anyio.run(run_bot, config_path)
    except* Exception as group:
        for exc in _leaf_errors(group):
            print(f"Error in main: {exc}", file=sys.stderr)
    return 1


if __name__ == "__main__":
    raise SystemExit(main())
