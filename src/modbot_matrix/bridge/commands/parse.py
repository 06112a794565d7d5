"""Command parsing utilities."""

from __future__ import annotations

import shlex

DEFAULT_COMMAND_PREFIX = "!"


def parse_command(
    text: str, prefix: str = DEFAULT_COMMAND_PREFIX
) -> tuple[str | None, str]:
    """Parse a prefixed command from text, returning (command_id, args_text).

    Args:
        text: The message body to parse.
        prefix: The command prefix, `!` by default.

    Returns:
        A tuple of (command_id, args_text) where command_id is None if
        the text is not a command.
    """
    stripped = text.lstrip()
    if not stripped.startswith(prefix):
        return None, text
    lines = stripped.splitlines()
    if not lines:
        return None, text
    first_line = lines[0]
    token, _, rest = first_line.partition(" ")
    command = token[len(prefix) :]
    if not command:
        return None, text
    args_text = rest.strip()
    if len(lines) > 1:
        tail = "\n".join(lines[1:])
        args_text = f"{args_text}\n{tail}" if args_text else tail
    return command.lower(), args_text


def split_command_args(text: str) -> tuple[str, ...]:
    """Split command arguments using shell-like parsing.

    Args:
        text: The arguments text to split.

    Returns:
        A tuple of argument strings.
    """
    if not text.strip():
        return ()
    try:
        return tuple(shlex.split(text))
    except ValueError:
        return tuple(text.split())
