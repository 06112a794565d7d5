"""Command helpers shared by bot modules.

This module provides command parsing and replying for module handlers.
"""

from __future__ import annotations

from .parse import DEFAULT_COMMAND_PREFIX, parse_command, split_command_args
from .reply import reply

__all__ = [
    "DEFAULT_COMMAND_PREFIX",
    "parse_command",
    "reply",
    "split_command_args",
]
