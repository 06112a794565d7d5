"""Built-in bot modules.

`admin` and `help` expose `handler(client, message, extra)` and a `help`
string at module level. `ping` keeps its configured reply on an instance,
so it is built fresh for every registry.
"""

from __future__ import annotations

from ..bridge.registry import BotModule, ModuleRegistry
from . import admin, ping
from . import help as help_module

BUILTIN_MODULES = (admin, help_module)


def default_registry() -> ModuleRegistry:
    registry = ModuleRegistry(
        BotModule.from_module(module) for module in BUILTIN_MODULES
    )
    return registry.register(ping.build())
