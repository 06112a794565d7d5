"""Module registration and startup loading."""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass, replace
from types import MappingProxyType, ModuleType

from ..config import BotConfig
from ..logging import get_logger
from ..types import NO_HELP, Handler, HandlerRegistration, InitHook

logger = get_logger(__name__)


class ModuleLoadError(Exception):
    """A module could not be registered or initialized."""


def normalize_module_name(name: str) -> str:
    return name.strip().lower()


@dataclass(frozen=True, slots=True)
class BotModule:
    name: str
    handler: Handler
    init: InitHook | None = None
    help: str | None = None

    @classmethod
    def from_module(cls, module: ModuleType, name: str | None = None) -> BotModule:
        """Build from a Python module exposing `handler`, `init` and `help`."""
        module_name = name or module.__name__.rpartition(".")[2]
        handler = getattr(module, "handler", None)
        if not callable(handler):
            raise ModuleLoadError(f"module {module_name!r} has no handler")
        init = getattr(module, "init", None)
        help_text = getattr(module, "help", None)
        return cls(
            name=module_name,
            handler=handler,
            init=init if callable(init) else None,
            help=help_text if isinstance(help_text, str) else None,
        )


@dataclass(frozen=True, slots=True)
class LoadedModules:
    handlers: tuple[HandlerRegistration, ...]
    help_messages: Mapping[str, str]
    handler_names: tuple[str, ...]


class ModuleRegistry:
    """Ordered set of modules; registration order is dispatch order."""

    def __init__(self, modules: Iterable[BotModule] = ()) -> None:
        self._modules: list[BotModule] = []
        for module in modules:
            self.register(module)

    def register(self, module: BotModule) -> ModuleRegistry:
        # stored lowercased; room settings and commands match names that way
        name = normalize_module_name(module.name)
        if not name:
            raise ModuleLoadError("module name must not be empty")
        if not callable(module.handler):
            raise ModuleLoadError(f"module {name!r} has no handler")
        if name in self.names:
            raise ModuleLoadError(f"module {name!r} is already registered")
        if name != module.name:
            module = replace(module, name=name)
        self._modules.append(module)
        return self

    def add(
        self,
        name: str,
        handler: Handler,
        *,
        init: InitHook | None = None,
        help: str | None = None,
    ) -> ModuleRegistry:
        return self.register(
            BotModule(name=name, handler=handler, init=init, help=help)
        )

    @property
    def names(self) -> tuple[str, ...]:
        return tuple(module.name for module in self._modules)

    def __len__(self) -> int:
        return len(self._modules)

    async def load(self, config: BotConfig) -> LoadedModules:
        """Run every init hook in order, then freeze the handler list.

        Any init failure aborts the whole load.
        """
        handlers: list[HandlerRegistration] = []
        help_messages: dict[str, str] = {}
        for module in self._modules:
            if module.init is not None:
                try:
                    await module.init(config)
                except Exception as exc:
                    logger.error("modules.init_failed", module=module.name)
                    raise ModuleLoadError(
                        f"module {module.name!r} failed to initialize: {exc}"
                    ) from exc
            handlers.append(
                HandlerRegistration(module_name=module.name, invoke=module.handler)
            )
            help_messages[module.name] = module.help or NO_HELP
            logger.debug("modules.loaded", module=module.name)
        logger.info("modules.ready", modules=[h.module_name for h in handlers])
        return LoadedModules(
            handlers=tuple(handlers),
            help_messages=MappingProxyType(help_messages),
            handler_names=tuple(h.module_name for h in handlers),
        )
