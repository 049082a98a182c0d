"""Convenience base class for plugins."""

from __future__ import annotations

import copy
import logging
from collections.abc import Mapping
from typing import TYPE_CHECKING, Any

from ..errors import RuntimeStateError
from ..events import EventBus
from ..state import StateStore, Unwatch, WatchCallback, WatchMode
from ..state.paths import get_path
from ..types import Handler, Unsubscribe

if TYPE_CHECKING:
    from .core import PluginRuntime

logger = logging.getLogger(__name__)


class BasePlugin:
    """
    Base plugin with lifecycle guards and automatic cleanup.

    Subclasses override ``on_init``/``on_start``/``on_stop``/``on_destroy``.
    Subscriptions made through ``on`` and watchers made through ``watch_state``
    are released at ``destroy``.

    Usage:
        class Clock(BasePlugin):
            name = "clock"
            default_config = {"interval_ms": 1000}

            async def on_init(self):
                self.on("core:start:complete", self._tick)
    """

    name: str = ""
    default_config: Mapping[str, Any] = {}

    def __init__(self, name: str | None = None, config: Mapping[str, Any] | None = None) -> None:
        self.name = name or self.name
        if not self.name:
            raise ValueError(f"{type(self).__name__}: name is required")
        self.config: dict[str, Any] = {**copy.deepcopy(dict(self.default_config)), **dict(config or {})}
        self.runtime: PluginRuntime | None = None
        self.event_bus: EventBus | None = None
        self.state: StateStore | None = None
        self.is_initialized = False
        self.is_running = False
        self._subscriptions: list[Unsubscribe] = []
        self._watchers: list[Unwatch] = []
        self.logger = logging.getLogger(f"cadence.plugins.{self.name}")

    # ==================== lifecycle ====================

    async def init(self, runtime: PluginRuntime) -> None:
        if self.is_initialized:
            self.logger.warning("%s: already initialized", self.name)
            return
        self.runtime = runtime
        self.event_bus = runtime.event_bus
        self.state = runtime.state
        self.config.update(runtime.plugin_config(self.name))
        try:
            await self.on_init()
        except Exception:
            self._release()
            raise
        self.is_initialized = True

    async def start(self) -> None:
        if not self.is_initialized:
            raise RuntimeStateError(f"{self.name}: cannot start before init")
        if self.is_running:
            self.logger.warning("%s: already running", self.name)
            return
        await self.on_start()
        self.is_running = True

    async def stop(self) -> None:
        if not self.is_running:
            return
        self.is_running = False
        await self.on_stop()

    async def destroy(self) -> None:
        if self.is_running:
            await self.stop()
        self._release()
        try:
            await self.on_destroy()
        finally:
            self.is_initialized = False
            self.runtime = None
            self.event_bus = None
            self.state = None

    async def on_init(self) -> None:
        pass

    async def on_start(self) -> None:
        pass

    async def on_stop(self) -> None:
        pass

    async def on_destroy(self) -> None:
        pass

    # ==================== events ====================

    def on(self, event_name: str, handler: Handler, *, priority: int = 0, once: bool = False) -> Unsubscribe:
        bus = self._require(self.event_bus, "subscribe")
        unsubscribe = bus.subscribe(event_name, handler, priority=priority, once=once)
        self._subscriptions.append(unsubscribe)
        return unsubscribe

    async def emit(self, event_name: str, payload: Mapping[str, Any] | None = None) -> bool:
        bus = self._require(self.event_bus, "emit")
        return await bus.publish(event_name, {**dict(payload or {}), "source": self.name})

    # ==================== state ====================

    def get_state(self, path: str, default: Any = None) -> Any:
        return self._require(self.state, "get state").get(path, default)

    async def set_state(self, path_or_updates: Any, *args: Any, **kwargs: Any) -> None:
        await self._require(self.state, "set state").set_state(path_or_updates, *args, **kwargs)

    def watch_state(
        self,
        path: str,
        callback: WatchCallback,
        *,
        mode: WatchMode | str = WatchMode.SYNC,
        debounce_ms: float | None = None,
    ) -> Unwatch:
        store = self._require(self.state, "watch state")
        unwatch = store.watch(path, callback, mode=mode, debounce_ms=debounce_ms)
        self._watchers.append(unwatch)
        return unwatch

    def get_plugin_state(self, key: str, default: Any = None) -> Any:
        return self.get_state(f"plugins.{self.name}.{key}", default)

    async def set_plugin_state(self, key: str, value: Any) -> None:
        await self.set_state(f"plugins.{self.name}.{key}", value)

    def get_config(self, path: str, default: Any = None) -> Any:
        return get_path(self.config, path, default)

    # ==================== internals ====================

    def _require(self, resource: Any, what: str) -> Any:
        if resource is None:
            raise RuntimeStateError(f"{self.name}: cannot {what} before init")
        return resource

    def _release(self) -> None:
        for release in [*self._subscriptions, *self._watchers]:
            try:
                release()
            except Exception:
                self.logger.exception("%s: error releasing subscription", self.name)
        self._subscriptions.clear()
        self._watchers.clear()
